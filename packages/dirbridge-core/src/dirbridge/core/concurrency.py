from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def _cancel_pending(futures: Sequence[Future]) -> None:
    for f in futures:
        f.cancel()


def run_thread_pool(items: Iterable[T], fn: Callable[[T], R], *, workers: int = 8) -> List[R]:
    """Apply fn to every item on a thread pool; results keep the input order.

    Futures are collected in input order, so the exception re-raised (unchanged) is
    the one of the first failing item by position. Tasks not yet started are
    cancelled once a failure is seen.
    """
    batch = list(items)
    if not batch:
        return []

    size = max(1, min(int(workers), len(batch)))
    with ThreadPoolExecutor(max_workers=size, thread_name_prefix="dirbridge") as ex:
        futures = [ex.submit(fn, item) for item in batch]
        out: List[R] = []
        for i, fut in enumerate(futures):
            try:
                out.append(fut.result())
            except Exception:
                _cancel_pending(futures[i + 1:])
                raise
    return out
