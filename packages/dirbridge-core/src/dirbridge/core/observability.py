"""Logging and metrics hooks for connector requests.

Every execute call is bracketed by two events:

    request_start request_type=QUERY operation=execute
    request_end request_type=QUERY operation=execute status=SUCCESS duration_ms=12 error=None

With log_format=json each event is one JSON object per line instead. A metrics sink
(DIRBRIDGE_METRICS_MODULE exposing METRICS) receives the same start/end calls.
"""

from __future__ import annotations

import json
import logging
import time
from importlib import import_module
from typing import Any, Dict

from dirbridge.core.runtime.settings import Settings

log = logging.getLogger("dirbridge.core.observability")

_TEXT_FORMAT = "%(asctime)s - (%(threadName)-10s) - %(name)s - %(levelname)s - %(message)s"


class MetricsSink:
    """No-op base for metrics hooks; subclass and override what you need."""

    def on_request_start(self, *, request_type: str) -> None:  # pragma: no cover
        return None

    def on_request_end(self, *, request_type: str, status: str, duration_ms: int) -> None:  # pragma: no cover
        return None


def load_metrics_sink(settings: Settings) -> MetricsSink:
    if not settings.metrics_module:
        return MetricsSink()
    module = import_module(settings.metrics_module)
    try:
        return getattr(module, "METRICS")
    except AttributeError as e:
        raise AttributeError(f"{settings.metrics_module} must expose METRICS") from e


def dur_ms(t0: float, t1: float) -> int:
    return int((t1 - t0) * 1000)


def _is_json(settings: Settings) -> bool:
    return (settings.log_format or "text").lower() == "json"


def format_event(event: str, fields: Dict[str, Any], *, as_json: bool) -> str:
    if as_json:
        return json.dumps({"ts_ms": int(time.time() * 1000), "event": event, **fields},
                          ensure_ascii=False, default=str)
    return " ".join([event, *(f"{k}={v}" for k, v in fields.items())])


def log_event(logger: logging.Logger, *, settings: Settings, level: int, event: str, **fields: Any) -> None:
    logger.log(level, format_event(event, fields, as_json=_is_json(settings)))


def ensure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        # JSON payloads carry their own ts_ms.
        format="%(message)s" if _is_json(settings) else _TEXT_FORMAT,
    )


class RequestObserver:
    """Times one connector request and reports it to the log and the metrics sink."""

    def __init__(self, *, settings: Settings, logger: logging.Logger, metrics: MetricsSink):
        self.settings = settings
        self.logger = logger
        self.metrics = metrics

    def _notify(self, hook: str, **kwargs: Any) -> None:
        # A broken sink must not fail the request.
        try:
            getattr(self.metrics, hook)(**kwargs)
        except Exception:
            log.warning("MetricsSink.%s failed", hook, exc_info=True)

    def start(self, *, request_type: str, operation: str) -> float:
        log_event(self.logger, settings=self.settings, level=logging.INFO, event="request_start",
                  request_type=request_type, operation=operation)
        self._notify("on_request_start", request_type=request_type)
        return time.perf_counter()

    def end(self, t0: float, *, request_type: str, operation: str, status: str, error: str | None = None) -> int:
        duration = dur_ms(t0, time.perf_counter())
        level = logging.INFO if status == "SUCCESS" else logging.WARNING
        log_event(self.logger, settings=self.settings, level=level, event="request_end",
                  request_type=request_type, operation=operation, status=status,
                  duration_ms=duration, error=error)
        self._notify("on_request_end", request_type=request_type, status=status, duration_ms=duration)
        return duration
