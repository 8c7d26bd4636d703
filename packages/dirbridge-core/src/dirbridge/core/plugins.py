"""Driver plugin discovery.

Third-party execution engines register themselves with `register_driver` at import
time. They are found two ways:

- installed distributions exposing an entry point in the `dirbridge.drivers` group
  (the entry point may be a module, a callable, or an object with `register()`)
- plain `.py` files under DIRBRIDGE_PLUGIN_PATHS (files starting with `_` are skipped)

With plugin_strict (the default) the first failure raises; otherwise it is logged
and discovery continues.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from importlib.metadata import entry_points
from pathlib import Path
from typing import Iterable, List

log = logging.getLogger("dirbridge.core.plugins")

ENTRY_POINT_GROUP = "dirbridge.drivers"
_MODULE_PREFIX = "dirbridge_user_plugin_"


def _fail(strict: bool, message: str, exc: BaseException) -> None:
    if strict:
        raise RuntimeError(f"{message}: {exc}") from exc
    log.warning("%s; continuing", message, exc_info=True)


def load_plugins_from_entrypoints(group: str = ENTRY_POINT_GROUP, *, strict: bool = True) -> List[str]:
    try:
        eps = list(entry_points().select(group=group))
    except Exception as e:
        _fail(strict, f"Failed reading entry points for group={group}", e)
        return []

    loaded: List[str] = []
    for ep in eps:
        try:
            obj = ep.load()
            if hasattr(obj, "register"):
                obj.register()
            elif callable(obj):
                obj()
        except Exception as e:
            _fail(strict, f"Failed loading driver plugin {ep.name}", e)
            continue
        loaded.append(ep.name)
    return loaded


def _plugin_files(root: Path) -> Iterable[Path]:
    return (p for p in sorted(root.rglob("*.py")) if not p.name.startswith("_"))


def _module_name(py: Path) -> str:
    return _MODULE_PREFIX + "_".join(py.with_suffix("").parts[-4:])


def load_plugins_from_paths(paths: Iterable[str], *, strict: bool = True) -> List[str]:
    loaded: List[str] = []
    for raw in paths:
        if not raw:
            continue
        root = Path(raw).expanduser().resolve()
        if not root.exists():
            if strict:
                raise FileNotFoundError(f"Plugin path not found: {root}")
            log.warning("plugin path not found: %s; skipping", root)
            continue
        if str(root) not in sys.path:
            sys.path.insert(0, str(root))

        for py in _plugin_files(root):
            name = _module_name(py)
            # Already imported by an earlier create_engine() call.
            if name in sys.modules:
                continue
            spec = importlib.util.spec_from_file_location(name, py)
            if spec is None or spec.loader is None:
                continue
            module = importlib.util.module_from_spec(spec)
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                _fail(strict, f"Failed loading plugin file {py}", e)
                continue
            sys.modules[name] = module
            loaded.append(str(py))
    return loaded


def load_all_plugins(*, settings) -> List[str]:
    """Load entry-point plugins, then path plugins. Returns what was newly loaded."""
    strict = settings.plugin_strict
    loaded = load_plugins_from_entrypoints(strict=strict)
    loaded += load_plugins_from_paths(settings.plugin_paths, strict=strict)
    if loaded:
        log.debug("loaded driver plugins: %s", loaded)
    return loaded
