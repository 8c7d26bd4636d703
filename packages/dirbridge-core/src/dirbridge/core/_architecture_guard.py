"""dirbridge strict architecture guard.

Two hard rules, checked when the package is imported:

1) All customized exceptions MUST be defined in `dirbridge/core/exception.py`.
2) All Spec classes (pydantic file schemas) MUST be defined in `dirbridge/core/spec.py`.

A violating class elsewhere raises RuntimeError naming the file and the class.
Disable with DIRBRIDGE_STRICT_ARCH=0.
"""

from __future__ import annotations

import ast
import os
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

_EXCLUDED_PARTS = {"__pycache__", "tests", "test", "docs", "build", "dist", ".venv", "venv"}
_HOMES = {"exceptions": "exception.py", "specs": "spec.py"}


def _iter_python_files(package_root: Path) -> Iterable[Path]:
    homes = {(package_root / name).resolve() for name in _HOMES.values()}
    for path in sorted(package_root.rglob("*.py")):
        if set(path.parts) & _EXCLUDED_PARTS:
            continue
        if path.resolve() in homes:
            continue
        yield path


def _base_name(node: ast.expr) -> str:
    while isinstance(node, ast.Subscript):
        node = node.value
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return ""


def _looks_like_exception(cls: ast.ClassDef) -> bool:
    # Inheriting ValueError/KeyError/etc counts too.
    for base in cls.bases:
        name = _base_name(base)
        if name in {"BaseException", "Exception"} or name.endswith(("Error", "Exception")):
            return True
    return False


def find_violations(package_root: Path) -> Dict[str, List[Tuple[str, Path]]]:
    found: Dict[str, List[Tuple[str, Path]]] = {"exceptions": [], "specs": []}
    for path in _iter_python_files(package_root):
        try:
            tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        except (OSError, UnicodeDecodeError, SyntaxError) as e:
            raise RuntimeError(f"[dirbridge strict-arch] Cannot parse source file: {path}") from e
        for node in ast.walk(tree):
            if not isinstance(node, ast.ClassDef):
                continue
            if _looks_like_exception(node):
                found["exceptions"].append((node.name, path))
            if node.name.endswith("Spec"):
                found["specs"].append((node.name, path))
    return found


def assert_architecture() -> None:
    if os.getenv("DIRBRIDGE_STRICT_ARCH", "1") == "0":
        return

    found = find_violations(Path(__file__).resolve().parent)
    if not any(found.values()):
        return

    lines: List[str] = ["dirbridge strict architecture check failed:"]
    for rule, items in found.items():
        if not items:
            continue
        home = _HOMES[rule]
        module = "dirbridge.core." + home[:-3]
        lines.append("")
        lines.append(f"{rule.upper()} outside {home}:")
        for cls, path in sorted(items, key=lambda x: (str(x[1]), x[0])):
            lines.append(f"  - {cls} defined in {path}")
        lines.append(f"Fix: move these classes into dirbridge/core/{home} and import from {module}.")
    raise RuntimeError("\n".join(lines))
