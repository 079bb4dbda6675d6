"""Directory listing, filtered through .gitignore and a fixed skip list."""

import os
import logging
from typing import Dict, Optional

import pathspec

from backend import LocalBackend
from tools._common import _format_size

logger = logging.getLogger(__name__)

_SKIP_DIRS = frozenset({
    ".git", "node_modules", "__pycache__", ".venv", "venv",
    ".mypy_cache", ".pytest_cache", ".tox", ".eggs", ".cache",
})
_SKIP_EXTENSIONS = frozenset({".pyc", ".pyo", ".so", ".dylib", ".o", ".class"})

_ignore_specs: Dict[str, Optional[pathspec.PathSpec]] = {}


def _ignore_spec(root: str) -> Optional[pathspec.PathSpec]:
    """PathSpec for root/.gitignore, cached per root; None when there is none."""
    if root not in _ignore_specs:
        spec = None
        path = os.path.join(root, ".gitignore")
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                spec = pathspec.PathSpec.from_lines("gitwildmatch", f)
        _ignore_specs[root] = spec
    return _ignore_specs[root]


def _should_skip(rel_path: str, name: str, is_dir: bool, spec: Optional[pathspec.PathSpec]) -> bool:
    if is_dir and name in _SKIP_DIRS:
        return True
    if not is_dir and os.path.splitext(name)[1] in _SKIP_EXTENSIONS:
        return True
    if spec is not None:
        return spec.match_file(rel_path + "/" if is_dir else rel_path)
    return False


def clear_ignore_cache() -> None:
    _ignore_specs.clear()


def list_directory(backend: LocalBackend, path: Optional[str] = None) -> str:
    """List files and directories at a path, respecting .gitignore."""
    target = path or "."
    if not backend.is_dir(target):
        raise NotADirectoryError(f"Not a directory: {target}")

    spec = _ignore_spec(backend.working_directory)
    lines = []
    for entry in backend.entries(target):
        name = entry["name"]
        is_dir = entry["is_dir"]
        rel = os.path.join(target, name) if target != "." else name
        if _should_skip(rel, name, is_dir, spec):
            continue
        if is_dir:
            lines.append(f"  {name}/")
        else:
            lines.append(f"  {name} ({_format_size(entry.get('size', 0))})")

    display = backend.resolve(target)
    if not lines:
        return f"{display}/ (empty)"
    return f"{display}/\n" + "\n".join(lines)
