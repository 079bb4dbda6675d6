"""File tools: read and write text files inside the working directory."""

import logging
from typing import Optional

from backend import LocalBackend
from tools._common import _require

logger = logging.getLogger(__name__)

_MAX_FULL_READ_LINES = 500


def read_file(backend: LocalBackend, path: str, offset: Optional[int] = None, limit: Optional[int] = None) -> str:
    """Read a file and return line-numbered content.

    Files longer than _MAX_FULL_READ_LINES are cut off with a hint to page
    through them with offset/limit.
    """
    _require(path, "path")
    if not backend.exists(path):
        raise FileNotFoundError(f"File not found: {path}")

    lines = backend.read_text(path).splitlines()
    total = len(lines)

    if offset is not None or limit is not None:
        start = max(int(offset or 1) - 1, 0)
        end = start + int(limit or total)
        selected = lines[start:end]
        numbered = [f"{start + i + 1:6}|{line}" for i, line in enumerate(selected)]
        header = f"[{total} lines total] (showing lines {start + 1}-{start + len(selected)})"
        return header + "\n" + "\n".join(numbered)

    shown = lines[:_MAX_FULL_READ_LINES]
    numbered = [f"{i + 1:6}|{line}" for i, line in enumerate(shown)]
    out = f"[{total} lines total]\n" + "\n".join(numbered)
    if total > _MAX_FULL_READ_LINES:
        out += f"\n  ... ({total - _MAX_FULL_READ_LINES} more lines, use offset={_MAX_FULL_READ_LINES + 1} to continue) ..."
    return out


def write_file(backend: LocalBackend, path: str, content: str) -> str:
    """Create or overwrite a file."""
    _require(path, "path")
    if content is None:
        raise ValueError("content is required")
    existed = backend.exists(path)
    backend.write_text(path, content)
    n_lines = content.count("\n") + (1 if content and not content.endswith("\n") else 0)
    verb = "Overwrote" if existed else "Created"
    logger.info(f"{verb} {path} ({n_lines} lines)")
    return f"{verb} {path} ({n_lines} lines, {len(content)} chars)"
