"""Shared helpers for the built-in tools."""

from typing import Any, Dict


def _require(value: Any, name: str) -> None:
    """Raise ValueError if a string argument is empty/whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required")


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}TB"


def _schema(properties: Dict[str, Any], required: list) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}
