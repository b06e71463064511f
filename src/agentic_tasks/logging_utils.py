"""Configure loguru output and format engine payloads for logs."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Configure the loguru logger with the specified level.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``, ...).
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def summarize_result(result: Any) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of an operation result.

    Args:
        result: ``OperationResult`` instance (or None).

    Returns:
        A dictionary with the success flag, message and the payload keys.
    """
    if result is None:
        return {"result": None}
    data = getattr(result, "data", None) or {}
    message = str(getattr(result, "message", "") or "")
    return {
        "success": bool(getattr(result, "success", False)),
        "message": (message[:240] + "…") if len(message) > 240 else message,
        "keys": sorted(data.keys()),
    }


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable logs.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
