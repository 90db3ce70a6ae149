"""
Response envelopes for route handlers.

Successful calls return ``{"success": true, "data": ...}``; list endpoints
add a ``count``. Errors never go through here: handlers raise one of the
exceptions in ``common.utils.exceptions`` instead.
"""

from typing import Any, Optional, Dict


def success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Wrap a handler result.

    Args:
        data: Any JSON-serializable payload; omitted when None
        message: Optional human-readable confirmation

    Returns:
        Dictionary with success=True and optional data/message
    """
    response: Dict[str, Any] = {"success": True}

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    return response


def list_response(items: list, message: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a list result together with its length."""
    response = success_response(items, message)
    response["data"] = items
    response["count"] = len(items)
    return response
