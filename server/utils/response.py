# Unified API response envelope

from datetime import datetime, timezone
from typing import Any, Dict


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def create_success_response(
    data: Any = None,
    message: str = "OK"
) -> Dict[str, Any]:
    """
    Build a success response

    Args:
        data: response payload
        message: success message

    Returns:
        envelope with success=True
    """
    return {
        "success": True,
        "data": data,
        "message": message,
        "timestamp": _timestamp()
    }


def create_error_response(
    error: str,
    data: Any = None
) -> Dict[str, Any]:
    """
    Build an error response

    Args:
        error: explanation of the failure
        data: optional error details

    Returns:
        envelope with success=False
    """
    return {
        "success": False,
        "error": error,
        "data": data,
        "timestamp": _timestamp()
    }


def create_pagination_response(
    items: list,
    total_count: int,
    offset: int,
    limit: int,
    message: str = "OK"
) -> Dict[str, Any]:
    """
    Build a paginated success response

    Args:
        items: page items
        total_count: total number of matching records
        offset: offset of the first item
        limit: page size
        message: success message
    """
    return {
        "success": True,
        "data": {
            "items": items,
            "pagination": {
                "total_count": total_count,
                "offset": offset,
                "limit": limit,
                "has_more": offset + len(items) < total_count
            }
        },
        "message": message,
        "timestamp": _timestamp()
    }
