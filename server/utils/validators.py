# Data validators
# Plain predicates; callers decide which error to raise

from datetime import datetime
from typing import Any, Optional

ORDER_TYPES = ['urgent', 'scheduled']
ORDER_STATUSES = ['pending', 'confirmed', 'preparing', 'ready', 'delivered', 'cancelled']
PAYMENT_METHODS = ['cash', 'bank_transfer', 'mobile_money', 'other']
USER_ROLES = ['customer', 'chef', 'catering_manager', 'system_admin']
STAFF_ROLES = ['chef', 'catering_manager', 'system_admin']


def validate_date(date_str: str, format_str: str = "%Y-%m-%d") -> bool:
    """
    Validate a date string

    Args:
        date_str: date string
        format_str: expected format

    Returns:
        validation result
    """
    if not isinstance(date_str, str):
        return False
    try:
        datetime.strptime(date_str, format_str)
        return True
    except ValueError:
        return False


def validate_positive_integer(value: Any) -> bool:
    """
    Validate a strictly positive integer; strings, booleans and floats with a
    fractional part are rejected
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    return int(value) > 0


def validate_non_negative_integer(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    return int(value) >= 0


def validate_string_length(value: str, min_length: int = 0, max_length: Optional[int] = None) -> bool:
    """
    Validate string length

    Args:
        value: string value
        min_length: minimum length
        max_length: maximum length

    Returns:
        validation result
    """
    if not isinstance(value, str):
        return False

    if len(value) < min_length:
        return False

    if max_length is not None and len(value) > max_length:
        return False

    return True


def validate_order_type(order_type: str) -> bool:
    return order_type in ORDER_TYPES


def validate_order_status(status: str) -> bool:
    return status in ORDER_STATUSES


def validate_payment_method(method: str) -> bool:
    return method in PAYMENT_METHODS


def validate_user_role(role: str) -> bool:
    return role in USER_ROLES


def is_staff_role(role: str) -> bool:
    return role in STAFF_ROLES
