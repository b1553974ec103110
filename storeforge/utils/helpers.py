"""
Helper utilities
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-case and strip an email; empty values become None"""
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def format_currency(amount: Union[Decimal, int, float], symbol: str = "₹") -> str:
    """
    Format amount with Indian digit grouping

    Args:
        amount: Amount to format (whole units are shown without decimals)
        symbol: Currency symbol

    Returns:
        Formatted currency string, e.g. ₹1,23,456
    """
    amount = Decimal(str(amount))
    negative = amount < 0
    amount = abs(amount)

    integer_part, _, decimal_part = f"{amount:.2f}".partition(".")

    # Last 3 digits, then groups of 2
    if len(integer_part) > 3:
        result = integer_part[-3:]
        integer_part = integer_part[:-3]
        while integer_part:
            result = integer_part[-2:] + "," + result
            integer_part = integer_part[:-2]
    else:
        result = integer_part

    if decimal_part != "00":
        result = f"{result}.{decimal_part}"

    return f"{'-' if negative else ''}{symbol}{result}"
