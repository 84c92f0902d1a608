from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


WEI_PER_ETH = Decimal("1000000000000000000")


def format_ether(wei: int) -> str:
    """
    wei -> native-unit decimal string, always with a fractional part
    ("1.0", "0.000021", "0.0").
    """
    return format_amount(Decimal(int(wei)) / WEI_PER_ETH)


def format_amount(amount: Decimal) -> str:
    text = format(amount.normalize(), "f") if amount else "0"
    if "." not in text:
        text += ".0"
    return text


def parse_quantity(value: Any) -> Optional[int]:
    # JSON-RPC quantities are hex strings; tolerate ints and decimal strings
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        if s.lower().startswith("0x"):
            return int(s, 16)
        return int(s)
    except ValueError:
        return None
