from __future__ import annotations

from typing import Optional

from blockfeed.core.enums import TxType


_LABELS = {
    TxType.TRANSFER: "Transfer",
    TxType.SWAP: "Swap",
    TxType.BURN: "Burn",
    TxType.MINT: "Mint",
    TxType.CONTRACT: "Contract",
    TxType.UNKNOWN: "Unknown",
}


def tx_type_label(t: TxType) -> str:
    return _LABELS.get(t, "Unknown")


def format_value(value: str) -> str:
    num = float(value)
    if num == 0:
        return "0"
    if num < 0.001:
        return "<0.001"
    return f"{num:.4f}"


def format_tx_fee(fee: Optional[str]) -> str:
    if fee is None:
        return "-"
    num = float(fee)
    if num == 0:
        return "0"
    if num < 0.000001:
        return "<0.000001"
    if num < 0.001:
        return f"{num:.6f}"
    return f"{num:.4f}"


def format_address(address: Optional[str]) -> str:
    if not address:
        return "(create)"
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
