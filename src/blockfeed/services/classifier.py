from __future__ import annotations

from typing import Optional

from blockfeed.core.dto import RawReceipt, RawTransaction
from blockfeed.core.enums import TxType
from blockfeed.core.models import ClassifierRules


DEFAULT_RULES = ClassifierRules()

EMPTY_DATA = "0x"
SELECTOR_LEN = 10   # "0x" + 4 bytes


def _has_data(data: Optional[str]) -> bool:
    return bool(data) and data != EMPTY_DATA and len(data) > 2


def selector_of(data: Optional[str]) -> Optional[str]:
    if not data or len(data) < SELECTOR_LEN:
        return None
    return data[:SELECTOR_LEN].lower()


def detect_tx_type(
    tx: RawTransaction,
    receipt: Optional[RawReceipt] = None,
    rules: ClassifierRules = DEFAULT_RULES,
) -> TxType:
    """
    Best-effort type for a transaction. First matching rule wins:

    - plain value transfer (value, no call-data, has recipient)
    - contract creation (no recipient)
    - sent to a burn sink
    - known swap / mint / burn selector, in that order
    - gas used above the threshold
    - any other call-data
    - otherwise unknown
    """
    value = tx.value_wei or 0
    data = tx.input
    to = tx.to_address
    gas_used = (receipt.gas_used if receipt is not None else None) or 0

    if value > 0 and (not data or data == EMPTY_DATA) and to:
        return TxType.TRANSFER

    if not to:
        return TxType.CONTRACT

    if to.lower() in rules.burn_addresses:
        return TxType.BURN

    method_id = selector_of(data)
    if method_id is not None:
        if method_id in rules.swap_selectors:
            return TxType.SWAP
        if method_id in rules.mint_selectors:
            return TxType.MINT
        if method_id in rules.burn_selectors:
            return TxType.BURN

    # expensive calls are assumed to be contract interactions
    if gas_used > rules.gas_threshold:
        return TxType.CONTRACT

    if _has_data(data):
        return TxType.CONTRACT

    return TxType.UNKNOWN
