from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class RawTransaction:
    hash: str
    from_address: str
    to_address: Optional[str]   # None for contract creation
    value_wei: int
    input: Optional[str] = None
    gas: Optional[int] = None           # gas limit
    gas_price_wei: Optional[int] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class RawReceipt:
    tx_hash: str
    gas_used: Optional[int] = None
    effective_gas_price_wei: Optional[int] = None
    status: Optional[int] = None


@dataclass(frozen=True)
class RawBlock:
    number: int
    timestamp: int              # unix seconds
    transactions: List[RawTransaction] = field(default_factory=list)
