from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from blockfeed.config import settings
from blockfeed.core.enums import TxType



# Configuration models

@dataclass(frozen=True)
class FeedConfig:
    """
    Run configuration for the ingestion pipeline.
    """

    requests_per_sec: float = settings.REQUESTS_PER_SEC
    recent_tx_cap: int = settings.RECENT_TX_CAP
    recent_blocks_cap: int = settings.RECENT_BLOCKS_CAP
    fetch_receipts: bool = settings.FETCH_RECEIPTS

    # type distribution ("what is the chain doing lately")
    type_mix_cap: int = settings.TYPE_MIX_CAP
    type_mix_reset_blocks: int = settings.TYPE_MIX_RESET_BLOCKS


@dataclass(frozen=True)
class ClassifierRules:

    burn_addresses: FrozenSet[str] = field(default_factory=lambda: frozenset(settings.BURN_ADDRESSES))
    swap_selectors: FrozenSet[str] = field(default_factory=lambda: frozenset(settings.SWAP_SELECTORS))
    mint_selectors: FrozenSet[str] = field(default_factory=lambda: frozenset(settings.MINT_SELECTORS))
    burn_selectors: FrozenSet[str] = field(default_factory=lambda: frozenset(settings.BURN_SELECTORS))
    gas_threshold: int = settings.GAS_USED_THRESHOLD

    def __post_init__(self) -> None:
        # lookups are done on lowercased input
        for name in ("burn_addresses", "swap_selectors", "mint_selectors", "burn_selectors"):
            object.__setattr__(self, name, frozenset(s.lower() for s in getattr(self, name)))



# Classified output

@dataclass(frozen=True)
class TxInfo:

    hash: str
    from_address: str
    to_address: Optional[str]    # None -> contract creation
    value: str                   # native units, decimal string
    timestamp: int               # ms since epoch, block time
    block_number: int
    type: TxType

    gas_used: Optional[int] = None
    gas_price: Optional[str] = None
    tx_fee: Optional[str] = None
    input: Optional[str] = None


@dataclass(frozen=True)
class BlockStat:

    block_number: int
    tx_count: int
    total_fee: Optional[str] = None
