from enum import Enum


class TxType(str, Enum):
    TRANSFER = "transfer"
    SWAP = "swap"
    BURN = "burn"
    MINT = "mint"
    CONTRACT = "contract"
    UNKNOWN = "unknown"


class CycleStage(str, Enum):
    """Where a block-processing cycle currently is."""

    NOTIFIED = "notified"
    FETCHING = "fetching"
    MAPPING = "mapping"
    PUBLISHING = "publishing"
    IDLE = "idle"
