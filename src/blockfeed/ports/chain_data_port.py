from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
from blockfeed.core.dto import RawBlock, RawReceipt

NewBlockHandler = Callable[[int], None]


class Subscription(ABC):
    """
    Handle returned by subscribe_new_blocks. Unsubscribing stops new
    notifications; it does not cancel work the handler already started.
    """

    @abstractmethod
    def unsubscribe(self) -> None:
        raise NotImplementedError

    @property
    @abstractmethod
    def active(self) -> bool:
        raise NotImplementedError


class ChainDataPort(ABC):
    """
    Abstract Class for the node facts the block feed needs.
    """

    # --- Blocks ---

    @abstractmethod
    async def get_block(self, number: int, include_transactions: bool = True) -> Optional[RawBlock]:
        raise NotImplementedError

    # --- Receipts (whole block at once) ---

    @abstractmethod
    async def get_receipts(self, block_number: int) -> List[RawReceipt]:
        raise NotImplementedError

    # --- New block notifications ---

    @abstractmethod
    def subscribe_new_blocks(self, handler: NewBlockHandler) -> Subscription:
        raise NotImplementedError
