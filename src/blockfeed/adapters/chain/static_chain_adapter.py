import asyncio
from blockfeed.ports.chain_data_port import ChainDataPort, NewBlockHandler, Subscription
from blockfeed.core.dto import RawBlock, RawReceipt
from typing import Optional, Dict, List

class StaticChainAdapter(ChainDataPort):
    def __init__(self,
                 blocks: Optional[List[RawBlock]] = None,
                 receipts: Optional[Dict[int, List[RawReceipt]]] = None,
                 failures: Optional[Dict[int, Exception]] = None,
                 delays: Optional[Dict[int, float]] = None,
                 ):
        self._blocks = {b.number: b for b in (blocks or [])}
        self._receipts = receipts or {}
        self._failures = failures or {}
        self._delays = delays or {}
        self._handlers: List[NewBlockHandler] = []
        self.calls: List[tuple] = []

    def add_block(self, block: RawBlock, receipts: Optional[List[RawReceipt]] = None) -> None:
        self._blocks[block.number] = block
        if receipts is not None:
            self._receipts[block.number] = receipts

    async def get_block(self, number, include_transactions = True):
        self.calls.append(("get_block", number))
        await asyncio.sleep(self._delays.get(number, 0))
        if number in self._failures:
            raise self._failures[number]
        return self._blocks.get(number)

    async def get_receipts(self, block_number):
        self.calls.append(("get_receipts", block_number))
        return list(self._receipts.get(block_number, []))

    def subscribe_new_blocks(self, handler):
        self._handlers.append(handler)
        return _StaticSubscription(self, handler)

    def emit(self, block_number: int) -> None:
        for h in list(self._handlers):
            h(block_number)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)


class _StaticSubscription(Subscription):
    def __init__(self, adapter: StaticChainAdapter, handler: NewBlockHandler):
        self._adapter = adapter
        self._handler = handler
        self._active = True

    def unsubscribe(self):
        if self._active:
            self._adapter._handlers.remove(self._handler)
            self._active = False

    @property
    def active(self):
        return self._active
