from __future__ import annotations

import asyncio
import logging
from collections import deque
from decimal import Decimal
from typing import Deque, Dict, List, Optional, Set

from blockfeed.adapters.chain.rate_limiter import AsyncRateLimiter
from blockfeed.core.dto import RawBlock, RawReceipt, RawTransaction
from blockfeed.core.enums import CycleStage
from blockfeed.core.errors import BlockFeedError, DataSourceError
from blockfeed.core.models import BlockStat, ClassifierRules, FeedConfig, TxInfo
from blockfeed.core.units import format_amount, format_ether
from blockfeed.ports.chain_data_port import ChainDataPort, Subscription
from blockfeed.services.classifier import DEFAULT_RULES, detect_tx_type
from blockfeed.services.feed_state import FeedState


logger = logging.getLogger(__name__)

SEEN_BLOCKS_MEMORY = 1024


class BlockIngestionService:
    """
    Turns new-block notifications into classified records.

    Per block: fetch (through the rate limiter) -> map/classify -> record the
    block stat -> publish records. A failing block is logged and dropped; it
    never touches state and never stops later blocks.
    """

    def __init__(
        self,
        chain: ChainDataPort,
        state: Optional[FeedState] = None,
        limiter: Optional[AsyncRateLimiter] = None,
        cfg: Optional[FeedConfig] = None,
        rules: ClassifierRules = DEFAULT_RULES,
    ) -> None:
        self.cfg = cfg or (state.cfg if state is not None else FeedConfig())
        self.chain = chain
        self.state = state or FeedState(self.cfg)
        self.limiter = limiter or AsyncRateLimiter(self.cfg.requests_per_sec)
        self.rules = rules

        self.in_flight: Dict[int, CycleStage] = {}
        self.processed = 0
        self.failed = 0

        self._subscription: Optional[Subscription] = None
        self._tasks: Set[asyncio.Task] = set()
        self._seen: Set[int] = set()
        self._seen_order: Deque[int] = deque()

    # -------------------------
    # Lifecycle
    # -------------------------

    @property
    def running(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def stage_of(self, block_number: int) -> CycleStage:
        return self.in_flight.get(int(block_number), CycleStage.IDLE)

    def start(self) -> None:
        if self.running:
            return
        self._subscription = self.chain.subscribe_new_blocks(self._on_new_block)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.stop()
        await self.wait_idle()
        await self.limiter.close()

    # -------------------------
    # Cycle
    # -------------------------

    def _on_new_block(self, block_number: int) -> None:
        n = int(block_number)
        if not self._remember(n):
            logger.debug("Block %d already handled, ignoring", n)
            return

        self.in_flight[n] = CycleStage.NOTIFIED
        task = asyncio.get_running_loop().create_task(self.process_block(n))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def process_block(self, block_number: int) -> Optional[List[TxInfo]]:
        n = int(block_number)
        self.in_flight[n] = CycleStage.NOTIFIED
        self.state.set_latest_block(n)

        try:
            try:
                self.in_flight[n] = CycleStage.FETCHING
                block = await self.limiter.submit(lambda: self.chain.get_block(n, True))
                if block is None:
                    raise DataSourceError(f"Block {n} not found")

                receipts: List[RawReceipt] = []
                if self.cfg.fetch_receipts:
                    receipts = await self.limiter.submit(lambda: self.chain.get_receipts(n))

                self.in_flight[n] = CycleStage.MAPPING
                records = self.map_block(block, receipts)
            except BlockFeedError as e:
                self.failed += 1
                logger.warning("Error processing block %d: %s", n, e)
                return None
            except Exception:
                self.failed += 1
                logger.exception("Error processing block %d", n)
                return None

            self.in_flight[n] = CycleStage.PUBLISHING
            stat = block_stat(block.number, records)
            self.state.record_block(stat, records)
            published = self.state.publish(records)

            self.processed += 1
            logger.info(
                "Block %d: %d tx(s)%s",
                block.number,
                stat.tx_count,
                "" if published else " (paused)",
            )
            return records
        finally:
            self.in_flight.pop(n, None)

    # -------------------------
    # Mapping
    # -------------------------

    def map_block(self, block: RawBlock, receipts: List[RawReceipt]) -> List[TxInfo]:
        by_hash = {r.tx_hash.lower(): r for r in receipts if r.tx_hash}
        return [
            to_tx_info(tx, block, by_hash.get(tx.hash.lower()), self.rules)
            for tx in block.transactions
        ]

    # -------------------------
    # Helpers
    # -------------------------

    def _remember(self, n: int) -> bool:
        if n in self._seen:
            return False
        self._seen.add(n)
        self._seen_order.append(n)
        if len(self._seen_order) > SEEN_BLOCKS_MEMORY:
            self._seen.discard(self._seen_order.popleft())
        return True


def to_tx_info(
    tx: RawTransaction,
    block: RawBlock,
    receipt: Optional[RawReceipt] = None,
    rules: ClassifierRules = DEFAULT_RULES,
) -> TxInfo:
    gas_used = receipt.gas_used if receipt is not None else None
    gas_price_wei = tx.gas_price_wei
    if gas_price_wei is None and receipt is not None:
        gas_price_wei = receipt.effective_gas_price_wei

    tx_fee = None
    if gas_used and gas_price_wei:
        tx_fee = format_ether(gas_used * gas_price_wei)

    return TxInfo(
        hash=tx.hash,
        from_address=tx.from_address,
        to_address=tx.to_address or None,
        value=format_ether(tx.value_wei or 0),
        timestamp=int(block.timestamp) * 1000,
        block_number=block.number,
        type=detect_tx_type(tx, receipt, rules),
        gas_used=gas_used,
        gas_price=format_ether(gas_price_wei) if gas_price_wei is not None else None,
        tx_fee=tx_fee,
        input=tx.input,
    )


def block_stat(block_number: int, records: List[TxInfo]) -> BlockStat:
    fees = [r.tx_fee for r in records if r.tx_fee is not None]
    total_fee = None
    if fees:
        total_fee = format_amount(sum((Decimal(f) for f in fees), Decimal(0)))
    return BlockStat(block_number=block_number, tx_count=len(records), total_fee=total_fee)
