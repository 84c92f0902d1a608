from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional

from blockfeed.core.enums import TxType
from blockfeed.core.models import BlockStat, FeedConfig, TxInfo


logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class FeedState:
    """
    Bounded, in-memory view of the chain for a display layer.

    - recent transactions: newest block first, capped, gated by pause
    - recent blocks: per-block counts/fees, capped, never gated
    - type mix: types seen over the last few blocks, never gated
    """

    def __init__(self, cfg: Optional[FeedConfig] = None) -> None:
        self.cfg = cfg or FeedConfig()

        self._txs: List[TxInfo] = []
        self._blocks: List[BlockStat] = []
        self._mix: List[TxType] = []
        self._mix_blocks = 0

        self._paused = False
        self._latest_block: Optional[int] = None
        self._total_seen = 0
        self._listeners: List[Listener] = []

    # -------------------------
    # Read side
    # -------------------------

    @property
    def recent_transactions(self) -> List[TxInfo]:
        return list(self._txs)

    @property
    def recent_blocks(self) -> List[BlockStat]:
        return list(self._blocks)

    @property
    def latest_block(self) -> Optional[int]:
        return self._latest_block

    @property
    def total_seen(self) -> int:
        return self._total_seen

    @property
    def paused(self) -> bool:
        return self._paused

    def type_counts(self) -> Dict[TxType, int]:
        counts = Counter(self._mix)
        return {t: counts.get(t, 0) for t in TxType}

    # -------------------------
    # Control
    # -------------------------

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def remove_listener(self, fn: Listener) -> None:
        if fn in self._listeners:
            self._listeners.remove(fn)

    # -------------------------
    # Write side (pipeline)
    # -------------------------

    def set_latest_block(self, block_number: int) -> None:
        if self._latest_block is None or block_number > self._latest_block:
            self._latest_block = block_number

    def record_block(self, stat: BlockStat, records: Iterable[TxInfo] = ()) -> None:
        blocks = self._blocks + [stat]
        blocks.sort(key=lambda b: b.block_number)
        self._blocks = blocks[-self.cfg.recent_blocks_cap:] if self.cfg.recent_blocks_cap > 0 else []

        types = [r.type for r in records]
        self._total_seen += len(types)
        self._update_mix(types)

        self._emit("block", {"stat": stat})

    def publish(self, records: List[TxInfo]) -> bool:
        if self._paused:
            logger.debug("Paused, skipping %d record(s)", len(records))
            return False

        combined = list(records) + self._txs
        # stable: keeps in-block order, late older blocks land behind newer ones
        combined.sort(key=lambda t: -t.block_number)
        self._txs = combined[: max(0, self.cfg.recent_tx_cap)]

        self._emit("txs", {"records": list(records)})
        return True

    # -------------------------
    # Helpers
    # -------------------------

    def _update_mix(self, types: List[TxType]) -> None:
        if self._mix_blocks + 1 >= self.cfg.type_mix_reset_blocks:
            self._mix = []
            self._mix_blocks = 0
            return
        self._mix = (types + self._mix)[: self.cfg.type_mix_cap]
        self._mix_blocks += 1

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        for fn in list(self._listeners):
            try:
                fn(event, data)
            except Exception:
                logger.exception("Listener failed on %s event", event)
