from __future__ import annotations

from typing import Any, Dict

from blockfeed.core.models import BlockStat, TxInfo
from blockfeed.services.feed_state import FeedState


def tx_to_dict(t: TxInfo) -> Dict[str, Any]:
    # amounts stay strings for JSON precision safety
    return {
        "hash": t.hash,
        "from": t.from_address,
        "to": t.to_address,
        "value": t.value,
        "timestamp": t.timestamp,
        "block_number": t.block_number,
        "type": t.type.value,
        "gas_used": t.gas_used,
        "gas_price": t.gas_price,
        "tx_fee": t.tx_fee,
    }


def block_stat_to_dict(b: BlockStat) -> Dict[str, Any]:
    return {
        "block_number": b.block_number,
        "count": b.tx_count,
        "total_fee": b.total_fee,
    }


def state_to_dict(state: FeedState) -> Dict[str, Any]:
    return {
        "latest_block": state.latest_block,
        "total_seen": state.total_seen,
        "paused": state.paused,
        "blocks": [block_stat_to_dict(b) for b in state.recent_blocks],
        "transactions": [tx_to_dict(t) for t in state.recent_transactions],
        "type_counts": {k.value: v for k, v in state.type_counts().items()},
    }
