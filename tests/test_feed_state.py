import unittest

from blockfeed.core.enums import TxType
from blockfeed.core.models import BlockStat, FeedConfig, TxInfo
from blockfeed.services.feed_state import FeedState


def _rec(block_number: int, idx: int, tx_type: TxType = TxType.TRANSFER) -> TxInfo:
    return TxInfo(
        hash=f"0x{block_number:04x}{idx:04x}",
        from_address="0xaaaa",
        to_address="0xbbbb",
        value="1.0",
        timestamp=block_number * 1000,
        block_number=block_number,
        type=tx_type,
    )


class FeedStateTests(unittest.TestCase):
    def _state(self, **overrides) -> FeedState:
        defaults = dict(
            requests_per_sec=100,
            recent_tx_cap=5,
            recent_blocks_cap=3,
            type_mix_cap=4,
            type_mix_reset_blocks=3,
        )
        defaults.update(overrides)
        return FeedState(FeedConfig(**defaults))

    def test_publish_prepends_newest_block_first(self) -> None:
        state = self._state()
        state.publish([_rec(1, 0), _rec(1, 1)])
        state.publish([_rec(2, 0)])

        hashes = [t.hash for t in state.recent_transactions]
        self.assertEqual(hashes, [_rec(2, 0).hash, _rec(1, 0).hash, _rec(1, 1).hash])

    def test_late_older_block_lands_behind_newer(self) -> None:
        state = self._state()
        state.publish([_rec(5, 0)])
        state.publish([_rec(4, 0), _rec(4, 1)])

        self.assertEqual([t.block_number for t in state.recent_transactions], [5, 4, 4])
        self.assertEqual(state.recent_transactions[1].hash, _rec(4, 0).hash)

    def test_transaction_window_is_capped(self) -> None:
        state = self._state()
        for b in range(1, 5):
            state.publish([_rec(b, 0), _rec(b, 1)])

        txs = state.recent_transactions
        self.assertEqual(len(txs), 5)
        self.assertEqual(txs[0].block_number, 4)
        self.assertEqual({t.block_number for t in txs}, {4, 3, 2})

    def test_pause_gates_publish_only(self) -> None:
        state = self._state()
        state.pause()
        self.assertTrue(state.paused)
        self.assertFalse(state.publish([_rec(1, 0)]))
        state.record_block(BlockStat(1, 1), [_rec(1, 0)])

        self.assertEqual(state.recent_transactions, [])
        self.assertEqual(len(state.recent_blocks), 1)

        state.resume()
        self.assertTrue(state.publish([_rec(2, 0)]))
        self.assertEqual([t.block_number for t in state.recent_transactions], [2])

    def test_block_window_keeps_latest_by_number(self) -> None:
        state = self._state()
        for n in [1, 2, 4, 3, 5]:
            state.record_block(BlockStat(n, n))

        self.assertEqual([b.block_number for b in state.recent_blocks], [3, 4, 5])

    def test_latest_block_only_moves_forward(self) -> None:
        state = self._state()
        state.set_latest_block(10)
        state.set_latest_block(9)
        self.assertEqual(state.latest_block, 10)

    def test_type_mix_resets_every_n_blocks(self) -> None:
        state = self._state()
        state.record_block(BlockStat(1, 2), [_rec(1, 0, TxType.SWAP), _rec(1, 1, TxType.BURN)])
        state.record_block(BlockStat(2, 3), [_rec(2, i, TxType.SWAP) for i in range(3)])

        counts = state.type_counts()
        self.assertEqual(sum(counts.values()), 4)   # capped
        self.assertEqual(counts[TxType.SWAP], 4)
        self.assertEqual(counts[TxType.MINT], 0)

        state.record_block(BlockStat(3, 1), [_rec(3, 0)])
        self.assertEqual(sum(state.type_counts().values()), 0)
        self.assertEqual(state.total_seen, 6)

    def test_listeners_get_events_and_failures_are_contained(self) -> None:
        state = self._state()
        events = []

        def broken(event, data):
            raise RuntimeError("listener bug")

        state.add_listener(broken)
        state.add_listener(lambda event, data: events.append(event))

        with self.assertLogs("blockfeed.services.feed_state", level="ERROR"):
            state.record_block(BlockStat(1, 1), [_rec(1, 0)])
            state.publish([_rec(1, 0)])

        self.assertEqual(events, ["block", "txs"])
        self.assertEqual(len(state.recent_transactions), 1)

        state.remove_listener(broken)
        state.publish([_rec(2, 0)])
        self.assertEqual(events, ["block", "txs", "txs"])


if __name__ == "__main__":
    unittest.main()
