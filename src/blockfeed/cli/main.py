from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import json
import logging
import sys
from typing import Any, Dict, Optional

from blockfeed.config import settings
from blockfeed.core.models import FeedConfig
from blockfeed.services.feed_state import FeedState
from blockfeed.services.ingestion_service import BlockIngestionService
from blockfeed.io.formatting import format_address, format_tx_fee, format_value, tx_type_label
from blockfeed.io.output_writer import write_snapshot_json
from blockfeed.io.schemas import block_stat_to_dict, tx_to_dict

from blockfeed.adapters.chain.jsonrpc_chain_adapter import JsonRpcChainAdapter
from blockfeed.ports.chain_data_port import ChainDataPort


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="blockfeed", description="Live block feed with transaction classification")
    p.add_argument("--rpc-url", default=settings.RPC_URL, help="JSON-RPC endpoint of the node")
    p.add_argument("--rps", type=float, default=settings.REQUESTS_PER_SEC, help="Max requests per second to the node")
    p.add_argument("--no-receipts", action="store_true", help="Skip receipt fetching (no gas used, no fees)")
    p.add_argument("--blocks", type=int, default=0, help="Stop after this many processed blocks (0=run until interrupted)")
    p.add_argument("--poll-interval", type=float, default=settings.POLL_INTERVAL_SEC, help="Seconds between chain head polls")
    p.add_argument("--json", action="store_true", help="Print JSON lines instead of text")
    p.add_argument("--out", default=None, help="Write a snapshot.json into this folder on exit")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return p


def _make_printer(as_json: bool):

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def printer(event: str, data: Dict[str, Any]) -> None:
        if event == "block":
            stat = data["stat"]
            if as_json:
                print(json.dumps({"event": "block", **block_stat_to_dict(stat)}), flush=True)
                return
            fee = f" • fees {format_tx_fee(stat.total_fee)}" if stat.total_fee is not None else ""
            print(f"[{_ts()}] Block {stat.block_number} • {stat.tx_count} tx(s){fee}", flush=True)
            return
        if event == "txs":
            for t in data["records"]:
                if as_json:
                    print(json.dumps({"event": "tx", **tx_to_dict(t)}), flush=True)
                    continue
                print(
                    f"  {tx_type_label(t.type):<9}"
                    f"{format_address(t.hash)}  "
                    f"{format_address(t.from_address)} -> {format_address(t.to_address)}  "
                    f"value {format_value(t.value)} • fee {format_tx_fee(t.tx_fee)}",
                    flush=True,
                )

    return printer


async def run(args: argparse.Namespace, chain: Optional[ChainDataPort] = None) -> int:
    cfg = FeedConfig(
        requests_per_sec=args.rps,
        fetch_receipts=not args.no_receipts,
    )
    state = FeedState(cfg)
    state.add_listener(_make_printer(args.json))

    if chain is None:
        chain = JsonRpcChainAdapter(rpc_url=args.rpc_url, poll_interval=args.poll_interval)

    done = asyncio.Event()
    blocks_seen = 0

    def _stop_after(event: str, data: Dict[str, Any]) -> None:
        nonlocal blocks_seen
        if event != "block":
            return
        blocks_seen += 1
        if args.blocks and blocks_seen >= args.blocks:
            done.set()

    state.add_listener(_stop_after)

    svc = BlockIngestionService(chain=chain, state=state, cfg=cfg)
    svc.start()
    try:
        await done.wait()
    finally:
        await svc.aclose()
        if args.out:
            path = write_snapshot_json(state, args.out)
            print(f"Wrote: {path}", file=sys.stderr)

    return 0


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if args.rps <= 0:
        print("--rps must be > 0", file=sys.stderr)
        return 2
    if args.blocks < 0:
        print("--blocks must be >= 0", file=sys.stderr)
        return 2

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
