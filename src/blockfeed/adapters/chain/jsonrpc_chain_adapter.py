from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

import requests

from blockfeed.config.settings import (
    RPC_URL,
    RPC_TIMEOUT_SEC,
    RPC_MAX_RETRIES,
    POLL_INTERVAL_SEC,
    MAX_CATCHUP_BLOCKS,
)

from blockfeed.adapters.chain.rate_limiter import backoff_sleep
from blockfeed.core.errors import BlockFeedError, DataSourceError, MalformedDataError, RateLimitError
from blockfeed.core.units import parse_quantity
from blockfeed.ports.chain_data_port import ChainDataPort, NewBlockHandler, Subscription
from blockfeed.core.dto import RawBlock, RawReceipt, RawTransaction


logger = logging.getLogger(__name__)


class JsonRpcChainAdapter(ChainDataPort):

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        poll_interval: Optional[float] = None,
        max_catchup: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._rpc_url = rpc_url or RPC_URL
        self._timeout = timeout if timeout is not None else RPC_TIMEOUT_SEC
        self._max_retries = max(1, max_retries if max_retries is not None else RPC_MAX_RETRIES)
        self._poll_interval = poll_interval if poll_interval is not None else POLL_INTERVAL_SEC
        self._max_catchup = max_catchup if max_catchup is not None else MAX_CATCHUP_BLOCKS

        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    # ---------- internal ----------

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        last_err: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                resp = self._session.post(
                    self._rpc_url,
                    json=payload,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                last_err = e
                logger.debug("%s attempt %d failed: %s", method, attempt + 1, e)
                if attempt + 1 < self._max_retries:
                    backoff_sleep(attempt)
                continue

            if resp.status_code == 429:
                raise RateLimitError(f"{method}: HTTP 429 rate limit")
            if resp.status_code >= 500:
                last_err = DataSourceError(f"{method}: HTTP {resp.status_code}")
                if attempt + 1 < self._max_retries:
                    backoff_sleep(attempt)
                continue

            try:
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError) as e:
                raise DataSourceError(f"{method}: bad response: {e}") from e

            if not isinstance(data, dict):
                raise MalformedDataError(f"{method}: unexpected payload {data!r}")

            err = data.get("error")
            if err:
                message = str(err.get("message", err)) if isinstance(err, dict) else str(err)
                low = message.lower()
                if "rate" in low and "limit" in low:
                    raise RateLimitError(f"{method}: {message}")
                raise DataSourceError(f"{method}: {message}")

            return data.get("result")

        raise DataSourceError(f"{method} failed after retries: {last_err}")

    async def _acall(self, method: str, params: List[Any]) -> Any:
        # requests is blocking; keep the event loop free
        return await asyncio.to_thread(self._call, method, params)

    # ---------- port methods ----------

    async def get_block_number(self) -> int:
        result = await self._acall("eth_blockNumber", [])
        number = parse_quantity(result)
        if number is None:
            raise MalformedDataError(f"Invalid block number result: {result!r}")
        return number

    async def get_block(self, number: int, include_transactions: bool = True) -> Optional[RawBlock]:
        result = await self._acall("eth_getBlockByNumber", [hex(int(number)), bool(include_transactions)])
        if result is None:
            return None
        return parse_block(result)

    async def get_receipts(self, block_number: int) -> List[RawReceipt]:
        result = await self._acall("eth_getBlockReceipts", [hex(int(block_number))])
        if not isinstance(result, list):
            return []
        return [parse_receipt(r) for r in result if isinstance(r, dict)]

    def subscribe_new_blocks(self, handler: NewBlockHandler) -> Subscription:
        task = asyncio.get_running_loop().create_task(self._poll_heads(handler))
        return _PollingSubscription(task)

    # ---------- polling ----------

    async def _poll_heads(self, handler: NewBlockHandler) -> None:
        last: Optional[int] = None
        while True:
            try:
                head = await self.get_block_number()
            except BlockFeedError as e:
                logger.warning("Polling chain head failed: %s", e)
            else:
                for n in blocks_to_emit(last, head, self._max_catchup):
                    try:
                        handler(n)
                    except Exception:
                        logger.exception("New block handler failed for block %d", n)
                if last is None or head > last:
                    last = head

            await asyncio.sleep(self._poll_interval)


class _PollingSubscription(Subscription):

    def __init__(self, task: asyncio.Task) -> None:
        self._task = task

    def unsubscribe(self) -> None:
        if not self._task.done():
            self._task.cancel()

    @property
    def active(self) -> bool:
        return not self._task.done()


def blocks_to_emit(last: Optional[int], head: int, max_catchup: int) -> List[int]:
    """
    Block numbers to announce when the head moves from `last` to `head`.
    Gaps are filled, but never more than `max_catchup` blocks back.
    """
    if last is None:
        return [head]
    if head <= last:
        return []
    start = max(last + 1, head - max(1, max_catchup) + 1)
    return list(range(start, head + 1))


# ---------- parsing ----------

def parse_transaction(raw: Dict[str, Any], block_number: Optional[int] = None) -> RawTransaction:
    to = raw.get("to") or None
    data = raw.get("input")
    if data is None:
        data = raw.get("data")
    return RawTransaction(
        hash=raw.get("hash", ""),
        from_address=(raw.get("from") or "").lower(),
        to_address=to.lower() if to else None,
        value_wei=parse_quantity(raw.get("value")) or 0,
        input=data,
        gas=parse_quantity(raw.get("gas")),
        gas_price_wei=parse_quantity(raw.get("gasPrice")),
        block_number=parse_quantity(raw.get("blockNumber")) if raw.get("blockNumber") is not None else block_number,
    )


def parse_receipt(raw: Dict[str, Any]) -> RawReceipt:
    return RawReceipt(
        tx_hash=raw.get("transactionHash", ""),
        gas_used=parse_quantity(raw.get("gasUsed")),
        effective_gas_price_wei=parse_quantity(raw.get("effectiveGasPrice")),
        status=parse_quantity(raw.get("status")),
    )


def parse_block(raw: Any) -> RawBlock:
    if not isinstance(raw, dict):
        raise MalformedDataError(f"Invalid block payload: {raw!r}")

    number = parse_quantity(raw.get("number"))
    if number is None:
        raise MalformedDataError(f"Block payload without number: {raw.get('hash')}")

    txs: List[RawTransaction] = []
    for t in raw.get("transactions") or []:
        # hashes only when the block was fetched without full objects
        if isinstance(t, dict):
            txs.append(parse_transaction(t, block_number=number))

    return RawBlock(
        number=number,
        timestamp=parse_quantity(raw.get("timestamp")) or 0,
        transactions=txs,
    )
