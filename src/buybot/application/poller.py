from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Callable

from ..domain.classify import Classifier
from ..domain.decoding import SWAP_T0, decode_swap_log, detect_buy
from ..domain.models import BuyEvent, PairMetadata, SwapRecord, TokenInfo
from ..domain.value_types import Address, TxHash
from ..ports.notify import Notifier
from ..ports.rpc import ChainReader
from .planning import confirmed_range
from .use_cases import to_buy_event

logger = logging.getLogger(__name__)


class SwapPoller:
    """
    Owns the confirmed-block cursor for one pair.

    Each tick scans [cursor+1, head-confirmations], dispatches every buy in
    log order and only then assigns cursor = to_block. A tick that raises
    leaves the cursor alone so the same range is requested again next tick.
    """

    def __init__(
        self,
        *,
        rpc: ChainReader,
        notifier: Notifier,
        pair: PairMetadata,
        tracked: TokenInfo,
        counter: TokenInfo,
        classifier: Classifier,
        render: Callable[[BuyEvent], str],
        poll_interval_s: float = 6.0,
        confirmations: int = 2,
        resolve_buyer: bool = True,
        lookup_concurrency: int = 8,
        dedupe_window: int = 4_096,
        cursor: int | None = None,
    ) -> None:
        self.rpc = rpc
        self.notifier = notifier
        self.pair = pair
        self.tracked = tracked
        self.counter = counter
        self.classifier = classifier
        self.render = render
        self.poll_interval_s = poll_interval_s
        self.confirmations = confirmations
        self.resolve_buyer = resolve_buyer
        self._sem = asyncio.Semaphore(lookup_concurrency)
        self._dedupe_window = dedupe_window
        self._delivered: OrderedDict[tuple[str, int], None] = OrderedDict()
        self._cursor = cursor

    @property
    def cursor(self) -> int | None:
        return self._cursor

    async def start(self) -> int:
        """Start from the current head: nothing before startup is scanned."""
        if self._cursor is None:
            self._cursor = await self.rpc.latest_block()
        logger.info("Starting from block %d", self._cursor)
        return self._cursor

    # ---------------------------- tick ---------------------------------------

    async def tick(self) -> dict[str, int]:
        if self._cursor is None:
            raise RuntimeError("SwapPoller.tick() called before start()")
        stats = {"logs": 0, "buys": 0, "delivered": 0,
                 "failed_deliveries": 0, "skipped_duplicates": 0}

        head = await self.rpc.latest_block()
        rng = confirmed_range(self._cursor, head, self.confirmations)
        if rng is None:
            return stats

        logs = await self.rpc.get_logs(self.pair.pair_address, [SWAP_T0], rng.start, rng.end)
        stats["logs"] = len(logs)

        buys: list[SwapRecord] = []
        for log in logs:
            rec = decode_swap_log(log, self.pair)
            if rec is not None and detect_buy(rec) is not None:
                buys.append(rec)
        stats["buys"] = len(buys)

        buyers = await self._resolve_buyers(buys)

        for rec in buys:
            if rec.key in self._delivered:
                stats["skipped_duplicates"] += 1
                continue
            event = to_buy_event(rec, tracked=self.tracked, counter=self.counter,
                                 classifier=self.classifier, buyer=buyers.get(rec.tx_hash))
            if event is None:
                continue
            if await self._deliver(self.render(event)):
                stats["delivered"] += 1
            else:
                stats["failed_deliveries"] += 1
            self._remember(rec.key)

        self._cursor = rng.end
        logger.debug("Scanned blocks %d-%d: %s", rng.start, rng.end, stats)
        return stats

    async def _resolve_buyers(self, buys: list[SwapRecord]) -> dict[TxHash, Address | None]:
        if not self.resolve_buyer or not buys:
            return {}
        tx_hashes = list(dict.fromkeys(rec.tx_hash for rec in buys))
        found = await asyncio.gather(*(self._initiator(h) for h in tx_hashes))
        return dict(zip(tx_hashes, found))

    async def _initiator(self, tx_hash: TxHash) -> Address | None:
        async with self._sem:
            try:
                return await self.rpc.get_transaction_initiator(tx_hash)
            except Exception as e:
                logger.warning("Initiator lookup failed for %s (%s); attributing to recipient", tx_hash, e)
                return None

    async def _deliver(self, message: str) -> bool:
        try:
            return await self.notifier.send(message)
        except Exception:
            logger.exception("Notifier raised while sending")
            return False

    def _remember(self, key: tuple[str, int]) -> None:
        self._delivered[key] = None
        while len(self._delivered) > self._dedupe_window:
            self._delivered.popitem(last=False)

    # ---------------------------- loop ---------------------------------------

    async def run(self, *, max_ticks: int | None = None) -> None:
        """Tick, sleep, repeat. Failed ticks are retried next interval with no backoff."""
        if self._cursor is None:
            await self.start()
        n = 0
        while max_ticks is None or n < max_ticks:
            n += 1
            try:
                stats = await self.tick()
            except Exception:
                logger.exception("Tick failed; blocks from %d will be retried", self._cursor + 1)
            else:
                if stats["buys"]:
                    logger.info("Cursor at %d: %d buy(s), %d delivered, %d failed",
                                self._cursor, stats["buys"], stats["delivered"], stats["failed_deliveries"])
            if max_ticks is None or n < max_ticks:
                await asyncio.sleep(self.poll_interval_s)
