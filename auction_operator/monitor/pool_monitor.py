"""
Pool monitor: one shared poll loop per pool, fanned out to subscribers.

Each pool feed owns a poll task, a latest-value cell and a rolling market
history. Subscribers iterate ``Result[Snapshot]`` values:

    subscription = monitor.observe(pool_id)
    async for result in subscription:
        if isinstance(result, Err):
            continue
        snapshot = result.value

A new subscriber first receives the cell value (if any). Successful
snapshots are published only when their block is strictly newer than the
last published one; failed ticks are published as ``Err``.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from ..core.errors import ErrorHandler
from ..core.result import Err, Ok, Result
from ..core.retry import MONITOR_READ_POLICY, RetryPolicy
from ..core.types import Snapshot, normalize_pool_id
from .market_data import MarketDataCalculator
from .state_reader import StateReader

logger = logging.getLogger(__name__)

CalculatorFactory = Callable[[], MarketDataCalculator]


class PoolFeed:
    """Shared state for one monitored pool."""

    def __init__(self, pool_id: str, calculator: MarketDataCalculator):
        self.pool_id = pool_id
        self.calculator = calculator
        self.latest: Optional[Result] = None
        self.version = 0
        self.last_block: Optional[int] = None
        self.task: Optional[asyncio.Task] = None
        self.subscriptions: Set["Subscription"] = set()
        self._changed = asyncio.Event()

    def publish(self, result: Result):
        self.latest = result
        self.version += 1
        self._wake()

    def _wake(self):
        event, self._changed = self._changed, asyncio.Event()
        event.set()

    async def wait_changed(self):
        await self._changed.wait()


class Subscription:
    """
    Async iterator over a pool feed.

    Iteration ends once the subscription (or the monitor) is closed.
    """

    def __init__(self, monitor: "PoolMonitor", feed: PoolFeed):
        self._monitor = monitor
        self._feed = feed
        self._closed = False
        # Replay the cell value to a late subscriber
        self._seen = feed.version - 1 if feed.latest is not None else feed.version

    @property
    def pool_id(self) -> str:
        return self._feed.pool_id

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        return self

    async def __anext__(self) -> Result:
        while not self._closed and self._feed.version <= self._seen:
            await self._feed.wait_changed()

        if self._closed:
            raise StopAsyncIteration

        self._seen = self._feed.version
        return self._feed.latest

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Release the subscription; the last release stops the feed."""
        if self._closed:
            return
        self._closed = True
        self._feed._wake()
        self._monitor._release(self._feed, self)


class PoolMonitor:
    """
    Polls pool and auction state and broadcasts snapshots per pool.
    """

    def __init__(
        self,
        reader: StateReader,
        calculator_factory: CalculatorFactory,
        refresh_interval: float = 12.0,
        read_policy: RetryPolicy = MONITOR_READ_POLICY,
    ):
        self.reader = reader
        self.calculator_factory = calculator_factory
        self.refresh_interval = refresh_interval
        self.read_policy = read_policy
        self._feeds: Dict[str, PoolFeed] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.error_handler = ErrorHandler(self.logger)

    @property
    def active_pools(self):
        return list(self._feeds)

    def observe(self, pool_id: str) -> Subscription:
        """
        Subscribe to a pool's snapshot stream.

        Starts the pool's poll loop on the first subscription. Must be called
        from a running event loop.
        """
        pool_id = normalize_pool_id(pool_id)
        feed = self._feeds.get(pool_id)

        if feed is None:
            feed = PoolFeed(pool_id, self.calculator_factory())
            feed.task = asyncio.create_task(self._poll_loop(feed), name=f"poll-{pool_id[:10]}")
            self._feeds[pool_id] = feed
            self.logger.info(f"Started monitoring pool {pool_id} every {self.refresh_interval}s")

        subscription = Subscription(self, feed)
        feed.subscriptions.add(subscription)
        return subscription

    async def snapshot(self, pool_id: str) -> Result:
        """One-shot read with a fresh history; no dedup and no shared state."""
        pool_id = normalize_pool_id(pool_id)
        return await self._read_snapshot(pool_id, self.calculator_factory(), last_block=None)

    def close(self):
        """Close every subscription and stop all poll loops."""
        for feed in list(self._feeds.values()):
            for subscription in list(feed.subscriptions):
                subscription.close()
        self._feeds.clear()

    def _release(self, feed: PoolFeed, subscription: Subscription):
        feed.subscriptions.discard(subscription)
        if feed.subscriptions:
            return

        if feed.task is not None:
            feed.task.cancel()
        if self._feeds.get(feed.pool_id) is feed:
            del self._feeds[feed.pool_id]
        feed.latest = None
        feed.calculator.reset()
        self.logger.info(f"Stopped monitoring pool {feed.pool_id}")

    async def _read_snapshot(
        self,
        pool_id: str,
        calculator: MarketDataCalculator,
        last_block: Optional[int],
    ) -> Optional[Result]:
        """
        Read both states concurrently under the read policy.

        Returns:
            ``Err`` when either read failed, ``None`` when the block is not
            newer than ``last_block``, otherwise ``Ok(Snapshot)``
        """
        pool_result, auction_result = await asyncio.gather(
            self.read_policy.run(self.reader.read_pool_state(pool_id), f"pool state read for {pool_id[:10]}"),
            self.read_policy.run(self.reader.read_auction_state(pool_id), f"auction state read for {pool_id[:10]}"),
        )

        if isinstance(pool_result, Err):
            return pool_result
        if isinstance(auction_result, Err):
            return auction_result

        pool_state = pool_result.value
        if last_block is not None and pool_state.last_update_block <= last_block:
            return None

        market_data = calculator.calculate(pool_state)
        return Ok(Snapshot(
            pool_state=pool_state,
            auction_state=auction_result.value,
            market_data=market_data,
        ))

    async def _poll_loop(self, feed: PoolFeed):
        """Poll until cancelled, publishing one value per changed tick."""
        while True:
            try:
                result = await self._read_snapshot(feed.pool_id, feed.calculator, feed.last_block)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.error_handler.log_error(e, {"pool_id": feed.pool_id, "operation": "poll"})
                result = Err(self.error_handler.to_operator_error(e, f"Polling {feed.pool_id} failed"))

            if isinstance(result, Err):
                self.logger.warning(f"Pool {feed.pool_id[:10]} read failed: {result.error}")
                feed.publish(result)
            elif result is not None:
                feed.last_block = result.value.block
                feed.publish(result)

            await asyncio.sleep(self.refresh_interval)
