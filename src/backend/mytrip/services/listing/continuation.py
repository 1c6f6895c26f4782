"""
Continuation Driver

Two triggers ask the engine for the next page:

- proximity: the consumer reports the user scrolled near the end of the list
- eager: armed after every settled load; fires once after a short delay when
  the display list is still short (filtering can leave a page nearly empty)

Both go through one request path. A proximity trigger that arrives while a
load is running is remembered once and replayed when that load settles.
"""

import asyncio
import logging
from typing import Optional, Set

from ...models.listing import ListingSnapshot
from ..config.settings import DEFAULT_EAGER_DELAY_SECONDS, DEFAULT_EAGER_THRESHOLD
from .engine import ListingAggregationEngine

logger = logging.getLogger(__name__)


class ContinuationDriver:
    """Schedules next-page requests for a ListingAggregationEngine"""

    def __init__(
        self,
        engine: ListingAggregationEngine,
        eager_threshold: int = DEFAULT_EAGER_THRESHOLD,
        eager_delay: float = DEFAULT_EAGER_DELAY_SECONDS,
    ):
        """
        Args:
            engine: Engine to drive
            eager_threshold: Eager loading stops once this many items are displayed
            eager_delay: Seconds between a settled load and the eager request
        """
        self.engine = engine
        self.eager_threshold = eager_threshold
        self.eager_delay = eager_delay

        self._request_task: Optional[asyncio.Task] = None
        self._eager_handle: Optional[asyncio.TimerHandle] = None
        self._deferred = False
        self._generation = engine.generation
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

        self._unsubscribe = engine.subscribe(self._on_change)

    @property
    def busy(self) -> bool:
        """True while the engine is loading or a scheduled request has not finished"""
        if self._request_task is not None and not self._request_task.done():
            return True
        return self.engine.snapshot().is_loading

    @property
    def eager_pending(self) -> bool:
        return self._eager_handle is not None

    def on_proximity(self) -> Optional[asyncio.Task]:
        """
        Handle a "near the end of the list" signal.

        Returns:
            The request task when one was started
        """
        if self._closed:
            return None
        if self.busy:
            if self.engine.snapshot().more_available:
                self._deferred = True
            return None
        return self._start_request("proximity")

    def on_eager_timer(self) -> Optional[asyncio.Task]:
        """Eager timer callback; also callable directly"""
        self._eager_handle = None
        if self._closed or self.busy:
            # A new timer is armed when the running load settles
            return None
        snapshot = self.engine.snapshot()
        if not self._eager_wanted(snapshot):
            return None
        return self._start_request("eager")

    def _eager_wanted(self, snapshot: ListingSnapshot) -> bool:
        return (
            snapshot.more_available
            and snapshot.error is None
            and len(snapshot.display_list) < self.eager_threshold
        )

    def _start_request(self, trigger: str) -> Optional[asyncio.Task]:
        snapshot = self.engine.snapshot()
        if not snapshot.more_available:
            return None

        logger.debug(f"Next page requested by {trigger} trigger (after page {snapshot.last_page})")
        task = asyncio.get_running_loop().create_task(self.engine.request_next_page())
        self._request_task = task
        self._tasks.add(task)
        task.add_done_callback(self._on_request_done)
        return task

    def _on_request_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Next page request failed: {error}", exc_info=error)

    def _cancel_eager(self):
        if self._eager_handle is not None:
            self._eager_handle.cancel()
            self._eager_handle = None

    def _on_change(self, snapshot: ListingSnapshot):
        if self._closed:
            return

        if self.engine.generation != self._generation:
            # New query: forget everything scheduled for the old one
            self._generation = self.engine.generation
            self._deferred = False
            self._cancel_eager()

        if snapshot.is_loading:
            self._cancel_eager()
            return

        self._cancel_eager()

        if self._deferred:
            self._deferred = False
            if snapshot.more_available and snapshot.error is None:
                # Still inside the engine's notification; the request task runs next tick
                self._request_task = None
                self._start_request("deferred proximity")
                return

        if self._eager_wanted(snapshot):
            loop = asyncio.get_running_loop()
            self._eager_handle = loop.call_later(self.eager_delay, self.on_eager_timer)

    async def close(self):
        """Cancel timers and outstanding requests and detach from the engine"""
        self._closed = True
        self._cancel_eager()
        self._unsubscribe()
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
