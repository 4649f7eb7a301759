"""
session/poller.py -- StatusPoller: keeps SessionState current with server truth.

While a session is active the poller calls the status source every
POLL_INTERVAL_SECONDS and publishes each answer into SessionState. Polls are
strictly sequential (the next one starts only after the previous one has
resolved), so published values are always in request order.

Failure policy is fail-closed: if the query raises for any reason the poller
publishes TokenStatus.failed() instead of leaving the last good value in
place. A dead session must not look alive because the network hiccuped.

The poller only writes status. Deciding that the session is over belongs to
ExpirationCoordinator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from session.models import POLL_INTERVAL_SECONDS, TokenStatus
from session.state import SessionState

logger = logging.getLogger("sessionkeeper.poller")

StatusSource = Callable[[], Awaitable[TokenStatus]]


class StatusPoller:
    """Repeatedly queries a StatusSource and republishes its answers.

    Usage:
        poller = StatusPoller(state, client.status_source)
        poller.start()   # requires a running event loop
        ...
        poller.stop()
    """

    def __init__(
        self,
        state: SessionState,
        source: StatusSource,
        interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._state = state
        self._source = source
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.polls = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin polling. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="status-poller")
        logger.debug("Status poller started (interval=%.2fs)", self._interval)

    def stop(self) -> None:
        """Stop polling. Synchronous: an in-flight poll's result is discarded."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Status poller stopped")

    def restart(self) -> None:
        """Stop and start again, which issues a fresh poll immediately."""
        self.stop()
        self.start()

    async def poll_once(self) -> Optional[TokenStatus]:
        """Run one status query and publish the result.

        Returns the published status, or None if the session ended while the
        query was in flight (the result is then dropped).
        """
        self.polls += 1
        try:
            status = await self._source()
            if not isinstance(status, TokenStatus):
                raise TypeError(f"Status source returned {type(status).__name__}, expected TokenStatus")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.warning("Token status poll failed: %s", exc)
            status = TokenStatus.failed()

        if not self._state.is_active:
            return None
        self._state.publish(status)
        return status

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            if not self._state.is_active:
                # Clear to the neutral value so nothing stale survives the session.
                if self._state.latest is not None:
                    self._state.publish(None)
                logger.debug("No active session; status poller exiting")
                return
            started = loop.time()
            await self.poll_once()
            await asyncio.sleep(max(0.0, self._interval - (loop.time() - started)))
