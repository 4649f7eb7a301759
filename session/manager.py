"""
session/manager.py -- SessionSupervisor: owns one client session end to end.

The supervisor wires the pieces together for the lifetime of one login:

  SessionState         -- activated on start(), ended by the coordinator
  StatusPoller         -- publishes the status query into SessionState
  ExpirationCoordinator -- one instance per renewal cycle

It is the "surrounding session manager" that decides when to show the
prompt: a valid status flagged isAboutToExpire moves the current ACTIVE
coordinator into PROMPTING, and so does an invalid status (fail closed: the
coordinator then ends the session through its latch). When a coordinator
finishes RENEWED the supervisor creates a fresh ACTIVE instance and restarts
the poller for an immediate fresh reading.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from session.coordinator import ExpirationCoordinator, SessionAction
from session.models import (
    DIALOG_COUNTDOWN_SECONDS,
    POLL_INTERVAL_SECONDS,
    TICK_INTERVAL_SECONDS,
    CoordinatorPhase,
    TokenStatus,
)
from session.notify import Notifier
from session.poller import StatusPoller, StatusSource
from session.prompt import RenewalPrompt
from session.state import SessionState

logger = logging.getLogger("sessionkeeper.manager")


class SessionSupervisor:
    """Runs status polling and renewal cycles for one session.

    Usage:
        supervisor = SessionSupervisor(client.status_source, client.renew_session, client.terminate_session)
        supervisor.start()            # requires a running event loop
        await supervisor.wait_ended()
    """

    def __init__(
        self,
        source: StatusSource,
        renew: SessionAction,
        terminate: SessionAction,
        notifier: Optional[Notifier] = None,
        state: Optional[SessionState] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        countdown_ceiling: int = DIALOG_COUNTDOWN_SECONDS,
    ) -> None:
        self.state = state or SessionState()
        self.notifier = notifier or Notifier()
        self.poller = StatusPoller(self.state, source, interval=poll_interval)
        self._renew = renew
        self._terminate = terminate
        self._tick_interval = tick_interval
        self._ceiling = countdown_ceiling

        self.coordinator: Optional[ExpirationCoordinator] = None
        self.cycles = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._watchers: set[asyncio.Task] = set()
        self._ended = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Activate the session and begin polling. No-op if already active."""
        if self.state.is_active:
            return
        self._ended.clear()
        self.state.activate()
        self._unsubscribe = self.state.subscribe(self._on_status)
        self._new_cycle()
        self.poller.start()
        logger.info("Session supervision started")

    def stop(self) -> None:
        """Tear everything down locally without calling the server."""
        self.poller.stop()
        if self.coordinator is not None:
            self.coordinator.close()
        for task in list(self._watchers):
            task.cancel()
        self._finish()
        logger.info("Session supervision stopped")

    def logout(self) -> bool:
        """User-initiated logout through the current coordinator's latch."""
        if self.coordinator is None:
            return False
        return self.coordinator.end_now()

    async def wait_ended(self) -> None:
        await self._ended.wait()

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    @property
    def prompt(self) -> Optional[RenewalPrompt]:
        """The prompt to show, or None when the current cycle is not PROMPTING."""
        coord = self.coordinator
        if coord is None or coord.closed or coord.phase is not CoordinatorPhase.PROMPTING:
            return None
        return RenewalPrompt(coord)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def _new_cycle(self) -> ExpirationCoordinator:
        coord = ExpirationCoordinator(
            self.state,
            renew=self._renew,
            terminate=self._terminate,
            notifier=self.notifier,
            countdown_ceiling=self._ceiling,
            tick_interval=self._tick_interval,
        )
        self.coordinator = coord
        self.cycles += 1
        task = asyncio.get_running_loop().create_task(self._watch(coord), name=f"session-cycle-{self.cycles}")
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)
        logger.debug("Renewal cycle %d started", self.cycles)
        return coord

    async def _watch(self, coord: ExpirationCoordinator) -> None:
        outcome = await coord.wait()
        if coord is not self.coordinator:
            return  # dismissed and replaced
        if outcome is CoordinatorPhase.RENEWED:
            self._new_cycle()
            self.poller.restart()
        elif outcome is CoordinatorPhase.EXPIRED:
            self.poller.stop()
            self._finish()

    def _finish(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.state.end()
        self._ended.set()

    def _on_status(self, status: Optional[TokenStatus]) -> None:
        coord = self.coordinator
        if status is None or coord is None or coord.closed:
            return
        if coord.phase is CoordinatorPhase.ACTIVE:
            if status.assume_expired or status.is_about_to_expire:
                coord.begin_prompt(status)
        elif coord.phase is CoordinatorPhase.PROMPTING and not coord.is_processing:
            if status.is_valid and not status.is_about_to_expire:
                # Extended by other means (e.g. a silent refresh); drop the prompt.
                logger.info("Session no longer about to expire; dismissing prompt")
                coord.close()
                self._new_cycle()
