"""
session/coordinator.py -- ExpirationCoordinator: the authoritative state machine
for "is this session about to end, and has it ended".

Phases:
  ACTIVE     -- session running, no prompt shown.
  PROMPTING  -- countdown visible; the user may renew or end the session.
  RENEWED    -- terminal for this instance; the owner starts a fresh one.
  EXPIRED    -- terminal; the session is over.

Three triggers can end a session: the local countdown reaching zero, a
reconciled status saying the credential is gone, and the user pressing
"end session". All three go through FiredLatch.try_fire(), so the
termination collaborator runs exactly once per instance.

Timing model: while PROMPTING, a local 1 Hz tick decrements the countdown so
the number never freezes between polls, and every status published into
SessionState is reconciled against it. A polled value only overwrites the
displayed one when they disagree by more than the drift tolerance; two
independent clocks (0.5 s polls, 1 s ticks) would otherwise make the number
jitter back and forth.

Failure semantics:
  renewal failure    -> notification, back to PROMPTING, retry allowed
  termination failure -> notification, local session cleared anyway
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from session.latch import FiredLatch
from session.models import (
    DIALOG_COUNTDOWN_SECONDS,
    DRIFT_TOLERANCE_SECONDS,
    TICK_INTERVAL_SECONDS,
    CoordinatorPhase,
    CoordinatorState,
    TokenStatus,
    clamp_seconds,
)
from session.notify import Notifier
from session.state import SessionState

logger = logging.getLogger("sessionkeeper.coordinator")

SessionAction = Callable[[], Awaitable[Any]]

MSG_RENEWED = "Session extended successfully."
MSG_RENEW_FAILED = "Failed to extend session: {reason}"
MSG_EXPIRED = "Session expired. Please log in again."
MSG_LOGGED_OUT = "You have been logged out."
MSG_TERMINATE_FAILED = "Could not reach the server to end your session; remote sign-out may not have completed."


class ExpirationCoordinator:
    """One renewal cycle of a session.

    Created in ACTIVE by the session owner; begin_prompt() moves it to
    PROMPTING. The instance never leaves a terminal phase. All public methods
    must be called on the event loop thread.
    """

    def __init__(
        self,
        state: SessionState,
        renew: SessionAction,
        terminate: SessionAction,
        notifier: Optional[Notifier] = None,
        countdown_ceiling: int = DIALOG_COUNTDOWN_SECONDS,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        drift_tolerance: int = DRIFT_TOLERANCE_SECONDS,
    ) -> None:
        if countdown_ceiling < 1:
            raise ValueError("countdown_ceiling must be at least 1 second")
        self._session = state
        self._renew = renew
        self._terminate = terminate
        self._notifier = notifier or Notifier()
        self._ceiling = countdown_ceiling
        self._tick_interval = tick_interval
        self._drift_tolerance = drift_tolerance

        self._latch = FiredLatch()
        self._phase = CoordinatorPhase.ACTIVE
        self._countdown = countdown_ceiling
        self._processing = False
        self._closed = False
        self._tick_task: Optional[asyncio.Task] = None
        self._expiry_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._done = asyncio.Event()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> CoordinatorState:
        return CoordinatorState(
            countdown_seconds=self._countdown,
            is_processing=self._processing,
            has_fired=self._latch.fired,
            phase=self._phase,
        )

    @property
    def phase(self) -> CoordinatorPhase:
        return self._phase

    @property
    def countdown_seconds(self) -> int:
        return self._countdown

    @property
    def countdown_ceiling(self) -> int:
        return self._ceiling

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def has_fired(self) -> bool:
        return self._latch.fired

    @property
    def closed(self) -> bool:
        return self._closed

    def _live(self) -> bool:
        """True while ticks and reconciliations may still change anything."""
        return not self._closed and self._phase is CoordinatorPhase.PROMPTING and not self._latch.fired

    # ------------------------------------------------------------------
    # Entering PROMPTING
    # ------------------------------------------------------------------

    def begin_prompt(self, latest: Optional[TokenStatus] = None) -> bool:
        """Show the countdown. Returns False if the instance is not in ACTIVE.

        The countdown starts from the best estimate available: the latest
        polled time remaining clamped to the ceiling, or the ceiling itself
        when nothing has been polled yet. An invalid latest status is
        reconciled straight away, which ends the session.
        """
        if self._closed or self._latch.fired or self._phase is not CoordinatorPhase.ACTIVE:
            return False
        if latest is None:
            latest = self._session.latest

        if latest is not None and latest.is_valid and latest.time_remaining is not None:
            self._countdown = clamp_seconds(latest.time_remaining, self._ceiling)
        else:
            self._countdown = self._ceiling
        self._phase = CoordinatorPhase.PROMPTING
        logger.info("Expiration prompt shown (countdown=%ds)", self._countdown)

        self._unsubscribe = self._session.subscribe(self.reconcile)
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop(), name="expiry-countdown")
        if latest is not None:
            self.reconcile(latest)
        return True

    # ------------------------------------------------------------------
    # Timers and reconciliation
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Advance the local countdown by one second; fire at zero."""
        if not self._live():
            return
        self._countdown = max(0, self._countdown - 1)
        if self._countdown <= 0:
            self._fire("countdown")

    def reconcile(self, status: Optional[TokenStatus]) -> None:
        """Correct the displayed countdown from a polled status.

        None (status cleared) is ignored. An invalid status counts as zero
        seconds remaining.
        """
        if status is None or not self._live():
            return
        if status.assume_expired:
            authoritative = 0
        else:
            authoritative = clamp_seconds(status.time_remaining, self._ceiling)
        if abs(self._countdown - authoritative) > self._drift_tolerance:
            logger.debug("Countdown corrected %d -> %d", self._countdown, authoritative)
            self._countdown = authoritative
        if authoritative <= 0:
            self._countdown = 0
            self._fire("server" if status.assume_expired else "server-countdown")

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            if not self._live():
                return
            self.tick()

    # ------------------------------------------------------------------
    # Terminal transition (exactly once)
    # ------------------------------------------------------------------

    def _fire(self, reason: str) -> bool:
        if not self._latch.try_fire():
            return False
        logger.info("Session end triggered by %s", reason)
        self._countdown = 0
        self._processing = True
        self._cancel_timers()
        self._expiry_task = asyncio.get_running_loop().create_task(self._expire(reason), name="session-expiry")
        return True

    async def _expire(self, reason: str) -> None:
        """Run the terminal action. Termination is best-effort; local cleanup is not.

        If the instance was closed while the call was in flight, the session
        state may already belong to a newer owner and is left alone.
        """
        remote_ok = True
        try:
            await self._terminate()
        except Exception as exc:
            remote_ok = False
            logger.warning("Session termination call failed: %s", exc)
        finally:
            self._processing = False
            self._phase = CoordinatorPhase.EXPIRED
            if not self._closed:
                self._session.end()
            self._done.set()

        if self._closed:
            logger.info("Termination finished after close; session state untouched")
            return
        if not remote_ok:
            self._notifier.warning(MSG_TERMINATE_FAILED)
        self._notifier.error(MSG_LOGGED_OUT if reason == "user" else MSG_EXPIRED)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def renew(self) -> bool:
        """Ask the renewal collaborator to extend the session.

        Returns True if the session was extended and this instance is now
        RENEWED. On failure the user is notified and the countdown keeps
        running; renew() may be called again.
        """
        if not self._live() or self._processing:
            return False
        self._processing = True
        try:
            await self._renew()
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.warning("Session renewal failed: %s", reason)
            if not self._latch.fired:
                self._processing = False
                self._notifier.error(MSG_RENEW_FAILED.format(reason=reason))
            return False

        if self._latch.fired or self._closed:
            # The countdown or the server won the race; the session is ending.
            logger.info("Renewal completed after the session ended; ignoring result")
            return False

        self._processing = False
        self._phase = CoordinatorPhase.RENEWED
        self._cancel_timers()
        self._done.set()
        logger.info("Session renewed")
        self._notifier.success(MSG_RENEWED)
        return True

    def end_now(self) -> bool:
        """End the session immediately. Returns True if this call started termination.

        Ignored while a renew or terminate call is in flight.
        """
        if self._closed or self._processing or self._phase.is_terminal:
            return False
        return self._fire("user")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait(self) -> CoordinatorPhase:
        """Wait until the instance is RENEWED, EXPIRED or closed; return the phase."""
        await self._done.wait()
        return self._phase

    def close(self) -> None:
        """Tear down synchronously: stop the tick and drop the status subscription.

        A closed instance ignores every later tick, status and user action.
        A termination that has already fired still makes its remote call, but
        no longer ends the shared session state or posts notifications.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timers()
        self._done.set()

    def _cancel_timers(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __repr__(self) -> str:
        return (
            f"ExpirationCoordinator(phase={self._phase.value}, countdown={self._countdown}, "
            f"processing={self._processing}, fired={self._latch.fired})"
        )
