"""
session/state.py -- Shared session state: the "is a session active" flag and
the most recently published TokenStatus.

Single writer (StatusPoller publishes, SessionSupervisor activates and ends),
many readers (ExpirationCoordinator and anything else that renders session
information). Readers either read `latest` or subscribe to be called with
every published value. Subscribers run synchronously on the event loop in
subscription order; nothing here awaits, so no lock is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from session.models import TokenStatus

logger = logging.getLogger("sessionkeeper.state")

StatusListener = Callable[[Optional[TokenStatus]], None]


class SessionState:
    """Observable holder for the active flag and the latest TokenStatus."""

    def __init__(self) -> None:
        self._active = False
        self._latest: Optional[TokenStatus] = None
        self._listeners: list[StatusListener] = []

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def latest(self) -> Optional[TokenStatus]:
        """The last published status, or None when unset (no session / not polled yet)."""
        return self._latest

    def activate(self) -> None:
        """Mark a session as active. Clears any status left from a previous session."""
        self._active = True
        self._latest = None

    def end(self) -> None:
        """Mark the session ended and clear the published status.

        Listeners are notified with None so no stale positive status outlives
        the session that produced it. Calling end() on an inactive state is a
        no-op.
        """
        if not self._active:
            return
        self._active = False
        logger.info("Session ended locally")
        self.publish(None)

    def publish(self, status: Optional[TokenStatus]) -> None:
        """Replace the latest status and notify subscribers.

        A non-None status published while no session is active is dropped:
        it belongs to a session that has already ended.
        """
        if status is not None and not self._active:
            logger.debug("Dropping status published after session end: %r", status)
            return
        self._latest = status
        for listener in list(self._listeners):
            listener(status)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register listener; returns a callable that unsubscribes it (idempotent)."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
