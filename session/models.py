"""
session/models.py -- Value types and process-wide constants for the client
side of session continuity.

Pattern: Data class. TokenStatus is one immutable observation of the server's
status query; CoordinatorState is a read-only snapshot of what the renewal
prompt renders. Neither carries behaviour beyond construction helpers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Constants -- process-wide, not user configurable
# ---------------------------------------------------------------------------

# Ceiling and default for the prompt countdown.
DIALOG_COUNTDOWN_SECONDS = 60
# Status query cadence while a session is active.
POLL_INTERVAL_SECONDS = 0.5
# Local countdown cadence while the prompt is shown.
TICK_INTERVAL_SECONDS = 1.0
# A polled value only overwrites the displayed countdown when they differ by
# more than this many seconds.
DRIFT_TOLERANCE_SECONDS = 1
# How long transient notifications stay on screen.
NOTIFICATION_DURATION_MS = 7000


def clamp_seconds(value: Optional[float], ceiling: int) -> int:
    """Floor value to whole seconds and clamp it into [0, ceiling]. None counts as 0."""
    if value is None:
        return 0
    return min(ceiling, max(0, math.floor(value)))


# ---------------------------------------------------------------------------
# TokenStatus
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenStatus:
    """One answer from the status query.

    When is_valid is False, time_remaining and is_about_to_expire are not
    authoritative and the session must be assumed expired.
    """

    is_valid: bool
    time_remaining: Optional[int] = None
    is_about_to_expire: bool = False

    @classmethod
    def failed(cls) -> "TokenStatus":
        """The value published when the status query itself fails."""
        return cls(is_valid=False, time_remaining=None, is_about_to_expire=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenStatus":
        """Build from the camelCase wire shape.

        Raises ValueError if the payload is not a status object, so the
        poller can treat a malformed body like any other failed poll.
        """
        if not isinstance(payload, dict) or "isValid" not in payload:
            raise ValueError(f"Not a token status payload: {payload!r}")
        remaining = payload.get("timeRemaining")
        return cls(
            is_valid=bool(payload["isValid"]),
            time_remaining=int(remaining) if remaining is not None else None,
            is_about_to_expire=bool(payload.get("isAboutToExpire", False)),
        )

    @property
    def assume_expired(self) -> bool:
        return not self.is_valid


# ---------------------------------------------------------------------------
# Coordinator state
# ---------------------------------------------------------------------------


class CoordinatorPhase(str, Enum):
    ACTIVE = "active"  # session running, no prompt shown
    PROMPTING = "prompting"  # countdown visible, user can act
    RENEWED = "renewed"  # terminal: session extended, a new cycle replaces this one
    EXPIRED = "expired"  # terminal: session ended

    @property
    def is_terminal(self) -> bool:
        return self in (CoordinatorPhase.RENEWED, CoordinatorPhase.EXPIRED)


@dataclass(frozen=True)
class CoordinatorState:
    """Snapshot of one coordinator instance, as rendered by the prompt."""

    countdown_seconds: int
    is_processing: bool
    has_fired: bool
    phase: CoordinatorPhase
