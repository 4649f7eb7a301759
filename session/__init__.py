"""session/ -- Client-side session continuity.

StatusPoller -> SessionState -> ExpirationCoordinator -> RenewalPrompt,
supervised per login by SessionSupervisor.

Layer rule: session/ imports only stdlib and requests. It does NOT import
from api/, auth/, or core/ -- it talks to the service over HTTP only.
"""

from session.coordinator import ExpirationCoordinator
from session.latch import FiredLatch
from session.manager import SessionSupervisor
from session.models import (
    DIALOG_COUNTDOWN_SECONDS,
    DRIFT_TOLERANCE_SECONDS,
    POLL_INTERVAL_SECONDS,
    TICK_INTERVAL_SECONDS,
    CoordinatorPhase,
    CoordinatorState,
    TokenStatus,
)
from session.notify import Notification, NotificationLevel, Notifier
from session.poller import StatusPoller
from session.prompt import PromptView, RenewalPrompt
from session.state import SessionState

__all__ = [
    "DIALOG_COUNTDOWN_SECONDS",
    "DRIFT_TOLERANCE_SECONDS",
    "POLL_INTERVAL_SECONDS",
    "TICK_INTERVAL_SECONDS",
    "CoordinatorPhase",
    "CoordinatorState",
    "ExpirationCoordinator",
    "FiredLatch",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "PromptView",
    "RenewalPrompt",
    "SessionState",
    "SessionSupervisor",
    "StatusPoller",
    "TokenStatus",
]
