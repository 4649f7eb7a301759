"""
session/notify.py -- Transient user notifications ("toasts").

Notifications are fire-and-forget: showing one never raises and never blocks.
Each one is logged, kept in a bounded history for whoever renders them, and
optionally handed to a sink callback (the CLI prints them).
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from session.models import NOTIFICATION_DURATION_MS

logger = logging.getLogger("sessionkeeper.notify")


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.WARNING,
}


@dataclass(frozen=True)
class Notification:
    message: str
    level: NotificationLevel
    duration_ms: int = NOTIFICATION_DURATION_MS
    created_at: float = field(default_factory=time.monotonic)


class Notifier:
    """Collects and dispatches transient notifications."""

    def __init__(self, sink: Optional[Callable[[Notification], None]] = None, history: int = 50) -> None:
        self._sink = sink
        self.history: deque[Notification] = deque(maxlen=history)

    def show(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        duration_ms: int = NOTIFICATION_DURATION_MS,
    ) -> Notification:
        note = Notification(message=message, level=level, duration_ms=duration_ms)
        self.history.append(note)
        logger.log(_LOG_LEVELS[level], "[%s] %s", level.value, message)
        if self._sink is not None:
            try:
                self._sink(note)
            except Exception:
                logger.exception("Notification sink failed")
        return note

    def success(self, message: str) -> Notification:
        return self.show(message, NotificationLevel.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.show(message, NotificationLevel.ERROR)

    def warning(self, message: str) -> Notification:
        return self.show(message, NotificationLevel.WARNING)

    def messages(self) -> list[str]:
        return [n.message for n in self.history]
