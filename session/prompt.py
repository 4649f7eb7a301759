"""
session/prompt.py -- RenewalPrompt: presentation over an ExpirationCoordinator.

The prompt owns no timing and no state of its own. render() reads the
coordinator's current CoordinatorState into a PromptView; to_text() turns that
view into terminal output. Button presses are forwarded to the coordinator,
and are ignored while the buttons are disabled (an action is in flight).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

from session.coordinator import ExpirationCoordinator

W = 52  # box width

RENEW_LABEL = "Yes, Extend Session"
RENEW_BUSY_LABEL = "Extending..."
END_LABEL = "Logout"

_YELLOW = "\033[93m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RESET = "\033[0m"


def _use_color() -> bool:
    """Respect NO_COLOR / FORCE_COLOR, otherwise color only on a TTY."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


@dataclass(frozen=True)
class PromptView:
    """Everything needed to draw the prompt once."""

    countdown_seconds: int
    progress: float  # 0.0 - 1.0, countdown / ceiling
    buttons_disabled: bool
    renew_label: str
    end_label: str
    title: str = "Session About to Expire"
    message: str = "Your session is about to expire. Would you like to extend it?"


class RenewalPrompt:
    """View over one ExpirationCoordinator."""

    def __init__(self, coordinator: ExpirationCoordinator) -> None:
        self._coordinator = coordinator

    @property
    def coordinator(self) -> ExpirationCoordinator:
        return self._coordinator

    def render(self) -> PromptView:
        state = self._coordinator.state
        ceiling = self._coordinator.countdown_ceiling
        return PromptView(
            countdown_seconds=state.countdown_seconds,
            progress=state.countdown_seconds / ceiling,
            buttons_disabled=state.is_processing,
            renew_label=RENEW_BUSY_LABEL if state.is_processing else RENEW_LABEL,
            end_label=END_LABEL,
        )

    def to_text(self, color: Optional[bool] = None) -> str:
        """Render the current view as a boxed block of terminal text."""
        view = self.render()
        use_color = _use_color() if color is None else color
        yellow, bold, dim, reset = (_YELLOW, _BOLD, _DIM, _RESET) if use_color else ("", "", "", "")

        bar_width = W - 4
        filled = round(view.progress * bar_width)
        bar = "#" * filled + "-" * (bar_width - filled)
        buttons = f"[ {view.renew_label} ]  [ {view.end_label} ]"
        if view.buttons_disabled:
            buttons = f"{dim}{buttons}{reset}"

        lines = [
            "=" * W,
            f"  {bold}{view.title}{reset}",
            f"  {view.message}",
            "",
            "  You will be automatically logged out in:",
            f"  {yellow}{bold}{view.countdown_seconds}{reset} seconds",
            f"  {yellow}{bar}{reset}",
            "",
            f"  {buttons}",
            "=" * W,
        ]
        return "\n".join(lines)

    async def press_renew(self) -> bool:
        if self.render().buttons_disabled:
            return False
        return await self._coordinator.renew()

    def press_end(self) -> bool:
        if self.render().buttons_disabled:
            return False
        return self._coordinator.end_now()
