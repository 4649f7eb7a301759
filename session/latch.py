"""
session/latch.py -- Single-assignment latch guarding the "session ended" transition.

The latch is a compare-and-set over a two-valued state. try_fire() contains
no await and no callback, so on a single-threaded event loop the check and
the set happen in one uninterruptible step: whichever trigger calls it first
(countdown tick, poll reconciliation, or the user's "end session" click) wins,
and every later caller is told it lost.
"""

from __future__ import annotations

from enum import Enum


class LatchState(str, Enum):
    ARMED = "armed"
    FIRED = "fired"


class FiredLatch:
    """One-way gate: ARMED -> FIRED, never back."""

    __slots__ = ("_state",)

    def __init__(self) -> None:
        self._state = LatchState.ARMED

    def try_fire(self) -> bool:
        """Set the latch. Returns True only for the call that changed it."""
        if self._state is LatchState.FIRED:
            return False
        self._state = LatchState.FIRED
        return True

    @property
    def fired(self) -> bool:
        return self._state is LatchState.FIRED

    def __repr__(self) -> str:
        return f"FiredLatch({self._state.value})"
