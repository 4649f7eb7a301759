"""Integration tests for session/manager.py -- SessionSupervisor.

Wires a real poller, state and coordinators to a fake session service and
checks the cycle-level behaviour: when the prompt appears, what renewal does
to the next cycle, and how the session ends.
"""

import asyncio

from session.manager import SessionSupervisor
from session.models import CoordinatorPhase, TokenStatus

_HEALTHY = TokenStatus(is_valid=True, time_remaining=300, is_about_to_expire=False)
_EXPIRING = TokenStatus(is_valid=True, time_remaining=20, is_about_to_expire=True)


class FakeService:
    """Status source plus renew/terminate collaborators sharing one credential."""

    def __init__(self, status=_HEALTHY, renew_error=None, terminate_delay=0.0, revoke_on_terminate=True):
        self.status = status
        self.renew_error = renew_error
        self.terminate_delay = terminate_delay
        self.revoke_on_terminate = revoke_on_terminate
        self.renewed = 0
        self.terminated = 0

    async def status_source(self):
        return self.status

    async def renew(self):
        if self.renew_error is not None:
            raise self.renew_error
        self.renewed += 1
        self.status = _HEALTHY

    async def terminate(self):
        self.terminated += 1
        if self.terminate_delay:
            await asyncio.sleep(self.terminate_delay)
        if self.revoke_on_terminate:
            self.status = TokenStatus.failed()


def _supervisor(service, ceiling=60):
    return SessionSupervisor(
        service.status_source,
        service.renew,
        service.terminate,
        poll_interval=0.01,
        tick_interval=3600,
        countdown_ceiling=ceiling,
    )


def _run(scenario):
    asyncio.run(asyncio.wait_for(scenario(), timeout=5))


def test_no_prompt_while_healthy():
    async def scenario():
        service = FakeService(_HEALTHY)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.05)
        assert sup.prompt is None
        assert sup.coordinator.phase is CoordinatorPhase.ACTIVE
        assert sup.state.latest == _HEALTHY
        sup.stop()

    _run(scenario)


def test_prompt_appears_when_about_to_expire():
    async def scenario():
        service = FakeService(_EXPIRING)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.05)
        prompt = sup.prompt
        assert prompt is not None
        assert prompt.render().countdown_seconds == 20
        sup.stop()

    _run(scenario)


def test_invalid_status_ends_session():
    async def scenario():
        service = FakeService(TokenStatus.failed())
        sup = _supervisor(service)
        sup.start()
        await sup.wait_ended()
        assert sup.ended is True
        assert service.terminated == 1
        assert sup.state.is_active is False
        assert sup.poller.running is False

    _run(scenario)


def test_renewal_starts_a_fresh_cycle():
    async def scenario():
        service = FakeService(_EXPIRING)
        sup = _supervisor(service, ceiling=60)
        sup.start()
        await asyncio.sleep(0.05)
        first = sup.coordinator
        assert await sup.prompt.press_renew() is True
        await asyncio.sleep(0.05)

        fresh = sup.coordinator
        assert fresh is not first
        assert sup.cycles == 2
        assert fresh.phase is CoordinatorPhase.ACTIVE
        assert fresh.has_fired is False
        assert sup.prompt is None
        assert sup.state.latest == _HEALTHY

        # The next prompt starts from min(remaining, ceiling).
        fresh.begin_prompt(_HEALTHY)
        assert fresh.countdown_seconds == 60
        assert service.terminated == 0
        sup.stop()

    _run(scenario)


def test_renewal_failure_keeps_prompt():
    async def scenario():
        service = FakeService(_EXPIRING, renew_error=RuntimeError("refresh_failed"))
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.05)
        assert await sup.prompt.press_renew() is False
        assert sup.prompt is not None
        assert sup.cycles == 1
        assert "Failed to extend session: refresh_failed" in sup.notifier.messages()
        sup.stop()

    _run(scenario)


def test_prompt_dismissed_when_extended_elsewhere():
    async def scenario():
        service = FakeService(_EXPIRING)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.05)
        assert sup.prompt is not None
        service.status = _HEALTHY
        await asyncio.sleep(0.05)
        assert sup.prompt is None
        assert sup.cycles == 2
        assert service.terminated == 0
        assert sup.ended is False
        sup.stop()

    _run(scenario)


def test_logout_terminates_once():
    async def scenario():
        service = FakeService(_HEALTHY)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.02)
        assert sup.logout() is True
        assert sup.logout() is False
        await sup.wait_ended()
        assert service.terminated == 1
        assert sup.state.latest is None

    _run(scenario)


def test_stop_does_not_call_server():
    async def scenario():
        service = FakeService(_EXPIRING)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.03)
        sup.stop()
        assert sup.ended is True
        assert sup.state.is_active is False
        assert sup.poller.running is False
        await asyncio.sleep(0.03)
        assert service.terminated == 0

    _run(scenario)


def test_prompt_stays_up_with_wider_server_threshold():
    # Server configured with a 90 s window: 50 s left is still "about to expire".
    async def scenario():
        wide = TokenStatus(is_valid=True, time_remaining=50, is_about_to_expire=True)
        service = FakeService(wide)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.2)
        assert sup.cycles == 1
        assert sup.prompt is not None
        assert sup.coordinator.countdown_seconds == 50
        sup.stop()

    _run(scenario)


def test_restart_is_not_ended_by_previous_termination():
    async def scenario():
        service = FakeService(_HEALTHY, terminate_delay=0.1, revoke_on_terminate=False)
        sup = _supervisor(service)
        sup.start()
        await asyncio.sleep(0.02)
        assert sup.logout() is True
        sup.stop()
        sup.start()
        await asyncio.sleep(0.2)
        assert service.terminated == 1
        assert sup.state.is_active is True
        assert sup.ended is False
        assert sup.poller.running is True
        assert sup.coordinator.phase is CoordinatorPhase.ACTIVE
        sup.stop()

    _run(scenario)
