"""Tests for the manual revoke ordering.

A tick that runs while the revoke call is in flight sees an active session
and standard privileges. If it is allowed to act, it reads that as an
external timeout and re-elevates, undoing the user's revoke. The runner's
``on_run`` hook simulates such a tick firing inside the blocking call.
"""

import asyncio

import pytest
import pytest_asyncio

from privileges_extender.core.control_loop import ControlLoop
from privileges_extender.core.elevation_session import ElevationSession
from privileges_extender.gateway import PrivilegeGateway
from privileges_extender.models.session import Active, DurationOption, Idle

from .fakes import T0, FakeClock, FakeRunner

THIRTY_MIN = DurationOption(label="30 minutes", minutes=30)
INDEFINITE = DurationOption(label="Indefinitely", minutes=0)

ADD_CALL = ["--add", "--reason", "Testing"]


@pytest_asyncio.fixture
async def loop(tool_path, runner: FakeRunner, clock: FakeClock):
    control = ControlLoop(
        session=ElevationSession(re_elevation_interval_seconds=60),
        gateway=PrivilegeGateway(tool_path, runner),
        tick_interval_seconds=3600,
        clock=clock,
    )
    control.session.start("Testing", THIRTY_MIN, T0)
    control.arm()
    yield control
    await control.stop()


def tick_during_remove(loop: ControlLoop, clock: FakeClock, only_when_armed: bool = False):
    """Build an on_run hook that reconciles while --remove is running."""

    async def hook(args: list[str]) -> None:
        if args != ["--remove"]:
            return
        if only_when_armed and not loop.is_armed:
            return
        await loop._reconcile(clock.advance(5))

    return hook


class TestOrdering:
    """Session/gateway ordering with a tick forced inside the revoke call."""

    @pytest.mark.asyncio
    async def test_stopping_session_first_prevents_re_elevation(self, loop, runner, clock):
        """A tick inside the call sees an idle session and leaves it alone."""
        runner.on_run = tick_during_remove(loop, clock)

        loop.session.stop()
        error = await loop.gateway.revoke()

        assert error is None
        assert loop.session.state == Idle()
        assert ADD_CALL not in runner.calls

    @pytest.mark.asyncio
    async def test_revoking_before_stopping_allows_the_race(self, loop, runner, clock):
        """With the session still active, the same tick re-elevates."""
        runner.on_run = tick_during_remove(loop, clock)

        await loop.gateway.revoke()
        loop.session.stop()

        assert ADD_CALL in runner.calls


class TestManualRevoke:
    """ControlLoop.revoke protocol."""

    @pytest.mark.asyncio
    async def test_tick_disarmed_before_tool_runs(self, loop, runner, clock):
        """No tick is armed while --remove runs."""
        armed_during_call: list[bool] = []

        async def hook(args: list[str]) -> None:
            if args == ["--remove"]:
                armed_during_call.append(loop.is_armed)

        runner.on_run = hook

        assert await loop.revoke() is None
        assert armed_during_call == [False]

    @pytest.mark.asyncio
    async def test_armed_tick_cannot_fire_during_revoke(self, loop, runner, clock):
        """A due tick does not run while the revoke is in flight."""
        runner.on_run = tick_during_remove(loop, clock, only_when_armed=True)

        assert await loop.revoke() is None
        assert ADD_CALL not in runner.calls
        assert loop.session.state == Idle()
        assert not loop.is_armed

    @pytest.mark.asyncio
    async def test_real_timer_does_not_re_elevate(self, loop, runner):
        """A fast real tick cannot slip in while the tool is slow to answer."""
        loop.tick_interval_seconds = 0.01
        loop.disarm()
        loop.arm()

        async def slow_remove(args: list[str]) -> None:
            if args == ["--remove"]:
                await asyncio.sleep(0.1)

        runner.on_run = slow_remove

        assert await loop.revoke() is None
        await asyncio.sleep(0.05)

        assert runner.count("--add") == 0
        assert loop.session.state == Idle()

    @pytest.mark.asyncio
    async def test_queued_tick_waits_and_sees_idle_session(self, loop, runner):
        """A tick requested mid-revoke is serialized behind it."""
        pending: list[asyncio.Task] = []

        async def hook(args: list[str]) -> None:
            if args == ["--remove"]:
                pending.append(asyncio.create_task(loop.tick()))
                await asyncio.sleep(0)
                assert not pending[0].done()

        runner.on_run = hook

        await loop.revoke()
        await pending[0]

        assert runner.count("--add") == 0
        assert loop.session.state == Idle()

    @pytest.mark.asyncio
    async def test_failure_keeps_session_and_rearms(self, loop, runner):
        """A failed revoke keeps the session and the tick."""
        runner.fail("--remove", output="Permission denied")

        error = await loop.revoke()

        assert error is not None
        assert loop.session.state == Active("Testing", T0, THIRTY_MIN)
        assert loop.is_armed

    @pytest.mark.asyncio
    async def test_indefinite_session_revoked_without_re_elevation(self, loop, runner, clock):
        """An indefinite grant stays revoked."""
        loop.session.start("Dev work", INDEFINITE, T0)
        runner.on_run = tick_during_remove(loop, clock, only_when_armed=True)

        assert await loop.revoke() is None
        assert runner.count("--add") == 0
        assert loop.session.state == Idle()
