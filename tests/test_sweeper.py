"""Tests for the background inactivity sweeper."""

import asyncio
from datetime import timedelta

from bacchus.domain.models import DrinkEvent, Profile
from bacchus.services.engine import SessionEngine
from bacchus.services.sweeper import InactivitySweeper


def test_run_once_terminates_idle_sessions(
    engine: SessionEngine, male_profile: Profile, clock
) -> None:
    engine.start_session(male_profile.id)
    engine.add_drink(
        male_profile.id,
        DrinkEvent(volume_ml=500, alcohol_percentage=5, consumed_at=clock.now),
    )
    clock.advance(hours=13)
    sweeper = InactivitySweeper(engine)

    assert asyncio.run(sweeper.run_once()) == 1
    assert engine.get_active_session(male_profile.id).session is None


def test_run_once_logs_and_survives_errors(engine: SessionEngine) -> None:
    def boom() -> list:
        raise RuntimeError("sweep failed")

    engine.sweep_inactive = boom  # type: ignore[method-assign]
    sweeper = InactivitySweeper(engine)

    assert asyncio.run(sweeper.run_once()) == 0


def test_start_and_stop_loop(
    engine: SessionEngine, male_profile: Profile, clock
) -> None:
    engine.start_session(male_profile.id)
    clock.advance(hours=13)
    sweeper = InactivitySweeper(engine, interval_seconds=0.01)

    async def scenario() -> bool:
        sweeper.start()
        running = sweeper.running
        for _ in range(100):
            if engine.get_active_session(male_profile.id).session is None:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert sweeper.running is False
    assert engine.get_active_session(male_profile.id).session is None
