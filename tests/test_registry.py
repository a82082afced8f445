"""Tests for the in-memory session registry."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from bacchus.domain.models import DrinkEvent, Session
from bacchus.services.registry import SessionRegistry

START = datetime(2024, 6, 1, 20, 0, tzinfo=UTC)


def test_start_session_reuses_active() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()

    first = registry.start_session(profile_id, START)
    second = registry.start_session(profile_id, START + timedelta(minutes=5))

    assert first.id == second.id
    assert registry.get_active(profile_id) == first


def test_end_session_moves_to_history() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    session = registry.start_session(profile_id, START)
    registry.replace_active(replace(session, current_bac=0.3))

    ended = registry.end_session(profile_id, START + timedelta(hours=1))

    assert ended is not None
    assert ended.active is False
    assert ended.ended_at == START + timedelta(hours=1)
    assert ended.current_bac == 0.3
    assert registry.get_active(profile_id) is None
    assert registry.get_history(profile_id) == [ended]


def test_end_session_without_active_is_noop() -> None:
    assert SessionRegistry().end_session(uuid4(), START) is None


def test_history_newest_first() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    registry.start_session(profile_id, START)
    older = registry.end_session(profile_id, START + timedelta(hours=1))
    registry.start_session(profile_id, START + timedelta(hours=2))
    newer = registry.end_session(profile_id, START + timedelta(hours=3))

    assert registry.get_history(profile_id) == [newer, older]
    assert registry.get_history(uuid4()) == []


def test_replace_active_rejects_unknown_session() -> None:
    registry = SessionRegistry()
    with pytest.raises(KeyError):
        registry.replace_active(Session(profile_id=uuid4(), started_at=START))


def test_delete_session_from_active_and_history() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    registry.start_session(profile_id, START)
    ended = registry.end_session(profile_id, START)
    active = registry.start_session(profile_id, START + timedelta(hours=1))

    assert ended is not None
    assert registry.delete_session(ended.id) is True
    assert registry.delete_session(active.id) is True
    assert registry.delete_session(active.id) is False
    assert registry.find(active.id) is None


def test_stale_detection_uses_last_event() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    session = registry.start_session(profile_id, START)
    drink = DrinkEvent(
        volume_ml=330, alcohol_percentage=5, consumed_at=START + timedelta(hours=2)
    )
    registry.replace_active(replace(session, drinks=(drink,)))

    assert registry.stale_profile_ids(START + timedelta(hours=13)) == []
    assert registry.stale_profile_ids(START + timedelta(hours=15)) == [profile_id]


def test_auto_terminate_stale() -> None:
    registry = SessionRegistry()
    idle = uuid4()
    busy = uuid4()
    registry.start_session(idle, START)
    registry.start_session(busy, START + timedelta(hours=10))

    ended = registry.auto_terminate_stale(START + timedelta(hours=13))

    assert [session.profile_id for session in ended] == [idle]
    assert registry.get_active(idle) is None
    assert registry.get_active(busy) is not None


def test_auto_terminate_stale_keeps_fresh_session() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    registry.start_session(profile_id, START)

    assert registry.auto_terminate_stale(START + timedelta(hours=11)) == []
    assert registry.get_active(profile_id) is not None


def test_restore_keeps_one_active_per_profile() -> None:
    registry = SessionRegistry()
    profile_id = uuid4()
    current = registry.start_session(profile_id, START)
    stored = Session(profile_id=profile_id, started_at=START - timedelta(days=1))
    old = Session(
        profile_id=profile_id,
        started_at=START - timedelta(days=3),
        ended_at=START - timedelta(days=2),
        active=False,
    )

    registry.restore(stored, [old])
    registry.restore(stored, [old])

    assert registry.get_active(profile_id) == current
    history_ids = [session.id for session in registry.get_history(profile_id)]
    assert history_ids == [stored.id, old.id]
