"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from bacchus.config import Settings
from bacchus.containers import AppContainer
from bacchus.domain.bac import ModelParameters
from bacchus.domain.models import DrinkingFrequency, Gender, Profile, Session
from bacchus.services.engine import SessionEngine
from bacchus.services.persistence import (
    PersistenceDispatcher,
    PersistenceGateway,
    ProfileStore,
)
from bacchus.services.registry import SessionRegistry

START = datetime(2024, 6, 1, 20, 0, tzinfo=UTC)


@dataclass
class InMemoryProfileStore(ProfileStore):
    """In-memory profile store for tests."""

    profiles: dict[UUID, Profile] = field(default_factory=dict)

    def get(self, profile_id: UUID) -> Profile | None:
        return self.profiles.get(profile_id)


@dataclass
class InMemorySessionGateway(PersistenceGateway):
    """In-memory session gateway that records calls."""

    rows: dict[UUID, tuple[Session, bool]] = field(default_factory=dict)
    saves: list[tuple[UUID, bool]] = field(default_factory=list)
    deletes: list[UUID] = field(default_factory=list)

    def save(self, session: Session, is_active: bool) -> None:
        self.rows[session.id] = (session, is_active)
        self.saves.append((session.id, is_active))

    def load_active(self, profile_id: UUID) -> Session | None:
        for session, is_active in self.rows.values():
            if session.profile_id == profile_id and is_active:
                return session
        return None

    def load_history(self, profile_id: UUID) -> list[Session]:
        return [
            session
            for session, is_active in self.rows.values()
            if session.profile_id == profile_id and not is_active
        ]

    def load(self, session_id: UUID) -> Session | None:
        stored = self.rows.get(session_id)
        return stored[0] if stored else None

    def delete(self, session_id: UUID) -> None:
        self.rows.pop(session_id, None)
        self.deletes.append(session_id)


@dataclass
class FailingGateway(PersistenceGateway):
    """Gateway whose every call raises."""

    calls: int = 0

    def save(self, session: Session, is_active: bool) -> None:
        self.calls += 1
        raise RuntimeError("storage offline")

    def load_active(self, profile_id: UUID) -> Session | None:
        raise RuntimeError("storage offline")

    def load_history(self, profile_id: UUID) -> list[Session]:
        raise RuntimeError("storage offline")

    def load(self, session_id: UUID) -> Session | None:
        raise RuntimeError("storage offline")

    def delete(self, session_id: UUID) -> None:
        self.calls += 1
        raise RuntimeError("storage offline")


@dataclass
class FlakyGateway(InMemorySessionGateway):
    """In-memory gateway whose loads fail while ``failing`` is set."""

    failing: bool = True

    def load_active(self, profile_id: UUID) -> Session | None:
        if self.failing:
            raise RuntimeError("storage unavailable")
        return super().load_active(profile_id)


@dataclass
class FakeClock:
    """Settable clock for deterministic engine tests."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(cache_dir=str(tmp_path / "cache"))


@pytest.fixture
def male_profile() -> Profile:
    return Profile(
        id=uuid4(),
        gender=Gender.MALE,
        weight_kg=70.0,
        age=30,
        height=180,
        drinking_frequency=DrinkingFrequency.OCCASIONALLY,
    )


@pytest.fixture
def profile_store(male_profile: Profile) -> InMemoryProfileStore:
    return InMemoryProfileStore(profiles={male_profile.id: male_profile})


@pytest.fixture
def gateway() -> InMemorySessionGateway:
    return InMemorySessionGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(
    profile_store: InMemoryProfileStore,
    gateway: InMemorySessionGateway,
    clock: FakeClock,
) -> SessionEngine:
    return SessionEngine(
        registry=SessionRegistry(),
        profile_store=profile_store,
        dispatcher=PersistenceDispatcher(gateway),
        params=ModelParameters(),
        clock=clock,
    )


@pytest.fixture
def container(settings: Settings, engine: SessionEngine) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        registry=engine.registry,
        profile_store=engine.profile_store,
        dispatcher=engine.dispatcher,
        engine=engine,
        sweeper=None,
        close_resources=close_resources,
    )


@pytest.fixture
def failing_gateway() -> FailingGateway:
    return FailingGateway()


@pytest.fixture
def flaky_gateway() -> FlakyGateway:
    return FlakyGateway()
