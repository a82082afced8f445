"""Session engine: lifecycle, event ledger and BAC recomputation."""

import bisect
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import TypeVar
from uuid import UUID

from bacchus.domain import bac
from bacchus.domain.food import absorption_factor
from bacchus.domain.models import BacSnapshot, DrinkEvent, FoodEvent, Session
from bacchus.domain.parsing import parse_non_negative, parse_timestamp
from bacchus.services.persistence import (
    PersistenceDispatcher,
    PersistenceOutcome,
    ProfileStore,
)
from bacchus.services.registry import DEFAULT_INACTIVITY_HOURS, SessionRegistry

logger = logging.getLogger(__name__)

_Event = TypeVar("_Event", DrinkEvent, FoodEvent)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class SessionResult:
    """Outcome of an engine operation."""

    session: Session | None
    snapshot: BacSnapshot | None
    applied: bool
    persistence: Future[PersistenceOutcome] | None = None

    @classmethod
    def unchanged(cls, session: Session | None) -> "SessionResult":
        return cls(
            session=session,
            snapshot=session.snapshot() if session else None,
            applied=False,
        )


@dataclass
class SessionEngine:
    """Facade over the registry, the BAC model and persistence.

    Every mutation for a profile runs under that profile's lock, from
    locating the session to storing the recomputed value, so readers never
    see events without matching derived fields.
    """

    registry: SessionRegistry
    profile_store: ProfileStore
    dispatcher: PersistenceDispatcher
    params: bac.ModelParameters = field(default_factory=bac.ModelParameters)
    inactivity_threshold_hours: float = DEFAULT_INACTIVITY_HOURS
    clock: Callable[[], datetime] = _utc_now
    _locks: dict[UUID, threading.RLock] = field(init=False, default_factory=dict)
    _locks_guard: threading.Lock = field(init=False, default_factory=threading.Lock)
    _loaded: set[UUID] = field(init=False, default_factory=set)

    def start_session(self, profile_id: UUID) -> SessionResult:
        """Start a session, or return the profile's current active one."""
        with self._profile_lock(profile_id):
            existing = self.registry.get_active(profile_id)
            if existing is not None:
                return SessionResult.unchanged(existing)
            session = self.registry.start_session(profile_id, self.clock())
            return self._commit(session)

    def end_session(self, profile_id: UUID) -> SessionResult:
        """End the active session with a final recomputation."""
        with self._profile_lock(profile_id):
            active = self.registry.get_active(profile_id)
            if active is None:
                logger.info(
                    "No active session to end", extra={"profile_id": str(profile_id)}
                )
                return SessionResult.unchanged(None)
            now = self.clock()
            self.registry.replace_active(self._recomputed(active, now))
            ended = self.registry.end_session(profile_id, now)
            if ended is None:
                return SessionResult.unchanged(None)
            future = self.dispatcher.submit_save(ended, is_active=False)
            return SessionResult(ended, ended.snapshot(), True, future)

    def delete_session(self, session_id: UUID) -> SessionResult:
        """Permanently remove a session, active or ended, loaded or only stored."""
        session = self.registry.find(session_id)
        if session is None:
            return self._delete_stored(session_id)
        with self._profile_lock(session.profile_id):
            if not self.registry.delete_session(session_id):
                return SessionResult.unchanged(None)
            logger.info(
                "Deleted session",
                extra={"session_id": str(session_id), "was_active": session.active},
            )
            future = self.dispatcher.submit_delete(session_id, session.profile_id)
            return SessionResult(None, None, True, future)

    def add_drink(self, profile_id: UUID, drink: DrinkEvent) -> SessionResult:
        """Log a drink on the active session."""
        normalized = _normalize_drink(drink, self.clock())

        def change(session: Session) -> Session:
            bounded = self._bounded(normalized, session)
            return replace(session, drinks=_insert_sorted(session.drinks, bounded))

        return self._mutate(profile_id, change)

    def remove_drink(self, profile_id: UUID, drink_id: UUID) -> SessionResult:
        """Remove a drink from the active session by id."""

        def change(session: Session) -> Session | None:
            drinks = tuple(d for d in session.drinks if d.id != drink_id)
            if len(drinks) == len(session.drinks):
                return None
            return replace(session, drinks=drinks)

        return self._mutate(profile_id, change)

    def add_food(self, profile_id: UUID, food: FoodEvent) -> SessionResult:
        """Log a food on the active session."""
        normalized = _normalize_food(food, self.clock())

        def change(session: Session) -> Session:
            bounded = self._bounded(normalized, session)
            return replace(session, foods=_insert_sorted(session.foods, bounded))

        return self._mutate(profile_id, change)

    def remove_food(self, profile_id: UUID, food_id: UUID) -> SessionResult:
        """Remove a food from the active session by id."""

        def change(session: Session) -> Session | None:
            foods = tuple(f for f in session.foods if f.id != food_id)
            if len(foods) == len(session.foods):
                return None
            return replace(session, foods=foods)

        return self._mutate(profile_id, change)

    def refresh(self, profile_id: UUID) -> SessionResult:
        """Recompute the active session at the current time."""
        return self._mutate(profile_id, lambda session: session)

    def get_active_session(self, profile_id: UUID) -> SessionResult:
        """Return the active session and its last computed snapshot."""
        return SessionResult.unchanged(self.registry.get_active(profile_id))

    def get_history(self, profile_id: UUID) -> list[Session]:
        """Return ended sessions for a profile, newest first."""
        return self.registry.get_history(profile_id)

    def sweep_inactive(self) -> list[Session]:
        """End every session idle for longer than the inactivity threshold."""
        now = self.clock()
        threshold = self.inactivity_threshold_hours
        terminated: list[Session] = []
        for profile_id in self.registry.stale_profile_ids(now, threshold):
            with self._profile_lock(profile_id):
                active = self.registry.get_active(profile_id)
                if active is None:
                    continue
                self.registry.replace_active(self._recomputed(active, now))
                ended = self.registry.auto_terminate_stale(
                    now, threshold, profile_ids=[profile_id]
                )
                for session in ended:
                    self.dispatcher.submit_save(session, is_active=False)
                terminated.extend(ended)
        if terminated:
            logger.info(
                "Auto-terminated inactive sessions", extra={"count": len(terminated)}
            )
        return terminated

    def rehydrate(self, profile_id: UUID) -> SessionResult:
        """Load a profile's stored sessions into the registry."""
        gateway = self.dispatcher.gateway
        try:
            active = gateway.load_active(profile_id)
            history = gateway.load_history(profile_id)
        except Exception:
            logger.exception(
                "Failed to load stored sessions", extra={"profile_id": str(profile_id)}
            )
            return self.get_active_session(profile_id)
        with self._profile_lock(profile_id):
            self.registry.restore(active, history)
            self._loaded.add(profile_id)
        if self.registry.get_active(profile_id) is None:
            return SessionResult.unchanged(None)
        return self.refresh(profile_id)

    def ensure_loaded(self, profile_id: UUID) -> bool:
        """Rehydrate a profile until one load from storage has succeeded."""
        if profile_id not in self._loaded:
            self.rehydrate(profile_id)
        return profile_id in self._loaded

    def _delete_stored(self, session_id: UUID) -> SessionResult:
        try:
            stored = self.dispatcher.gateway.load(session_id)
        except Exception:
            logger.exception(
                "Failed to look up stored session",
                extra={"session_id": str(session_id)},
            )
            return SessionResult.unchanged(None)
        if stored is None:
            return SessionResult.unchanged(None)
        with self._profile_lock(stored.profile_id):
            self.registry.delete_session(session_id)
            future = self.dispatcher.submit_delete(session_id, stored.profile_id)
        logger.info("Deleted stored session", extra={"session_id": str(session_id)})
        return SessionResult(None, None, True, future)

    def _bounded(self, event: _Event, session: Session) -> _Event:
        earliest = session.started_at - timedelta(
            hours=self.inactivity_threshold_hours
        )
        if event.consumed_at >= earliest:
            return event
        logger.warning(
            "Event predates session window, clamped",
            extra={"session_id": str(session.id), "event_id": str(event.id)},
        )
        return replace(event, consumed_at=earliest)

    def _mutate(
        self, profile_id: UUID, change: Callable[[Session], Session | None]
    ) -> SessionResult:
        with self._profile_lock(profile_id):
            session = self.registry.get_active(profile_id)
            if session is None:
                logger.info(
                    "No active session, ignoring change",
                    extra={"profile_id": str(profile_id)},
                )
                return SessionResult.unchanged(None)
            updated = change(session)
            if updated is None:
                return SessionResult.unchanged(session)
            return self._commit(updated)

    def _commit(self, session: Session) -> SessionResult:
        recomputed = self._recomputed(session, self.clock())
        self.registry.replace_active(recomputed)
        future = self.dispatcher.submit_save(recomputed, is_active=True)
        return SessionResult(recomputed, recomputed.snapshot(), True, future)

    def _recomputed(self, session: Session, now: datetime) -> Session:
        try:
            profile = self.profile_store.get(session.profile_id)
        except Exception:
            logger.exception(
                "Profile lookup failed", extra={"profile_id": str(session.profile_id)}
            )
            profile = None
        snapshot = bac.recompute(session, profile, now, self.params)
        return replace(
            session,
            current_bac=snapshot.current,
            max_bac=snapshot.max,
            status=snapshot.status,
            bac_series=snapshot.series,
            sober_at=snapshot.sober_at,
            legal_at=snapshot.legal_at,
            updated_at=now,
        )

    def _profile_lock(self, profile_id: UUID) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(profile_id)
            if lock is None:
                lock = self._locks[profile_id] = threading.RLock()
            return lock


def _normalize_drink(drink: DrinkEvent, now: datetime) -> DrinkEvent:
    volume = parse_non_negative(drink.volume_ml, field="volume_ml")
    percentage = parse_non_negative(
        drink.alcohol_percentage, field="alcohol_percentage"
    )
    normalized = replace(
        drink,
        volume_ml=volume,
        alcohol_percentage=percentage,
        consumed_at=parse_timestamp(drink.consumed_at, now),
    )
    return replace(normalized, alcohol_grams=bac.drink_grams(normalized))


def _normalize_food(food: FoodEvent, now: datetime) -> FoodEvent:
    return replace(
        food,
        consumed_at=parse_timestamp(food.consumed_at, now),
        absorption_factor=absorption_factor(
            food.category, food.amount, food.absorption_factor
        ),
    )


def _insert_sorted(events: tuple[_Event, ...], event: _Event) -> tuple[_Event, ...]:
    items = list(events)
    index = bisect.bisect_right([e.consumed_at for e in items], event.consumed_at)
    items.insert(index, event)
    return tuple(items)
