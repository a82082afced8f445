"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from bacchus.adapters.session_rows import session_to_row
from bacchus.adapters.supabase_profile_store import SupabaseProfileStore
from bacchus.adapters.supabase_session_gateway import SupabaseSessionGateway
from bacchus.domain.models import (
    BacSample,
    BacStatus,
    DrinkEvent,
    DrinkingFrequency,
    FoodAmount,
    FoodCategory,
    FoodEvent,
    Gender,
    Session,
)

START = datetime(2024, 6, 1, 20, 0, tzinfo=UTC)


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_on_conflict: str | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        self.last_filters = []
        return self

    def upsert(  # type: ignore[no-untyped-def]
        self, payload, on_conflict: str = ""
    ) -> "FakeTable":
        self._action = "upsert"
        self.last_payload = payload
        self.last_on_conflict = on_conflict
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        self.last_filters = []
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _full_session() -> Session:
    drink = DrinkEvent(
        volume_ml=330,
        alcohol_percentage=5,
        alcohol_grams=13.0185,
        consumed_at=START,
        name="Lager",
    )
    food = FoodEvent(
        category=FoodCategory.FULL_MEAL,
        amount=FoodAmount.LARGE,
        absorption_factor=0.55,
        consumed_at=START - timedelta(minutes=20),
        name="Pasta",
    )
    return Session(
        profile_id=uuid4(),
        started_at=START,
        drinks=(drink,),
        foods=(food,),
        current_bac=0.2,
        max_bac=0.25,
        status=BacStatus.SAFE,
        bac_series=(BacSample(at=START, bac=0.25),),
        sober_at=START + timedelta(hours=2),
        updated_at=START,
    )


def test_session_gateway_save_upserts_row() -> None:
    client = FakeSupabaseClient()
    gateway = SupabaseSessionGateway(client)
    session = _full_session()

    gateway.save(session, is_active=True)

    table = client.tables["sessions"]
    assert table.last_on_conflict == "id"
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["id"] == str(session.id)
    assert table.last_payload["is_active"] is True
    data = table.last_payload["data"]
    assert data["drinks"][0]["name"] == "Lager"
    assert data["foods"][0]["category"] == "full_meal"
    assert data["sober_time"] == (START + timedelta(hours=2)).isoformat()
    assert data["legal_time"] is None


def test_session_gateway_load_active_parses_row() -> None:
    client = FakeSupabaseClient()
    session = _full_session()
    client.table("sessions").queue("select", [session_to_row(session, True)])

    loaded = SupabaseSessionGateway(client).load_active(session.profile_id)

    assert loaded == session
    assert ("is_active", True) in client.tables["sessions"].last_filters


def test_session_gateway_load_active_empty() -> None:
    assert SupabaseSessionGateway(FakeSupabaseClient()).load_active(uuid4()) is None


def test_session_gateway_history_skips_malformed_rows() -> None:
    client = FakeSupabaseClient()
    ended = _full_session()
    row = session_to_row(ended, False)
    client.table("sessions").queue("select", [row, {"id": "bad", "data": {}}])

    history = SupabaseSessionGateway(client).load_history(ended.profile_id)

    assert [session.id for session in history] == [ended.id]
    assert history[0].active is False


def test_session_row_tolerates_loose_values() -> None:
    client = FakeSupabaseClient()
    profile_id = uuid4()
    session_id = uuid4()
    client.table("sessions").queue(
        "select",
        [
            {
                "id": str(session_id),
                "profile_id": str(profile_id),
                "is_active": True,
                "data": {
                    "start_time": "2024-06-01T20:00:00Z",
                    "current_bac": "0,3",
                    "status": "unknown",
                    "drinks": [
                        {
                            "id": str(uuid4()),
                            "volume_ml": "500",
                            "alcohol_percentage": "4.8",
                            "time": "2024-06-01T20:30:00Z",
                        }
                    ],
                },
            }
        ],
    )

    loaded = SupabaseSessionGateway(client).load_active(profile_id)

    assert loaded is not None
    assert loaded.current_bac == 0.3
    assert loaded.status is BacStatus.SAFE
    assert loaded.drinks[0].volume_ml == 500.0
    assert loaded.started_at == START


def test_session_gateway_delete_filters_by_id() -> None:
    client = FakeSupabaseClient()
    session_id = uuid4()

    SupabaseSessionGateway(client).delete(session_id)

    assert client.tables["sessions"].last_filters == [("id", str(session_id))]


def test_profile_store_reads_profile() -> None:
    client = FakeSupabaseClient()
    profile_id = uuid4()
    client.table("profiles").queue(
        "select",
        [
            {
                "id": str(profile_id),
                "gender": "Female",
                "weight_kg": "61.5",
                "age": 28,
                "height": 165,
                "drinking_frequency": "regularly",
            }
        ],
    )

    profile = SupabaseProfileStore(client).get(profile_id)

    assert profile is not None
    assert profile.gender is Gender.FEMALE
    assert profile.weight_kg == 61.5
    assert profile.drinking_frequency is DrinkingFrequency.REGULARLY


def test_profile_store_missing_profile() -> None:
    assert SupabaseProfileStore(FakeSupabaseClient()).get(uuid4()) is None


def test_session_gateway_load_by_id() -> None:
    client = FakeSupabaseClient()
    session = _full_session()
    client.table("sessions").queue("select", [session_to_row(session, False)])

    loaded = SupabaseSessionGateway(client).load(session.id)

    assert loaded is not None
    assert loaded.id == session.id
    assert loaded.active is False
    assert client.tables["sessions"].last_filters == [("id", str(session.id))]
