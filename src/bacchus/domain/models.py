"""Domain models for drinking sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"


class DrinkingFrequency(StrEnum):
    RARELY = "rarely"
    OCCASIONALLY = "occasionally"
    REGULARLY = "regularly"
    FREQUENTLY = "frequently"


class FoodCategory(StrEnum):
    LIGHT_SNACK = "light_snack"
    SMALL_MEAL = "small_meal"
    FULL_MEAL = "full_meal"
    HEAVY_MEAL = "heavy_meal"
    CUSTOM = "custom"


class FoodAmount(StrEnum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class BacStatus(StrEnum):
    """Risk bands in ascending order."""

    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Profile:
    """Read-only profile attributes used as model inputs."""

    id: UUID
    gender: Gender
    weight_kg: float
    age: int
    height: int
    drinking_frequency: DrinkingFrequency = DrinkingFrequency.OCCASIONALLY


@dataclass(frozen=True)
class DrinkEvent:
    """A single logged drink."""

    volume_ml: float
    alcohol_percentage: float
    consumed_at: datetime
    alcohol_grams: float = 0.0
    name: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class FoodEvent:
    """A single logged meal or snack."""

    category: FoodCategory
    amount: FoodAmount
    consumed_at: datetime
    absorption_factor: float = 1.0
    name: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class BacSample:
    """One point of the BAC chart."""

    at: datetime
    bac: float


@dataclass(frozen=True)
class BacSnapshot:
    """Derived BAC values for a session at one instant."""

    current: float
    max: float
    status: BacStatus
    sober_at: datetime | None
    legal_at: datetime | None
    series: tuple[BacSample, ...]

    @classmethod
    def empty(cls) -> "BacSnapshot":
        return cls(
            current=0.0,
            max=0.0,
            status=BacStatus.SAFE,
            sober_at=None,
            legal_at=None,
            series=(),
        )


@dataclass(frozen=True)
class Session:
    """A drinking session and its last computed BAC state."""

    profile_id: UUID
    started_at: datetime
    id: UUID = field(default_factory=uuid4)
    ended_at: datetime | None = None
    drinks: tuple[DrinkEvent, ...] = ()
    foods: tuple[FoodEvent, ...] = ()
    current_bac: float = 0.0
    max_bac: float = 0.0
    status: BacStatus = BacStatus.SAFE
    bac_series: tuple[BacSample, ...] = ()
    sober_at: datetime | None = None
    legal_at: datetime | None = None
    active: bool = True
    updated_at: datetime | None = None

    @property
    def last_event_at(self) -> datetime:
        """Latest drink or food time, or the start time for an empty ledger."""
        times = [drink.consumed_at for drink in self.drinks]
        times.extend(food.consumed_at for food in self.foods)
        return max(times, default=self.started_at)

    def duration(self, now: datetime) -> timedelta:
        """Elapsed time from start to end, or to ``now`` while active."""
        end = self.ended_at or now
        return max(end - self.started_at, timedelta(0))

    def snapshot(self) -> BacSnapshot:
        """Return the derived fields as a snapshot."""
        return BacSnapshot(
            current=self.current_bac,
            max=self.max_bac,
            status=self.status,
            sober_at=self.sober_at,
            legal_at=self.legal_at,
            series=self.bac_series,
        )
