"""Mapping between domain objects and stored JSON rows."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from bacchus.domain.models import (
    BacSample,
    BacStatus,
    DrinkEvent,
    DrinkingFrequency,
    FoodAmount,
    FoodCategory,
    FoodEvent,
    Gender,
    Profile,
    Session,
)
from bacchus.domain.parsing import (
    parse_float,
    parse_non_negative,
    parse_positive,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def session_to_row(session: Session, is_active: bool) -> dict[str, object]:
    """Serialize a session into the ``sessions`` table layout."""
    return {
        "id": str(session.id),
        "profile_id": str(session.profile_id),
        "is_active": is_active,
        "updated_at": _iso(session.updated_at or datetime.now(tz=UTC)),
        "data": {
            "start_time": _iso(session.started_at),
            "end_time": _iso(session.ended_at),
            "current_bac": session.current_bac,
            "max_bac": session.max_bac,
            "status": session.status.value,
            "sober_time": _iso(session.sober_at),
            "legal_time": _iso(session.legal_at),
            "drinks": [
                {
                    "id": str(drink.id),
                    "name": drink.name,
                    "volume_ml": drink.volume_ml,
                    "alcohol_percentage": drink.alcohol_percentage,
                    "alcohol_grams": drink.alcohol_grams,
                    "time": _iso(drink.consumed_at),
                }
                for drink in session.drinks
            ],
            "foods": [
                {
                    "id": str(food.id),
                    "name": food.name,
                    "category": food.category.value,
                    "amount": food.amount.value,
                    "absorption_factor": food.absorption_factor,
                    "time": _iso(food.consumed_at),
                }
                for food in session.foods
            ],
            "bac_series": [
                {"time": _iso(sample.at), "bac": sample.bac}
                for sample in session.bac_series
            ],
        },
    }


def session_from_row(row: dict[str, object]) -> Session | None:
    """Parse a stored row, returning None when it is unusable."""
    try:
        data = row.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("data is not an object")
        started_at = parse_timestamp(data.get("start_time"))
        drinks = sorted(
            (_drink_from_dict(item) for item in data.get("drinks") or []),
            key=lambda drink: drink.consumed_at,
        )
        foods = sorted(
            (_food_from_dict(item) for item in data.get("foods") or []),
            key=lambda food: food.consumed_at,
        )
        return Session(
            id=UUID(str(row["id"])),
            profile_id=UUID(str(row["profile_id"])),
            started_at=started_at,
            ended_at=_optional_timestamp(data.get("end_time")),
            drinks=tuple(drinks),
            foods=tuple(foods),
            current_bac=parse_non_negative(
                data.get("current_bac"), field="current_bac"
            ),
            max_bac=parse_non_negative(data.get("max_bac"), field="max_bac"),
            status=_status(data.get("status")),
            bac_series=tuple(
                BacSample(
                    at=parse_timestamp(item.get("time"), started_at),
                    bac=parse_non_negative(item.get("bac"), field="bac"),
                )
                for item in data.get("bac_series") or []
            ),
            sober_at=_optional_timestamp(data.get("sober_time")),
            legal_at=_optional_timestamp(data.get("legal_time")),
            active=bool(row.get("is_active", False)),
            updated_at=_optional_timestamp(row.get("updated_at")),
        )
    except (KeyError, TypeError, ValueError, AttributeError):
        logger.warning(
            "Skipping malformed session row", extra={"row_id": row.get("id")}
        )
        return None


def profile_from_row(row: dict[str, object]) -> Profile | None:
    """Parse a ``profiles`` row into a profile."""
    try:
        gender = Gender(str(row.get("gender", "male")).lower())
    except ValueError:
        gender = Gender.MALE
    try:
        frequency = DrinkingFrequency(
            str(row.get("drinking_frequency", "occasionally")).lower()
        )
    except ValueError:
        frequency = DrinkingFrequency.OCCASIONALLY
    try:
        profile_id = UUID(str(row["id"]))
    except (KeyError, ValueError):
        logger.warning("Skipping profile row without id")
        return None
    return Profile(
        id=profile_id,
        gender=gender,
        weight_kg=parse_positive(row.get("weight_kg"), 70.0, field="weight_kg"),
        age=int(parse_positive(row.get("age"), 30, field="age")),
        height=int(parse_positive(row.get("height"), 170, field="height")),
        drinking_frequency=frequency,
    )


def _drink_from_dict(item: dict[str, object]) -> DrinkEvent:
    return DrinkEvent(
        id=UUID(str(item["id"])),
        name=item.get("name"),
        volume_ml=parse_non_negative(item.get("volume_ml"), field="volume_ml"),
        alcohol_percentage=parse_non_negative(
            item.get("alcohol_percentage"), field="alcohol_percentage"
        ),
        alcohol_grams=parse_non_negative(
            item.get("alcohol_grams"), field="alcohol_grams"
        ),
        consumed_at=parse_timestamp(item.get("time")),
    )


def _food_from_dict(item: dict[str, object]) -> FoodEvent:
    return FoodEvent(
        id=UUID(str(item["id"])),
        name=item.get("name"),
        category=FoodCategory(item.get("category", FoodCategory.CUSTOM.value)),
        amount=FoodAmount(item.get("amount", FoodAmount.MEDIUM.value)),
        absorption_factor=parse_float(
            item.get("absorption_factor"), 1.0, field="absorption_factor"
        ),
        consumed_at=parse_timestamp(item.get("time")),
    )


def _status(value: object) -> BacStatus:
    try:
        return BacStatus(str(value))
    except ValueError:
        return BacStatus.SAFE


def _optional_timestamp(value: object) -> datetime | None:
    if not value:
        return None
    return parse_timestamp(value)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
