"""Pydantic request and response models for the HTTP API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from bacchus.domain.models import (
    BacStatus,
    DrinkEvent,
    FoodAmount,
    FoodCategory,
    FoodEvent,
    Session,
)


class DrinkRequest(BaseModel):
    """Drink payload; numeric fields may arrive as strings."""

    volume_ml: float | str
    alcohol_percentage: float | str
    consumed_at: datetime | None = None
    name: str | None = None

    def to_event(self) -> DrinkEvent:
        return DrinkEvent(
            volume_ml=self.volume_ml,  # type: ignore[arg-type]
            alcohol_percentage=self.alcohol_percentage,  # type: ignore[arg-type]
            consumed_at=self.consumed_at,  # type: ignore[arg-type]
            name=self.name,
        )


class FoodRequest(BaseModel):
    """Food payload; ``absorption_factor`` is only used for ``custom``."""

    category: FoodCategory
    amount: FoodAmount = FoodAmount.MEDIUM
    absorption_factor: float | str | None = None
    consumed_at: datetime | None = None
    name: str | None = None

    def to_event(self) -> FoodEvent:
        return FoodEvent(
            category=self.category,
            amount=self.amount,
            absorption_factor=self.absorption_factor,  # type: ignore[arg-type]
            consumed_at=self.consumed_at,  # type: ignore[arg-type]
            name=self.name,
        )


class DrinkOut(BaseModel):
    id: UUID
    name: str | None
    volume_ml: float
    alcohol_percentage: float
    alcohol_grams: float
    consumed_at: datetime


class FoodOut(BaseModel):
    id: UUID
    name: str | None
    category: FoodCategory
    amount: FoodAmount
    absorption_factor: float
    consumed_at: datetime


class BacSampleOut(BaseModel):
    at: datetime
    bac: float


class SessionOut(BaseModel):
    """Session as returned by the API."""

    id: UUID
    profile_id: UUID
    active: bool
    started_at: datetime
    ended_at: datetime | None
    duration_seconds: int
    current_bac: float
    max_bac: float
    status: BacStatus
    sober_at: datetime | None
    legal_at: datetime | None
    drinks: list[DrinkOut] = Field(default_factory=list)
    foods: list[FoodOut] = Field(default_factory=list)
    bac_series: list[BacSampleOut] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: Session, now: datetime) -> "SessionOut":
        return cls(
            id=session.id,
            profile_id=session.profile_id,
            active=session.active,
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration_seconds=int(session.duration(now).total_seconds()),
            current_bac=session.current_bac,
            max_bac=session.max_bac,
            status=session.status,
            sober_at=session.sober_at,
            legal_at=session.legal_at,
            drinks=[
                DrinkOut(
                    id=drink.id,
                    name=drink.name,
                    volume_ml=drink.volume_ml,
                    alcohol_percentage=drink.alcohol_percentage,
                    alcohol_grams=drink.alcohol_grams,
                    consumed_at=drink.consumed_at,
                )
                for drink in session.drinks
            ],
            foods=[
                FoodOut(
                    id=food.id,
                    name=food.name,
                    category=food.category,
                    amount=food.amount,
                    absorption_factor=food.absorption_factor,
                    consumed_at=food.consumed_at,
                )
                for food in session.foods
            ],
            bac_series=[
                BacSampleOut(at=sample.at, bac=sample.bac)
                for sample in session.bac_series
            ],
        )


class HistoryOut(BaseModel):
    sessions: list[SessionOut]
