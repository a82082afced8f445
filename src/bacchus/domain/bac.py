"""BAC estimation using Widmark-style rise and linear elimination.

Model:
- Rise: BAC = grams / (body_weight_g * r), scaled to g/L
- r = 0.68 (male), 0.55 (female)
- Elimination: a constant number of g/L per hour, per drink, floored at 0
- Food within two hours of a drink scales that drink's peak by the
  lowest absorption factor among those foods

Every function takes ``now`` explicitly so results are reproducible.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from bacchus.domain.models import (
    BacSample,
    BacSnapshot,
    BacStatus,
    DrinkEvent,
    DrinkingFrequency,
    FoodEvent,
    Gender,
    Profile,
    Session,
)
from bacchus.domain.parsing import parse_non_negative, parse_positive

logger = logging.getLogger(__name__)

ETHANOL_DENSITY = 0.789  # g/mL

# Distribution ratio (Widmark r)
WIDMARK_MALE = 0.68
WIDMARK_FEMALE = 0.55

DEFAULT_WEIGHT_KG = 70.0

# grams of ethanol per gram of body water -> g/L (equivalently Widmark % x 10)
BAC_UNIT_SCALE = 1000.0

# g/L per hour, i.e. 0.015 % per hour
DEFAULT_ELIMINATION_RATE = 0.15
DEFAULT_LEGAL_LIMIT = 0.5
SOBER_THRESHOLD = 0.01
DEFAULT_SAFETY_FACTOR = 1.05
DEFAULT_STEP_MINUTES = 15

SERIES_LEAD = timedelta(minutes=30)
FOOD_WINDOW = timedelta(hours=2)

_FREQUENCY_RATES = {
    DrinkingFrequency.RARELY: 0.15,
    DrinkingFrequency.OCCASIONALLY: 0.17,
    DrinkingFrequency.REGULARLY: 0.18,
    DrinkingFrequency.FREQUENTLY: 0.20,
}


@dataclass(frozen=True)
class BacThresholds:
    """Ascending lower bounds (g/L) of the caution..critical bands."""

    caution: float = 0.5
    penal_low: float = 0.8
    penal_high: float = 1.5
    critical: float = 2.0

    def __post_init__(self) -> None:
        bounds = [self.caution, self.penal_low, self.penal_high, self.critical]
        if bounds != sorted(bounds) or bounds[0] < 0:
            raise ValueError(f"Thresholds must be ascending: {bounds}")


@dataclass(frozen=True)
class ModelParameters:
    """Calibration inputs for a recomputation."""

    elimination_rate: float = DEFAULT_ELIMINATION_RATE
    legal_limit: float = DEFAULT_LEGAL_LIMIT
    sober_threshold: float = SOBER_THRESHOLD
    safety_factor: float = DEFAULT_SAFETY_FACTOR
    step_minutes: int = DEFAULT_STEP_MINUTES
    adjust_for_frequency: bool = False
    thresholds: BacThresholds = field(default_factory=BacThresholds)


DEFAULT_PARAMETERS = ModelParameters()


def alcohol_grams(volume_ml: object, percentage: object) -> float:
    """Convert a volume in mL and ABV percentage (0-100) to grams of ethanol."""
    volume = parse_non_negative(volume_ml, field="volume_ml")
    pct = parse_non_negative(percentage, field="alcohol_percentage")
    return volume * (pct / 100.0) * ETHANOL_DENSITY


def widmark_factor(gender: Gender | str | None) -> float:
    """Return the body-water distribution ratio for a gender."""
    try:
        resolved = Gender(str(gender).lower())
    except ValueError:
        logger.warning("Unknown gender, using male ratio", extra={"gender": gender})
        return WIDMARK_MALE
    return WIDMARK_FEMALE if resolved is Gender.FEMALE else WIDMARK_MALE


def peak_bac(grams: object, weight_kg: object, factor: object) -> float:
    """Immediate BAC rise (g/L) from a single dose of alcohol."""
    dose = parse_non_negative(grams, field="alcohol_grams")
    weight = parse_positive(weight_kg, DEFAULT_WEIGHT_KG, field="weight_kg")
    ratio = parse_positive(factor, WIDMARK_MALE, field="widmark_factor")
    return dose / (weight * 1000.0 * ratio) * BAC_UNIT_SCALE


def decayed_contribution(peak: float, hours_elapsed: float, rate: float) -> float:
    """Remaining BAC of one drink after linear elimination."""
    return max(0.0, peak - rate * max(0.0, hours_elapsed))


def drink_grams(drink: DrinkEvent) -> float:
    """Cached grams for a drink, falling back to volume x ABV."""
    cached = parse_non_negative(drink.alcohol_grams, field="alcohol_grams")
    if cached > 0:
        return cached
    return alcohol_grams(drink.volume_ml, drink.alcohol_percentage)


def absorption_factor_for(drink: DrinkEvent, foods: Sequence[FoodEvent]) -> float:
    """Lowest absorption factor among foods eaten within two hours of a drink."""
    factor = 1.0
    for food in foods:
        if abs(drink.consumed_at - food.consumed_at) < FOOD_WINDOW:
            factor = min(factor, food.absorption_factor)
    return factor


def elimination_rate_for(
    profile: Profile, params: ModelParameters = DEFAULT_PARAMETERS
) -> float:
    """Elimination rate (g/L per hour) for a profile."""
    if params.adjust_for_frequency:
        return _FREQUENCY_RATES.get(profile.drinking_frequency, params.elimination_rate)
    return params.elimination_rate


def current_bac(
    session: Session,
    profile: Profile | None,
    now: datetime,
    params: ModelParameters = DEFAULT_PARAMETERS,
) -> float:
    """BAC (g/L) at ``now`` from the events consumed at or before ``now``."""
    if profile is None or not session.drinks:
        return 0.0
    drinks = [drink for drink in session.drinks if drink.consumed_at <= now]
    if not drinks:
        return 0.0
    foods = [food for food in session.foods if food.consumed_at <= now]
    ratio = widmark_factor(profile.gender)
    rate = _valid_rate(elimination_rate_for(profile, params))
    total = 0.0
    for drink in drinks:
        peak = peak_bac(drink_grams(drink), profile.weight_kg, ratio)
        peak *= absorption_factor_for(drink, foods)
        elapsed = (now - drink.consumed_at).total_seconds() / 3600.0
        total += decayed_contribution(peak, elapsed, rate)
    return max(0.0, total)


def time_series(
    session: Session,
    profile: Profile | None,
    now: datetime,
    params: ModelParameters = DEFAULT_PARAMETERS,
    step_minutes: int | None = None,
) -> list[BacSample]:
    """Return BAC samples from 30 minutes before the first drink up to ``now``."""
    if profile is None or not session.drinks:
        return []
    minutes = step_minutes if step_minutes is not None else params.step_minutes
    if minutes <= 0:
        logger.warning("Invalid series step, using default", extra={"step": minutes})
        minutes = DEFAULT_STEP_MINUTES
    step = timedelta(minutes=minutes)
    first = min(drink.consumed_at for drink in session.drinks)
    points: list[BacSample] = []
    t = first - SERIES_LEAD
    while t <= now:
        value = current_bac(session, profile, t, params)
        points.append(BacSample(at=t, bac=round(value, 4)))
        t += step
    return points


def projected_zero_time(
    current: float,
    rate: float,
    now: datetime,
    safety_factor: float = DEFAULT_SAFETY_FACTOR,
    threshold: float = SOBER_THRESHOLD,
) -> datetime | None:
    """Projected time BAC reaches ~0, rounded to whole minutes."""
    if current <= threshold:
        return None
    return _project(current, rate, now, safety_factor)


def projected_threshold_time(
    current: float,
    legal_limit: float,
    rate: float,
    now: datetime,
    safety_factor: float = DEFAULT_SAFETY_FACTOR,
) -> datetime | None:
    """Projected time BAC drops to the legal limit, rounded to whole minutes."""
    if current <= legal_limit:
        return None
    return _project(current - legal_limit, rate, now, safety_factor)


def classify(current: float, thresholds: BacThresholds = BacThresholds()) -> BacStatus:
    """Map a BAC value onto the ordered status scale."""
    value = current if math.isfinite(current) and current > 0 else 0.0
    if value < thresholds.caution:
        return BacStatus.SAFE
    if value < thresholds.penal_low:
        return BacStatus.CAUTION
    if value < thresholds.penal_high:
        return BacStatus.WARNING
    if value < thresholds.critical:
        return BacStatus.DANGER
    return BacStatus.CRITICAL


def recompute(
    session: Session,
    profile: Profile | None,
    now: datetime,
    params: ModelParameters = DEFAULT_PARAMETERS,
) -> BacSnapshot:
    """Compute every derived BAC field for a session at ``now``."""
    if profile is None:
        logger.warning(
            "No profile for session, BAC reset", extra={"session_id": str(session.id)}
        )
        return BacSnapshot.empty()
    if not session.drinks:
        return BacSnapshot.empty()

    current = round(current_bac(session, profile, now, params), 4)
    series = tuple(time_series(session, profile, now, params))
    rate = elimination_rate_for(profile, params)
    peak = max([sample.bac for sample in series] + [current])
    return BacSnapshot(
        current=current,
        max=peak,
        status=classify(current, params.thresholds),
        sober_at=projected_zero_time(
            current, rate, now, params.safety_factor, params.sober_threshold
        ),
        legal_at=projected_threshold_time(
            current, params.legal_limit, rate, now, params.safety_factor
        ),
        series=series,
    )


def _valid_rate(rate: float) -> float:
    if not math.isfinite(rate) or rate <= 0:
        logger.warning("Invalid elimination rate, using default", extra={"rate": rate})
        return DEFAULT_ELIMINATION_RATE
    return rate


def _project(
    excess: float, rate: float, now: datetime, safety_factor: float
) -> datetime:
    safety = safety_factor if safety_factor > 0 else DEFAULT_SAFETY_FACTOR
    hours = excess / (_valid_rate(rate) / safety)
    return now + timedelta(minutes=round(hours * 60))
