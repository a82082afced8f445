"""Food absorption factors."""

from bacchus.domain.models import FoodAmount, FoodCategory
from bacchus.domain.parsing import clamp, parse_float

MIN_ABSORPTION_FACTOR = 0.1
MAX_ABSORPTION_FACTOR = 1.0

_BASE_FACTORS = {
    FoodCategory.LIGHT_SNACK: 0.9,
    FoodCategory.SMALL_MEAL: 0.8,
    FoodCategory.FULL_MEAL: 0.7,
    FoodCategory.HEAVY_MEAL: 0.6,
}

_AMOUNT_WEIGHTS = {
    FoodAmount.SMALL: 0.5,
    FoodAmount.MEDIUM: 1.0,
    FoodAmount.LARGE: 1.5,
}


def absorption_factor(
    category: FoodCategory,
    amount: FoodAmount,
    custom_factor: object = None,
) -> float:
    """Return the absorption factor for a food.

    Preset categories reduce absorption by their base reduction scaled by
    portion size. ``custom`` uses the caller-supplied factor. The result is
    always within ``[0.1, 1.0]``; 1.0 means the food has no effect.
    """
    if category is FoodCategory.CUSTOM:
        factor = parse_float(
            custom_factor, MAX_ABSORPTION_FACTOR, field="absorption_factor"
        )
        if factor <= 0:
            factor = MAX_ABSORPTION_FACTOR
        return clamp(factor, MIN_ABSORPTION_FACTOR, MAX_ABSORPTION_FACTOR)
    reduction = (1.0 - _BASE_FACTORS[category]) * _AMOUNT_WEIGHTS[amount]
    return round(
        clamp(1.0 - reduction, MIN_ABSORPTION_FACTOR, MAX_ABSORPTION_FACTOR), 4
    )
