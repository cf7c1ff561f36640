"""Business rule constants for plan generation and locking."""

from types import MappingProxyType

MIN_LIKED_INGREDIENTS = 5
DAILY_MIN_LIKED_INGREDIENTS = 3

LOCK_DURATION_DAYS = 7

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")

# Allowed percentage deviation between actual and target macros.
MACRO_TOLERANCE_PCT = MappingProxyType(
    {
        "calories": 5.0,
        "protein": 5.0,
        "carbs": 8.0,
        "fat": 8.0,
    }
)
