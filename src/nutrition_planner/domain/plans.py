"""Domain models for weekly meal plans."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from nutrition_planner.domain.constants import LOCK_DURATION_DAYS, MEAL_TYPES
from nutrition_planner.domain.nutrition import IngredientData, Macros


@dataclass(frozen=True)
class MealData:
    """A single meal slot: ingredients, recipe text and macros."""

    ingredients: tuple[IngredientData, ...]
    recipe_text: str
    macros: Macros


@dataclass(frozen=True)
class DailyPlan:
    """Four meal slots for one day with totals, targets and variance."""

    breakfast: MealData
    lunch: MealData
    dinner: MealData
    snack: MealData
    total_macros: Macros
    target_macros: Macros
    variance: Macros

    def meal(self, meal_type: str) -> MealData:
        """Return the meal for a slot name."""
        if meal_type not in MEAL_TYPES:
            raise KeyError(meal_type)
        return getattr(self, meal_type)

    def meals(self) -> dict[str, MealData]:
        """Return meals keyed by slot in canonical order."""
        return {meal_type: getattr(self, meal_type) for meal_type in MEAL_TYPES}


@dataclass(frozen=True)
class DayPlan:
    """A numbered day in a weekly plan."""

    day_number: int
    day_name: str
    plan: DailyPlan


@dataclass(frozen=True)
class WeeklyPlan:
    """Ordered days with weekly totals, targets and variance."""

    days: tuple[DayPlan, ...]
    weekly_total_macros: Macros
    weekly_target_macros: Macros
    weekly_variance: Macros


@dataclass(frozen=True)
class MealPlanPayload:
    """Generated plan payload; immutable once locked."""

    generated_at: datetime
    macro_targets: Macros
    weekly_plan: WeeklyPlan
    liked_ingredients: tuple[str, ...]
    locked_at: datetime | None = None


@dataclass(frozen=True)
class PlanVersionRecord:
    """Persisted plan version row."""

    id: str
    plan_id: str
    client_id: str
    version_number: int
    created_at: datetime
    payload: MealPlanPayload
    payload_hash: str
    created_by: str | None = None
    note: str | None = None
    archived: bool = False


@dataclass(frozen=True)
class PlanVersionSummary:
    """Lightweight plan version entry for history listings."""

    id: str
    version_number: int
    created_at: datetime
    note: str | None


@dataclass(frozen=True)
class LockStatus:
    """Lock window status evaluated at a point in time."""

    is_locked: bool
    locked_until: datetime | None
    days_remaining: int


UNLOCKED = LockStatus(is_locked=False, locked_until=None, days_remaining=0)


def calculate_lock_expiry(
    locked_at: datetime, duration_days: int = LOCK_DURATION_DAYS
) -> datetime:
    """Return the instant a lock started at ``locked_at`` ends."""
    return locked_at + timedelta(days=duration_days)


def compute_lock_status(
    locked_at: datetime | None,
    now: datetime,
    duration_days: int = LOCK_DURATION_DAYS,
) -> LockStatus:
    """Evaluate the lock window lazily against the given clock reading."""
    if locked_at is None:
        return UNLOCKED
    expiry = calculate_lock_expiry(locked_at, duration_days)
    if now >= expiry:
        return LockStatus(is_locked=False, locked_until=expiry, days_remaining=0)
    remaining = (expiry - now) / timedelta(days=1)
    return LockStatus(
        is_locked=True,
        locked_until=expiry,
        days_remaining=math.ceil(remaining),
    )


@dataclass(frozen=True)
class GenerationRequest:
    """Inputs handed to the external plan generator."""

    client_id: str
    macro_targets: Macros
    liked_ingredients: tuple[str, ...]
    blocked_ingredients: tuple[str, ...] = ()
