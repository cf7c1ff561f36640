"""Nutrition domain models."""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

from nutrition_planner.domain.constants import MACRO_TOLERANCE_PCT

IngredientCategory = Literal[
    "protein", "carbohydrate", "fat", "fruit", "vegetable", "misc"
]

MACRO_AXES = ("calories", "protein_g", "carbs_g", "fat_g")


@dataclass(frozen=True)
class Macros:
    """Macronutrient quantities; grams except calories (kcal)."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: float | None = None

    @classmethod
    def zero(cls) -> "Macros":
        """Return an all-zero macro vector without fiber."""
        return cls(0.0, 0.0, 0.0, 0.0)

    def __add__(self, other: "Macros") -> "Macros":
        return Macros(
            calories=self.calories + other.calories,
            protein_g=self.protein_g + other.protein_g,
            carbs_g=self.carbs_g + other.carbs_g,
            fat_g=self.fat_g + other.fat_g,
            fiber_g=_combine_fiber(self.fiber_g, other.fiber_g, sign=1),
        )

    def __sub__(self, other: "Macros") -> "Macros":
        return Macros(
            calories=self.calories - other.calories,
            protein_g=self.protein_g - other.protein_g,
            carbs_g=self.carbs_g - other.carbs_g,
            fat_g=self.fat_g - other.fat_g,
            fiber_g=_combine_fiber(self.fiber_g, other.fiber_g, sign=-1),
        )

    def scaled(self, factor: float) -> "Macros":
        """Multiply every axis by a factor."""
        return Macros(
            calories=self.calories * factor,
            protein_g=self.protein_g * factor,
            carbs_g=self.carbs_g * factor,
            fat_g=self.fat_g * factor,
            fiber_g=None if self.fiber_g is None else self.fiber_g * factor,
        )

    def rounded(self) -> "Macros":
        """Round every axis to the nearest integer, halves away from zero."""
        return Macros(
            calories=round_half_up(self.calories),
            protein_g=round_half_up(self.protein_g),
            carbs_g=round_half_up(self.carbs_g),
            fat_g=round_half_up(self.fat_g),
            fiber_g=None if self.fiber_g is None else round_half_up(self.fiber_g),
        )


@dataclass(frozen=True)
class IngredientData:
    """Reference ingredient with macros per 100g."""

    id: str
    name: str
    category: IngredientCategory
    macros: Macros
    typical_serving_size_g: float
    tags: tuple[str, ...] = ()
    allowed_meals: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToleranceReport:
    """Per-axis deviation from a target, in percent."""

    deviations_pct: dict[str, float]
    within_tolerance: bool


def sum_macros(items: Iterable[Macros]) -> Macros:
    """Componentwise sum of macro vectors."""
    total = Macros.zero()
    for item in items:
        total = total + item
    return total


def compute_variance(actual: Macros, target: Macros) -> Macros:
    """Return actual minus target on the four main axes."""
    return Macros(
        calories=actual.calories - target.calories,
        protein_g=actual.protein_g - target.protein_g,
        carbs_g=actual.carbs_g - target.carbs_g,
        fat_g=actual.fat_g - target.fat_g,
    )


def check_tolerance(
    actual: Macros,
    target: Macros,
    tolerance_pct: Mapping[str, float] = MACRO_TOLERANCE_PCT,
) -> ToleranceReport:
    """Compare actual macros against a target using percentage tolerances."""
    deviations: dict[str, float] = {}
    within = True
    for axis, attribute in zip(
        ("calories", "protein", "carbs", "fat"), MACRO_AXES, strict=True
    ):
        actual_value = getattr(actual, attribute)
        target_value = getattr(target, attribute)
        if target_value == 0:
            deviation = 0.0 if actual_value == 0 else math.inf
        else:
            deviation = abs(actual_value - target_value) / abs(target_value) * 100
        deviations[axis] = deviation
        if deviation > tolerance_pct[axis]:
            within = False
    return ToleranceReport(deviations_pct=deviations, within_tolerance=within)


def round_half_up(value: float) -> float:
    """Round to the nearest integer with halves rounded up."""
    return float(math.floor(value + 0.5))


def round_tenth(value: float) -> float:
    """Round to one decimal place with halves rounded up."""
    return math.floor(value * 10 + 0.5) / 10


def _combine_fiber(left: float | None, right: float | None, sign: int) -> float | None:
    if left is None and right is None:
        return None
    return (left or 0.0) + sign * (right or 0.0)
