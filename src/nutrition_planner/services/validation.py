"""Liked-ingredient validation gate."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from nutrition_planner.domain.constants import (
    DAILY_MIN_LIKED_INGREDIENTS,
    MIN_LIKED_INGREDIENTS,
)
from nutrition_planner.domain.errors import ValidationError
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions

PlanType = Literal["daily", "weekly"]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the gate; the message is advisory only."""

    valid: bool
    message: str


@dataclass(frozen=True)
class ValidationSummary:
    """Liked-ingredient counts and capability per plan type."""

    liked_count: int
    can_generate_daily: bool
    can_generate_weekly: bool
    daily_minimum: int
    weekly_minimum: int
    daily_shortfall: int
    weekly_shortfall: int
    message: str


@dataclass
class ValidationService:
    """Gate plan generation on the number of liked ingredients."""

    daily_minimum: int = DAILY_MIN_LIKED_INGREDIENTS
    weekly_minimum: int = MIN_LIKED_INGREDIENTS

    def minimum_for(self, plan_type: PlanType) -> int:
        if plan_type == "daily":
            return self.daily_minimum
        if plan_type == "weekly":
            return self.weekly_minimum
        raise ValueError(f"Unknown plan type: {plan_type}")

    def validate_for_plan_type(
        self,
        client_id: str,
        restrictions: Iterable[ClientIngredientRestrictions],
        plan_type: PlanType,
    ) -> ValidationResult:
        """Check a client's liked ingredients against the plan type minimum.

        Liked ingredients are the client's preferred set. A client with no
        restrictions record has none.
        """
        liked_count = _liked_count(client_id, restrictions)
        minimum = self.minimum_for(plan_type)
        if liked_count >= minimum:
            return ValidationResult(
                valid=True,
                message=f"Ready to generate {plan_type} plan",
            )
        shortfall = minimum - liked_count
        noun = "ingredient" if shortfall == 1 else "ingredients"
        return ValidationResult(
            valid=False,
            message=(
                f"Need {shortfall} more liked {noun} for a {plan_type} plan "
                f"(have {liked_count}, minimum {minimum})"
            ),
        )

    def require_valid(
        self,
        client_id: str,
        restrictions: Iterable[ClientIngredientRestrictions],
        plan_type: PlanType,
    ) -> ValidationResult:
        """Return the result, raising ValidationError when the gate fails."""
        result = self.validate_for_plan_type(client_id, restrictions, plan_type)
        if not result.valid:
            raise ValidationError(result.message)
        return result

    def summarize(
        self,
        client_id: str,
        restrictions: Iterable[ClientIngredientRestrictions],
    ) -> ValidationSummary:
        """Report capability for both plan types."""
        liked_count = _liked_count(client_id, restrictions)
        daily_shortfall = max(0, self.daily_minimum - liked_count)
        weekly_shortfall = max(0, self.weekly_minimum - liked_count)
        if weekly_shortfall == 0:
            message = "Ready to generate daily and weekly plans"
        elif daily_shortfall == 0:
            message = (
                f"Daily plans available; add {weekly_shortfall} more liked "
                "ingredients for weekly plans"
            )
        else:
            message = (
                f"Add {daily_shortfall} more liked ingredients to generate plans"
            )
        return ValidationSummary(
            liked_count=liked_count,
            can_generate_daily=daily_shortfall == 0,
            can_generate_weekly=weekly_shortfall == 0,
            daily_minimum=self.daily_minimum,
            weekly_minimum=self.weekly_minimum,
            daily_shortfall=daily_shortfall,
            weekly_shortfall=weekly_shortfall,
            message=message,
        )


def _liked_count(
    client_id: str, restrictions: Iterable[ClientIngredientRestrictions]
) -> int:
    for entry in restrictions:
        if entry.client_id == client_id:
            return len(entry.preferred_ingredients)
    return 0
