"""Pydantic request models for the planning API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from nutrition_planner.domain.nutrition import Macros
from nutrition_planner.domain.overrides import CreateOverrideParams
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions


class MacrosModel(BaseModel):
    """Macro quantities; grams except calories."""

    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    fiber: float | None = Field(default=None, ge=0)

    def to_domain(self) -> Macros:
        return Macros(
            calories=self.calories,
            protein_g=self.protein,
            carbs_g=self.carbs,
            fat_g=self.fat,
            fiber_g=self.fiber,
        )


class MacroDeltaModel(BaseModel):
    """Signed macro change caused by a swap."""

    calories: float
    protein: float
    carbs: float
    fat: float

    def to_domain(self) -> Macros:
        return Macros(
            calories=self.calories,
            protein_g=self.protein,
            carbs_g=self.carbs,
            fat_g=self.fat,
        )


class RestrictionsModel(BaseModel):
    """Client ingredient restrictions."""

    client_id: str
    blocked_ingredients: list[str] = Field(default_factory=list)
    preferred_ingredients: list[str] = Field(default_factory=list)
    substitution_rules: dict[str, list[str]] = Field(default_factory=dict)

    def to_domain(self) -> ClientIngredientRestrictions:
        return ClientIngredientRestrictions(
            client_id=self.client_id,
            blocked_ingredients=frozenset(self.blocked_ingredients),
            preferred_ingredients=frozenset(self.preferred_ingredients),
            substitution_rules={
                key: tuple(value) for key, value in self.substitution_rules.items()
            },
        )


class GenerateDraftRequest(BaseModel):
    """Draft generation input."""

    macro_targets: MacrosModel
    restrictions: list[RestrictionsModel] = Field(default_factory=list)


class LockRequest(BaseModel):
    """Lock input naming the acting coach."""

    actor_id: str


class CreateOverrideRequest(BaseModel):
    """Override creation input."""

    plan_version_id: str
    client_id: str
    meal_type: Literal["breakfast", "lunch", "dinner", "snack"]
    original_ingredient: str
    replacement_ingredient: str
    macro_delta: MacroDeltaModel
    within_tolerance: bool
    suggested_by: Literal["client", "coach", "system"]

    def to_domain(self) -> CreateOverrideParams:
        return CreateOverrideParams(
            plan_version_id=self.plan_version_id,
            client_id=self.client_id,
            meal_type=self.meal_type,
            original_ingredient=self.original_ingredient,
            replacement_ingredient=self.replacement_ingredient,
            macro_delta=self.macro_delta.to_domain(),
            within_tolerance=self.within_tolerance,
            suggested_by=self.suggested_by,
        )


class SuggestSubstitutionRequest(BaseModel):
    """Input for picking and recording a substitute."""

    plan_version_id: str
    day_number: int = Field(ge=1)
    meal_type: Literal["breakfast", "lunch", "dinner", "snack"]
    ingredient_id: str
    restrictions: RestrictionsModel
    suggested_by: Literal["client", "coach", "system"] = "system"


class ApproveOverrideRequest(BaseModel):
    """Approval input naming the approver."""

    approver_id: str


class BackfillRequest(BaseModel):
    """Snapshot backfill input."""

    snapshot_created_at: datetime | None = None


class ValidationRequest(BaseModel):
    """Validation gate input."""

    client_id: str
    plan_type: Literal["daily", "weekly"] = "weekly"
    restrictions: list[RestrictionsModel] = Field(default_factory=list)


class SubstituteLookupRequest(BaseModel):
    """Substitute lookup input."""

    ingredient_ids: list[str]
    restrictions: RestrictionsModel
    preserve_macros: bool = True
