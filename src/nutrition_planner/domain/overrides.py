"""Domain models for plan override suggestions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from nutrition_planner.domain.nutrition import Macros

SuggestedBy = Literal["client", "coach", "system"]


@dataclass(frozen=True)
class PlanOverride:
    """Single-ingredient substitution proposed against a locked plan version."""

    id: str
    plan_version_id: str
    client_id: str
    meal_type: str
    original_ingredient: str
    replacement_ingredient: str
    macro_delta: Macros
    within_tolerance: bool
    suggested_by: SuggestedBy
    created_at: datetime
    approved_by: str | None = None
    archived: bool = False

    @property
    def is_pending(self) -> bool:
        """Return True while the override is neither approved nor archived."""
        return self.approved_by is None and not self.archived


@dataclass(frozen=True)
class CreateOverrideParams:
    """Input for recording a new override."""

    plan_version_id: str
    client_id: str
    meal_type: str
    original_ingredient: str
    replacement_ingredient: str
    macro_delta: Macros
    within_tolerance: bool
    suggested_by: SuggestedBy
