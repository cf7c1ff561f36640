"""Override ledger for ingredient swaps on locked plan versions."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol

from nutrition_planner.domain.constants import (
    LOCK_DURATION_DAYS,
    MACRO_TOLERANCE_PCT,
    MEAL_TYPES,
)
from nutrition_planner.domain.errors import NotFoundError, StateConflictError
from nutrition_planner.domain.lifecycle import PlanAction, PlanState, require_action
from nutrition_planner.domain.nutrition import Macros, check_tolerance
from nutrition_planner.domain.overrides import (
    CreateOverrideParams,
    PlanOverride,
    SuggestedBy,
)
from nutrition_planner.domain.plans import PlanVersionRecord, compute_lock_status
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions
from nutrition_planner.services.substitution import SubstitutionService

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class OverrideRepository(Protocol):
    """Persistence interface for plan overrides."""

    def create_override(self, params: CreateOverrideParams) -> PlanOverride:
        """Insert an unapproved override and return it."""

    def get_override(self, override_id: str) -> PlanOverride | None:
        """Return an override by id."""

    def list_pending(self, plan_version_id: str) -> list[PlanOverride]:
        """Return unapproved, unarchived overrides for a version."""

    def list_for_client(self, client_id: str) -> list[PlanOverride]:
        """Return unarchived overrides for a client, newest first."""

    def set_approved(self, override_id: str, approver_id: str) -> None:
        """Record the approver of an override."""

    def set_archived(self, override_id: str) -> None:
        """Archive an override."""


class PlanVersionLookup(Protocol):
    """Read access to persisted plan versions."""

    def get_version(self, version_id: str) -> PlanVersionRecord | None:
        """Return a plan version by id."""


@dataclass
class OverrideService:
    """Record, approve and archive override suggestions."""

    repository: OverrideRepository
    versions: PlanVersionLookup
    substitution: SubstitutionService
    lock_duration_days: int = LOCK_DURATION_DAYS
    tolerance_pct: Mapping[str, float] = field(
        default_factory=lambda: MACRO_TOLERANCE_PCT
    )
    clock: Callable[[], datetime] = _utc_now

    def create_override(self, params: CreateOverrideParams) -> PlanOverride:
        """Record a swap against an actively locked plan version."""
        if params.meal_type not in MEAL_TYPES:
            raise ValueError(f"Unknown meal type: {params.meal_type}")
        self._require_swappable(self._get_version(params.plan_version_id))
        override = self.repository.create_override(params)
        _logger.info(
            "Override created: id=%s version=%s meal=%s %s->%s",
            override.id,
            override.plan_version_id,
            override.meal_type,
            override.original_ingredient,
            override.replacement_ingredient,
        )
        return override

    def fetch_pending_overrides(self, plan_version_id: str) -> list[PlanOverride]:
        return self.repository.list_pending(plan_version_id)

    def list_client_overrides(self, client_id: str) -> list[PlanOverride]:
        return self.repository.list_for_client(client_id)

    def approve_override(self, override_id: str, approver_id: str) -> PlanOverride:
        """Approve a pending override; approval is terminal."""
        override = self._get_pending(override_id)
        self.repository.set_approved(override_id, approver_id)
        _logger.info("Override approved: id=%s approver=%s", override_id, approver_id)
        return replace(override, approved_by=approver_id)

    def archive_override(self, override_id: str) -> PlanOverride:
        """Archive a pending override; archiving is terminal."""
        override = self._get_pending(override_id)
        self.repository.set_archived(override_id)
        _logger.info("Override archived: id=%s", override_id)
        return replace(override, archived=True)

    def suggest_substitution(  # noqa: PLR0913
        self,
        plan_version_id: str,
        day_number: int,
        meal_type: str,
        ingredient_id: str,
        restrictions: ClientIngredientRestrictions,
        suggested_by: SuggestedBy,
    ) -> PlanOverride | None:
        """Pick a substitute for one ingredient of a meal and record it.

        The macro delta compares the substitute at its converted mass with the
        original at its typical serving size. Returns None when no substitute
        qualifies.
        """
        version = self._get_version(plan_version_id)
        self._require_swappable(version)
        day = next(
            (
                item
                for item in version.payload.weekly_plan.days
                if item.day_number == day_number
            ),
            None,
        )
        if day is None:
            raise NotFoundError(f"Day {day_number} not found in plan version")
        if meal_type not in MEAL_TYPES:
            raise ValueError(f"Unknown meal type: {meal_type}")
        meal = day.plan.meal(meal_type)
        original = next(
            (item for item in meal.ingredients if item.id == ingredient_id), None
        )
        if original is None:
            raise NotFoundError(f"Ingredient {ingredient_id} not found in {meal_type}")

        rule = self.substitution.find_best_substitute(
            ingredient_id,
            ClientIngredientRestrictions(
                client_id=restrictions.client_id,
                blocked_ingredients=restrictions.blocked_ingredients | {ingredient_id},
                preferred_ingredients=restrictions.preferred_ingredients
                - {ingredient_id},
                substitution_rules=restrictions.substitution_rules,
            ),
        )
        substitute = (
            self.substitution.get_ingredient(rule.substitute_id) if rule else None
        )
        if rule is None or substitute is None:
            _logger.warning(
                "No substitute found: version=%s meal=%s ingredient=%s",
                plan_version_id,
                meal_type,
                ingredient_id,
            )
            return None

        serving = original.typical_serving_size_g
        delta = _serving_delta(
            substitute.macros.scaled(serving * rule.conversion_ratio / 100),
            original.macros.scaled(serving / 100),
        )
        report = check_tolerance(meal.macros + delta, meal.macros, self.tolerance_pct)
        return self.create_override(
            CreateOverrideParams(
                plan_version_id=plan_version_id,
                client_id=version.client_id,
                meal_type=meal_type,
                original_ingredient=ingredient_id,
                replacement_ingredient=substitute.id,
                macro_delta=delta,
                within_tolerance=report.within_tolerance,
                suggested_by=suggested_by,
            )
        )

    def _get_version(self, version_id: str) -> PlanVersionRecord:
        version = self.versions.get_version(version_id)
        if version is None:
            raise NotFoundError(f"Plan version not found: {version_id}")
        return version

    def _require_swappable(self, version: PlanVersionRecord) -> None:
        if version.payload.locked_at is None:
            raise StateConflictError("Overrides require a locked plan version")
        lock = compute_lock_status(
            version.payload.locked_at, self.clock(), self.lock_duration_days
        )
        label = PlanState.LOCKED if lock.is_locked else PlanState.EXPIRED
        require_action(label, PlanAction.SWAP_MEAL)

    def _get_pending(self, override_id: str) -> PlanOverride:
        override = self.repository.get_override(override_id)
        if override is None:
            raise NotFoundError(f"Override not found: {override_id}")
        if not override.is_pending:
            raise StateConflictError(f"Override {override_id} is already resolved")
        return override


def _serving_delta(replacement: Macros, original: Macros) -> Macros:
    delta = replacement - original
    return Macros(
        calories=delta.calories,
        protein_g=delta.protein_g,
        carbs_g=delta.carbs_g,
        fat_g=delta.fat_g,
    ).rounded()
