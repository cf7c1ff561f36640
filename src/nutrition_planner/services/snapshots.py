"""Snapshot builder and write-once snapshot persistence."""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol

from nutrition_planner.domain.constants import LOCK_DURATION_DAYS, MEAL_TYPES
from nutrition_planner.domain.errors import NotFoundError, PreconditionError
from nutrition_planner.domain.ingredient_catalog import build_ingredient_lookup
from nutrition_planner.domain.nutrition import IngredientData, Macros, compute_variance
from nutrition_planner.domain.overrides import PlanOverride
from nutrition_planner.domain.plans import (
    DailyPlan,
    DayPlan,
    MealData,
    PlanVersionRecord,
    WeeklyPlan,
    compute_lock_status,
)
from nutrition_planner.domain.snapshots import (
    SNAPSHOT_STATUSES,
    PlanSnapshot,
    SnapshotInput,
    SnapshotMetadata,
)

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def normalize_overrides(overrides: Iterable[PlanOverride]) -> list[PlanOverride]:
    """Order overrides by creation time, breaking ties by id."""
    return sorted(overrides, key=lambda item: (item.created_at, item.id))


def build_plan_snapshot(
    snapshot_input: SnapshotInput,
    ingredient_lookup: Mapping[str, IngredientData] | None = None,
) -> PlanSnapshot:
    """Reconcile a locked payload with its pending overrides.

    Overrides are applied to every day whose matching meal slot still holds
    the original ingredient. An override whose original ingredient is missing
    from the meal, or whose replacement is not in the reference table, is
    skipped and left out of ``overrides_applied``. Inputs are never mutated.
    """
    if snapshot_input.status not in SNAPSHOT_STATUSES:
        raise PreconditionError(
            "Plan snapshot can only be built for LOCKED or EXPIRED plans"
        )
    payload = snapshot_input.payload
    if payload.locked_at is None:
        raise PreconditionError("Plan snapshot requires a locked plan payload")

    lookup = ingredient_lookup if ingredient_lookup is not None else build_ingredient_lookup()
    overrides = normalize_overrides(snapshot_input.pending_overrides)
    applied_ids: set[str] = set()

    days = []
    for day in payload.weekly_plan.days:
        plan, applied = _apply_to_day(day.plan, overrides, lookup)
        applied_ids.update(applied)
        days.append(DayPlan(day_number=day.day_number, day_name=day.day_name, plan=plan))

    weekly_total = _sum_day_totals(days)
    weekly_target = payload.weekly_plan.weekly_target_macros
    skipped = len(overrides) - len(applied_ids)
    if skipped:
        _logger.info(
            "Snapshot skipped overrides: version=%s skipped=%s",
            snapshot_input.plan_version_id,
            skipped,
        )

    return PlanSnapshot(
        status=snapshot_input.status,
        metadata=SnapshotMetadata(
            plan_id=snapshot_input.plan_id,
            plan_version_id=snapshot_input.plan_version_id,
            client_id=snapshot_input.client_id,
            generated_at=payload.generated_at,
            locked_at=payload.locked_at,
            snapshot_created_at=(
                snapshot_input.snapshot_created_at
                or payload.locked_at
                or payload.generated_at
            ),
            macro_targets=payload.macro_targets,
            liked_ingredients=tuple(payload.liked_ingredients),
            overrides_applied=tuple(
                override for override in overrides if override.id in applied_ids
            ),
        ),
        weekly_plan=WeeklyPlan(
            days=tuple(days),
            weekly_total_macros=weekly_total,
            weekly_target_macros=weekly_target,
            weekly_variance=compute_variance(weekly_total, weekly_target),
        ),
    )


def _apply_to_day(
    plan: DailyPlan,
    overrides: list[PlanOverride],
    lookup: Mapping[str, IngredientData],
) -> tuple[DailyPlan, list[str]]:
    meals: dict[str, MealData] = {}
    day_delta = Macros.zero()
    applied: list[str] = []
    for meal_type in MEAL_TYPES:
        meal = plan.meal(meal_type)
        meal_overrides = [item for item in overrides if item.meal_type == meal_type]
        if not meal_overrides:
            meals[meal_type] = meal
            continue
        meals[meal_type], meal_delta, meal_applied = _apply_to_meal(
            meal, meal_overrides, lookup
        )
        day_delta = day_delta + meal_delta
        applied.extend(meal_applied)

    total = plan.total_macros + day_delta
    return (
        replace(
            plan,
            **meals,
            total_macros=total,
            variance=compute_variance(total, plan.target_macros),
        ),
        applied,
    )


def _apply_to_meal(
    meal: MealData,
    overrides: list[PlanOverride],
    lookup: Mapping[str, IngredientData],
) -> tuple[MealData, Macros, list[str]]:
    ingredients = list(meal.ingredients)
    delta = Macros.zero()
    applied: list[str] = []
    for override in overrides:
        index = next(
            (
                position
                for position, ingredient in enumerate(ingredients)
                if ingredient.id == override.original_ingredient
            ),
            None,
        )
        if index is None:
            continue
        replacement = lookup.get(override.replacement_ingredient)
        if replacement is None:
            continue
        ingredients[index] = replacement
        delta = delta + _main_axes(override.macro_delta)
        applied.append(override.id)
    return (
        replace(meal, ingredients=tuple(ingredients), macros=meal.macros + delta),
        delta,
        applied,
    )


def _main_axes(macros: Macros) -> Macros:
    return Macros(
        calories=macros.calories,
        protein_g=macros.protein_g,
        carbs_g=macros.carbs_g,
        fat_g=macros.fat_g,
    )


def _sum_day_totals(days: Iterable[DayPlan]) -> Macros:
    total = Macros(0.0, 0.0, 0.0, 0.0, fiber_g=0.0)
    for day in days:
        totals = day.plan.total_macros
        total = total + replace(totals, fiber_g=totals.fiber_g or 0.0)
    return total


class SnapshotRepository(Protocol):
    """Persistence interface for write-once snapshots on plan versions."""

    def get_version(self, version_id: str) -> PlanVersionRecord | None:
        """Return a plan version by id."""

    def get_snapshot(self, version_id: str) -> PlanSnapshot | None:
        """Return the stored snapshot for a version, if any."""

    def write_snapshot_if_absent(self, version_id: str, snapshot: PlanSnapshot) -> bool:
        """Store the snapshot only when none exists; return True if written."""


class PendingOverrideSource(Protocol):
    """Source of unapproved, unarchived overrides for a version."""

    def list_pending(self, plan_version_id: str) -> list[PlanOverride]:
        """Return pending overrides for a plan version."""


@dataclass
class SnapshotService:
    """Build and store snapshots, at most once per plan version."""

    repository: SnapshotRepository
    overrides: PendingOverrideSource
    ingredients: Mapping[str, IngredientData] = field(
        default_factory=build_ingredient_lookup
    )
    lock_duration_days: int = LOCK_DURATION_DAYS
    clock: Callable[[], datetime] = _utc_now

    def build(self, snapshot_input: SnapshotInput) -> PlanSnapshot:
        return build_plan_snapshot(snapshot_input, self.ingredients)

    def persist_snapshot(self, version_id: str, snapshot: PlanSnapshot) -> bool:
        """Store a snapshot write-once.

        Returns True when this call stored it and False when a snapshot
        already existed. An existing snapshot is never overwritten.
        """
        if self.repository.get_snapshot(version_id) is not None:
            _logger.info("Snapshot already stored: version=%s", version_id)
            return False
        written = self.repository.write_snapshot_if_absent(version_id, snapshot)
        if written:
            _logger.info("Snapshot stored: version=%s", version_id)
        else:
            _logger.info("Snapshot write lost race: version=%s", version_id)
        return written

    def fetch_persisted_snapshot(self, version_id: str) -> PlanSnapshot | None:
        return self.repository.get_snapshot(version_id)

    def backfill(
        self, version_id: str, snapshot_created_at: datetime | None = None
    ) -> PlanSnapshot:
        """Build and store the snapshot for a locked version that lacks one.

        The status is LOCKED while the lock window is open and EXPIRED after.
        Returns whichever snapshot ends up stored for the version.
        """
        existing = self.repository.get_snapshot(version_id)
        if existing is not None:
            return existing
        version = self.repository.get_version(version_id)
        if version is None:
            raise NotFoundError(f"Plan version not found: {version_id}")
        lock = compute_lock_status(
            version.payload.locked_at, self.clock(), self.lock_duration_days
        )
        snapshot = self.build(
            SnapshotInput(
                status="LOCKED" if lock.is_locked else "EXPIRED",
                payload=version.payload,
                pending_overrides=tuple(self.overrides.list_pending(version_id)),
                plan_id=version.plan_id,
                plan_version_id=version.id,
                client_id=version.client_id,
                snapshot_created_at=snapshot_created_at,
            )
        )
        if self.persist_snapshot(version_id, snapshot):
            return snapshot
        stored = self.repository.get_snapshot(version_id)
        return stored if stored is not None else snapshot
