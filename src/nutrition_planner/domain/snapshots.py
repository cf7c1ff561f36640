"""Domain models for immutable plan snapshots."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from nutrition_planner.domain.nutrition import Macros
from nutrition_planner.domain.overrides import PlanOverride
from nutrition_planner.domain.plans import MealPlanPayload, WeeklyPlan

SnapshotStatus = Literal["LOCKED", "EXPIRED"]

SNAPSHOT_STATUSES: tuple[SnapshotStatus, ...] = ("LOCKED", "EXPIRED")


@dataclass(frozen=True)
class SnapshotMetadata:
    """Provenance of a snapshot and the overrides reconciled into it."""

    plan_id: str | None
    plan_version_id: str | None
    client_id: str | None
    generated_at: datetime
    locked_at: datetime
    snapshot_created_at: datetime
    macro_targets: Macros
    liked_ingredients: tuple[str, ...]
    overrides_applied: tuple[PlanOverride, ...]


@dataclass(frozen=True)
class PlanSnapshot:
    """What the client actually received for a plan version."""

    status: SnapshotStatus
    metadata: SnapshotMetadata
    weekly_plan: WeeklyPlan


@dataclass(frozen=True)
class SnapshotInput:
    """Everything the snapshot builder consumes."""

    status: str
    payload: MealPlanPayload
    pending_overrides: tuple[PlanOverride, ...] = ()
    plan_id: str | None = None
    plan_version_id: str | None = None
    client_id: str | None = None
    snapshot_created_at: datetime | None = None
