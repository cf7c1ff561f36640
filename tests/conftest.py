"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from nutrition_planner.config import Settings
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.errors import PersistenceError
from nutrition_planner.domain.ingredient_catalog import build_ingredient_lookup
from nutrition_planner.domain.nutrition import Macros
from nutrition_planner.domain.overrides import CreateOverrideParams, PlanOverride
from nutrition_planner.domain.plans import (
    DailyPlan,
    DayPlan,
    GenerationRequest,
    MealData,
    MealPlanPayload,
    PlanVersionRecord,
    PlanVersionSummary,
    WeeklyPlan,
)
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions
from nutrition_planner.domain.serialization import payload_hash
from nutrition_planner.domain.snapshots import PlanSnapshot
from nutrition_planner.services.lifecycle import (
    PlanGenerator,
    PlanLifecycleService,
    PlanRepository,
)
from nutrition_planner.services.overrides import OverrideRepository, OverrideService
from nutrition_planner.services.snapshots import SnapshotRepository, SnapshotService
from nutrition_planner.services.substitution import SubstitutionService
from nutrition_planner.services.validation import ValidationService

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)
INGREDIENTS = build_ingredient_lookup()


def macros(calories: float, protein: float, carbs: float, fat: float) -> Macros:
    return Macros(calories=calories, protein_g=protein, carbs_g=carbs, fat_g=fat)


def make_meal(ingredient_ids: list[str], totals: Macros, recipe_text: str = "") -> MealData:
    return MealData(
        ingredients=tuple(INGREDIENTS[item] for item in ingredient_ids),
        recipe_text=recipe_text,
        macros=totals,
    )


def make_payload(
    generated_at: datetime = datetime(2024, 1, 1, tzinfo=UTC),
    locked_at: datetime | None = None,
) -> MealPlanPayload:
    """One-day plan: oats for breakfast, chicken for lunch."""
    empty = make_meal([], macros(0, 0, 0, 0))
    total = macros(450, 46, 24, 11)
    target = macros(500, 50, 40, 15)
    day = DayPlan(
        day_number=1,
        day_name="Monday",
        plan=DailyPlan(
            breakfast=make_meal(["oats"], macros(150, 6, 24, 3), "Oat bowl"),
            lunch=make_meal(["chicken-breast"], macros(300, 40, 0, 8), "Chicken bowl"),
            dinner=empty,
            snack=empty,
            total_macros=total,
            target_macros=target,
            variance=macros(-50, -4, -16, -4),
        ),
    )
    return MealPlanPayload(
        generated_at=generated_at,
        locked_at=locked_at,
        macro_targets=target,
        weekly_plan=WeeklyPlan(
            days=(day,),
            weekly_total_macros=total,
            weekly_target_macros=macros(3500, 350, 280, 105),
            weekly_variance=macros(-3050, -304, -256, -94),
        ),
        liked_ingredients=("chicken-breast",),
    )


def make_override(  # noqa: PLR0913
    override_id: str,
    meal_type: str = "lunch",
    original: str = "chicken-breast",
    replacement: str = "tofu",
    delta: Macros | None = None,
    created_at: datetime = datetime(2024, 1, 3, tzinfo=UTC),
    plan_version_id: str = "version-1",
) -> PlanOverride:
    return PlanOverride(
        id=override_id,
        plan_version_id=plan_version_id,
        client_id="client-1",
        meal_type=meal_type,
        original_ingredient=original,
        replacement_ingredient=replacement,
        macro_delta=delta or macros(-50, -10, 5, 2),
        within_tolerance=True,
        suggested_by="coach",
        created_at=created_at,
    )


@dataclass
class FakeClock:
    """Settable clock for lock window tests."""

    now: datetime = NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class InMemoryPlanRepository(PlanRepository, SnapshotRepository):
    """In-memory plan repository for tests."""

    versions: dict[str, PlanVersionRecord] = field(default_factory=dict)
    current: dict[str, str] = field(default_factory=dict)
    snapshots: dict[str, PlanSnapshot] = field(default_factory=dict)
    fail_loads: bool = False
    fail_saves: bool = False
    snapshot_write_attempts: int = 0

    def add_version(
        self, client_id: str, payload: MealPlanPayload, version_number: int = 1
    ) -> PlanVersionRecord:
        record = PlanVersionRecord(
            id=f"version-{version_number}",
            plan_id=f"plan-{client_id}",
            client_id=client_id,
            version_number=version_number,
            created_at=payload.locked_at or payload.generated_at,
            payload=payload,
            payload_hash=payload_hash(payload),
            note=f"Weekly meal plan v{version_number}",
        )
        self.versions[record.id] = record
        self.current[client_id] = record.id
        return record

    def get_current_version(self, client_id: str) -> PlanVersionRecord | None:
        if self.fail_loads:
            raise PersistenceError("Storage unavailable")
        version_id = self.current.get(client_id)
        return self.versions.get(version_id) if version_id else None

    def get_version(self, version_id: str) -> PlanVersionRecord | None:
        return self.versions.get(version_id)

    def latest_version_number(self, client_id: str) -> int | None:
        numbers = [
            item.version_number
            for item in self.versions.values()
            if item.client_id == client_id
        ]
        return max(numbers) if numbers else None

    def save_version(  # noqa: PLR0913
        self,
        client_id: str,
        payload: MealPlanPayload,
        payload_hash: str,
        version_number: int,
        created_by: str,
        note: str,
    ) -> PlanVersionRecord:
        if self.fail_saves:
            raise PersistenceError("Failed to create plan version")
        record = self.add_version(client_id, payload, version_number)
        record = replace(record, payload_hash=payload_hash, created_by=created_by, note=note)
        self.versions[record.id] = record
        return record

    def list_versions(self, client_id: str) -> list[PlanVersionSummary]:
        records = sorted(
            (item for item in self.versions.values() if item.client_id == client_id),
            key=lambda item: item.version_number,
            reverse=True,
        )
        return [
            PlanVersionSummary(
                id=item.id,
                version_number=item.version_number,
                created_at=item.created_at,
                note=item.note,
            )
            for item in records
            if not item.archived
        ]

    def get_snapshot(self, version_id: str) -> PlanSnapshot | None:
        return self.snapshots.get(version_id)

    def write_snapshot_if_absent(self, version_id: str, snapshot: PlanSnapshot) -> bool:
        self.snapshot_write_attempts += 1
        if version_id in self.snapshots:
            return False
        self.snapshots[version_id] = snapshot
        return True


@dataclass
class InMemoryOverrideRepository(OverrideRepository):
    """In-memory override ledger for tests."""

    overrides: dict[str, PlanOverride] = field(default_factory=dict)
    clock: FakeClock = field(default_factory=FakeClock)

    def add(self, override: PlanOverride) -> PlanOverride:
        self.overrides[override.id] = override
        return override

    def create_override(self, params: CreateOverrideParams) -> PlanOverride:
        override = PlanOverride(
            id=f"override-{len(self.overrides) + 1}",
            plan_version_id=params.plan_version_id,
            client_id=params.client_id,
            meal_type=params.meal_type,
            original_ingredient=params.original_ingredient,
            replacement_ingredient=params.replacement_ingredient,
            macro_delta=params.macro_delta,
            within_tolerance=params.within_tolerance,
            suggested_by=params.suggested_by,
            created_at=self.clock() + timedelta(seconds=len(self.overrides)),
        )
        return self.add(override)

    def get_override(self, override_id: str) -> PlanOverride | None:
        return self.overrides.get(override_id)

    def list_pending(self, plan_version_id: str) -> list[PlanOverride]:
        return sorted(
            (
                item
                for item in self.overrides.values()
                if item.plan_version_id == plan_version_id and item.is_pending
            ),
            key=lambda item: item.created_at,
            reverse=True,
        )

    def list_for_client(self, client_id: str) -> list[PlanOverride]:
        return sorted(
            (
                item
                for item in self.overrides.values()
                if item.client_id == client_id and not item.archived
            ),
            key=lambda item: item.created_at,
            reverse=True,
        )

    def set_approved(self, override_id: str, approver_id: str) -> None:
        self.overrides[override_id] = replace(
            self.overrides[override_id], approved_by=approver_id
        )

    def set_archived(self, override_id: str) -> None:
        self.overrides[override_id] = replace(self.overrides[override_id], archived=True)


@dataclass
class FakePlanGenerator(PlanGenerator):
    """Fake generator returning a fixed payload."""

    payload: MealPlanPayload = field(default_factory=make_payload)
    requests: list[GenerationRequest] = field(default_factory=list)
    error: Exception | None = None

    async def generate(self, request: GenerationRequest) -> MealPlanPayload:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload


def restrictions_for(
    client_id: str = "client-1", liked: int = 5, blocked: tuple[str, ...] = ()
) -> ClientIngredientRestrictions:
    preferred = [
        item for item in ("eggs", "salmon", "oats", "banana", "spinach", "quinoa", "apple")
        if item not in blocked
    ][:liked]
    return ClientIngredientRestrictions(
        client_id=client_id,
        blocked_ingredients=frozenset(blocked),
        preferred_ingredients=frozenset(preferred),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service.key.signature",
        admin_token="admin-token",
        generator_base_url="https://generator.example.com",
        generator_api_key="generator-key",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def plan_repository() -> InMemoryPlanRepository:
    return InMemoryPlanRepository()


@pytest.fixture
def override_repository(clock: FakeClock) -> InMemoryOverrideRepository:
    return InMemoryOverrideRepository(clock=clock)


@pytest.fixture
def generator() -> FakePlanGenerator:
    return FakePlanGenerator()


@pytest.fixture
def substitution_service() -> SubstitutionService:
    return SubstitutionService(INGREDIENTS)


@pytest.fixture
def snapshot_service(
    plan_repository: InMemoryPlanRepository,
    override_repository: InMemoryOverrideRepository,
    clock: FakeClock,
) -> SnapshotService:
    return SnapshotService(
        repository=plan_repository,
        overrides=override_repository,
        ingredients=INGREDIENTS,
        clock=clock,
    )


@pytest.fixture
def override_service(
    override_repository: InMemoryOverrideRepository,
    plan_repository: InMemoryPlanRepository,
    substitution_service: SubstitutionService,
    clock: FakeClock,
) -> OverrideService:
    return OverrideService(
        repository=override_repository,
        versions=plan_repository,
        substitution=substitution_service,
        clock=clock,
    )


@pytest.fixture
def lifecycle_service(
    plan_repository: InMemoryPlanRepository,
    generator: FakePlanGenerator,
    snapshot_service: SnapshotService,
    clock: FakeClock,
) -> PlanLifecycleService:
    return PlanLifecycleService(
        repository=plan_repository,
        generator=generator,
        validation=ValidationService(),
        snapshots=snapshot_service,
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    substitution_service: SubstitutionService,
    snapshot_service: SnapshotService,
    override_service: OverrideService,
    lifecycle_service: PlanLifecycleService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        ingredients=INGREDIENTS,
        validation_service=lifecycle_service.validation,
        substitution_service=substitution_service,
        snapshot_service=snapshot_service,
        override_service=override_service,
        lifecycle_service=lifecycle_service,
        close_resources=close_resources,
    )
