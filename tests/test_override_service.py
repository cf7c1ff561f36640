"""Tests for the override ledger."""

from datetime import timedelta

import pytest

from nutrition_planner.domain.constants import MACRO_TOLERANCE_PCT
from nutrition_planner.domain.errors import NotFoundError, StateConflictError
from nutrition_planner.domain.overrides import CreateOverrideParams
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions
from nutrition_planner.services.overrides import OverrideService
from nutrition_planner.services.substitution import SubstitutionService
from tests.conftest import (
    INGREDIENTS,
    NOW,
    FakeClock,
    InMemoryOverrideRepository,
    InMemoryPlanRepository,
    macros,
    make_payload,
)

NO_RESTRICTIONS = ClientIngredientRestrictions(client_id="client-1")


def _params(**kwargs: object) -> CreateOverrideParams:
    values: dict[str, object] = {
        "plan_version_id": "version-1",
        "client_id": "client-1",
        "meal_type": "lunch",
        "original_ingredient": "chicken-breast",
        "replacement_ingredient": "tofu",
        "macro_delta": macros(-50, -10, 5, 2),
        "within_tolerance": True,
        "suggested_by": "coach",
    }
    values.update(kwargs)
    return CreateOverrideParams(**values)  # type: ignore[arg-type]


def _lock(repository: InMemoryPlanRepository, days_ago: float = 1) -> None:
    repository.add_version(
        "client-1", make_payload(locked_at=NOW - timedelta(days=days_ago))
    )


def test_create_override_on_locked_version(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)

    override = override_service.create_override(_params())

    assert override.id == "override-1"
    assert override.is_pending
    assert override.created_at == NOW
    assert override_service.fetch_pending_overrides("version-1") == [override]
    assert override_service.list_client_overrides("client-1") == [override]


def test_create_override_refused_after_expiry(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository, days_ago=8)

    with pytest.raises(StateConflictError):
        override_service.create_override(_params())


def test_create_override_requires_locked_payload(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    plan_repository.add_version("client-1", make_payload())

    with pytest.raises(StateConflictError, match="locked plan version"):
        override_service.create_override(_params())


def test_create_override_validates_inputs(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)

    with pytest.raises(ValueError, match="Unknown meal type"):
        override_service.create_override(_params(meal_type="brunch"))
    with pytest.raises(NotFoundError):
        override_service.create_override(_params(plan_version_id="version-404"))


def test_approval_is_terminal(
    override_service: OverrideService,
    plan_repository: InMemoryPlanRepository,
    override_repository: InMemoryOverrideRepository,
) -> None:
    _lock(plan_repository)
    override = override_service.create_override(_params())

    approved = override_service.approve_override(override.id, "coach-1")

    assert approved.approved_by == "coach-1"
    assert not approved.is_pending
    assert override_repository.overrides[override.id].approved_by == "coach-1"
    assert override_service.fetch_pending_overrides("version-1") == []
    with pytest.raises(StateConflictError):
        override_service.approve_override(override.id, "coach-2")
    with pytest.raises(StateConflictError):
        override_service.archive_override(override.id)


def test_archive_hides_override(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)
    override = override_service.create_override(_params())

    archived = override_service.archive_override(override.id)

    assert archived.archived
    assert override_service.fetch_pending_overrides("version-1") == []
    assert override_service.list_client_overrides("client-1") == []
    with pytest.raises(StateConflictError):
        override_service.approve_override(override.id, "coach-1")


def test_resolving_missing_override(override_service: OverrideService) -> None:
    with pytest.raises(NotFoundError):
        override_service.approve_override("override-404", "coach-1")
    with pytest.raises(NotFoundError):
        override_service.archive_override("override-404")


def test_pending_overrides_newest_first(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)
    first = override_service.create_override(_params())
    second = override_service.create_override(
        _params(meal_type="breakfast", original_ingredient="oats")
    )

    assert override_service.fetch_pending_overrides("version-1") == [second, first]


def test_suggest_substitution_records_delta(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)

    override = override_service.suggest_substitution(
        plan_version_id="version-1",
        day_number=1,
        meal_type="lunch",
        ingredient_id="chicken-breast",
        restrictions=NO_RESTRICTIONS,
        suggested_by="system",
    )

    assert override is not None
    assert override.replacement_ingredient == "tuna"
    assert override.original_ingredient == "chicken-breast"
    assert override.macro_delta == macros(0, 7, 0, -4)
    assert not override.within_tolerance
    assert override.suggested_by == "system"


def test_suggest_substitution_missing_targets(
    override_service: OverrideService, plan_repository: InMemoryPlanRepository
) -> None:
    _lock(plan_repository)

    with pytest.raises(NotFoundError, match="Day 3"):
        override_service.suggest_substitution(
            "version-1", 3, "lunch", "chicken-breast", NO_RESTRICTIONS, "system"
        )
    with pytest.raises(NotFoundError):
        override_service.suggest_substitution(
            "version-1", 1, "lunch", "salmon", NO_RESTRICTIONS, "system"
        )


def test_suggest_substitution_without_candidates(
    override_repository: InMemoryOverrideRepository,
    plan_repository: InMemoryPlanRepository,
    clock: FakeClock,
) -> None:
    _lock(plan_repository)
    service = OverrideService(
        repository=override_repository,
        versions=plan_repository,
        substitution=SubstitutionService(
            {"chicken-breast": INGREDIENTS["chicken-breast"]}
        ),
        clock=clock,
    )

    result = service.suggest_substitution(
        "version-1", 1, "lunch", "chicken-breast", NO_RESTRICTIONS, "client"
    )

    assert result is None
    assert override_repository.overrides == {}


def test_suggestion_tolerance_is_configurable(
    override_repository: InMemoryOverrideRepository,
    plan_repository: InMemoryPlanRepository,
    substitution_service: SubstitutionService,
    clock: FakeClock,
) -> None:
    _lock(plan_repository)
    default = OverrideService(
        repository=override_repository,
        versions=plan_repository,
        substitution=substitution_service,
        clock=clock,
    )
    relaxed = OverrideService(
        repository=override_repository,
        versions=plan_repository,
        substitution=substitution_service,
        tolerance_pct={"calories": 60.0, "protein": 60.0, "carbs": 60.0, "fat": 60.0},
        clock=clock,
    )

    override = relaxed.suggest_substitution(
        "version-1", 1, "lunch", "chicken-breast", NO_RESTRICTIONS, "system"
    )

    assert default.tolerance_pct == MACRO_TOLERANCE_PCT
    assert override is not None
    assert override.within_tolerance
