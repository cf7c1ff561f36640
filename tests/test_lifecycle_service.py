"""Tests for the plan lifecycle service."""

import asyncio
from datetime import timedelta

import pytest

from nutrition_planner.domain.errors import (
    GenerationError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from nutrition_planner.domain.lifecycle import PlanAction, PlanState
from nutrition_planner.services.lifecycle import PlanLifecycleService, PlanView
from tests.conftest import (
    NOW,
    FakeClock,
    FakePlanGenerator,
    InMemoryPlanRepository,
    macros,
    make_payload,
    restrictions_for,
)

TARGETS = macros(2000, 150, 200, 70)


def _generate(service: PlanLifecycleService, client_id: str = "client-1") -> PlanView:
    return asyncio.run(
        service.generate_draft(client_id, TARGETS, [restrictions_for(client_id)])
    )


def test_load_plan_without_versions_is_empty(
    lifecycle_service: PlanLifecycleService,
) -> None:
    view = lifecycle_service.load_plan("client-1")

    assert view.state is PlanState.EMPTY
    assert view.can_generate
    assert not view.can_lock
    assert view.permitted_actions == frozenset({PlanAction.GENERATE})


def test_load_plan_finds_locked_version(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    plan_repository.add_version("client-1", make_payload(locked_at=NOW - timedelta(days=1)))

    view = lifecycle_service.load_plan("client-1")

    assert view.state is PlanState.LOCKED
    assert view.is_locked
    assert view.version_id == "version-1"
    assert view.lock_status.days_remaining == 6
    assert not view.can_generate


def test_load_plan_ignores_unlocked_payload(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    plan_repository.add_version("client-1", make_payload())

    assert lifecycle_service.load_plan("client-1").state is PlanState.EMPTY


def test_generate_draft_passes_restrictions_to_generator(
    lifecycle_service: PlanLifecycleService, generator: FakePlanGenerator
) -> None:
    view = _generate(lifecycle_service)

    assert view.state is PlanState.DRAFT
    assert view.is_draft
    assert view.can_lock
    assert view.payload is not None
    assert view.payload.locked_at is None
    request = generator.requests[0]
    assert request.macro_targets == TARGETS
    assert request.liked_ingredients == tuple(
        sorted(restrictions_for().preferred_ingredients)
    )


def test_generate_draft_requires_liked_ingredients(
    lifecycle_service: PlanLifecycleService, generator: FakePlanGenerator
) -> None:
    with pytest.raises(ValidationError, match="Need 2 more liked ingredients"):
        asyncio.run(
            lifecycle_service.generate_draft(
                "client-1", TARGETS, [restrictions_for(liked=3)]
            )
        )

    assert generator.requests == []
    assert lifecycle_service.get_view("client-1").state is PlanState.EMPTY


def test_regenerate_replaces_draft(lifecycle_service: PlanLifecycleService) -> None:
    _generate(lifecycle_service)
    view = _generate(lifecycle_service)

    assert view.state is PlanState.DRAFT
    assert PlanAction.REGENERATE in view.permitted_actions


def test_generation_failure_blocks_until_cleared(
    lifecycle_service: PlanLifecycleService, generator: FakePlanGenerator
) -> None:
    generator.error = GenerationError("Generator unavailable")

    with pytest.raises(GenerationError):
        _generate(lifecycle_service)

    view = lifecycle_service.get_view("client-1")
    assert view.state is PlanState.ERROR
    assert view.is_blocked
    assert view.error == "Generator unavailable"
    assert not view.can_generate
    with pytest.raises(StateConflictError):
        _generate(lifecycle_service)
    with pytest.raises(StateConflictError):
        lifecycle_service.load_plan("client-1")

    cleared = lifecycle_service.clear_error("client-1")
    assert cleared.state is PlanState.EMPTY
    assert cleared.error is None


def test_lock_plan_persists_version_and_snapshot(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    _generate(lifecycle_service)

    result = lifecycle_service.lock_plan("client-1", "coach-1")

    assert result.view.state is PlanState.LOCKED
    assert result.view.is_locked
    assert result.view.lock_status.days_remaining == 7
    assert result.version.version_number == 1
    assert result.version.created_by == "coach-1"
    assert result.version.note == "Weekly meal plan v1"
    assert result.version.payload.locked_at == NOW
    assert result.version.payload_hash.startswith("sha256-")
    assert result.snapshot_written
    assert plan_repository.snapshots["version-1"].status == "LOCKED"


def test_locked_plan_refuses_regenerate_and_discard(
    lifecycle_service: PlanLifecycleService,
) -> None:
    _generate(lifecycle_service)
    lifecycle_service.lock_plan("client-1", "coach-1")

    with pytest.raises(StateConflictError):
        _generate(lifecycle_service)
    with pytest.raises(StateConflictError, match="forbidden on locked plans"):
        lifecycle_service.discard_draft("client-1")
    with pytest.raises(StateConflictError):
        lifecycle_service.lock_plan("client-1", "coach-1")


def test_expired_plan_allows_new_version(
    lifecycle_service: PlanLifecycleService, clock: FakeClock
) -> None:
    _generate(lifecycle_service)
    lifecycle_service.lock_plan("client-1", "coach-1")

    clock.advance(days=7)
    expired = lifecycle_service.get_view("client-1")
    assert expired.state is PlanState.EXPIRED
    assert not expired.is_locked
    assert expired.can_generate

    _generate(lifecycle_service)
    result = lifecycle_service.lock_plan("client-1", "coach-1")

    assert result.version.version_number == 2
    assert [item.version_number for item in lifecycle_service.plan_history("client-1")] == [
        2,
        1,
    ]


def test_lock_refused_while_other_lock_active(
    plan_repository: InMemoryPlanRepository,
    lifecycle_service: PlanLifecycleService,
) -> None:
    _generate(lifecycle_service)
    plan_repository.add_version("client-1", make_payload(locked_at=NOW - timedelta(days=2)))

    with pytest.raises(StateConflictError, match="locked for 5 more day"):
        lifecycle_service.lock_plan("client-1", "coach-1")

    assert lifecycle_service.get_view("client-1").state is PlanState.ERROR


def test_lock_failure_retains_draft(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    draft = _generate(lifecycle_service).payload
    plan_repository.fail_saves = True

    with pytest.raises(PersistenceError):
        lifecycle_service.lock_plan("client-1", "coach-1")

    failed = lifecycle_service.get_view("client-1")
    assert failed.state is PlanState.ERROR
    assert not failed.can_lock

    restored = lifecycle_service.clear_error("client-1")
    assert restored.state is PlanState.DRAFT
    assert restored.payload == draft
    assert restored.can_lock


def test_load_failure_moves_to_error(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    plan_repository.fail_loads = True

    with pytest.raises(PersistenceError):
        lifecycle_service.load_plan("client-1")

    assert lifecycle_service.get_view("client-1").is_blocked


def test_discard_draft_reloads_locked_plan(
    lifecycle_service: PlanLifecycleService, plan_repository: InMemoryPlanRepository
) -> None:
    plan_repository.add_version("client-1", make_payload(locked_at=NOW - timedelta(days=8)))
    lifecycle_service.load_plan("client-1")
    _generate(lifecycle_service)

    view = lifecycle_service.discard_draft("client-1")

    assert view.state is PlanState.EXPIRED
    assert view.version_id == "version-1"


def test_discard_requires_draft(lifecycle_service: PlanLifecycleService) -> None:
    with pytest.raises(StateConflictError):
        lifecycle_service.discard_draft("client-1")


def test_clear_error_requires_error_state(
    lifecycle_service: PlanLifecycleService,
) -> None:
    with pytest.raises(StateConflictError, match="not in an error state"):
        lifecycle_service.clear_error("client-1")


def test_clients_are_independent(lifecycle_service: PlanLifecycleService) -> None:
    _generate(lifecycle_service, "client-1")

    assert lifecycle_service.get_view("client-2").state is PlanState.EMPTY

    lifecycle_service.clear_client("client-1")
    assert lifecycle_service.get_view("client-1").state is PlanState.EMPTY


def test_snapshot_on_lock_can_be_disabled(
    plan_repository: InMemoryPlanRepository,
    lifecycle_service: PlanLifecycleService,
) -> None:
    lifecycle_service.snapshot_on_lock = False
    _generate(lifecycle_service)

    result = lifecycle_service.lock_plan("client-1", "coach-1")

    assert not result.snapshot_written
    assert plan_repository.snapshots == {}


def test_shareability_after_lock(lifecycle_service: PlanLifecycleService) -> None:
    _generate(lifecycle_service)
    assert not lifecycle_service.shareability("client-1").is_shareable

    result = lifecycle_service.lock_plan("client-1", "coach-1")
    check = lifecycle_service.shareability("client-1")

    assert check.is_shareable
    assert check.identifier is not None
    assert check.identifier.version_id == result.version.id
    assert check.identifier.payload_hash == result.version.payload_hash
