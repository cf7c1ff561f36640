"""Planning API endpoints with simple token auth."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from nutrition_planner.api.schemas import (
    ApproveOverrideRequest,
    BackfillRequest,
    CreateOverrideRequest,
    GenerateDraftRequest,
    LockRequest,
    RestrictionsModel,
    SubstituteLookupRequest,
    SuggestSubstitutionRequest,
    ValidationRequest,
)
from nutrition_planner.config import parse_coach_ids
from nutrition_planner.domain.errors import NotFoundError
from nutrition_planner.domain.ingredient_catalog import ingredients_for_meal
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions
from nutrition_planner.domain.serialization import (
    ingredient_to_dict,
    override_to_dict,
    payload_to_dict,
    snapshot_to_dict,
)

if TYPE_CHECKING:
    from nutrition_planner.containers import AppContainer
    from nutrition_planner.services.lifecycle import PlanView


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(tags=["plans"], dependencies=[Depends(require_admin)])


@router.get("/clients/{client_id}/plan")
async def get_plan(client_id: str, request: Request) -> dict[str, object]:
    """Return the client's plan state with derived flags."""
    container: AppContainer = request.app.state.container
    return _view_to_dict(container.lifecycle_service.get_view(client_id))


@router.post("/clients/{client_id}/plan/load")
async def load_plan(client_id: str, request: Request) -> dict[str, object]:
    """Load the client's current locked plan."""
    container: AppContainer = request.app.state.container
    return _view_to_dict(container.lifecycle_service.load_plan(client_id))


@router.post("/clients/{client_id}/plan/draft")
async def generate_draft(
    client_id: str, body: GenerateDraftRequest, request: Request
) -> dict[str, object]:
    """Generate or regenerate an in-memory draft."""
    container: AppContainer = request.app.state.container
    view = await container.lifecycle_service.generate_draft(
        client_id,
        body.macro_targets.to_domain(),
        [_restrictions(item) for item in body.restrictions],
    )
    return _view_to_dict(view)


@router.post("/clients/{client_id}/plan/lock")
async def lock_plan(
    client_id: str, body: LockRequest, request: Request
) -> dict[str, object]:
    """Lock the current draft as a new version."""
    container: AppContainer = request.app.state.container
    result = container.lifecycle_service.lock_plan(client_id, body.actor_id)
    return {
        "plan": _view_to_dict(result.view),
        "version_id": result.version.id,
        "version_number": result.version.version_number,
        "payload_hash": result.version.payload_hash,
        "snapshot_written": result.snapshot_written,
    }


@router.post("/clients/{client_id}/plan/discard")
async def discard_draft(client_id: str, request: Request) -> dict[str, object]:
    """Discard the draft and reload the locked plan."""
    container: AppContainer = request.app.state.container
    return _view_to_dict(container.lifecycle_service.discard_draft(client_id))


@router.post("/clients/{client_id}/plan/clear-error")
async def clear_error(client_id: str, request: Request) -> dict[str, object]:
    """Leave the error state."""
    container: AppContainer = request.app.state.container
    return _view_to_dict(container.lifecycle_service.clear_error(client_id))


@router.get("/clients/{client_id}/plan/history")
async def plan_history(client_id: str, request: Request) -> dict[str, object]:
    """Return the client's plan versions, newest first."""
    container: AppContainer = request.app.state.container
    versions = container.lifecycle_service.plan_history(client_id)
    return {
        "versions": [
            {
                "id": item.id,
                "version_number": item.version_number,
                "created_at": item.created_at.isoformat(),
                "note": item.note,
            }
            for item in versions
        ]
    }


@router.get("/clients/{client_id}/plan/share")
async def shareability(client_id: str, request: Request) -> dict[str, object]:
    """Return whether the client's plan can be shared."""
    container: AppContainer = request.app.state.container
    check = container.lifecycle_service.shareability(client_id)
    identifier = None
    if check.identifier is not None:
        identifier = {
            "version_id": check.identifier.version_id,
            "locked_at": check.identifier.locked_at.isoformat(),
            "locked_until": check.identifier.locked_until.isoformat(),
            "payload_hash": check.identifier.payload_hash,
        }
    return {
        "is_shareable": check.is_shareable,
        "reason": check.reason,
        "identifier": identifier,
    }


@router.get("/clients/{client_id}/overrides")
async def client_overrides(client_id: str, request: Request) -> dict[str, object]:
    """Return the client's unarchived overrides, newest first."""
    container: AppContainer = request.app.state.container
    overrides = container.override_service.list_client_overrides(client_id)
    return {"overrides": [override_to_dict(item) for item in overrides]}


@router.post("/overrides", status_code=status.HTTP_201_CREATED)
async def create_override(
    body: CreateOverrideRequest, request: Request
) -> dict[str, object]:
    """Record an override against a locked version."""
    container: AppContainer = request.app.state.container
    override = container.override_service.create_override(body.to_domain())
    return override_to_dict(override)


@router.post("/overrides/suggest")
async def suggest_substitution(
    body: SuggestSubstitutionRequest, request: Request
) -> dict[str, object]:
    """Pick a substitute for a meal ingredient and record it."""
    container: AppContainer = request.app.state.container
    override = container.override_service.suggest_substitution(
        plan_version_id=body.plan_version_id,
        day_number=body.day_number,
        meal_type=body.meal_type,
        ingredient_id=body.ingredient_id,
        restrictions=_restrictions(body.restrictions),
        suggested_by=body.suggested_by,
    )
    return {"override": override_to_dict(override) if override else None}


@router.get("/versions/{version_id}/overrides/pending")
async def pending_overrides(version_id: str, request: Request) -> dict[str, object]:
    """Return pending overrides for a version."""
    container: AppContainer = request.app.state.container
    overrides = container.override_service.fetch_pending_overrides(version_id)
    return {"overrides": [override_to_dict(item) for item in overrides]}


@router.post("/overrides/{override_id}/approve")
async def approve_override(
    override_id: str, body: ApproveOverrideRequest, request: Request
) -> dict[str, object]:
    """Approve a pending override."""
    container: AppContainer = request.app.state.container
    coach_ids = parse_coach_ids(container.settings.coach_ids)
    if coach_ids is not None and body.approver_id not in coach_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    override = container.override_service.approve_override(
        override_id, body.approver_id
    )
    return override_to_dict(override)


@router.post("/overrides/{override_id}/archive")
async def archive_override(override_id: str, request: Request) -> dict[str, object]:
    """Archive a pending override."""
    container: AppContainer = request.app.state.container
    return override_to_dict(container.override_service.archive_override(override_id))


@router.get("/versions/{version_id}/snapshot")
async def get_snapshot(version_id: str, request: Request) -> dict[str, object]:
    """Return the stored snapshot for a version."""
    container: AppContainer = request.app.state.container
    snapshot = container.snapshot_service.fetch_persisted_snapshot(version_id)
    if snapshot is None:
        raise NotFoundError(f"No snapshot stored for version {version_id}")
    return snapshot_to_dict(snapshot)


@router.post("/versions/{version_id}/snapshot/backfill")
async def backfill_snapshot(
    version_id: str, request: Request, body: BackfillRequest | None = None
) -> dict[str, object]:
    """Build and store a missing snapshot."""
    container: AppContainer = request.app.state.container
    snapshot = container.snapshot_service.backfill(
        version_id, body.snapshot_created_at if body else None
    )
    return snapshot_to_dict(snapshot)


@router.post("/validation")
async def validate(body: ValidationRequest, request: Request) -> dict[str, object]:
    """Run the liked-ingredient gate for a client."""
    container: AppContainer = request.app.state.container
    restrictions = [_restrictions(item) for item in body.restrictions]
    result = container.validation_service.validate_for_plan_type(
        body.client_id, restrictions, body.plan_type
    )
    summary = container.validation_service.summarize(body.client_id, restrictions)
    return {"valid": result.valid, "message": result.message, "summary": asdict(summary)}


@router.post("/substitutions")
async def substitutes(
    body: SubstituteLookupRequest, request: Request
) -> dict[str, object]:
    """Return the best substitute and ranked alternatives per ingredient."""
    container: AppContainer = request.app.state.container
    service = container.substitution_service
    restrictions = _restrictions(body.restrictions)
    matrix = service.generate_substitution_matrix(body.ingredient_ids, restrictions)
    results = {}
    for ingredient_id in body.ingredient_ids:
        best = service.find_best_substitute(
            ingredient_id, restrictions, body.preserve_macros
        )
        results[ingredient_id] = {
            "best": asdict(best) if best else None,
            "alternatives": [asdict(rule) for rule in matrix.get(ingredient_id, [])],
        }
    return {"substitutions": results}


@router.get("/ingredients")
async def ingredients(request: Request, meal_type: str | None = None) -> dict[str, object]:
    """Return the reference ingredient table."""
    container: AppContainer = request.app.state.container
    catalog = list(container.ingredients.values())
    if meal_type is not None:
        catalog = ingredients_for_meal(meal_type, catalog)
    items = [ingredient_to_dict(item) for item in catalog]
    return {"ingredients": items}


def _restrictions(model: RestrictionsModel) -> ClientIngredientRestrictions:
    try:
        return model.to_domain()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)
        ) from exc


def _view_to_dict(view: PlanView) -> dict[str, object]:
    lock = view.lock_status
    return {
        "client_id": view.client_id,
        "state": view.state.value,
        "is_draft": view.is_draft,
        "is_locked": view.is_locked,
        "is_blocked": view.is_blocked,
        "can_lock": view.can_lock,
        "can_generate": view.can_generate,
        "lock_status": {
            "is_locked": lock.is_locked,
            "locked_until": lock.locked_until.isoformat() if lock.locked_until else None,
            "days_remaining": lock.days_remaining,
        },
        "permitted_actions": sorted(action.value for action in view.permitted_actions),
        "plan_id": view.plan_id,
        "version_id": view.version_id,
        "version_number": view.version_number,
        "error": view.error,
        "payload": payload_to_dict(view.payload) if view.payload else None,
    }
