"""Plan lifecycle service: load, generate, lock and discard per client."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol

from nutrition_planner.domain.constants import LOCK_DURATION_DAYS
from nutrition_planner.domain.errors import (
    GenerationError,
    PersistenceError,
    StateConflictError,
)
from nutrition_planner.domain.lifecycle import (
    PERMITTED_ACTIONS,
    PlanAction,
    PlanContext,
    PlanEvent,
    PlanState,
    ShareabilityCheck,
    check_shareability,
    require_action,
    should_create_new_version,
    transition,
)
from nutrition_planner.domain.nutrition import Macros
from nutrition_planner.domain.plans import (
    GenerationRequest,
    LockStatus,
    MealPlanPayload,
    PlanVersionRecord,
    PlanVersionSummary,
    compute_lock_status,
)
from nutrition_planner.domain.restrictions import ClientIngredientRestrictions
from nutrition_planner.domain.serialization import payload_hash
from nutrition_planner.domain.snapshots import SnapshotInput
from nutrition_planner.services.snapshots import SnapshotService
from nutrition_planner.services.validation import ValidationService

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class PlanRepository(Protocol):
    """Persistence interface for locked plan versions."""

    def get_current_version(self, client_id: str) -> PlanVersionRecord | None:
        """Return the current version of the client's active plan."""

    def get_version(self, version_id: str) -> PlanVersionRecord | None:
        """Return a plan version by id."""

    def latest_version_number(self, client_id: str) -> int | None:
        """Return the highest version number stored for the client."""

    def save_version(  # noqa: PLR0913
        self,
        client_id: str,
        payload: MealPlanPayload,
        payload_hash: str,
        version_number: int,
        created_by: str,
        note: str,
    ) -> PlanVersionRecord:
        """Persist a locked payload as the plan's new current version."""

    def list_versions(self, client_id: str) -> list[PlanVersionSummary]:
        """Return unarchived versions, newest first."""


class PlanGenerator(Protocol):
    """External generator producing weekly plan drafts."""

    async def generate(self, request: GenerationRequest) -> MealPlanPayload:
        """Return a new unlocked plan payload."""


@dataclass(frozen=True)
class PlanView:
    """Read model of a client's plan with every derived flag."""

    client_id: str
    state: PlanState
    is_draft: bool
    is_locked: bool
    is_blocked: bool
    can_lock: bool
    can_generate: bool
    lock_status: LockStatus
    permitted_actions: frozenset[PlanAction]
    payload: MealPlanPayload | None
    plan_id: str | None
    version_id: str | None
    version_number: int | None
    error: str | None


@dataclass(frozen=True)
class LockResult:
    """Outcome of locking a draft."""

    view: PlanView
    version: PlanVersionRecord
    snapshot_written: bool


@dataclass
class PlanLifecycleService:
    """Drive each client's plan through the lifecycle state machine.

    Drafts live only in memory here; they are persisted when locked.
    """

    repository: PlanRepository
    generator: PlanGenerator
    validation: ValidationService
    snapshots: SnapshotService
    lock_duration_days: int = LOCK_DURATION_DAYS
    snapshot_on_lock: bool = True
    clock: Callable[[], datetime] = _utc_now
    _contexts: dict[str, PlanContext] = field(default_factory=dict)

    def context(self, client_id: str) -> PlanContext:
        context = self._contexts.get(client_id)
        if context is None:
            context = PlanContext(
                client_id=client_id, lock_duration_days=self.lock_duration_days
            )
            self._contexts[client_id] = context
        return context

    def get_view(self, client_id: str) -> PlanView:
        return self._view(self.context(client_id))

    def load_plan(self, client_id: str) -> PlanView:
        """Select a client and load their current locked plan, if any.

        Any in-memory draft for the client is dropped.
        """
        if self.context(client_id).is_blocked:
            raise StateConflictError("Plan is in an error state; clear it first")
        fresh = PlanContext(client_id=client_id, lock_duration_days=self.lock_duration_days)
        loading = transition(fresh, PlanEvent.LOAD_STARTED)
        return self._view(self._fetch(loading))

    async def generate_draft(
        self,
        client_id: str,
        macro_targets: Macros,
        restrictions: Iterable[ClientIngredientRestrictions],
    ) -> PlanView:
        """Generate a new draft, replacing any current draft in memory."""
        context = self.context(client_id)
        now = self.clock()
        action = PlanAction.REGENERATE if context.is_draft else PlanAction.GENERATE
        require_action(context.label(now), action)

        restrictions = list(restrictions)
        self.validation.require_valid(client_id, restrictions, "weekly")
        client_restrictions = next(
            (entry for entry in restrictions if entry.client_id == client_id), None
        )
        request = GenerationRequest(
            client_id=client_id,
            macro_targets=macro_targets,
            liked_ingredients=tuple(
                sorted(client_restrictions.preferred_ingredients)
                if client_restrictions
                else ()
            ),
            blocked_ingredients=tuple(
                sorted(client_restrictions.blocked_ingredients)
                if client_restrictions
                else ()
            ),
        )
        try:
            draft = await self.generator.generate(request)
        except GenerationError as exc:
            _logger.exception("Plan generation failed: client=%s", client_id)
            self._contexts[client_id] = transition(
                context,
                PlanEvent.FAILED,
                error=str(exc),
                retained_draft=context.payload if context.is_draft else None,
            )
            raise

        draft = replace(draft, locked_at=None)
        self._contexts[client_id] = transition(
            context,
            PlanEvent.GENERATED,
            payload=draft,
            payload_hash=None,
            error=None,
            retained_draft=None,
        )
        _logger.info("Draft generated: client=%s", client_id)
        return self.get_view(client_id)

    def lock_plan(self, client_id: str, actor_id: str) -> LockResult:
        """Persist the current draft as a new locked version.

        On failure the plan moves to ERROR and the draft is kept for restore.
        """
        context = self.context(client_id)
        if not context.can_lock or context.payload is None:
            raise StateConflictError(
                f"Cannot lock while plan is {context.state.value}"
            )
        now = self.clock()
        require_action(context.label(now), PlanAction.LOCK)
        draft = context.payload
        saving = transition(context, PlanEvent.LOCK_STARTED)
        self._contexts[client_id] = saving

        locked_payload = replace(draft, locked_at=now)
        digest = payload_hash(locked_payload)
        try:
            self._ensure_no_active_lock(client_id, now)
            decision = should_create_new_version(
                PlanAction.LOCK,
                PlanState.DRAFT,
                self.repository.latest_version_number(client_id),
            )
            version_number = decision.next_version_number or 1
            record = self.repository.save_version(
                client_id=client_id,
                payload=locked_payload,
                payload_hash=digest,
                version_number=version_number,
                created_by=actor_id,
                note=f"Weekly meal plan v{version_number}",
            )
        except (PersistenceError, StateConflictError) as exc:
            _logger.exception("Plan lock failed: client=%s", client_id)
            self._contexts[client_id] = transition(
                saving, PlanEvent.FAILED, error=str(exc), retained_draft=draft
            )
            raise

        self._contexts[client_id] = transition(
            saving,
            PlanEvent.LOCK_SUCCEEDED,
            payload=record.payload,
            plan_id=record.plan_id,
            version_id=record.id,
            version_number=record.version_number,
            payload_hash=record.payload_hash,
            error=None,
            retained_draft=None,
        )
        _logger.info(
            "Plan locked: client=%s version=%s number=%s actor=%s",
            client_id,
            record.id,
            record.version_number,
            actor_id,
        )
        return LockResult(
            view=self.get_view(client_id),
            version=record,
            snapshot_written=self._snapshot_on_lock(record),
        )

    def discard_draft(self, client_id: str) -> PlanView:
        """Throw away the draft and reload the last locked plan."""
        context = self.context(client_id)
        require_action(context.label(self.clock()), PlanAction.DISCARD)
        loading = transition(
            context, PlanEvent.DISCARDED, payload=None, payload_hash=None
        )
        _logger.info("Draft discarded: client=%s", client_id)
        return self._view(self._fetch(loading))

    def clear_error(self, client_id: str) -> PlanView:
        """Leave ERROR: restore a retained draft, or reload from storage."""
        context = self.context(client_id)
        if not context.is_blocked:
            raise StateConflictError("Plan is not in an error state")
        if context.retained_draft is not None:
            restored = transition(
                context,
                PlanEvent.DRAFT_RESTORED,
                payload=context.retained_draft,
                payload_hash=None,
                error=None,
                retained_draft=None,
            )
            self._contexts[client_id] = restored
            return self._view(restored)
        loading = transition(context, PlanEvent.ERROR_CLEARED, error=None)
        return self._view(self._fetch(loading))

    def clear_client(self, client_id: str) -> None:
        """Forget a client's in-memory state, discarding any draft."""
        self._contexts.pop(client_id, None)

    def plan_history(self, client_id: str) -> list[PlanVersionSummary]:
        return self.repository.list_versions(client_id)

    def shareability(self, client_id: str) -> ShareabilityCheck:
        return check_shareability(self.context(client_id), self.clock())

    def _fetch(self, loading: PlanContext) -> PlanContext:
        client_id = loading.client_id
        self._contexts[client_id] = loading
        try:
            record = self.repository.get_current_version(client_id)
        except PersistenceError as exc:
            _logger.exception("Plan load failed: client=%s", client_id)
            self._contexts[client_id] = transition(
                loading, PlanEvent.FAILED, error=str(exc)
            )
            raise
        if record is None or record.payload.locked_at is None:
            loaded = transition(
                loading,
                PlanEvent.LOAD_NOT_FOUND,
                payload=None,
                plan_id=None,
                version_id=None,
                version_number=None,
                payload_hash=None,
            )
        else:
            loaded = transition(
                loading,
                PlanEvent.LOAD_FOUND,
                payload=record.payload,
                plan_id=record.plan_id,
                version_id=record.id,
                version_number=record.version_number,
                payload_hash=record.payload_hash,
            )
        self._contexts[client_id] = loaded
        _logger.info("Plan loaded: client=%s state=%s", client_id, loaded.state)
        return loaded

    def _ensure_no_active_lock(self, client_id: str, now: datetime) -> None:
        current = self.repository.get_current_version(client_id)
        if current is None:
            return
        status = compute_lock_status(
            current.payload.locked_at, now, self.lock_duration_days
        )
        if status.is_locked:
            raise StateConflictError(
                f"Plan is locked for {status.days_remaining} more day(s)"
            )

    def _snapshot_on_lock(self, record: PlanVersionRecord) -> bool:
        if not self.snapshot_on_lock:
            return False
        snapshot = self.snapshots.build(
            SnapshotInput(
                status="LOCKED",
                payload=record.payload,
                plan_id=record.plan_id,
                plan_version_id=record.id,
                client_id=record.client_id,
            )
        )
        try:
            return self.snapshots.persist_snapshot(record.id, snapshot)
        except PersistenceError:
            _logger.exception(
                "Snapshot write failed after lock; backfill later: version=%s",
                record.id,
            )
            return False

    def _view(self, context: PlanContext) -> PlanView:
        now = self.clock()
        label = context.label(now)
        return PlanView(
            client_id=context.client_id,
            state=label,
            is_draft=context.is_draft,
            is_locked=context.is_locked(now),
            is_blocked=context.is_blocked,
            can_lock=context.can_lock,
            can_generate=context.can_generate(now),
            lock_status=context.lock_status(now),
            permitted_actions=PERMITTED_ACTIONS.get(label, frozenset()),
            payload=context.payload,
            plan_id=context.plan_id,
            version_id=context.version_id,
            version_number=context.version_number,
            error=context.error,
        )
