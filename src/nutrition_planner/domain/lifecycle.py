"""Plan lifecycle state machine.

A client's active plan is always in exactly one ``PlanState``. Transitions are
driven by ``PlanEvent`` values through an explicit table; every read-only flag
(draft, locked, blocked, can_lock) is derived from the current tag and, for the
lock window, from the clock reading passed in by the caller. Nothing here
performs I/O or reads the wall clock.

EXPIRED is never stored as a tag: a persisted plan whose lock window has
passed stays LOCKED and only its ``label`` reads EXPIRED.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType

from nutrition_planner.domain.constants import LOCK_DURATION_DAYS
from nutrition_planner.domain.errors import StateConflictError
from nutrition_planner.domain.plans import (
    UNLOCKED,
    LockStatus,
    MealPlanPayload,
    calculate_lock_expiry,
    compute_lock_status,
)


class PlanState(StrEnum):
    """Lifecycle tag for a client's active plan."""

    EMPTY = "EMPTY"
    DRAFT = "DRAFT"
    LOCKED = "LOCKED"
    EXPIRED = "EXPIRED"
    LOADING = "LOADING"
    SAVING = "SAVING"
    ERROR = "ERROR"


class PlanEvent(StrEnum):
    """Inputs that move the state machine."""

    LOAD_STARTED = "LOAD_STARTED"
    LOAD_FOUND = "LOAD_FOUND"
    LOAD_NOT_FOUND = "LOAD_NOT_FOUND"
    GENERATED = "GENERATED"
    LOCK_STARTED = "LOCK_STARTED"
    LOCK_SUCCEEDED = "LOCK_SUCCEEDED"
    DISCARDED = "DISCARDED"
    FAILED = "FAILED"
    ERROR_CLEARED = "ERROR_CLEARED"
    DRAFT_RESTORED = "DRAFT_RESTORED"


class PlanAction(StrEnum):
    """User-facing actions gated by the lifecycle label."""

    GENERATE = "GENERATE"
    REGENERATE = "REGENERATE"
    LOCK = "LOCK"
    DISCARD = "DISCARD"
    VIEW = "VIEW"
    PRINT = "PRINT"
    SHARE = "SHARE"
    SWAP_MEAL = "SWAP_MEAL"
    CREATE_VERSION = "CREATE_VERSION"


_S = PlanState
_E = PlanEvent

TRANSITIONS: Mapping[PlanState, Mapping[PlanEvent, PlanState]] = MappingProxyType(
    {
        _S.EMPTY: {
            _E.LOAD_STARTED: _S.LOADING,
            _E.GENERATED: _S.DRAFT,
            _E.FAILED: _S.ERROR,
        },
        _S.LOADING: {
            _E.LOAD_FOUND: _S.LOCKED,
            _E.LOAD_NOT_FOUND: _S.EMPTY,
            _E.FAILED: _S.ERROR,
        },
        _S.DRAFT: {
            _E.GENERATED: _S.DRAFT,
            _E.LOCK_STARTED: _S.SAVING,
            _E.DISCARDED: _S.LOADING,
            _E.FAILED: _S.ERROR,
        },
        _S.SAVING: {
            _E.LOCK_SUCCEEDED: _S.LOCKED,
            _E.FAILED: _S.ERROR,
        },
        _S.LOCKED: {
            _E.LOAD_STARTED: _S.LOADING,
            _E.GENERATED: _S.DRAFT,
            _E.FAILED: _S.ERROR,
        },
        _S.ERROR: {
            _E.ERROR_CLEARED: _S.LOADING,
            _E.DRAFT_RESTORED: _S.DRAFT,
            _E.FAILED: _S.ERROR,
        },
        _S.EXPIRED: {},
    }
)

PERMITTED_ACTIONS: Mapping[PlanState, frozenset[PlanAction]] = MappingProxyType(
    {
        _S.EMPTY: frozenset({PlanAction.GENERATE}),
        _S.DRAFT: frozenset(
            {
                PlanAction.VIEW,
                PlanAction.REGENERATE,
                PlanAction.LOCK,
                PlanAction.DISCARD,
                PlanAction.SWAP_MEAL,
            }
        ),
        _S.LOCKED: frozenset(
            {PlanAction.VIEW, PlanAction.PRINT, PlanAction.SHARE, PlanAction.SWAP_MEAL}
        ),
        _S.EXPIRED: frozenset(
            {
                PlanAction.VIEW,
                PlanAction.PRINT,
                PlanAction.SHARE,
                PlanAction.GENERATE,
                PlanAction.CREATE_VERSION,
            }
        ),
    }
)

FORBIDDEN_WHEN_LOCKED = frozenset({PlanAction.REGENERATE, PlanAction.DISCARD})


@dataclass(frozen=True)
class PlanContext:
    """Current lifecycle state and data of one client's active plan."""

    client_id: str
    state: PlanState = PlanState.EMPTY
    payload: MealPlanPayload | None = None
    plan_id: str | None = None
    version_id: str | None = None
    version_number: int | None = None
    payload_hash: str | None = None
    error: str | None = None
    retained_draft: MealPlanPayload | None = None
    lock_duration_days: int = LOCK_DURATION_DAYS

    @property
    def is_draft(self) -> bool:
        return self.state is PlanState.DRAFT

    @property
    def is_blocked(self) -> bool:
        return self.state is PlanState.ERROR

    @property
    def can_lock(self) -> bool:
        return self.is_draft and not self.is_blocked and self.payload is not None

    @property
    def locked_at(self) -> datetime | None:
        if self.state is not PlanState.LOCKED or self.payload is None:
            return None
        return self.payload.locked_at

    def lock_status(self, now: datetime) -> LockStatus:
        """Evaluate the lock window at ``now``."""
        if self.locked_at is None:
            return UNLOCKED
        return compute_lock_status(self.locked_at, now, self.lock_duration_days)

    def is_locked(self, now: datetime) -> bool:
        return self.lock_status(now).is_locked

    def label(self, now: datetime) -> PlanState:
        """Return the tag, reading EXPIRED for a LOCKED plan past its window."""
        if self.state is PlanState.LOCKED and not self.is_locked(now):
            return PlanState.EXPIRED
        return self.state

    def can_generate(self, now: datetime) -> bool:
        if self.is_blocked:
            return False
        if self.state in (PlanState.EMPTY, PlanState.DRAFT):
            return True
        return self.state is PlanState.LOCKED and not self.is_locked(now)


@dataclass(frozen=True)
class VersioningDecision:
    """Whether an action creates a new plan version."""

    should_create_version: bool
    reason: str
    next_version_number: int | None


@dataclass(frozen=True)
class ShareableIdentifier:
    """Minimum identifiers for sharing a locked plan version."""

    version_id: str
    locked_at: datetime
    locked_until: datetime
    payload_hash: str


@dataclass(frozen=True)
class ShareabilityCheck:
    """Result of checking whether a plan can be shared."""

    is_shareable: bool
    reason: str | None
    identifier: ShareableIdentifier | None


def transition(context: PlanContext, event: PlanEvent, **changes: object) -> PlanContext:
    """Apply an event, returning the next context or raising on an illegal move."""
    target = TRANSITIONS[context.state].get(event)
    if target is None:
        raise StateConflictError(
            f"Cannot apply {event.value} while plan is {context.state.value}"
        )
    return replace(context, state=target, **changes)


def can_transition(source: PlanState, target: PlanState) -> bool:
    """Return True when some event moves ``source`` to ``target``."""
    return target in TRANSITIONS[source].values()


def is_action_permitted(label: PlanState, action: PlanAction) -> bool:
    """Return True when the action is allowed for a lifecycle label."""
    return action in PERMITTED_ACTIONS.get(label, frozenset())


def require_action(label: PlanState, action: PlanAction) -> None:
    """Raise when an action is not permitted or would break immutability."""
    if label is PlanState.LOCKED and action in FORBIDDEN_WHEN_LOCKED:
        raise StateConflictError(
            f"Action '{action.value}' is forbidden on locked plans"
        )
    if not is_action_permitted(label, action):
        raise StateConflictError(
            f"Action '{action.value}' is not permitted while plan is {label.value}"
        )


def should_create_new_version(
    action: PlanAction, label: PlanState, current_version_number: int | None
) -> VersioningDecision:
    """Decide whether an action yields a new immutable version."""
    next_number = (current_version_number or 0) + 1
    if action is PlanAction.LOCK and label is PlanState.DRAFT:
        return VersioningDecision(
            should_create_version=True,
            reason="Locking a draft creates a new immutable version",
            next_version_number=next_number,
        )
    if action is PlanAction.CREATE_VERSION and label is PlanState.EXPIRED:
        return VersioningDecision(
            should_create_version=True,
            reason="Creating version after expiry",
            next_version_number=next_number,
        )
    return VersioningDecision(
        should_create_version=False,
        reason="Action does not require versioning",
        next_version_number=None,
    )


def check_shareability(context: PlanContext, now: datetime) -> ShareabilityCheck:
    """Check that a plan is a persisted, locked or expired version."""
    if not context.version_id:
        return ShareabilityCheck(False, "Plan must be locked before sharing", None)
    if context.label(now) not in (PlanState.LOCKED, PlanState.EXPIRED):
        return ShareabilityCheck(
            False, "Only locked or expired plans can be shared", None
        )
    locked_at = context.locked_at
    if locked_at is None or not context.payload_hash:
        return ShareabilityCheck(
            False, "Plan is missing required metadata for sharing", None
        )
    return ShareabilityCheck(
        is_shareable=True,
        reason=None,
        identifier=ShareableIdentifier(
            version_id=context.version_id,
            locked_at=locked_at,
            locked_until=calculate_lock_expiry(locked_at, context.lock_duration_days),
            payload_hash=context.payload_hash,
        ),
    )
