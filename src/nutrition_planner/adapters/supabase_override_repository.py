"""Supabase repository for plan overrides."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from supabase import Client, PostgrestAPIError

from nutrition_planner.domain.errors import PersistenceError
from nutrition_planner.domain.overrides import CreateOverrideParams, PlanOverride
from nutrition_planner.domain.serialization import macros_from_dict, macros_to_dict
from nutrition_planner.services.overrides import OverrideRepository

_COLUMNS = (
    "id, plan_version_id, client_id, meal_type, original_ingredient, "
    "replacement_ingredient, macro_delta, within_tolerance, suggested_by, "
    "approved_by, created_at, archived"
)


@dataclass
class SupabaseOverrideRepository(OverrideRepository):
    """Supabase implementation for the override ledger."""

    client: Client

    def create_override(self, params: CreateOverrideParams) -> PlanOverride:
        """Insert an override row and return it."""
        macro_delta = macros_to_dict(params.macro_delta)
        macro_delta.pop("fiber", None)
        response = self._execute(
            self.client.table("plan_overrides").insert(
                {
                    "plan_version_id": params.plan_version_id,
                    "client_id": params.client_id,
                    "meal_type": params.meal_type,
                    "original_ingredient": params.original_ingredient,
                    "replacement_ingredient": params.replacement_ingredient,
                    "macro_delta": macro_delta,
                    "within_tolerance": params.within_tolerance,
                    "suggested_by": params.suggested_by,
                }
            )
        )
        if not response.data:
            raise PersistenceError("Failed to create override")
        return _parse_override(response.data[0])

    def get_override(self, override_id: str) -> PlanOverride | None:
        """Return an override by id."""
        response = self._execute(
            self.client.table("plan_overrides")
            .select(_COLUMNS)
            .eq("id", override_id)
            .limit(1)
        )
        if not response.data:
            return None
        return _parse_override(response.data[0])

    def list_pending(self, plan_version_id: str) -> list[PlanOverride]:
        """Return unapproved, unarchived overrides for a version."""
        response = self._execute(
            self.client.table("plan_overrides")
            .select(_COLUMNS)
            .eq("plan_version_id", plan_version_id)
            .is_("approved_by", "null")
            .eq("archived", False)
            .order("created_at", desc=True)
        )
        return [_parse_override(row) for row in response.data or []]

    def list_for_client(self, client_id: str) -> list[PlanOverride]:
        """Return unarchived overrides for a client, newest first."""
        response = self._execute(
            self.client.table("plan_overrides")
            .select(_COLUMNS)
            .eq("client_id", client_id)
            .eq("archived", False)
            .order("created_at", desc=True)
        )
        return [_parse_override(row) for row in response.data or []]

    def set_approved(self, override_id: str, approver_id: str) -> None:
        """Record the approver of an override."""
        response = self._execute(
            self.client.table("plan_overrides")
            .update({"approved_by": approver_id})
            .eq("id", override_id)
        )
        if not response.data:
            raise PersistenceError("Failed to approve override")

    def set_archived(self, override_id: str) -> None:
        """Archive an override."""
        response = self._execute(
            self.client.table("plan_overrides")
            .update({"archived": True})
            .eq("id", override_id)
        )
        if not response.data:
            raise PersistenceError("Failed to archive override")

    @staticmethod
    def _execute(query: Any) -> Any:
        try:
            return query.execute()
        except PostgrestAPIError as exc:
            raise PersistenceError(f"Override query failed: {exc.message}") from exc


def _parse_override(row: dict[str, Any]) -> PlanOverride:
    return PlanOverride(
        id=str(row["id"]),
        plan_version_id=str(row["plan_version_id"]),
        client_id=str(row["client_id"]),
        meal_type=str(row["meal_type"]),
        original_ingredient=str(row["original_ingredient"]),
        replacement_ingredient=str(row["replacement_ingredient"]),
        macro_delta=macros_from_dict(row.get("macro_delta") or {}),
        within_tolerance=bool(row.get("within_tolerance", False)),
        suggested_by=row.get("suggested_by", "system"),
        approved_by=row.get("approved_by"),
        created_at=datetime.fromisoformat(row["created_at"]),
        archived=bool(row.get("archived", False)),
    )
