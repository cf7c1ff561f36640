"""Supabase repository for nutrition plans, versions and snapshots."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from supabase import Client, PostgrestAPIError

from nutrition_planner.domain.errors import PersistenceError
from nutrition_planner.domain.plans import (
    MealPlanPayload,
    PlanVersionRecord,
    PlanVersionSummary,
)
from nutrition_planner.domain.serialization import (
    payload_from_dict,
    payload_to_dict,
    snapshot_from_dict,
    snapshot_to_dict,
)
from nutrition_planner.domain.snapshots import PlanSnapshot
from nutrition_planner.services.lifecycle import PlanRepository
from nutrition_planner.services.snapshots import SnapshotRepository

_VERSION_COLUMNS = (
    "id, plan_id, version_number, created_by, created_at, plan_payload, note, "
    "payload_hash, archived, nutrition_plans(client_id)"
)


@dataclass
class SupabasePlanRepository(PlanRepository, SnapshotRepository):
    """Supabase implementation for plans and write-once snapshots."""

    client: Client

    def get_current_version(self, client_id: str) -> PlanVersionRecord | None:
        """Return the current version of the client's active plan."""
        plan = self._get_active_plan(client_id)
        if plan is None or not plan.get("current_version_id"):
            return None
        return self.get_version(str(plan["current_version_id"]))

    def get_version(self, version_id: str) -> PlanVersionRecord | None:
        """Return a plan version by id."""
        response = _execute(
            self.client.table("plan_versions")
            .select(_VERSION_COLUMNS)
            .eq("id", version_id)
            .limit(1),
            "fetch plan version",
        )
        if not response.data:
            return None
        return _parse_version(response.data[0])

    def latest_version_number(self, client_id: str) -> int | None:
        """Return the highest version number of the client's active plan."""
        plan = self._get_active_plan(client_id)
        if plan is None:
            return None
        response = _execute(
            self.client.table("plan_versions")
            .select("version_number")
            .eq("plan_id", plan["id"])
            .order("version_number", desc=True)
            .limit(1),
            "fetch latest version number",
        )
        if not response.data:
            return None
        return int(response.data[0]["version_number"])

    def save_version(  # noqa: PLR0913
        self,
        client_id: str,
        payload: MealPlanPayload,
        payload_hash: str,
        version_number: int,
        created_by: str,
        note: str,
    ) -> PlanVersionRecord:
        """Insert a version and make it the plan's current version."""
        plan = self._get_active_plan(client_id)
        plan_id = str(plan["id"]) if plan else self._create_plan(client_id, created_by)
        response = _execute(
            self.client.table("plan_versions").insert(
                {
                    "plan_id": plan_id,
                    "version_number": version_number,
                    "created_by": created_by,
                    "plan_payload": payload_to_dict(payload),
                    "payload_hash": payload_hash,
                    "note": note,
                }
            ),
            "create plan version",
        )
        if not response.data:
            raise PersistenceError("Failed to create plan version")
        row = response.data[0]
        update = _execute(
            self.client.table("nutrition_plans")
            .update({"current_version_id": row["id"]})
            .eq("id", plan_id),
            "update current version",
        )
        if not update.data:
            raise PersistenceError("Failed to update current plan version")
        return _parse_version(row, client_id=client_id)

    def list_versions(self, client_id: str) -> list[PlanVersionSummary]:
        """Return unarchived versions, newest first."""
        plan = self._get_active_plan(client_id)
        if plan is None:
            return []
        response = _execute(
            self.client.table("plan_versions")
            .select("id, version_number, created_at, note")
            .eq("plan_id", plan["id"])
            .eq("archived", False)
            .order("version_number", desc=True),
            "list plan versions",
        )
        return [
            PlanVersionSummary(
                id=str(row["id"]),
                version_number=int(row["version_number"]),
                created_at=datetime.fromisoformat(row["created_at"]),
                note=row.get("note"),
            )
            for row in response.data or []
        ]

    def get_snapshot(self, version_id: str) -> PlanSnapshot | None:
        """Return the stored snapshot for a version, if any."""
        response = _execute(
            self.client.table("plan_versions")
            .select("locked_snapshot_json")
            .eq("id", version_id)
            .limit(1),
            "fetch snapshot",
        )
        if not response.data:
            return None
        raw = response.data[0].get("locked_snapshot_json")
        if not raw:
            return None
        return snapshot_from_dict(raw)

    def write_snapshot_if_absent(self, version_id: str, snapshot: PlanSnapshot) -> bool:
        """Conditionally store a snapshot; only rows with a null snapshot match."""
        response = _execute(
            self.client.table("plan_versions")
            .update({"locked_snapshot_json": snapshot_to_dict(snapshot)})
            .eq("id", version_id)
            .is_("locked_snapshot_json", "null"),
            "write snapshot",
        )
        return bool(response.data)

    def _get_active_plan(self, client_id: str) -> dict[str, Any] | None:
        response = _execute(
            self.client.table("nutrition_plans")
            .select("id, current_version_id, created_at")
            .eq("client_id", client_id)
            .eq("status", "active")
            .order("created_at", desc=True)
            .limit(1),
            "fetch active plan",
        )
        if not response.data:
            return None
        return response.data[0]

    def _create_plan(self, client_id: str, created_by: str) -> str:
        response = _execute(
            self.client.table("nutrition_plans").insert(
                {
                    "client_id": client_id,
                    "created_by": created_by,
                    "plan_data": {"type": "nutrition", "version": 1},
                    "status": "active",
                }
            ),
            "create plan",
        )
        if not response.data:
            raise PersistenceError("Failed to create nutrition plan")
        return str(response.data[0]["id"])


def _execute(query: Any, action: str) -> Any:
    try:
        return query.execute()
    except PostgrestAPIError as exc:
        raise PersistenceError(f"Failed to {action}: {exc.message}") from exc


def _parse_version(
    row: dict[str, Any], client_id: str | None = None
) -> PlanVersionRecord:
    plan = row.get("nutrition_plans") or {}
    return PlanVersionRecord(
        id=str(row["id"]),
        plan_id=str(row["plan_id"]),
        client_id=client_id or str(plan.get("client_id", "")),
        version_number=int(row["version_number"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        payload=payload_from_dict(row["plan_payload"]),
        payload_hash=str(row.get("payload_hash", "")),
        created_by=row.get("created_by"),
        note=row.get("note"),
        archived=bool(row.get("archived", False)),
    )
