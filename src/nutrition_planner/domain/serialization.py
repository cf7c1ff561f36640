"""JSON mapping for plan payloads, overrides and snapshots.

The stored layout uses camelCase keys so persisted payloads and snapshots stay
readable by every consumer of the ``plan_versions`` table.
"""

import hashlib
import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from nutrition_planner.domain.constants import MEAL_TYPES
from nutrition_planner.domain.nutrition import IngredientData, Macros
from nutrition_planner.domain.overrides import PlanOverride
from nutrition_planner.domain.plans import (
    DailyPlan,
    DayPlan,
    MealData,
    MealPlanPayload,
    WeeklyPlan,
)
from nutrition_planner.domain.snapshots import PlanSnapshot, SnapshotMetadata

Json = dict[str, Any]


def macros_to_dict(macros: Macros) -> Json:
    data: Json = {
        "calories": float(macros.calories),
        "protein": float(macros.protein_g),
        "carbs": float(macros.carbs_g),
        "fat": float(macros.fat_g),
    }
    if macros.fiber_g is not None:
        data["fiber"] = float(macros.fiber_g)
    return data


def macros_from_dict(data: Mapping[str, Any]) -> Macros:
    fiber = data.get("fiber")
    return Macros(
        calories=float(data.get("calories", 0.0)),
        protein_g=float(data.get("protein", 0.0)),
        carbs_g=float(data.get("carbs", 0.0)),
        fat_g=float(data.get("fat", 0.0)),
        fiber_g=float(fiber) if fiber is not None else None,
    )


def ingredient_to_dict(ingredient: IngredientData) -> Json:
    return {
        "id": ingredient.id,
        "name": ingredient.name,
        "category": ingredient.category,
        "macros": macros_to_dict(ingredient.macros),
        "typical_serving_size_g": float(ingredient.typical_serving_size_g),
        "tags": list(ingredient.tags),
        "allowedMeals": list(ingredient.allowed_meals),
    }


def ingredient_from_dict(data: Mapping[str, Any]) -> IngredientData:
    return IngredientData(
        id=str(data["id"]),
        name=str(data.get("name", "")),
        category=data.get("category", "misc"),
        macros=macros_from_dict(data.get("macros") or {}),
        typical_serving_size_g=float(data.get("typical_serving_size_g", 100.0)),
        tags=tuple(data.get("tags") or ()),
        allowed_meals=tuple(data.get("allowedMeals") or ()),
    )


def meal_to_dict(meal: MealData) -> Json:
    return {
        "ingredients": [ingredient_to_dict(item) for item in meal.ingredients],
        "recipeText": meal.recipe_text,
        "macros": macros_to_dict(meal.macros),
    }


def meal_from_dict(data: Mapping[str, Any]) -> MealData:
    return MealData(
        ingredients=tuple(
            ingredient_from_dict(item) for item in data.get("ingredients") or ()
        ),
        recipe_text=str(data.get("recipeText", "")),
        macros=macros_from_dict(data.get("macros") or {}),
    )


def weekly_plan_to_dict(weekly_plan: WeeklyPlan) -> Json:
    return {
        "days": [
            {
                "dayNumber": day.day_number,
                "dayName": day.day_name,
                "plan": {
                    "dailyPlan": {
                        meal_type: meal_to_dict(meal)
                        for meal_type, meal in day.plan.meals().items()
                    },
                    "totalMacros": macros_to_dict(day.plan.total_macros),
                    "targetMacros": macros_to_dict(day.plan.target_macros),
                    "variance": macros_to_dict(day.plan.variance),
                },
            }
            for day in weekly_plan.days
        ],
        "weeklyTotalMacros": macros_to_dict(weekly_plan.weekly_total_macros),
        "weeklyTargetMacros": macros_to_dict(weekly_plan.weekly_target_macros),
        "weeklyVariance": macros_to_dict(weekly_plan.weekly_variance),
    }


def weekly_plan_from_dict(data: Mapping[str, Any]) -> WeeklyPlan:
    days = []
    for day in data.get("days") or ():
        plan = day["plan"]
        meals = plan.get("dailyPlan") or {}
        days.append(
            DayPlan(
                day_number=int(day["dayNumber"]),
                day_name=str(day.get("dayName", "")),
                plan=DailyPlan(
                    **{
                        meal_type: meal_from_dict(meals.get(meal_type) or {})
                        for meal_type in MEAL_TYPES
                    },
                    total_macros=macros_from_dict(plan.get("totalMacros") or {}),
                    target_macros=macros_from_dict(plan.get("targetMacros") or {}),
                    variance=macros_from_dict(plan.get("variance") or {}),
                ),
            )
        )
    return WeeklyPlan(
        days=tuple(days),
        weekly_total_macros=macros_from_dict(data.get("weeklyTotalMacros") or {}),
        weekly_target_macros=macros_from_dict(data.get("weeklyTargetMacros") or {}),
        weekly_variance=macros_from_dict(data.get("weeklyVariance") or {}),
    )


def payload_to_dict(payload: MealPlanPayload) -> Json:
    return {
        "type": "nutrition",
        "generatedAt": payload.generated_at.isoformat(),
        "lockedAt": payload.locked_at.isoformat() if payload.locked_at else None,
        "macroTargets": macros_to_dict(payload.macro_targets),
        "weeklyPlan": weekly_plan_to_dict(payload.weekly_plan),
        "likedIngredients": list(payload.liked_ingredients),
    }


def payload_from_dict(data: Mapping[str, Any]) -> MealPlanPayload:
    return MealPlanPayload(
        generated_at=datetime.fromisoformat(str(data["generatedAt"])),
        locked_at=_parse_optional_datetime(data.get("lockedAt")),
        macro_targets=macros_from_dict(data.get("macroTargets") or {}),
        weekly_plan=weekly_plan_from_dict(data.get("weeklyPlan") or {}),
        liked_ingredients=tuple(data.get("likedIngredients") or ()),
    )


def payload_hash(payload: MealPlanPayload) -> str:
    """Return a stable SHA-256 digest of a payload's canonical JSON."""
    canonical = json.dumps(
        payload_to_dict(payload), sort_keys=True, separators=(",", ":")
    )
    return f"sha256-{hashlib.sha256(canonical.encode()).hexdigest()}"


def override_to_dict(override: PlanOverride) -> Json:
    return {
        "id": override.id,
        "planVersionId": override.plan_version_id,
        "clientId": override.client_id,
        "mealType": override.meal_type,
        "originalIngredient": override.original_ingredient,
        "replacementIngredient": override.replacement_ingredient,
        "macroDelta": macros_to_dict(override.macro_delta),
        "withinTolerance": override.within_tolerance,
        "suggestedBy": override.suggested_by,
        "approvedBy": override.approved_by,
        "createdAt": override.created_at.isoformat(),
        "archived": override.archived,
    }


def override_from_dict(data: Mapping[str, Any]) -> PlanOverride:
    return PlanOverride(
        id=str(data["id"]),
        plan_version_id=str(data["planVersionId"]),
        client_id=str(data["clientId"]),
        meal_type=str(data["mealType"]),
        original_ingredient=str(data["originalIngredient"]),
        replacement_ingredient=str(data["replacementIngredient"]),
        macro_delta=macros_from_dict(data.get("macroDelta") or {}),
        within_tolerance=bool(data.get("withinTolerance", False)),
        suggested_by=data.get("suggestedBy", "system"),
        approved_by=data.get("approvedBy"),
        created_at=datetime.fromisoformat(str(data["createdAt"])),
        archived=bool(data.get("archived", False)),
    )


def snapshot_to_dict(snapshot: PlanSnapshot) -> Json:
    metadata = snapshot.metadata
    return {
        "status": snapshot.status,
        "metadata": {
            "planId": metadata.plan_id,
            "planVersionId": metadata.plan_version_id,
            "clientId": metadata.client_id,
            "generatedAt": metadata.generated_at.isoformat(),
            "lockedAt": metadata.locked_at.isoformat(),
            "snapshotCreatedAt": metadata.snapshot_created_at.isoformat(),
            "macroTargets": macros_to_dict(metadata.macro_targets),
            "likedIngredients": list(metadata.liked_ingredients),
            "overridesApplied": [
                override_to_dict(item) for item in metadata.overrides_applied
            ],
        },
        "weeklyPlan": weekly_plan_to_dict(snapshot.weekly_plan),
    }


def snapshot_from_dict(data: Mapping[str, Any]) -> PlanSnapshot:
    metadata = data["metadata"]
    return PlanSnapshot(
        status=data["status"],
        metadata=SnapshotMetadata(
            plan_id=metadata.get("planId"),
            plan_version_id=metadata.get("planVersionId"),
            client_id=metadata.get("clientId"),
            generated_at=datetime.fromisoformat(str(metadata["generatedAt"])),
            locked_at=datetime.fromisoformat(str(metadata["lockedAt"])),
            snapshot_created_at=datetime.fromisoformat(
                str(metadata["snapshotCreatedAt"])
            ),
            macro_targets=macros_from_dict(metadata.get("macroTargets") or {}),
            liked_ingredients=tuple(metadata.get("likedIngredients") or ()),
            overrides_applied=tuple(
                override_from_dict(item)
                for item in metadata.get("overridesApplied") or ()
            ),
        ),
        weekly_plan=weekly_plan_from_dict(data.get("weeklyPlan") or {}),
    )


def _parse_optional_datetime(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
