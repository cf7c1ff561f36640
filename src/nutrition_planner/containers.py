"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from supabase import create_client

from nutrition_planner.adapters.plan_generator_client import HttpxPlanGenerator
from nutrition_planner.adapters.supabase_override_repository import (
    SupabaseOverrideRepository,
)
from nutrition_planner.adapters.supabase_plan_repository import SupabasePlanRepository
from nutrition_planner.config import Settings
from nutrition_planner.domain.ingredient_catalog import build_ingredient_lookup
from nutrition_planner.domain.nutrition import IngredientData
from nutrition_planner.services.lifecycle import PlanLifecycleService
from nutrition_planner.services.overrides import OverrideService
from nutrition_planner.services.snapshots import SnapshotService
from nutrition_planner.services.substitution import SubstitutionService
from nutrition_planner.services.validation import ValidationService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    ingredients: Mapping[str, IngredientData]
    validation_service: ValidationService
    substitution_service: SubstitutionService
    snapshot_service: SnapshotService
    override_service: OverrideService
    lifecycle_service: PlanLifecycleService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    plan_repository = SupabasePlanRepository(supabase_client)
    override_repository = SupabaseOverrideRepository(supabase_client)
    generator = HttpxPlanGenerator.create(
        api_key=resolved_settings.generator_api_key,
        base_url=resolved_settings.generator_base_url,
        timeout_seconds=resolved_settings.generator_timeout_seconds,
    )
    ingredients = build_ingredient_lookup()
    validation_service = ValidationService(
        daily_minimum=resolved_settings.daily_min_liked_ingredients,
        weekly_minimum=resolved_settings.min_liked_ingredients,
    )
    substitution_service = SubstitutionService(ingredients)
    snapshot_service = SnapshotService(
        repository=plan_repository,
        overrides=override_repository,
        ingredients=ingredients,
        lock_duration_days=resolved_settings.lock_duration_days,
    )
    override_service = OverrideService(
        repository=override_repository,
        versions=plan_repository,
        substitution=substitution_service,
        lock_duration_days=resolved_settings.lock_duration_days,
    )
    lifecycle_service = PlanLifecycleService(
        repository=plan_repository,
        generator=generator,
        validation=validation_service,
        snapshots=snapshot_service,
        lock_duration_days=resolved_settings.lock_duration_days,
        snapshot_on_lock=resolved_settings.snapshot_on_lock,
    )

    async def close_resources() -> None:
        await generator.close()

    return AppContainer(
        settings=resolved_settings,
        ingredients=ingredients,
        validation_service=validation_service,
        substitution_service=substitution_service,
        snapshot_service=snapshot_service,
        override_service=override_service,
        lifecycle_service=lifecycle_service,
        close_resources=close_resources,
    )
