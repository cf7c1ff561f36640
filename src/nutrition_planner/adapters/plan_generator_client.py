"""HTTP client for the external weekly plan generator."""

import logging
from dataclasses import dataclass

import httpx

from nutrition_planner.domain.errors import GenerationError
from nutrition_planner.domain.plans import GenerationRequest, MealPlanPayload
from nutrition_planner.domain.serialization import macros_to_dict, payload_from_dict
from nutrition_planner.services.lifecycle import PlanGenerator

_logger = logging.getLogger(__name__)


@dataclass
class HttpxPlanGenerator(PlanGenerator):
    """HTTPX-backed plan generator client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 60.0

    @classmethod
    def create(
        cls, api_key: str, base_url: str, timeout_seconds: float = 60.0
    ) -> "HttpxPlanGenerator":
        """Create a generator client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def generate(self, request: GenerationRequest) -> MealPlanPayload:
        """Request a weekly draft for a client."""
        url = f"{self.base_url}/plans/generate"
        try:
            response = await self.http_client.post(
                url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "clientId": request.client_id,
                    "planType": "weekly",
                    "macroTargets": macros_to_dict(request.macro_targets),
                    "likedIngredients": list(request.liked_ingredients),
                    "blockedIngredients": list(request.blocked_ingredients),
                },
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GenerationError(f"Plan generator request failed: {exc}") from exc

        try:
            data = response.json()
            payload = payload_from_dict(data.get("plan", data))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise GenerationError("Plan generator returned an invalid payload") from exc
        _logger.info(
            "Plan generated: client=%s days=%s",
            request.client_id,
            len(payload.weekly_plan.days),
        )
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
