"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from nutrition_planner.adapters.plan_generator_client import HttpxPlanGenerator
from nutrition_planner.domain.errors import GenerationError
from nutrition_planner.domain.plans import GenerationRequest
from nutrition_planner.domain.serialization import payload_to_dict
from tests.conftest import macros, make_payload

REQUEST = GenerationRequest(
    client_id="client-1",
    macro_targets=macros(2000, 150, 200, 70),
    liked_ingredients=("eggs", "oats"),
    blocked_ingredients=("tofu",),
)


def _generator(handler) -> HttpxPlanGenerator:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxPlanGenerator(
        api_key="generator-key",
        base_url="https://generator.example.com",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_plan_generator_posts_request_and_parses_plan() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"plan": payload_to_dict(make_payload())})

    generator = _generator(handler)
    payload = asyncio.run(generator.generate(REQUEST))
    asyncio.run(generator.close())

    assert payload == make_payload()
    assert seen["path"] == "/plans/generate"
    assert seen["auth"] == "Bearer generator-key"
    body = seen["body"]
    assert isinstance(body, dict)
    assert body["clientId"] == "client-1"
    assert body["planType"] == "weekly"
    assert body["macroTargets"]["protein"] == 150
    assert body["blockedIngredients"] == ["tofu"]


def test_plan_generator_accepts_bare_payload() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload_to_dict(make_payload()))

    payload = asyncio.run(_generator(handler).generate(REQUEST))

    assert payload.liked_ingredients == ("chicken-breast",)


def test_plan_generator_wraps_http_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "busy"})

    with pytest.raises(GenerationError, match="request failed"):
        asyncio.run(_generator(handler).generate(REQUEST))


def test_plan_generator_rejects_invalid_payload() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"plan": {"weeklyPlan": {}}})

    with pytest.raises(GenerationError, match="invalid payload"):
        asyncio.run(_generator(handler).generate(REQUEST))
