"""Shared pytest fixtures for the projectgen test suite.

Provides reusable fixtures for:
- A controllable clock for TTL and rate-limit windows
- Architecture and request builders
- A scripted completion client standing in for the LLM service
- A fully wired orchestrator with in-memory cache and rate limiter
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest

from projectgen.assembler import IntegrationLoader
from projectgen.config import Config
from projectgen.generator import ArchitecturePlanner, BatchScheduler, CodeGenerator
from projectgen.llm_client import LLMClient, LLMResponse
from projectgen.models import Architecture, GenerationRequest
from projectgen.orchestrator import GenerationObserver, GenerationOrchestrator
from projectgen.storage import CacheStore, InMemoryRateLimiter


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Architecture & Requests
# ---------------------------------------------------------------------------


def _architecture_dict(pages: int = 1, components: int = 0, api_routes: int = 0,
                       reused: int = 0) -> dict[str, Any]:
    return {
        "template": "saas",
        "pages": [
            {"path": f"/page-{i}", "name": f"Page{i}", "description": f"Page number {i}"}
            for i in range(1, pages + 1)
        ],
        "components": [
            {"name": f"Widget{i}", "description": f"Widget number {i}", "template": "create-new"}
            for i in range(1, components + 1)
        ]
        + [{"name": f"Shared{i}", "template": "reused"} for i in range(1, reused + 1)],
        "routes": [
            {"path": f"/api/endpoint-{i}", "type": "api", "method": "POST"}
            for i in range(1, api_routes + 1)
        ]
        + [{"path": "/", "type": "page"}],
        "integrations": {},
    }


@pytest.fixture
def architecture_dict() -> Callable[..., dict[str, Any]]:
    """Factory for raw architecture JSON (as the planner model would return it)."""
    return _architecture_dict


@pytest.fixture
def make_architecture() -> Callable[..., Architecture]:
    """Factory for validated ``Architecture`` instances."""

    def factory(**kwargs: int) -> Architecture:
        return Architecture.model_validate(_architecture_dict(**kwargs))

    return factory


@pytest.fixture
def make_request() -> Callable[..., GenerationRequest]:
    """Factory for ``GenerationRequest`` with sensible defaults."""

    def factory(**overrides: Any) -> GenerationRequest:
        data: dict[str, Any] = {
            "description": "A landing page and dashboard for a habit tracking app",
            "sessionId": "session-1",
            "projectName": "HabitHero",
        }
        data.update(overrides)
        return GenerationRequest.model_validate(data)

    return factory


# ---------------------------------------------------------------------------
# Mock LLM
# ---------------------------------------------------------------------------


def _files_for(prefix: str, count: int) -> dict[str, Any]:
    return {
        "files": [
            {"path": f"app/{prefix}-{i}/page.tsx", "content": f"export default function P{i}() {{}}"}
            for i in range(1, count + 1)
        ],
        "integrationCode": [],
    }


@pytest.fixture
def llm_ok() -> Callable[[Any], LLMResponse]:
    """Wrap a JSON-able object (or raw text) in a successful ``LLMResponse``."""

    def factory(body: Any, model: str = "test-model") -> LLMResponse:
        text = body if isinstance(body, str) else json.dumps(body)
        return LLMResponse(text=text, model=model, success=True)

    return factory


@pytest.fixture
def batch_files() -> Callable[[str, int], dict[str, Any]]:
    """Factory for a decoded-batch payload with *count* distinct files."""
    return _files_for


@pytest.fixture
def mock_llm() -> LLMClient:
    """An ``LLMClient`` whose ``generate`` is an ``AsyncMock``.

    Usage::

        def test_something(mock_llm, llm_ok):
            mock_llm.generate.side_effect = [llm_ok({...}), llm_ok({...})]
    """
    client = LLMClient(base_url="http://llm.test")
    client.generate = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class RecordingObserver(GenerationObserver):
    """Collects every transition and batch event for assertions."""

    def __init__(self) -> None:
        self.states: list[Any] = []
        self.details: list[dict[str, Any]] = []
        self.batches: list[tuple[int, bool]] = []

    def on_transition(self, state, details):
        self.states.append(state)
        self.details.append(details)

    def on_batch(self, batch, output):
        self.batches.append((batch.index, output is not None))


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def build_orchestrator(mock_llm, clock, recorder, config):
    """Factory for an orchestrator wired to the mock LLM and the fake clock."""

    def factory(
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[InMemoryRateLimiter] = None,
        loader: Optional[IntegrationLoader] = None,
    ) -> GenerationOrchestrator:
        return GenerationOrchestrator(
            config=config,
            cache=cache if cache is not None else CacheStore(clock=clock),
            rate_limiter=rate_limiter if rate_limiter is not None else InMemoryRateLimiter(clock=clock),
            planner=ArchitecturePlanner(mock_llm),
            codegen=CodeGenerator(mock_llm),
            scheduler=BatchScheduler(
                batch_size=config.batch.batch_size,
                token_budget=config.batch.token_budget,
                chars_per_token=config.batch.chars_per_token,
            ),
            loader=loader or IntegrationLoader(),
            observers=[recorder],
        )

    return factory
