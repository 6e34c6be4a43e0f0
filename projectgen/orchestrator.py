"""Generation orchestrator.

Drives one request through the pipeline state machine::

    VALIDATE_INPUT -> CACHE_LOOKUP -> RETURN_CACHED
                                   -> RATE_LIMIT_CHECK -> PLAN_ARCHITECTURE
                                      -> SCHEDULE_BATCHES -> GENERATE_BATCHES
                                      -> MERGE_FILES -> LOAD_INTEGRATIONS
                                      -> ASSEMBLE_MANIFEST -> WRITE_CACHE
                                      -> RETURN_RESULT

Cheap checks (validation, cache, quota) run before any model cost. Every
generation-phase failure is all-or-nothing: no partial file set is returned.
State transitions are reported to observers; the decision logic itself does
not log.

Usage::

    orchestrator = GenerationOrchestrator.from_config(Config.from_env())
    status, body = await orchestrator.handle(payload)
"""

from __future__ import annotations

import asyncio
import time
import traceback
from collections.abc import Awaitable, Sequence
from datetime import datetime, timezone
from enum import Enum
from functools import reduce
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from projectgen.assembler import (
    IntegrationLoader,
    apply_branding,
    assemble_manifest,
    merge_into,
)
from projectgen.config import Config
from projectgen.errors import (
    ErrorKind,
    GenerationCancelled,
    GenerationError,
    InputValidationError,
    PlanningError,
    RateLimitedError,
)
from projectgen.generator import ArchitecturePlanner, BatchScheduler, CodeGenerator
from projectgen.llm_client import LLMClient
from projectgen.models import (
    Architecture,
    Batch,
    BatchOutput,
    GenerationRequest,
    GenerationResult,
    ProjectConfig,
)
from projectgen.storage import CacheStore, RateLimiter, make_cache_key, rate_limiter_from_config
from projectgen.templates import TemplateRenderer
from projectgen.utils import (
    console,
    format_duration,
    print_error,
    print_state_header,
    print_success,
    print_summary_table,
    print_warning,
)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


class PipelineState(str, Enum):
    VALIDATE_INPUT = "VALIDATE_INPUT"
    CACHE_LOOKUP = "CACHE_LOOKUP"
    RETURN_CACHED = "RETURN_CACHED"
    RATE_LIMIT_CHECK = "RATE_LIMIT_CHECK"
    PLAN_ARCHITECTURE = "PLAN_ARCHITECTURE"
    SCHEDULE_BATCHES = "SCHEDULE_BATCHES"
    GENERATE_BATCHES = "GENERATE_BATCHES"
    MERGE_FILES = "MERGE_FILES"
    LOAD_INTEGRATIONS = "LOAD_INTEGRATIONS"
    ASSEMBLE_MANIFEST = "ASSEMBLE_MANIFEST"
    WRITE_CACHE = "WRITE_CACHE"
    RETURN_RESULT = "RETURN_RESULT"
    # Terminal failures
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    PLANNING_FAILED = "PLANNING_FAILED"
    GENERATION_FAILED = "GENERATION_FAILED"


FAILURE_STATES = frozenset(
    {
        PipelineState.VALIDATION_FAILED,
        PipelineState.RATE_LIMITED,
        PipelineState.PLANNING_FAILED,
        PipelineState.GENERATION_FAILED,
    }
)

_FAILURE_STATE_BY_KIND: dict[ErrorKind, PipelineState] = {
    ErrorKind.VALIDATION: PipelineState.VALIDATION_FAILED,
    ErrorKind.RATE_LIMITED: PipelineState.RATE_LIMITED,
    ErrorKind.PLANNING: PipelineState.PLANNING_FAILED,
}


def failure_state_for(error: GenerationError) -> PipelineState:
    """Terminal state for *error*. Timeouts and cancellation end in GENERATION_FAILED."""
    return _FAILURE_STATE_BY_KIND.get(error.kind, PipelineState.GENERATION_FAILED)


# ---------------------------------------------------------------------------
# Observers
# ---------------------------------------------------------------------------


class GenerationObserver:
    """Receives pipeline events. Override the hooks you need."""

    def on_transition(self, state: PipelineState, details: dict[str, Any]) -> None:
        pass

    def on_batch(self, batch: Batch, output: Optional[BatchOutput]) -> None:
        """Called with ``output=None`` when a batch starts, then with its output."""


class ConsoleReporter(GenerationObserver):
    """Renders pipeline events to the shared Rich console."""

    _HEADED = {
        PipelineState.PLAN_ARCHITECTURE,
        PipelineState.GENERATE_BATCHES,
        PipelineState.MERGE_FILES,
    }

    def on_transition(self, state: PipelineState, details: dict[str, Any]) -> None:
        if state in FAILURE_STATES:
            print_error(f"{state.value}: {details.get('message', '')}")
            if "traceback" in details:
                console.print(f"[dim]{details['traceback']}[/dim]")
            return
        if state == PipelineState.RETURN_CACHED:
            print_success(f"Cache hit for {details.get('key')}")
            return
        if state == PipelineState.RETURN_RESULT:
            print_summary_table(
                {
                    "Files": str(details.get("files", 0)),
                    "Integration files": str(details.get("integration_files", 0)),
                    "Batches": str(details.get("batches", 0)),
                    "Warnings": str(details.get("warnings", 0)),
                    "Duration": format_duration(details.get("elapsed", 0.0)),
                },
                title="Generation Summary",
            )
            return
        if "warning" in details:
            print_warning(f"  {details['warning']}")
            return
        if state in self._HEADED:
            print_state_header(state.value)
        extra = ", ".join(f"{k}={v}" for k, v in details.items())
        console.print(f"  [cyan]{state.value}[/cyan] {extra}".rstrip())

    def on_batch(self, batch: Batch, output: Optional[BatchOutput]) -> None:
        if output is None:
            console.print(
                f"  Generating batch {batch.index}/{batch.total}: {batch.summary()}"
            )
        else:
            console.print(
                f"  [green]+[/green] Batch {batch.index}/{batch.total} produced "
                f"{len(output.files)} files"
            )


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


async def race_cancel(
    awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event], what: str
) -> T:
    """Await *awaitable*, abandoning it as soon as *cancel_event* fires.

    Raises:
        GenerationCancelled: The event was set before or during the call.
    """
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if cancel_event.is_set():
        task.cancel()
        raise GenerationCancelled(f"Cancelled before {what}")

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise GenerationCancelled(f"Cancelled during {what}")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class GenerationOrchestrator:
    """Runs generation requests end to end.

    Orchestrators may run concurrently; they share only the cache and the
    rate limiter, both of which tolerate concurrent access.

    Attributes:
        config: Global configuration.
        cache: Shared result cache.
        rate_limiter: Shared per-session quota.
        observers: Receivers of state-transition and batch events.
    """

    def __init__(
        self,
        config: Config,
        cache: CacheStore,
        rate_limiter: RateLimiter,
        planner: ArchitecturePlanner,
        codegen: CodeGenerator,
        scheduler: BatchScheduler,
        loader: IntegrationLoader,
        renderer: Optional[TemplateRenderer] = None,
        observers: Sequence[GenerationObserver] = (),
    ) -> None:
        self.config = config
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.planner = planner
        self.codegen = codegen
        self.scheduler = scheduler
        self.loader = loader
        self.renderer = renderer or TemplateRenderer()
        self.observers = list(observers)

    @classmethod
    def from_config(
        cls,
        config: Config,
        observers: Optional[Sequence[GenerationObserver]] = None,
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> "GenerationOrchestrator":
        """Wire up every collaborator from *config*.

        Pass an existing *cache* or *rate_limiter* to share them between
        orchestrators.
        """
        llm = LLMClient(
            base_url=config.llm.url,
            timeout=config.llm.timeout,
            temperature=config.llm.temperature,
        )
        renderer = TemplateRenderer()
        return cls(
            config=config,
            cache=cache or CacheStore.from_config(config.cache),
            rate_limiter=rate_limiter or rate_limiter_from_config(config.rate_limit),
            planner=ArchitecturePlanner(llm, renderer, max_tokens=config.batch.token_budget),
            codegen=CodeGenerator(llm, renderer, max_tokens=config.batch.token_budget),
            scheduler=BatchScheduler(
                batch_size=config.batch.batch_size,
                token_budget=config.batch.token_budget,
                chars_per_token=config.batch.chars_per_token,
            ),
            loader=IntegrationLoader(templates_dir=config.generation.templates_dir),
            renderer=renderer,
            observers=[ConsoleReporter()] if observers is None else observers,
        )

    # ------------------------------------------------------------------
    # Observer plumbing
    # ------------------------------------------------------------------

    def _emit(self, state: PipelineState, **details: Any) -> None:
        for observer in self.observers:
            observer.on_transition(state, details)

    def _emit_batch(self, batch: Batch, output: Optional[BatchOutput]) -> None:
        for observer in self.observers:
            observer.on_batch(batch, output)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle(
        self, payload: dict[str, Any], cancel_event: Optional[asyncio.Event] = None
    ) -> tuple[int, dict[str, Any]]:
        """Map an inbound JSON payload to ``(status_code, body)``."""
        try:
            request = GenerationRequest.model_validate(payload)
        except ValidationError as exc:
            error = InputValidationError(_validation_message(exc))
            self._emit(PipelineState.VALIDATION_FAILED, message=error.message)
            return error.status_code, error.to_response()

        try:
            result = await self.generate(request, cancel_event)
        except GenerationError as exc:
            return exc.status_code, exc.to_response()
        except Exception as exc:
            error = GenerationError(f"Unexpected error: {exc}")
            self._emit(
                PipelineState.GENERATION_FAILED,
                message=error.message,
                traceback=traceback.format_exc(),
            )
            return error.status_code, error.to_response()
        return 200, result.to_response()

    async def generate(
        self, request: GenerationRequest, cancel_event: Optional[asyncio.Event] = None
    ) -> GenerationResult:
        """Run *request* through the pipeline.

        Raises:
            GenerationError: A subclass naming the failure kind; the matching
                terminal state has been reported to observers.
        """
        try:
            return await self._run(request, cancel_event)
        except GenerationError as exc:
            self._emit(failure_state_for(exc), message=exc.message, kind=exc.kind.value)
            raise

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(
        self, request: GenerationRequest, cancel_event: Optional[asyncio.Event]
    ) -> GenerationResult:
        started = time.monotonic()

        self._emit(PipelineState.VALIDATE_INPUT, chars=len(request.description))
        self._validate(request)

        key = make_cache_key(request)
        self._emit(PipelineState.CACHE_LOOKUP, key=key)
        entry = await self.cache.get(key)
        if entry is not None:
            cached = GenerationResult.model_validate(entry.payload)
            self._emit(PipelineState.RETURN_CACHED, key=key)
            return cached.model_copy(update={"cached": True, "remaining_quota": None})

        self._emit(PipelineState.RATE_LIMIT_CHECK, session=request.session_id)
        decision = await self.rate_limiter.check(request.session_id, request.user_credential)
        if not decision.allowed:
            raise RateLimitedError(
                "Generation limit reached for this session", reset_at=decision.reset_at
            )

        project_config = request.project_config(self.config.generation.default_template)
        models = self.config.llm.models_for(request.model_tier)

        architecture = await self._plan(request, project_config, models["planner"], cancel_event)

        units = self.scheduler.collect_units(architecture)
        groups = self.scheduler.plan(units)
        self._emit(PipelineState.SCHEDULE_BATCHES, units=len(units), batches=len(groups))

        async def step(batch: Batch) -> BatchOutput:
            self._emit_batch(batch, None)
            output = await race_cancel(
                self.codegen.generate(
                    batch, request, project_config, architecture, models["code"]
                ),
                cancel_event,
                f"batch {batch.index}/{batch.total}",
            )
            self._emit_batch(batch, output)
            return output

        self._emit(PipelineState.GENERATE_BATCHES, batches=len(groups))
        outputs = await self.scheduler.run(
            groups, step, should_stop=cancel_event.is_set if cancel_event else None
        )

        self._emit(PipelineState.MERGE_FILES, batches=len(outputs))
        file_map = reduce(merge_into, (output.files for output in outputs), {})

        self._emit(PipelineState.LOAD_INTEGRATIONS, integrations=len(project_config.integrations))
        required = self.config.generation.required_integrations.get(project_config.template, [])
        bundle = self.loader.load(project_config.integrations, required=required)
        for warning in bundle.warnings:
            self._emit(PipelineState.LOAD_INTEGRATIONS, warning=warning)
        file_map = merge_into(file_map, bundle.files)

        self._emit(PipelineState.ASSEMBLE_MANIFEST)
        file_map = merge_into(file_map, assemble_manifest(project_config, bundle, self.renderer))

        branding, name = project_config.branding, project_config.project_name
        result = GenerationResult(
            architecture=architecture,
            files=apply_branding(file_map.values(), branding, name),
            integration_files=apply_branding(bundle.files, branding, name),
            integration_code=[snippet for output in outputs for snippet in output.integration_code],
            dependencies=bundle.dependencies,
            dev_dependencies=bundle.dev_dependencies,
            env_vars=bundle.env_vars,
            setup_instructions=bundle.post_install,
            warnings=bundle.warnings,
            generated_at=datetime.now(timezone.utc).isoformat(),
            cached=False,
            remaining_quota=decision.remaining,
            cache_key=key,
        )

        self._emit(PipelineState.WRITE_CACHE, key=key)
        await self.cache.set(key, result.model_dump(mode="json"))

        self._emit(
            PipelineState.RETURN_RESULT,
            files=len(result.files),
            integration_files=len(result.integration_files),
            batches=len(outputs),
            warnings=len(result.warnings),
            elapsed=time.monotonic() - started,
        )
        return result

    def _validate(self, request: GenerationRequest) -> None:
        limit = self.config.generation.max_description_length
        if not request.description.strip():
            raise InputValidationError("Description is required")
        if len(request.description) > limit:
            raise InputValidationError(
                f"Description is too long ({len(request.description)} characters, max {limit})"
            )

    async def _plan(
        self,
        request: GenerationRequest,
        project_config: ProjectConfig,
        model: str,
        cancel_event: Optional[asyncio.Event],
    ) -> Architecture:
        """Plan with bounded retries. Only ``PlanningError`` is retried."""
        attempts = self.config.generation.planning_attempts
        last_error: Optional[PlanningError] = None
        for attempt in range(1, attempts + 1):
            self._emit(PipelineState.PLAN_ARCHITECTURE, attempt=attempt, model=model)
            try:
                return await race_cancel(
                    self.planner.plan(request, project_config, model),
                    cancel_event,
                    "architecture planning",
                )
            except PlanningError as exc:
                last_error = exc
                if attempt < attempts:
                    self._emit(
                        PipelineState.PLAN_ARCHITECTURE,
                        warning=f"Attempt {attempt} failed: {exc.message}",
                    )
        assert last_error is not None
        raise last_error


def _validation_message(exc: ValidationError) -> str:
    """Flatten a Pydantic validation error into one readable sentence."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)
