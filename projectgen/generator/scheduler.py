"""Batch scheduling for code generation.

The scheduler flattens an architecture into generation units, partitions them
into batches that respect both a unit cap and an estimated token budget, and
runs the batches as a strictly sequential fold. Each batch sees an immutable
snapshot of the files produced by every batch before it.
"""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Optional

from projectgen.errors import GenerationCancelled
from projectgen.models import (
    Architecture,
    Batch,
    BatchOutput,
    ComponentTemplate,
    FileDescriptor,
    GeneratedFile,
    GenerationUnit,
    UnitKind,
)
from projectgen.utils import canonical_json

BatchStep = Callable[[Batch], Awaitable[BatchOutput]]


def describe_file(path: str) -> str:
    """Short description of a generated file: ``"<parent folder>/<file name>"``."""
    parts = [p for p in path.split("/") if p]
    if not parts:
        return path
    if len(parts) == 1:
        return parts[0]
    return f"{parts[-2]}/{parts[-1]}"


def collect_units(architecture: Architecture) -> list[GenerationUnit]:
    """Flatten *architecture* into the ordered list of units to generate.

    Order is fixed: every page, then every ``create-new`` component, then
    every ``api`` route, each group in plan order. Reused components and
    non-api routes produce no units.
    """
    units: list[GenerationUnit] = [
        GenerationUnit(
            kind=UnitKind.PAGE,
            name=page.name,
            spec=page.model_dump(mode="json", by_alias=True),
        )
        for page in architecture.pages
    ]
    units.extend(
        GenerationUnit(
            kind=UnitKind.COMPONENT,
            name=component.name,
            spec=component.model_dump(mode="json", by_alias=True),
        )
        for component in architecture.components
        if component.template == ComponentTemplate.CREATE_NEW
    )
    units.extend(
        GenerationUnit(
            kind=UnitKind.API_ROUTE,
            name=route.path,
            spec=route.model_dump(mode="json", by_alias=True),
        )
        for route in architecture.routes
        if route.type == "api"
    )
    return units


class BatchScheduler:
    """Partitions units into bounded batches and drives them in order.

    Args:
        batch_size: Maximum units per batch.
        token_budget: Maximum estimated tokens per batch.
        chars_per_token: Characters counted as one token by the estimator.
    """

    def __init__(
        self,
        batch_size: int = 5,
        token_budget: int = 4096,
        chars_per_token: int = 4,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.token_budget = token_budget
        self.chars_per_token = chars_per_token

    collect_units = staticmethod(collect_units)
    describe_file = staticmethod(describe_file)

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------

    def estimate_tokens(self, unit: GenerationUnit) -> int:
        """Rough token cost of *unit*, from the size of its serialised plan entry."""
        serialised = canonical_json({"kind": unit.kind.value, "name": unit.name, "spec": unit.spec})
        return math.ceil(len(serialised) / self.chars_per_token)

    def plan(self, units: Sequence[GenerationUnit]) -> list[list[GenerationUnit]]:
        """Split *units* into consecutive groups, preserving order.

        A group closes when adding the next unit would exceed the unit cap or
        the token budget. A unit that alone exceeds the budget gets a group
        of its own.
        """
        groups: list[list[GenerationUnit]] = []
        current: list[GenerationUnit] = []
        used = 0
        for unit in units:
            cost = self.estimate_tokens(unit)
            if current and (len(current) >= self.batch_size or used + cost > self.token_budget):
                groups.append(current)
                current, used = [], 0
            current.append(unit)
            used += cost
        if current:
            groups.append(current)
        return groups

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        groups: Sequence[Sequence[GenerationUnit]],
        step: BatchStep,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> list[BatchOutput]:
        """Run *step* over every group in order, threading the file context.

        Batch ``i`` carries the descriptors of every file produced by batches
        ``1..i-1``. The context only ever grows.

        Raises:
            GenerationCancelled: ``should_stop`` returned true before a batch
                started. No further batches are invoked.
        """
        total = len(groups)
        context: tuple[FileDescriptor, ...] = ()
        outputs: list[BatchOutput] = []

        for index, units in enumerate(groups, start=1):
            if should_stop is not None and should_stop():
                raise GenerationCancelled(f"Cancelled before batch {index}/{total}")

            batch = Batch(index=index, total=total, units=tuple(units), previous_files=context)
            output = await step(batch)
            outputs.append(output)
            context = context + self._descriptors(output.files)

        return outputs

    def _descriptors(self, files: Sequence[GeneratedFile]) -> tuple[FileDescriptor, ...]:
        return tuple(FileDescriptor(path=f.path, description=describe_file(f.path)) for f in files)
