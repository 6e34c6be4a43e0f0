"""Unit tests for batch scheduling (projectgen.generator.scheduler).

Tests cover:
- Unit collection order and filtering
- Partitioning by unit cap and token budget
- The sequential fold: context snapshots, monotonic growth, cancellation
- File descriptors
"""

from __future__ import annotations

import math

import pytest

from projectgen.errors import BatchGenerationError, GenerationCancelled
from projectgen.generator.scheduler import BatchScheduler, collect_units, describe_file
from projectgen.models import BatchOutput, GeneratedFile, GenerationUnit, UnitKind


def _units(count: int) -> list[GenerationUnit]:
    return [GenerationUnit(kind=UnitKind.PAGE, name=f"P{i}") for i in range(count)]


def _output_for(batch) -> BatchOutput:
    return BatchOutput(
        files=[
            GeneratedFile(path=f"app/{unit.name.lower()}/page.tsx", content="x")
            for unit in batch.units
        ]
    )


# ---------------------------------------------------------------------------
# collect_units
# ---------------------------------------------------------------------------


class TestCollectUnits:
    @pytest.mark.unit
    def test_order_pages_components_routes(self, make_architecture):
        arch = make_architecture(pages=2, components=2, api_routes=1)
        kinds = [unit.kind for unit in collect_units(arch)]
        assert kinds == [
            UnitKind.PAGE,
            UnitKind.PAGE,
            UnitKind.COMPONENT,
            UnitKind.COMPONENT,
            UnitKind.API_ROUTE,
        ]

    @pytest.mark.unit
    def test_plan_order_within_kind(self, make_architecture):
        arch = make_architecture(pages=3)
        assert [u.name for u in collect_units(arch)] == ["Page1", "Page2", "Page3"]

    @pytest.mark.unit
    def test_reused_components_and_page_routes_skipped(self, make_architecture):
        arch = make_architecture(pages=1, components=1, reused=3, api_routes=0)
        units = collect_units(arch)
        assert len(units) == 2
        assert all(not u.name.startswith("Shared") for u in units)

    @pytest.mark.unit
    def test_unit_spec_carries_plan_entry(self, make_architecture):
        unit = collect_units(make_architecture(pages=1))[0]
        assert unit.spec["path"] == "/page-1"


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


class TestPlan:
    @pytest.mark.unit
    def test_five_units_one_batch(self):
        assert len(BatchScheduler().plan(_units(5))) == 1

    @pytest.mark.unit
    def test_twenty_three_units_five_batches(self):
        groups = BatchScheduler().plan(_units(23))
        assert [len(g) for g in groups] == [5, 5, 5, 5, 3]

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [1, 4, 6, 10, 11, 37])
    def test_ceil_batches_with_default_estimator(self, count):
        assert len(BatchScheduler().plan(_units(count))) == math.ceil(count / 5)

    @pytest.mark.unit
    def test_mixed_architecture_four_four_two(self, make_architecture):
        units = collect_units(make_architecture(pages=4, components=4, api_routes=2))
        groups = BatchScheduler().plan(units)
        assert [len(g) for g in groups] == [5, 5]

    @pytest.mark.unit
    def test_order_preserved(self):
        units = _units(12)
        flattened = [u for group in BatchScheduler().plan(units) for u in group]
        assert flattened == units

    @pytest.mark.unit
    def test_empty(self):
        assert BatchScheduler().plan([]) == []

    @pytest.mark.unit
    def test_token_budget_closes_batch_early(self):
        scheduler = BatchScheduler(batch_size=5, token_budget=300)
        big = [
            GenerationUnit(kind=UnitKind.PAGE, name=f"P{i}", spec={"description": "x" * 400})
            for i in range(4)
        ]
        groups = scheduler.plan(big)
        # Each unit costs a little over 100 tokens, so only two fit per batch.
        assert [len(g) for g in groups] == [2, 2]
        for group in groups:
            assert sum(scheduler.estimate_tokens(u) for u in group) <= 300

    @pytest.mark.unit
    def test_oversized_unit_gets_own_batch(self):
        scheduler = BatchScheduler(batch_size=5, token_budget=256)
        small = GenerationUnit(kind=UnitKind.PAGE, name="small")
        huge = GenerationUnit(kind=UnitKind.PAGE, name="huge", spec={"d": "y" * 5000})
        groups = scheduler.plan([small, huge, small])
        assert [[u.name for u in g] for g in groups] == [["small"], ["huge"], ["small"]]

    @pytest.mark.unit
    def test_estimate_grows_with_plan_entry(self):
        scheduler = BatchScheduler()
        short = GenerationUnit(kind=UnitKind.PAGE, name="a")
        long = GenerationUnit(kind=UnitKind.PAGE, name="a", spec={"d": "z" * 100})
        assert scheduler.estimate_tokens(long) > scheduler.estimate_tokens(short)

    @pytest.mark.unit
    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchScheduler(batch_size=0)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_snapshots(self):
        scheduler = BatchScheduler()
        seen = []

        async def step(batch):
            seen.append(batch)
            return _output_for(batch)

        groups = scheduler.plan(_units(12))
        outputs = await scheduler.run(groups, step)

        assert len(outputs) == 3
        assert [b.index for b in seen] == [1, 2, 3]
        assert all(b.total == 3 for b in seen)
        assert seen[0].previous_files == ()
        assert seen[0].is_first
        assert len(seen[1].previous_files) == 5
        assert len(seen[2].previous_files) == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_is_monotonic_prefix(self):
        scheduler = BatchScheduler(batch_size=2)
        seen = []

        async def step(batch):
            seen.append(batch.previous_files)
            return _output_for(batch)

        await scheduler.run(scheduler.plan(_units(7)), step)

        for earlier, later in zip(seen, seen[1:]):
            assert later[: len(earlier)] == earlier
            assert len(later) > len(earlier)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_stops_later_batches(self):
        scheduler = BatchScheduler()
        calls = []

        async def step(batch):
            calls.append(batch.index)
            if batch.index == 2:
                raise BatchGenerationError(batch.index, "bad output")
            return _output_for(batch)

        with pytest.raises(BatchGenerationError) as exc_info:
            await scheduler.run(scheduler.plan(_units(15)), step)

        assert exc_info.value.batch_index == 2
        assert calls == [1, 2]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_should_stop_checked_between_batches(self):
        scheduler = BatchScheduler()
        calls = []
        stop = {"flag": False}

        async def step(batch):
            calls.append(batch.index)
            stop["flag"] = True
            return _output_for(batch)

        with pytest.raises(GenerationCancelled):
            await scheduler.run(scheduler.plan(_units(10)), step, should_stop=lambda: stop["flag"])

        assert calls == [1]


# ---------------------------------------------------------------------------
# describe_file
# ---------------------------------------------------------------------------


class TestDescribeFile:
    @pytest.mark.unit
    def test_folder_and_name(self):
        assert describe_file("app/dashboard/page.tsx") == "dashboard/page.tsx"

    @pytest.mark.unit
    def test_top_level_file(self):
        assert describe_file("middleware.ts") == "middleware.ts"

    @pytest.mark.unit
    def test_leading_slash(self):
        assert describe_file("/components/Hero.tsx") == "components/Hero.tsx"
