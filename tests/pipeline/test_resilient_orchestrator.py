"""ResilientOrchestrator tests: fallback gating, fan-out and job lifecycle."""

from unittest.mock import AsyncMock

import pytest

from legacylens.config import load_settings
from legacylens.constants import FALLBACK_WARNING
from legacylens.pipeline import (
    GenerationStage,
    OperationContext,
    PipelineStateError,
    ProgressTracker,
    ResilientOrchestrator,
)

CONTEXT = OperationContext(stage="generating", file_path="billing/invoice.py")


@pytest.fixture
def orchestrator(error_handler):
    return ResilientOrchestrator(
        progress_tracker=ProgressTracker(min_emit_interval_ms=0),
        error_handler=error_handler,
    )


async def test_ai_success_skips_fallback(orchestrator):
    primary = AsyncMock(return_value="ai tests")
    fallback = AsyncMock(return_value="template tests")

    result = await orchestrator.execute_ai_with_fallback(primary, fallback, CONTEXT)

    assert result.success
    assert result.data == "ai tests"
    assert result.warnings == []
    fallback.assert_not_awaited()


async def test_non_recoverable_failure_uses_fallback(orchestrator, recording_sleep):
    primary = AsyncMock(side_effect=ValueError("Invalid syntax"))
    fallback = AsyncMock(return_value="template tests")

    result = await orchestrator.execute_ai_with_fallback(primary, fallback, CONTEXT)

    assert result.success
    assert result.data == "template tests"
    assert result.warnings == [FALLBACK_WARNING]
    assert primary.await_count == 3
    assert recording_sleep.delays == [1.0, 2.0]
    fallback.assert_awaited_once()


async def test_recoverable_failure_never_uses_fallback(orchestrator):
    primary = AsyncMock(side_effect=RuntimeError("Rate limit exceeded"))
    fallback = AsyncMock(return_value="template tests")

    result = await orchestrator.execute_ai_with_fallback(primary, fallback, CONTEXT)

    assert not result.success
    assert result.error.recoverable
    assert result.error.message == "Rate limit exceeded"
    fallback.assert_not_awaited()


async def test_failed_fallback_reports_primary_failure(orchestrator):
    primary = AsyncMock(side_effect=ValueError("Invalid syntax"))
    fallback = AsyncMock(side_effect=KeyError("template"))

    result = await orchestrator.execute_ai_with_fallback(primary, fallback, CONTEXT)

    assert not result.success
    assert result.error.message == "Invalid syntax"
    stages = [error.stage for error in orchestrator.get_errors()]
    assert stages == ["generating", "generating (fallback)"]


async def test_process_units_isolates_failures(orchestrator):
    async def processor(unit):
        if unit == "broken.py":
            raise ValueError("cannot parse")
        return unit.upper()

    results = await orchestrator.process_units_with_isolation(
        ["a.py", "broken.py", "b.py"], processor, stage=GenerationStage.ANALYZING
    )

    assert [r.success for r in results] == [True, False, True]
    assert results[0].data == "A.PY"
    assert results[1].error.file_path == "broken.py"
    assert results[1].error.stage == "analyzing"
    assert orchestrator.progress_tracker.current == 3
    assert orchestrator.progress_tracker.get_progress_percentage() == 100


async def test_process_units_reports_every_unit(orchestrator):
    async def processor(unit):
        return unit

    await orchestrator.process_units_with_isolation(
        ["a.py", "b.py"], processor, stage=GenerationStage.ANALYZING
    )

    events = orchestrator.progress_history
    assert events[0].current == 0
    assert events[0].total == 2
    assert events[-1].current == 2
    assert all(event.stage == GenerationStage.ANALYZING for event in events)


async def test_fan_out_calls_on_result_per_item(orchestrator):
    seen = []

    async def fail():
        raise ValueError("Invalid syntax")

    async def template():
        return "template"

    def primary_for(item):
        if item == "edge":
            return fail
        return AsyncMock(return_value=f"ai {item}")

    results = await orchestrator.fan_out_with_fallback(
        ["happy", "edge"],
        primary_for=primary_for,
        fallback_for=lambda item: template,
        stage=GenerationStage.GENERATING,
        on_result=lambda item, result: seen.append((item, result.data)),
    )

    assert [r.data for r in results] == ["ai happy", "template"]
    assert results[1].warnings == [FALLBACK_WARNING]
    assert sorted(seen) == [("edge", "template"), ("happy", "ai happy")]
    assert orchestrator.progress_tracker.get_progress_percentage() == 100


async def test_execute_with_cache_computes_once(orchestrator):
    operation = AsyncMock(return_value={"callables": ["total"]})

    first = await orchestrator.execute_with_cache("analysis:a", operation, content="src")
    second = await orchestrator.execute_with_cache("analysis:a", operation, content="src")

    assert first == second
    operation.assert_awaited_once()
    assert orchestrator.get_cache_stats().size == 1


def test_mark_stage_emits_start_and_completion(orchestrator):
    orchestrator.mark_stage(GenerationStage.PLANNING, "Planning")
    orchestrator.mark_stage(GenerationStage.COMPLETE, "Done", complete=True)

    events = orchestrator.progress_history
    assert [(e.stage, e.current, e.total) for e in events] == [
        (GenerationStage.PLANNING, 0, 1),
        (GenerationStage.COMPLETE, 0, 1),
        (GenerationStage.COMPLETE, 1, 1),
    ]


def test_stage_block_completes_on_exit(orchestrator):
    with orchestrator.stage(GenerationStage.VALIDATING, "Validating"):
        pass

    events = orchestrator.progress_history
    assert [(e.stage, e.current, e.total) for e in events] == [
        (GenerationStage.VALIDATING, 0, 1),
        (GenerationStage.VALIDATING, 1, 1),
    ]


def test_stage_block_left_unfinished_when_it_raises(orchestrator):
    with pytest.raises(RuntimeError, match="planner crashed"):
        with orchestrator.stage(GenerationStage.PLANNING, "Planning"):
            raise RuntimeError("planner crashed")

    events = orchestrator.progress_history
    assert [(e.stage, e.current) for e in events] == [(GenerationStage.PLANNING, 0)]


def test_second_job_requires_reset(orchestrator):
    orchestrator.begin_job()
    with pytest.raises(PipelineStateError):
        orchestrator.begin_job()
    orchestrator.end_job()

    with pytest.raises(PipelineStateError):
        orchestrator.begin_job()

    orchestrator.reset()
    orchestrator.begin_job()
    assert orchestrator.job_active


def test_reset_refused_while_job_runs(orchestrator):
    orchestrator.begin_job()

    with pytest.raises(PipelineStateError):
        orchestrator.reset()


async def test_reset_clears_state(orchestrator):
    await orchestrator.execute_with_isolation(
        AsyncMock(side_effect=ValueError("boom")), CONTEXT
    )
    await orchestrator.execute_with_cache("k", AsyncMock(return_value=1))
    orchestrator.mark_stage(GenerationStage.PLANNING, "Planning")

    orchestrator.reset()

    assert not orchestrator.has_errors()
    assert orchestrator.get_error_summary() == "No errors occurred"
    assert orchestrator.get_cache_stats().size == 0
    assert orchestrator.progress_history == []


def test_external_progress_subscribers(orchestrator):
    events = []
    orchestrator.on_progress(events.append)
    orchestrator.mark_stage(GenerationStage.PLANNING, "Planning")
    orchestrator.off_progress(events.append)
    orchestrator.mark_stage(GenerationStage.GENERATING, "Generating")

    assert [e.message for e in events] == ["Planning"]


def test_from_settings_applies_configuration(monkeypatch, tmp_path):
    config = tmp_path / "legacylens.ini"
    config.write_text(
        "[generation]\nmax_retries = 5\nretry_base_delay_ms = 250\n"
        "[cache]\nmax_size = 7\n"
        "[progress]\nmin_emit_interval_ms = 0\n"
    )
    monkeypatch.setenv("LEGACYLENS_CONFIG", str(config))

    orchestrator = ResilientOrchestrator.from_settings(load_settings())

    assert orchestrator.error_handler.policy.max_attempts == 5
    assert orchestrator.error_handler.policy.base_delay_ms == 250
    assert orchestrator.cache_manager.max_size == 7
    assert orchestrator.progress_tracker.min_emit_interval_ms == 0
