"""Progress tracker tests."""

import pytest

from legacylens.pipeline import GenerationStage, ProgressTracker


@pytest.fixture
def tracker(clock):
    return ProgressTracker(min_emit_interval_ms=100, clock=clock)


@pytest.fixture
def events(tracker):
    received = []
    tracker.on_progress(received.append)
    return received


def test_start_stage_always_emits(tracker, events):
    """Starting a stage emits an event at current=0."""
    tracker.start_stage(GenerationStage.ANALYZING, 10, "Analyzing")

    assert len(events) == 1
    assert events[0].stage == GenerationStage.ANALYZING
    assert events[0].current == 0
    assert events[0].total == 10
    assert events[0].message == "Analyzing"


def test_intermediate_updates_are_throttled(tracker, events, clock):
    """Updates within the minimum interval are dropped."""
    tracker.start_stage(GenerationStage.GENERATING, 10, "Generating")
    clock.advance_ms(150)
    tracker.increment_progress()
    clock.advance_ms(10)
    tracker.increment_progress()
    tracker.increment_progress()

    assert [e.current for e in events] == [0, 1]


def test_update_after_interval_emits(tracker, events, clock):
    """An update after the interval has elapsed is emitted."""
    tracker.start_stage(GenerationStage.GENERATING, 10, "Generating")
    clock.advance_ms(100)
    tracker.update_progress(4)

    assert [e.current for e in events] == [0, 4]


def test_progress_boundaries_bypass_throttle(tracker, events, clock):
    """Events at 0 and at total are emitted regardless of elapsed time."""
    tracker.start_stage(GenerationStage.GENERATING, 3, "Generating")
    tracker.increment_progress()  # within interval, dropped
    tracker.increment_progress()  # within interval, dropped
    tracker.increment_progress()  # reaches total

    assert [e.current for e in events] == [0, 3]
    assert events[-1].total == 3


def test_complete_stage_emits_even_when_throttled(tracker, events):
    """complete_stage jumps to total and always emits."""
    tracker.start_stage(GenerationStage.VALIDATING, 5, "Validating")
    tracker.complete_stage("Done")

    assert events[-1].current == 5
    assert events[-1].message == "Done"
    assert tracker.get_progress_percentage() == 100


def test_no_events_before_a_stage_starts(tracker, events):
    """Updates without an active stage are silent."""
    tracker.update_progress(1)
    tracker.increment_progress()

    assert events == []


def test_percentage_rounds(tracker):
    """Percentage is round(current / total * 100)."""
    tracker.start_stage(GenerationStage.GENERATING, 3, "Generating")
    tracker.update_progress(1)

    assert tracker.get_progress_percentage() == 33


def test_percentage_is_zero_for_empty_stage(tracker):
    """A stage with total 0 reports 0% instead of dividing by zero."""
    tracker.start_stage(GenerationStage.GENERATING, 0, "Nothing to do")

    assert tracker.get_progress_percentage() == 0


def test_off_progress_unsubscribes(tracker, events):
    """A removed callback receives no further events."""
    tracker.off_progress(events.append)
    tracker.start_stage(GenerationStage.PLANNING, 1, "Planning")

    assert events == []


def test_failing_callback_does_not_block_others(tracker, events, caplog):
    """A subscriber that raises is logged and the others still run."""

    def broken(event):
        raise RuntimeError("subscriber bug")

    tracker.off_progress(events.append)
    tracker.on_progress(broken)
    tracker.on_progress(events.append)

    tracker.start_stage(GenerationStage.PLANNING, 1, "Planning")

    assert len(events) == 1
    assert "subscriber bug" in caplog.text


def test_reset_restores_initial_state(tracker, events):
    """reset() clears the stage and counters."""
    tracker.start_stage(GenerationStage.GENERATING, 4, "Generating")
    tracker.update_progress(2)
    tracker.reset()

    assert tracker.stage is None
    assert tracker.current == 0
    assert tracker.total == 0
    tracker.increment_progress()
    assert len(events) == 1
