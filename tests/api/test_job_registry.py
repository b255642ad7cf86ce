"""In-memory job registry tests."""

from datetime import datetime, timedelta

from legacylens.api.registry import JobRegistry
from legacylens.pipeline import GenerationStage, ProgressEvent


def test_create_starts_pending():
    registry = JobRegistry()

    record = registry.create("tests")

    assert record.status == "pending"
    assert record.type == "tests"
    assert registry.get(record.job_id) is record
    assert record.progress == 0
    assert not record.finished


def test_progress_follows_latest_event():
    registry = JobRegistry()
    record = registry.create("docs")
    registry.mark_running(record.job_id)

    registry.record_progress(
        record.job_id, ProgressEvent(GenerationStage.GENERATING, 1, 3, "Generated a.py")
    )

    assert record.status == "running"
    assert record.started_at is not None
    assert record.stage == "generating"
    assert record.message == "Generated a.py"
    assert record.progress == 33


def test_finish_records_outcome():
    registry = JobRegistry()
    ok = registry.create("tests")
    bad = registry.create("tests")

    registry.finish(ok.job_id, success=True, result={"test_code": "x"}, warnings=["degraded"])
    registry.finish(bad.job_id, success=False, errors=["boom"])

    assert ok.status == "completed"
    assert ok.progress == 100
    assert ok.result == {"test_code": "x"}
    assert ok.warnings == ["degraded"]
    assert bad.status == "failed"
    assert bad.errors == ["boom"]
    assert bad.finished


def test_unknown_jobs_are_ignored():
    registry = JobRegistry()

    registry.mark_running("missing")
    registry.finish("missing", success=True)

    assert registry.get("missing") is None
    assert len(registry) == 0


def test_list_recent_is_newest_first_and_limited():
    registry = JobRegistry()
    records = [registry.create("tests") for _ in range(3)]
    base = datetime(2024, 1, 1)
    for offset, record in enumerate(records):
        record.created_at = base + timedelta(minutes=offset)

    recent = registry.list_recent(limit=2)

    assert recent == [records[2], records[1]]

    registry.clear()
    assert registry.list_recent() == []


def test_oldest_finished_jobs_are_evicted_beyond_cap():
    registry = JobRegistry(max_jobs=3)
    first, second, running = (registry.create("tests") for _ in range(3))
    registry.finish(first.job_id, success=True)
    registry.finish(second.job_id, success=False, errors=["boom"])
    registry.mark_running(running.job_id)

    newest = registry.create("docs")

    assert len(registry) == 3
    assert registry.get(first.job_id) is None
    assert registry.get(second.job_id) is second
    assert registry.get(running.job_id) is running
    assert registry.get(newest.job_id) is newest


def test_unfinished_jobs_are_never_evicted():
    registry = JobRegistry(max_jobs=2)
    records = [registry.create("tests") for _ in range(3)]

    assert len(registry) == 3
    assert all(registry.get(record.job_id) is record for record in records)
