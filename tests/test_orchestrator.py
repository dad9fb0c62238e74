import asyncio

import pytest

from resume_optimizer.core.exceptions import (
    AIError,
    ExtractionError,
    InsufficientContentError,
    OptimizationError,
    StepTimeoutError,
    StorageError,
)
from resume_optimizer.services.job_analysis import JobAnalyzer
from resume_optimizer.services.job_details import JobDetailsResolver
from resume_optimizer.services.optimizer import ResumeOptimizer
from resume_optimizer.services.orchestrator import OptimizationOrchestrator
from resume_optimizer.services.progress_channel import ProgressChannel
from resume_optimizer.services.resume_parser import ResumeParser
from resume_optimizer.services.scoring import MatchScorer
from resume_optimizer.services.storage import SqlStorage
from resume_optimizer.services.version_ledger import VersionLedger
from tests.conftest import FakeAI, JOB_DESCRIPTION, OPTIMIZED_TEXT, RESUME_TEXT, TestingSessionLocal, collect

PIPELINE = [
    "started",
    "extracting_details",
    "parsing_resume",
    "analyzing_description",
    "optimizing_resume",
    "calculating_metrics",
]


class ScriptedOptimizer:
    """Fails with the queued errors, then delegates to the real optimizer."""

    def __init__(self, inner, errors=()):
        self.inner = inner
        self.errors = list(errors)
        self.calls = 0

    async def optimize(self, *args, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return await self.inner.optimize(*args, **kwargs)


class FailingStorage(SqlStorage):
    def create_optimized_resume(self, **fields):
        raise StorageError("Failed to save optimized resume", details={"cause": "disk full"})


def build(db_session, ai, optimizer=None, storage=None, parser=None, **kwargs):
    storage = storage or SqlStorage(db_session)
    return OptimizationOrchestrator(
        storage=storage,
        resolver=JobDetailsResolver(ai),
        parser=parser or ResumeParser(ai),
        analyzer=JobAnalyzer(ai),
        scorer=MatchScorer(ai),
        optimizer=optimizer or ResumeOptimizer(ai),
        ledger=VersionLedger(storage),
        **kwargs,
    )


async def run(orchestrator, user_id, resume_id, **kwargs):
    channel = ProgressChannel(heartbeat_seconds=60)
    await orchestrator.run(user_id, resume_id, channel, **kwargs)
    return await collect(channel)


@pytest.mark.asyncio
async def test_happy_path_emits_every_step_then_completed(db_session, user, uploaded_resume):
    ai = FakeAI()
    events = await run(build(db_session, ai), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert [e["status"] for e in events] == PIPELINE + ["completed"]
    result = events[-1]["optimizedResume"]
    assert "warning" not in events[-1]
    assert result["id"] is not None
    assert result["metadata"]["version"] == "1.0"
    assert result["metadata"]["filename"] == "JD_Senior_Backend_Engineer.pdf"
    assert result["content"] == OPTIMIZED_TEXT
    assert result["metrics"]["before"]["overall"] == 61
    assert result["metrics"]["after"]["overall"] == 88
    assert result["jobDetails"]["positionLevel"] == "Senior"
    assert result["versionHistory"] == []
    # Empty optimizer sections are filled from the scorer's notes
    assert result["analysis"]["strengths"] == ["Strong keyword coverage"]


@pytest.mark.asyncio
async def test_snapshots_are_written_per_step(db_session, user, uploaded_resume):
    storage = SqlStorage(db_session)
    events = await run(
        build(db_session, FakeAI(), storage=storage), user.id, uploaded_resume.id,
        job_description=JOB_DESCRIPTION, session_id="session-abc",
    )
    assert events[-1]["optimizedResume"]["sessionId"] == "session-abc"
    steps = [row.step for row in storage.get_steps("session-abc")]
    assert steps == PIPELINE + ["completed"]


@pytest.mark.asyncio
async def test_reoptimizing_issues_next_minor_version(db_session, user, uploaded_resume):
    storage = SqlStorage(db_session)
    orchestrator = build(db_session, FakeAI(), storage=storage)
    platform_role = "Platform Engineer at Acme Cloud: own the Kubernetes platform, Terraform modules and CI pipelines."
    first = await run(orchestrator, user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)
    second = await run(orchestrator, user.id, uploaded_resume.id, job_description=platform_role)

    assert first[-1]["optimizedResume"]["metadata"]["version"] == "1.0"
    latest = second[-1]["optimizedResume"]
    assert latest["metadata"]["version"] == "1.1"
    assert latest["jobDescription"] == platform_role
    assert [h["version"] for h in latest["versionHistory"]] == ["1.0"]

    # The first version is untouched by the second run
    earlier = storage.find_optimized_version(uploaded_resume.id, "1.0")
    assert earlier.id == first[-1]["optimizedResume"]["id"]
    assert earlier.job_description == JOB_DESCRIPTION


@pytest.mark.asyncio
async def test_missing_job_info_fails_before_any_generation_call(db_session, user, uploaded_resume):
    ai = FakeAI()
    events = await run(build(db_session, ai), user.id, uploaded_resume.id, job_url="", job_description="  ")

    assert len(events) == 1
    assert events[0]["status"] == "error"
    assert events[0]["code"] == "MISSING_JOB_INFO"
    assert ai.calls == []


@pytest.mark.asyncio
async def test_unknown_resume_is_not_found(db_session, user):
    events = await run(build(db_session, FakeAI()), user.id, 424242, job_description=JOB_DESCRIPTION)
    assert [e["code"] for e in events] == ["NOT_FOUND"]


@pytest.mark.asyncio
async def test_foreign_resume_is_unauthorized(db_session, other_user, uploaded_resume):
    ai = FakeAI()
    events = await run(build(db_session, ai), other_user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)
    assert [e["code"] for e in events] == ["UNAUTHORIZED"]
    assert ai.calls == []


@pytest.mark.asyncio
async def test_optimizer_failing_once_is_recovered(db_session, user, uploaded_resume):
    ai = FakeAI()
    optimizer = ScriptedOptimizer(ResumeOptimizer(ai), [OptimizationError("bad output", step="optimizing_resume")])
    events = await run(build(db_session, ai, optimizer=optimizer), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert optimizer.calls == 2
    assert events[-1]["status"] == "completed"
    assert [e["status"] for e in events].count("optimizing_resume") == 1


@pytest.mark.asyncio
async def test_optimizer_failing_twice_reports_first_error(db_session, user, uploaded_resume):
    ai = FakeAI()
    optimizer = ScriptedOptimizer(ResumeOptimizer(ai), [
        InsufficientContentError("too short", step="optimizing_resume"),
        OptimizationError("still bad", step="optimizing_resume"),
    ])
    events = await run(build(db_session, ai, optimizer=optimizer), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert optimizer.calls == 2
    assert events[-1]["status"] == "error"
    assert events[-1]["code"] == "INSUFFICIENT_CONTENT_ERROR"
    assert events[-1]["step"] == "optimizing_resume"


@pytest.mark.asyncio
async def test_optimizer_timeout_is_not_retried(db_session, user, uploaded_resume):
    ai = FakeAI()
    optimizer = ScriptedOptimizer(ResumeOptimizer(ai), [StepTimeoutError("timed out", step="optimizing_resume")])
    events = await run(build(db_session, ai, optimizer=optimizer), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert optimizer.calls == 1
    assert events[-1]["code"] == "TIMEOUT_ERROR"


@pytest.mark.asyncio
async def test_step_failure_carries_step_name(db_session, user, uploaded_resume):
    ai = FakeAI()
    ai.fail("job_analysis", AIError("upstream unavailable"))
    events = await run(build(db_session, ai), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert [e["status"] for e in events] == PIPELINE[:4] + ["error"]
    assert events[-1]["code"] == "ANALYSIS_ERROR"
    assert events[-1]["step"] == "analyzing_description"
    assert ai.count("optimize") == 0


@pytest.mark.asyncio
async def test_analysis_timeout_is_reported(db_session, user, uploaded_resume):
    ai = FakeAI()
    ai.delays["job_analysis"] = 0.5
    events = await run(
        build(db_session, ai, analysis_timeout=0.01), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION
    )
    assert events[-1]["code"] == "TIMEOUT_ERROR"
    assert events[-1]["step"] == "analyzing_description"


@pytest.mark.asyncio
async def test_parsing_timeout_aborts_the_run(db_session, user, uploaded_resume):
    ai = FakeAI()
    ai.delays["resume_parse"] = 0.5
    parser = ResumeParser(ai, timeout=0.01)
    events = await run(build(db_session, ai, parser=parser), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert [e["status"] for e in events] == PIPELINE[:3] + ["error"]
    assert events[-1]["code"] == "PARSING_TIMEOUT"
    assert events[-1]["step"] == "parsing_resume"
    assert ai.count("optimize") == 0
    assert SqlStorage(db_session).lineage_history(uploaded_resume.id) == []


class DeletingParser:
    """Parses normally, but the upload is deleted from another session meanwhile."""

    def __init__(self, inner, delete):
        self.inner = inner
        self.delete = delete

    async def parse(self, raw_text):
        self.delete()
        return await self.inner.parse(raw_text)


@pytest.mark.asyncio
async def test_upload_deleted_mid_run_still_completes_from_frozen_text(db_session, user, uploaded_resume):
    ai = FakeAI()
    resume_id = uploaded_resume.id
    other_session = TestingSessionLocal(bind=db_session.connection())
    parser = DeletingParser(
        ResumeParser(ai), lambda: SqlStorage(other_session).delete_uploaded_resume(resume_id)
    )
    try:
        events = await run(build(db_session, ai, parser=parser), user.id, resume_id, job_description=JOB_DESCRIPTION)
    finally:
        other_session.close()

    assert [e["status"] for e in events] == PIPELINE + ["completed"]
    result = events[-1]["optimizedResume"]
    assert result["originalContent"] == RESUME_TEXT
    assert result["uploadedResumeId"] == resume_id
    assert result["userId"] == user.id
    assert result["metadata"]["version"] == "1.0"

    storage = SqlStorage(db_session)
    assert storage.get_uploaded_resume(resume_id) is None
    assert storage.find_optimized_version(resume_id, "1.0").original_content == RESUME_TEXT


@pytest.mark.asyncio
async def test_scoring_failure_does_not_abort_the_run(db_session, user, uploaded_resume):
    ai = FakeAI()
    ai.fail("score", AIError("down"), AIError("down"))
    events = await run(build(db_session, ai), user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert events[-1]["status"] == "completed"
    metrics = events[-1]["optimizedResume"]["metrics"]
    assert metrics["before"]["overall"] == 0
    assert metrics["after"]["overall"] == 0


@pytest.mark.asyncio
async def test_persistence_failure_still_completes_with_warning(db_session, user, uploaded_resume):
    alerts = []
    storage = FailingStorage(db_session)
    orchestrator = build(
        db_session, FakeAI(), storage=storage,
        on_unpersisted=lambda session_id, error: alerts.append((session_id, error)),
    )
    events = await run(orchestrator, user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION, session_id="s-1")

    final = events[-1]
    assert final["status"] == "completed"
    assert final["warning"]["code"] == "PERSISTENCE_FAILED"
    assert final["optimizedResume"]["id"] is None
    # No version is reported for a result that was never stored
    assert final["optimizedResume"]["metadata"]["version"] is None
    assert final["optimizedResume"]["content"] == OPTIMIZED_TEXT
    assert len(alerts) == 1
    assert alerts[0][0] == "s-1"
    assert isinstance(alerts[0][1], StorageError)


class CancellingResolver:
    """Resolves normally but the client disconnects while it runs."""

    def __init__(self, inner, channel_ref):
        self.inner = inner
        self.channel_ref = channel_ref

    async def resolve(self, **kwargs):
        details = await self.inner.resolve(**kwargs)
        self.channel_ref["channel"].cancel()
        return details


@pytest.mark.asyncio
async def test_cancellation_discards_late_result_and_stops(db_session, user, uploaded_resume):
    ai = FakeAI()
    channel = ProgressChannel(heartbeat_seconds=60)
    orchestrator = build(db_session, ai)
    orchestrator.resolver = CancellingResolver(JobDetailsResolver(ai), {"channel": channel})

    await orchestrator.run(user.id, uploaded_resume.id, channel, job_description=JOB_DESCRIPTION)
    events = await collect(channel)

    assert [e["status"] for e in events] == ["started", "extracting_details"]
    assert ai.calls == ["job_details"]
    assert SqlStorage(db_session).lineage_history(uploaded_resume.id) == []


@pytest.mark.asyncio
async def test_extraction_failure_from_url(db_session, user, uploaded_resume):
    class BrokenResolver:
        async def resolve(self, **kwargs):
            raise ExtractionError("Could not extract sufficient job details", step="extracting_details")

    ai = FakeAI()
    orchestrator = build(db_session, ai)
    orchestrator.resolver = BrokenResolver()
    events = await run(orchestrator, user.id, uploaded_resume.id, job_url="https://jobs.example.com/1")

    assert events[-1]["code"] == "EXTRACTION_ERROR"
    assert events[-1]["step"] == "extracting_details"
    assert ai.calls == []


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_fatal_error(db_session, user, uploaded_resume):
    class ExplodingParser:
        async def parse(self, raw_text):
            raise RuntimeError("kaboom")

    orchestrator = build(db_session, FakeAI())
    orchestrator.parser = ExplodingParser()
    events = await run(orchestrator, user.id, uploaded_resume.id, job_description=JOB_DESCRIPTION)

    assert events[-1]["code"] == "FATAL_ERROR"
    assert events[-1]["step"] == "parsing_resume"
