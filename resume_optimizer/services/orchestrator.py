"""
Optimization pipeline state machine.

    started -> extracting_details -> parsing_resume -> analyzing_description
            -> optimizing_resume -> calculating_metrics -> completed | error

Each step emits its progress event, runs, then writes a snapshot. The
cancellation flag of the channel is consulted at every step boundary. This
is the only component that turns a failure into a terminal error event.
"""
import asyncio
import time
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import (
    AccessDeniedError,
    AppException,
    ErrorCode,
    MissingJobInfoError,
    NotFoundError,
    OptimizationError,
    StepTimeoutError,
)
from resume_optimizer.core.logging import session_id_var
from resume_optimizer.core.metrics import (
    OPTIMIZATION_RETRIES,
    OPTIMIZATION_RUNS,
    OPTIMIZATION_STEP_SECONDS,
    UNPERSISTED_COMPLETIONS,
)
from resume_optimizer.schemas.events import ProgressStatus, completed_event, error_event, step_event
from resume_optimizer.schemas.job import JobAnalysis, JobDetails
from resume_optimizer.schemas.resume import (
    OptimizationAnalysis,
    OptimizationResult,
    OptimizedResumeMetadata,
    OptimizedResumeResponse,
    ResumeContent,
    ScorePair,
    VersionHistoryEntry,
)
from resume_optimizer.schemas.scoring import ScoreReport
from resume_optimizer.services.documents import build_filename
from resume_optimizer.services.version_ledger import VersionLedger, resume_lineage

logger = logging.getLogger(__name__)

AlertHook = Callable[[str, Exception], None]


@dataclass(frozen=True)
class SourceResume:
    """The uploaded resume as it was when the run started."""
    id: int
    user_id: int
    content: str


class RunCancelled(Exception):
    """Raised at a step boundary once the client has gone away."""


def log_unpersisted_completion(session_id: str, error: Exception) -> None:
    logger.critical(
        "Optimization completed but was not persisted",
        extra={"alert": "optimization_unpersisted", "cause": str(error)},
    )


class OptimizationOrchestrator:
    def __init__(
        self,
        storage,
        resolver,
        parser,
        analyzer,
        scorer,
        optimizer,
        ledger: Optional[VersionLedger] = None,
        on_unpersisted: Optional[AlertHook] = None,
        analysis_timeout: Optional[float] = None,
    ):
        self.storage = storage
        self.resolver = resolver
        self.parser = parser
        self.analyzer = analyzer
        self.scorer = scorer
        self.optimizer = optimizer
        self.ledger = ledger or VersionLedger(storage)
        self.on_unpersisted = on_unpersisted or log_unpersisted_completion
        self.analysis_timeout = settings.pipeline.analysis_timeout if analysis_timeout is None else analysis_timeout

    async def run(
        self,
        user_id: int,
        uploaded_resume_id: int,
        channel,
        job_url: Optional[str] = None,
        job_description: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Drive one run to a terminal event on the channel, then close it."""
        session_id = session_id or uuid.uuid4().hex
        token = session_id_var.set(session_id)
        try:
            await self._run(user_id, uploaded_resume_id, channel, job_url, job_description, session_id)
        finally:
            channel.close()
            session_id_var.reset(token)

    async def _run(self, user_id, uploaded_resume_id, channel, job_url, job_description, session_id) -> None:
        job_url = (job_url or "").strip() or None
        job_description = (job_description or "").strip() or None
        step: Optional[str] = None
        try:
            # Input and ownership checks happen before any external call
            uploaded = self.storage.get_uploaded_resume(uploaded_resume_id)
            if uploaded is None:
                raise NotFoundError("Uploaded resume not found")
            if uploaded.user_id != user_id:
                raise AccessDeniedError()
            if not job_url and not job_description:
                raise MissingJobInfoError()
            # Frozen for the whole run; the upload may be deleted while steps are in flight
            source = SourceResume(id=uploaded.id, user_id=uploaded.user_id, content=uploaded.content)

            step = ProgressStatus.STARTED.value
            await channel.send(step_event(ProgressStatus.STARTED))
            logger.info(f"Optimization started for uploaded resume {uploaded_resume_id}")
            self._snapshot(session_id, ProgressStatus.STARTED, {
                "uploadedResumeId": uploaded_resume_id,
                "jobUrl": job_url,
                "hasJobDescription": bool(job_description),
            })

            step = ProgressStatus.EXTRACTING_DETAILS.value
            job_details: JobDetails = await self._step(
                channel, ProgressStatus.EXTRACTING_DETAILS,
                lambda: self.resolver.resolve(job_url=job_url, job_description=job_description),
            )
            self._snapshot(session_id, ProgressStatus.EXTRACTING_DETAILS, job_details.to_json_dict())

            step = ProgressStatus.PARSING_RESUME.value
            resume_content: ResumeContent = await self._step(
                channel, ProgressStatus.PARSING_RESUME,
                lambda: self.parser.parse(source.content),
            )
            self._snapshot(session_id, ProgressStatus.PARSING_RESUME, resume_content.to_json_dict())

            step = ProgressStatus.ANALYZING_DESCRIPTION.value
            job_analysis, before = await self._step(
                channel, ProgressStatus.ANALYZING_DESCRIPTION,
                lambda: self._analyze(source.content, job_details.description),
            )
            self._snapshot(session_id, ProgressStatus.ANALYZING_DESCRIPTION, {
                "jobAnalysis": job_analysis.to_json_dict(),
                "before": before.to_json_dict(),
            })

            step = ProgressStatus.OPTIMIZING_RESUME.value
            optimized: OptimizationResult = await self._step(
                channel, ProgressStatus.OPTIMIZING_RESUME,
                lambda: self._optimize_with_recovery(
                    channel, source.content, job_details.description, job_analysis, resume_content
                ),
            )
            self._snapshot(session_id, ProgressStatus.OPTIMIZING_RESUME, optimized.to_json_dict())

            step = ProgressStatus.CALCULATING_METRICS.value
            after: ScoreReport = await self._step(
                channel, ProgressStatus.CALCULATING_METRICS,
                lambda: self.scorer.score(optimized.optimized_content, job_details.description),
            )
            self._snapshot(session_id, ProgressStatus.CALCULATING_METRICS, {"after": after.to_json_dict()})

            step = ProgressStatus.COMPLETED.value
            self._check_cancelled(channel)
            await self._complete(
                channel, session_id, source, job_url, job_details, resume_content, optimized, before, after
            )
        except RunCancelled:
            logger.info(f"Optimization cancelled during {step}")
            OPTIMIZATION_RUNS.labels(outcome="cancelled").inc()
        except AppException as e:
            failed_step = e.step or step
            logger.warning(f"Optimization failed at {failed_step}: [{e.error_code}] {e.message}")
            OPTIMIZATION_RUNS.labels(outcome="error").inc()
            self._snapshot(session_id, ProgressStatus.ERROR, {"code": e.error_code, "message": e.message, "step": failed_step})
            await channel.send(error_event(e.message, e.error_code, failed_step, e.details))
        except Exception as e:
            logger.exception(f"Unexpected failure during {step}")
            OPTIMIZATION_RUNS.labels(outcome="error").inc()
            self._snapshot(session_id, ProgressStatus.ERROR, {"code": ErrorCode.FATAL_ERROR.value, "message": str(e), "step": step})
            await channel.send(error_event(
                "An unexpected error occurred during optimization",
                ErrorCode.FATAL_ERROR.value,
                step,
                {"cause": str(e)},
            ))

    # --- Step plumbing ---

    def _check_cancelled(self, channel) -> None:
        if channel.is_cancelled:
            raise RunCancelled()

    async def _step(self, channel, status: ProgressStatus, work: Callable[[], Awaitable[Any]]) -> Any:
        self._check_cancelled(channel)
        await channel.send(step_event(status))
        started = time.monotonic()
        try:
            result = await work()
        finally:
            elapsed = time.monotonic() - started
            OPTIMIZATION_STEP_SECONDS.labels(step=status.value).observe(elapsed)
            logger.info(f"Step {status.value} finished in {elapsed:.2f}s")
        # A result that arrives after the client left is discarded
        self._check_cancelled(channel)
        return result

    def _snapshot(self, session_id: str, status: ProgressStatus, data: Dict[str, Any]) -> None:
        try:
            self.storage.save_step(session_id, status.value, data)
        except Exception as e:
            logger.error(f"Failed to write snapshot for step {status.value}: {e}")

    # --- Steps ---

    async def _analyze(self, resume_text: str, job_description: str):
        step = ProgressStatus.ANALYZING_DESCRIPTION.value
        try:
            job_analysis: JobAnalysis = await asyncio.wait_for(
                self.analyzer.analyze(job_description), timeout=self.analysis_timeout
            )
        except asyncio.TimeoutError:
            raise StepTimeoutError(
                f"Job analysis timed out after {int(self.analysis_timeout)} seconds",
                step=step,
                details={"timeoutSeconds": self.analysis_timeout},
            )
        before: ScoreReport = await self.scorer.score(resume_text, job_description)
        return job_analysis, before

    async def _optimize_with_recovery(
        self,
        channel,
        resume_text: str,
        job_description: str,
        job_analysis: JobAnalysis,
        resume_content: ResumeContent,
    ) -> OptimizationResult:
        """One recovery pass on failure; a timeout is not retried."""
        step = ProgressStatus.OPTIMIZING_RESUME.value
        contact = resume_content.contact_info
        try:
            return await self.optimizer.optimize(resume_text, job_description, job_analysis, contact)
        except StepTimeoutError:
            raise
        except Exception as e:
            first = e if isinstance(e, AppException) else OptimizationError(
                f"Resume optimization failed: {e}", step=step, details={"cause": str(e)}
            )
            logger.warning(f"Optimization attempt failed ([{first.error_code}] {first.message}), retrying once")

        self._check_cancelled(channel)
        try:
            result = await self.optimizer.optimize(resume_text, job_description, job_analysis, contact)
        except Exception as e:
            OPTIMIZATION_RETRIES.labels(result="failed").inc()
            logger.error(f"Optimization recovery pass failed: {e}")
            raise first
        OPTIMIZATION_RETRIES.labels(result="recovered").inc()
        logger.info("Optimization recovered on second attempt")
        return result

    async def _complete(
        self,
        channel,
        session_id: str,
        source: SourceResume,
        job_url: Optional[str],
        job_details: JobDetails,
        resume_content: ResumeContent,
        optimized: OptimizationResult,
        before: ScoreReport,
        after: ScoreReport,
    ) -> None:
        optimized_at = datetime.now(timezone.utc).isoformat()
        filename = build_filename(source.content, job_details.title)
        analysis = _merge_analysis(optimized.analysis, after)
        result = OptimizedResumeResponse(
            user_id=source.user_id,
            uploaded_resume_id=source.id,
            session_id=session_id,
            content=optimized.optimized_content,
            original_content=source.content,
            job_description=job_details.description,
            job_url=job_url,
            job_details=job_details,
            metrics=ScorePair(before=before.score(), after=after.score()),
            analysis=analysis,
            changes=optimized.changes,
            resume_content=optimized.resume_content,
            contact_info=resume_content.contact_info,
            metadata=OptimizedResumeMetadata(filename=filename, optimized_at=optimized_at),
        )

        warning = None
        try:
            result = self._persist(result)
        except Exception as e:
            # The optimization itself succeeded; report it and alert out of band
            logger.error(f"Persisting optimized resume failed after a successful run: {e}")
            UNPERSISTED_COMPLETIONS.inc()
            try:
                self.on_unpersisted(session_id, e)
            except Exception:
                logger.exception("Unpersisted-completion alert hook failed")
            warning = {
                "code": "PERSISTENCE_FAILED",
                "message": "Your resume was optimized but could not be saved. Download it now to keep a copy.",
            }

        OPTIMIZATION_RUNS.labels(outcome="completed").inc()
        self._snapshot(session_id, ProgressStatus.COMPLETED, {
            "optimizedResumeId": result.id,
            "version": result.metadata.version,
            "persisted": warning is None,
        })
        logger.info(f"Optimization completed (version {result.metadata.version})")
        await channel.send(completed_event(result.to_json_dict(), warning=warning))

    def _persist(self, result: OptimizedResumeResponse) -> OptimizedResumeResponse:
        history = [
            VersionHistoryEntry(
                version=row.version,
                metrics=ScorePair.model_validate(row.metrics or {}),
                timestamp=(row.metadata_ or {}).get("optimizedAt", ""),
            )
            for row in self.storage.lineage_history(result.uploaded_resume_id)
        ]
        # The result only carries a version once the row holding it is stored
        version = self.ledger.next_version(resume_lineage(result.uploaded_resume_id))

        row = self.storage.create_optimized_resume(
            user_id=result.user_id,
            uploaded_resume_id=result.uploaded_resume_id,
            session_id=result.session_id,
            content=result.content,
            original_content=result.original_content,
            job_description=result.job_description,
            job_url=result.job_url,
            job_details=result.job_details.to_json_dict(),
            metrics=result.metrics.to_json_dict(),
            analysis=result.analysis.to_json_dict(),
            changes=result.changes,
            resume_content=result.resume_content.to_json_dict(),
            contact_info=result.contact_info.to_json_dict(),
            metadata_={**result.metadata.to_json_dict(), "version": version},
            version=version,
            version_history=[entry.to_json_dict() for entry in history],
        )
        return OptimizedResumeResponse.from_entity(row)


def _merge_analysis(analysis: OptimizationAnalysis, report: ScoreReport) -> OptimizationAnalysis:
    """Fill sections the optimizer left empty from the scorer's notes."""
    return OptimizationAnalysis(
        strengths=analysis.strengths or report.analysis.strengths,
        improvements=analysis.improvements,
        gaps=analysis.gaps or report.analysis.gaps,
        suggestions=analysis.suggestions or report.analysis.suggestions,
    )
