import asyncio
import logging
from typing import Optional, Set

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import StreamingResponse

from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import ErrorCode
from resume_optimizer.core.limiter import limiter
from resume_optimizer.database import SessionScope, get_session_scope
from resume_optimizer.dependencies import build_orchestrator, get_ai_orchestrator
from resume_optimizer.models.user import User
from resume_optimizer.routers.auth_deps import get_current_user
from resume_optimizer.schemas.events import error_event
from resume_optimizer.schemas.resume import OptimizeRequest
from resume_optimizer.services.progress_channel import ProgressChannel
from resume_optimizer.services.storage import SqlStorage
from resume_optimizer.utils.sse import SSE_HEADERS, sse_stream

logger = logging.getLogger(__name__)

router = APIRouter()

# Strong references keep in-flight runs alive until they finish
_running_runs: Set[asyncio.Task] = set()


def _start_run(
    user_id: int,
    resume_id: int,
    job_url: Optional[str],
    job_description: Optional[str],
    session_scope: SessionScope,
    ai,
) -> StreamingResponse:
    channel = ProgressChannel()

    async def run():
        try:
            with session_scope() as db:
                orchestrator = build_orchestrator(SqlStorage(db), ai)
                await orchestrator.run(
                    user_id, resume_id, channel, job_url=job_url, job_description=job_description
                )
        except Exception:
            logger.exception("Optimization task crashed")
            await channel.send(error_event(
                "An unexpected error occurred during optimization", ErrorCode.FATAL_ERROR.value
            ))
        finally:
            channel.close()

    task = asyncio.create_task(run())
    _running_runs.add(task)
    task.add_done_callback(_running_runs.discard)

    return StreamingResponse(sse_stream(channel.events()), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/uploaded-resumes/{resume_id}/optimize")
@limiter.limit(settings.optimize_rate_limit)
async def optimize_resume(
    request: Request,
    resume_id: int,
    payload: Optional[OptimizeRequest] = Body(default=None),
    current_user: User = Depends(get_current_user),
    session_scope: SessionScope = Depends(get_session_scope),
    ai=Depends(get_ai_orchestrator),
):
    """Start an optimization run and stream its progress as server-sent events."""
    payload = payload or OptimizeRequest()
    return _start_run(current_user.id, resume_id, payload.job_url, payload.job_description, session_scope, ai)


@router.get("/uploaded-resumes/{resume_id}/optimize")
@limiter.limit(settings.optimize_rate_limit)
async def optimize_resume_stream(
    request: Request,
    resume_id: int,
    job_url: Optional[str] = Query(default=None, alias="jobUrl"),
    job_description: Optional[str] = Query(default=None, alias="jobDescription"),
    current_user: User = Depends(get_current_user),
    session_scope: SessionScope = Depends(get_session_scope),
    ai=Depends(get_ai_orchestrator),
):
    """EventSource-friendly variant taking the job input as query parameters."""
    return _start_run(current_user.id, resume_id, job_url, job_description, session_scope, ai)
