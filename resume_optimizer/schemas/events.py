"""
Progress events pushed to the client during an optimization run.

Business events are discriminated by ``status``; heartbeats carry ``type``
instead so clients can filter them before switching on status.
"""
import enum
import time
from typing import Any, Dict, Optional


class ProgressStatus(str, enum.Enum):
    STARTED = "started"
    EXTRACTING_DETAILS = "extracting_details"
    PARSING_RESUME = "parsing_resume"
    ANALYZING_DESCRIPTION = "analyzing_description"
    OPTIMIZING_RESUME = "optimizing_resume"
    CALCULATING_METRICS = "calculating_metrics"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.ERROR)


# Linear order of the pipeline; terminal states excluded
PIPELINE_STEPS = (
    ProgressStatus.STARTED,
    ProgressStatus.EXTRACTING_DETAILS,
    ProgressStatus.PARSING_RESUME,
    ProgressStatus.ANALYZING_DESCRIPTION,
    ProgressStatus.OPTIMIZING_RESUME,
    ProgressStatus.CALCULATING_METRICS,
)


def step_event(status: ProgressStatus) -> Dict[str, Any]:
    return {"status": status.value}


def completed_event(optimized_resume: Dict[str, Any], warning: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    event = {"status": ProgressStatus.COMPLETED.value, "optimizedResume": optimized_resume}
    if warning:
        event["warning"] = warning
    return event


def error_event(
    message: str,
    code: str,
    step: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    event = {"status": ProgressStatus.ERROR.value, "message": message, "code": code}
    if step:
        event["step"] = step
    if details:
        event["details"] = details
    return event


def heartbeat_event() -> Dict[str, Any]:
    return {"type": "heartbeat", "timestamp": int(time.time() * 1000)}


def is_terminal_event(event: Dict[str, Any]) -> bool:
    return event.get("status") in (ProgressStatus.COMPLETED.value, ProgressStatus.ERROR.value)
