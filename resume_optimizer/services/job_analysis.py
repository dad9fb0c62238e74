import logging

from resume_optimizer.core import prompts
from resume_optimizer.core.exceptions import AIError, AnalysisError
from resume_optimizer.core.schemas import Malformed, validate_as
from resume_optimizer.schemas.job import JobAnalysis

logger = logging.getLogger(__name__)

STEP = "analyzing_description"


class JobAnalyzer:
    """Breaks a job description into skills, requirements and terminology for the optimizer."""

    def __init__(self, ai):
        self.ai = ai

    async def analyze(self, job_description: str) -> JobAnalysis:
        try:
            result = await self.ai.generate_structured(
                prompts.JOB_ANALYSIS_SYSTEM, job_description, temperature=0.3
            )
        except AIError as e:
            raise AnalysisError(f"Job analysis failed: {e.message}", step=STEP, details={"cause": e.error_code})

        result = validate_as(result, JobAnalysis)
        if isinstance(result, Malformed):
            raise AnalysisError(
                "Job analysis returned an unusable response",
                step=STEP,
                details={"reason": result.reason},
            )
        return result.value
