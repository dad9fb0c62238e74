import asyncio
import json
import re
import logging
from typing import Optional

from resume_optimizer.core import prompts
from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import (
    AIError,
    InsufficientContentError,
    OptimizationError,
    StepTimeoutError,
)
from resume_optimizer.core.schemas import Malformed, validate_as
from resume_optimizer.schemas.job import JobAnalysis
from resume_optimizer.schemas.resume import ContactInfo, OptimizationResult

logger = logging.getLogger(__name__)

STEP = "optimizing_resume"
MIN_CONTENT_CHARS = 100

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE = re.compile(r"\+?\d[\d\-\(\) .]{8,}\d")
_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text.strip()).strip()


def _digits(text: str) -> str:
    return re.sub(r"\D", "", text)


def missing_contact_details(original: str, optimized: str) -> list:
    """Contact details present in the original text but absent from the rewrite."""
    missing = []
    email = _EMAIL.search(original)
    if email and email.group().lower() not in optimized.lower():
        missing.append("email")
    phone = next((m.group() for m in _PHONE.finditer(original) if len(_digits(m.group())) >= 10), None)
    # Subscriber number only; a dropped or added country code still matches
    if phone and _digits(phone)[-10:] not in _digits(optimized):
        missing.append("phone")
    return missing


class ResumeOptimizer:
    """
    Rewrites a resume toward a job description.
    Output is validated before it is returned; short or contact-dropping rewrites are rejected.
    """

    def __init__(self, ai, timeout: Optional[float] = None):
        self.ai = ai
        self.timeout = settings.pipeline.optimize_timeout if timeout is None else timeout

    async def optimize(
        self,
        resume_text: str,
        job_description: str,
        job_analysis: JobAnalysis,
        contact_info: Optional[ContactInfo] = None,
    ) -> OptimizationResult:
        user_content = prompts.get_prompt(
            prompts.RESUME_OPTIMIZE_USER_TEMPLATE,
            resume_text=resume_text,
            job_description=job_description,
            job_analysis=json.dumps(job_analysis.to_json_dict(), indent=2),
        )

        try:
            result = await asyncio.wait_for(
                self.ai.generate_structured(prompts.RESUME_OPTIMIZE_SYSTEM, user_content, temperature=0.3),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Resume optimization exceeded {self.timeout}s")
            raise StepTimeoutError(
                f"Resume optimization timed out after {int(self.timeout)} seconds",
                step=STEP,
                details={"timeoutSeconds": self.timeout},
            )
        except AIError as e:
            raise OptimizationError(f"Resume optimization failed: {e.message}", step=STEP, details={"cause": e.error_code})

        result = validate_as(result, OptimizationResult)
        if isinstance(result, Malformed):
            raise OptimizationError(
                "Resume optimization returned an unusable response",
                step=STEP,
                details={"reason": result.reason},
            )

        optimized = result.value
        optimized.optimized_content = strip_code_fences(optimized.optimized_content)

        if len(optimized.optimized_content) < MIN_CONTENT_CHARS:
            raise InsufficientContentError(
                "Optimized resume content is too short or empty",
                step=STEP,
                details={"length": len(optimized.optimized_content), "minimum": MIN_CONTENT_CHARS},
            )

        missing = missing_contact_details(resume_text, optimized.optimized_content)
        if missing:
            raise OptimizationError(
                "Optimized resume did not preserve the original contact information",
                step=STEP,
                details={"missing": missing},
            )

        if contact_info is not None:
            optimized.resume_content.contact_info = contact_info

        logger.info(f"Resume optimized: {len(optimized.optimized_content)} chars, {len(optimized.changes)} changes")
        return optimized
