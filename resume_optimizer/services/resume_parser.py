import asyncio
import logging
from typing import Optional

from resume_optimizer.core import prompts
from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import AIError, ParsingError, ParsingTimeoutError
from resume_optimizer.core.schemas import Malformed, validate_as
from resume_optimizer.schemas.resume import ResumeContent

logger = logging.getLogger(__name__)

STEP = "parsing_resume"
MAX_RESUME_CHARS = 15000


class ResumeParser:
    """
    Semantic resume parser: raw text in, structured ResumeContent out.
    Does not retry; a timeout or unusable reply is reported to the caller.
    """

    def __init__(self, ai, timeout: Optional[float] = None):
        self.ai = ai
        self.timeout = settings.pipeline.parse_timeout if timeout is None else timeout

    async def parse(self, raw_text: str) -> ResumeContent:
        if not raw_text or not raw_text.strip():
            raise ParsingError("Resume text is empty", step=STEP)

        try:
            result = await asyncio.wait_for(
                self.ai.generate_structured(
                    prompts.RESUME_PARSE_SYSTEM, raw_text[:MAX_RESUME_CHARS], temperature=0.1
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Resume parsing exceeded {self.timeout}s")
            raise ParsingTimeoutError(
                f"Resume parsing timed out after {int(self.timeout)} seconds",
                step=STEP,
                details={"timeoutSeconds": self.timeout},
            )
        except AIError as e:
            raise ParsingError(f"Resume parsing failed: {e.message}", step=STEP, details={"cause": e.error_code})

        if not isinstance(result, Malformed) and not result.value:
            result = Malformed(raw_text="{}", reason="empty JSON object")

        result = validate_as(result, ResumeContent)
        if isinstance(result, Malformed):
            raise ParsingError(
                "Resume could not be parsed into structured content",
                step=STEP,
                details={"reason": result.reason},
            )
        return result.value
