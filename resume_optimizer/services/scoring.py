import asyncio
import logging
from typing import Optional

from resume_optimizer.core import prompts
from resume_optimizer.core.config import settings
from resume_optimizer.core.metrics import SCORING_DEGRADED
from resume_optimizer.core.schemas import Malformed, validate_as
from resume_optimizer.schemas.scoring import ScoreReport, default_score

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 12000


class MatchScorer:
    """
    Scores how well a resume matches a job description.
    Never raises: any failure yields the zero score so a run is never aborted by scoring.
    """

    def __init__(self, ai, timeout: Optional[float] = None):
        self.ai = ai
        self.timeout = settings.pipeline.metrics_timeout if timeout is None else timeout

    async def score(self, content: str, job_description: str) -> ScoreReport:
        try:
            result = await asyncio.wait_for(
                self.ai.generate_structured(
                    prompts.MATCH_SCORE_SYSTEM,
                    prompts.get_prompt(
                        prompts.MATCH_SCORE_USER_TEMPLATE,
                        content=content[:MAX_CONTENT_CHARS],
                        job_description=job_description[:MAX_CONTENT_CHARS],
                    ),
                    temperature=0.2,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Match scoring exceeded {self.timeout}s, using zero score")
            SCORING_DEGRADED.inc()
            return default_score()
        except Exception as e:
            logger.warning(f"Match scoring failed, using zero score: {e}")
            SCORING_DEGRADED.inc()
            return default_score()

        report = validate_as(result, ScoreReport)
        if isinstance(report, Malformed):
            logger.warning(f"Match scoring returned malformed output ({report.reason}), using zero score")
            SCORING_DEGRADED.inc()
            return default_score()
        return report.value
