import math
from typing import Any, List

from pydantic import Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from resume_optimizer.schemas.base import CamelModel, as_text_list

SCORE_FIELDS = (
    "overall", "keywords", "skills", "experience",
    "education", "personalization", "ai_readiness",
)


def coerce_score(value: Any) -> int:
    """Clamp anything into an integer in [0, 100]. Non-numeric input scores 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    number = min(max(number, 0.0), 100.0)
    return int(math.floor(number + 0.5))


class MatchScore(CamelModel):
    overall: int = 0
    keywords: int = 0
    skills: int = 0
    experience: int = 0
    education: int = 0
    personalization: int = 0
    ai_readiness: int = 0
    confidence: int = 0

    @model_validator(mode="before")
    @classmethod
    def _derive_confidence(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("confidence") is not None:
            return data
        values = []
        for name in SCORE_FIELDS:
            values.append(coerce_score(data.get(to_camel(name), data.get(name))))
        return {**data, "confidence": sum(values) / len(values)}

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return coerce_score(value)

    @classmethod
    def zero(cls) -> "MatchScore":
        return cls(confidence=0)


class ScoreAnalysis(CamelModel):
    strengths: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return as_text_list(value)


class ScoreReport(MatchScore):
    """A match score together with the scorer's qualitative notes."""
    analysis: ScoreAnalysis = Field(default_factory=ScoreAnalysis)

    @field_validator("analysis", mode="before")
    @classmethod
    def _analysis(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ScoreAnalysis)) else {}

    @field_validator(*SCORE_FIELDS, "confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return coerce_score(value)

    def score(self) -> MatchScore:
        return MatchScore.model_validate(self.model_dump(exclude={"analysis"}))


def default_score() -> ScoreReport:
    """The documented fallback returned whenever scoring cannot complete."""
    return ScoreReport()
