from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from resume_optimizer.schemas.base import CamelModel, as_text_list
from resume_optimizer.schemas.scoring import coerce_score


class CoverLetterDraft(CamelModel):
    """Shape returned by the generation capability for a cover letter."""
    cover_letter: str = ""
    highlights: List[str] = Field(default_factory=list)
    confidence: int = 0

    @field_validator("cover_letter", mode="before")
    @classmethod
    def _letter(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("highlights", mode="before")
    @classmethod
    def _highlights(cls, value: Any) -> List[str]:
        return as_text_list(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> int:
        return coerce_score(value)


class CoverLetterVersion(CamelModel):
    content: str
    version: str
    generated_at: str


class CoverLetterResponse(CamelModel):
    id: int
    user_id: int
    optimized_resume_id: int
    content: str
    version: str
    version_history: List[CoverLetterVersion] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    confidence: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entity(cls, row) -> "CoverLetterResponse":
        return cls(
            id=row.id,
            user_id=row.user_id,
            optimized_resume_id=row.optimized_resume_id,
            content=row.content,
            version=row.version,
            version_history=[CoverLetterVersion.model_validate(h) for h in (row.version_history or [])],
            highlights=row.highlights or [],
            confidence=coerce_score(row.confidence),
            metadata=row.metadata_ or {},
        )


class CoverLetterRequest(CamelModel):
    version: Optional[str] = None
