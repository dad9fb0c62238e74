import enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from resume_optimizer.schemas.base import CamelModel, as_text, as_text_list

MAX_REQUIREMENT_CHARS = 30
MAX_SKILL_WORDS = 2


class PositionLevel(str, enum.Enum):
    ENTRY = "Entry-level"
    MID = "Mid-level"
    SENIOR = "Senior"
    LEAD = "Lead"
    UNSPECIFIED = "Not specified"


_LEVEL_SYNONYMS = {
    "entry": PositionLevel.ENTRY,
    "entry-level": PositionLevel.ENTRY,
    "entry level": PositionLevel.ENTRY,
    "junior": PositionLevel.ENTRY,
    "intern": PositionLevel.ENTRY,
    "graduate": PositionLevel.ENTRY,
    "mid": PositionLevel.MID,
    "mid-level": PositionLevel.MID,
    "mid level": PositionLevel.MID,
    "intermediate": PositionLevel.MID,
    "senior": PositionLevel.SENIOR,
    "sr": PositionLevel.SENIOR,
    "sr.": PositionLevel.SENIOR,
    "lead": PositionLevel.LEAD,
    "principal": PositionLevel.LEAD,
    "staff": PositionLevel.LEAD,
}


def normalize_position_level(value: Any) -> PositionLevel:
    """Map whatever the generator said onto the enum; unknown values become Not specified."""
    if isinstance(value, PositionLevel):
        return value
    text = as_text(value).lower()
    for level in PositionLevel:
        if text == level.value.lower():
            return level
    return _LEVEL_SYNONYMS.get(text, PositionLevel.UNSPECIFIED)


def truncate_requirement(text: str, limit: int = MAX_REQUIREMENT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


class JobDetails(CamelModel):
    """Normalized posting. Immutable once resolved for a run."""
    title: str = "Not specified"
    company: str = "Not specified"
    location: str = "Not specified"
    salary: Optional[str] = None
    description: str
    position_level: PositionLevel = PositionLevel.UNSPECIFIED
    key_requirements: List[str] = Field(default_factory=list)
    skills_and_tools: List[str] = Field(default_factory=list)

    @field_validator("title", "company", "location", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        return as_text(value) or "Not specified"

    @field_validator("salary", mode="before")
    @classmethod
    def _salary(cls, value: Any) -> Optional[str]:
        return as_text(value) or None

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("position_level", mode="before")
    @classmethod
    def _position_level(cls, value: Any) -> PositionLevel:
        return normalize_position_level(value)

    @field_validator("key_requirements", mode="before")
    @classmethod
    def _key_requirements(cls, value: Any) -> List[str]:
        return [truncate_requirement(item) for item in as_text_list(value)]

    @field_validator("skills_and_tools", mode="before")
    @classmethod
    def _skills_and_tools(cls, value: Any) -> List[str]:
        return [item for item in as_text_list(value) if len(item.split()) <= MAX_SKILL_WORDS]


class JobAnalysis(CamelModel):
    """Requirements breakdown fed to the optimizer."""
    skills: List[str] = Field(default_factory=list)
    experience_level: str = ""
    responsibilities: List[str] = Field(default_factory=list)
    primary_requirements: List[str] = Field(default_factory=list)
    secondary_requirements: List[str] = Field(default_factory=list)
    key_terminology: List[str] = Field(default_factory=list)

    @field_validator(
        "skills", "responsibilities", "primary_requirements",
        "secondary_requirements", "key_terminology", mode="before",
    )
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return as_text_list(value)

    @field_validator("experience_level", mode="before")
    @classmethod
    def _experience_level(cls, value: Any) -> str:
        return as_text(value)
