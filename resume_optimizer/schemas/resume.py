from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from resume_optimizer.schemas.base import CamelModel, as_object_list, as_text, as_text_list
from resume_optimizer.schemas.job import JobDetails
from resume_optimizer.schemas.scoring import MatchScore

# --- STRUCTURED RESUME ---

class ContactInfo(CamelModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin: str = ""
    portfolio: str = ""
    github: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        # Location may arrive as {city, state, country}
        return as_text(value)


class Skills(CamelModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return as_text_list(value)


class ExperienceEntry(CamelModel):
    title: str = ""
    company: str = ""
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    achievements: List[str] = Field(default_factory=list)

    @field_validator("title", "company", "location", "start_date", "end_date", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("achievements", mode="before")
    @classmethod
    def _achievements(cls, value: Any) -> List[str]:
        return as_text_list(value)


class EducationEntry(CamelModel):
    degree: str = ""
    institution: str = ""
    location: str = ""
    graduation_date: str = ""
    gpa: str = ""
    honors: List[str] = Field(default_factory=list)

    @field_validator("degree", "institution", "location", "graduation_date", "gpa", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("honors", mode="before")
    @classmethod
    def _honors(cls, value: Any) -> List[str]:
        return as_text_list(value)


class ProjectEntry(CamelModel):
    name: str = ""
    description: str = ""
    technologies: List[str] = Field(default_factory=list)
    url: str = ""

    @field_validator("name", "description", "url", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("technologies", mode="before")
    @classmethod
    def _technologies(cls, value: Any) -> List[str]:
        return as_text_list(value)


class ResumeContent(CamelModel):
    """
    Structured resume. Every top-level key is always present; optional
    sections are empty rather than missing.
    """
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    professional_summary: str = ""
    skills: Skills = Field(default_factory=Skills)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    awards: List[str] = Field(default_factory=list)
    volunteer_work: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    publications: List[str] = Field(default_factory=list)

    @field_validator("contact_info", mode="before")
    @classmethod
    def _contact(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ContactInfo)) else {}

    @field_validator("skills", mode="before")
    @classmethod
    def _skills(cls, value: Any) -> Any:
        if isinstance(value, (dict, Skills)):
            return value
        # A flat list of skills is treated as technical skills
        return {"technical": value}

    @field_validator("professional_summary", mode="before")
    @classmethod
    def _summary(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("experience", "education", "projects", mode="before")
    @classmethod
    def _objects(cls, value: Any) -> List[dict]:
        if isinstance(value, list) and all(isinstance(v, CamelModel) for v in value):
            return value
        return as_object_list(value)

    @field_validator("awards", "volunteer_work", "languages", "publications", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return as_text_list(value)


# --- OPTIMIZATION OUTPUT ---

class OptimizationAnalysis(CamelModel):
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return as_text_list(value)


class OptimizationResult(CamelModel):
    optimized_content: str = ""
    changes: List[str] = Field(default_factory=list)
    resume_content: ResumeContent = Field(default_factory=ResumeContent)
    analysis: OptimizationAnalysis = Field(default_factory=OptimizationAnalysis)

    @field_validator("optimized_content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("changes", mode="before")
    @classmethod
    def _changes(cls, value: Any) -> List[str]:
        return as_text_list(value)

    @field_validator("resume_content", "analysis", mode="before")
    @classmethod
    def _objects(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, CamelModel)) else {}


# --- PERSISTED ENTITIES ---

class ScorePair(CamelModel):
    before: MatchScore = Field(default_factory=MatchScore.zero)
    after: MatchScore = Field(default_factory=MatchScore.zero)


class OptimizedResumeMetadata(CamelModel):
    filename: str
    optimized_at: str
    version: Optional[str] = None


class VersionHistoryEntry(CamelModel):
    version: str
    metrics: ScorePair
    timestamp: str


class OptimizedResumeResponse(CamelModel):
    id: Optional[int] = None
    user_id: int
    uploaded_resume_id: int
    session_id: str
    content: str
    original_content: str
    job_description: str
    job_url: Optional[str] = None
    job_details: JobDetails
    metrics: ScorePair
    analysis: OptimizationAnalysis
    changes: List[str] = Field(default_factory=list)
    resume_content: ResumeContent
    contact_info: ContactInfo
    metadata: OptimizedResumeMetadata
    version_history: List[VersionHistoryEntry] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, row) -> "OptimizedResumeResponse":
        return cls(
            id=row.id,
            user_id=row.user_id,
            uploaded_resume_id=row.uploaded_resume_id,
            session_id=row.session_id,
            content=row.content,
            original_content=row.original_content,
            job_description=row.job_description,
            job_url=row.job_url,
            job_details=JobDetails.model_validate(row.job_details),
            metrics=ScorePair.model_validate(row.metrics or {}),
            analysis=OptimizationAnalysis.model_validate(row.analysis or {}),
            changes=row.changes or [],
            resume_content=ResumeContent.model_validate(row.resume_content or {}),
            contact_info=ContactInfo.model_validate(row.contact_info or {}),
            metadata=OptimizedResumeMetadata.model_validate(row.metadata_),
            version_history=[VersionHistoryEntry.model_validate(h) for h in (row.version_history or [])],
        )


class UploadedResumeResponse(CamelModel):
    id: int
    user_id: int
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, row) -> "UploadedResumeResponse":
        return cls(
            id=row.id,
            user_id=row.user_id,
            content=row.content,
            metadata=row.metadata_ or {},
            created_at=row.created_at,
        )


# --- REQUESTS / RESPONSES ---

class OptimizeRequest(CamelModel):
    job_url: Optional[str] = None
    job_description: Optional[str] = None


class AnalysisResponse(CamelModel):
    before: MatchScore
    after: MatchScore
    analysis: OptimizationAnalysis


class VersionContentResponse(CamelModel):
    entity_id: int
    version: str
    content: str
