import logging
from datetime import datetime, timezone
from typing import Tuple

from resume_optimizer.core.exceptions import InvalidInputError, NotFoundError
from resume_optimizer.models import OptimizedResume
from resume_optimizer.schemas.resume import (
    AnalysisResponse,
    OptimizationAnalysis,
    ResumeContent,
    UploadedResumeResponse,
)
from resume_optimizer.services.auth import ensure_owner
from resume_optimizer.services.documents import (
    DOWNLOAD_FORMATS,
    parse_document,
    render_document,
    with_extension,
)

logger = logging.getLogger(__name__)


class OptimizedResumeService:
    """Reads, re-scores, downloads and deletes optimized resumes on behalf of their owner."""

    def __init__(self, storage, scorer=None):
        self.storage = storage
        self.scorer = scorer

    def get_owned(self, user, optimized_id: int) -> OptimizedResume:
        resume = self.storage.get_optimized_resume(optimized_id)
        if resume is None:
            raise NotFoundError("Optimized resume not found")
        ensure_owner(resume.user_id, user)
        return resume

    async def analyze_existing(self, user, optimized_id: int) -> AnalysisResponse:
        """Re-score stored content against its job description without re-optimizing."""
        resume = self.get_owned(user, optimized_id)
        before = await self.scorer.score(resume.original_content, resume.job_description)
        after = await self.scorer.score(resume.content, resume.job_description)
        stored = OptimizationAnalysis.model_validate(resume.analysis or {})
        return AnalysisResponse(
            before=before.score(),
            after=after.score(),
            analysis=OptimizationAnalysis(
                strengths=after.analysis.strengths or stored.strengths,
                improvements=stored.improvements,
                gaps=after.analysis.gaps or stored.gaps,
                suggestions=after.analysis.suggestions or stored.suggestions,
            ),
        )

    def get_version(self, user, optimized_id: int, version: str) -> OptimizedResume:
        """Look a version up within the resume's lineage by its exact version string."""
        resume = self.get_owned(user, optimized_id)
        if resume.version == version:
            return resume
        match = self.storage.find_optimized_version(resume.uploaded_resume_id, version)
        if match is None:
            raise NotFoundError(f"Version {version} not found")
        ensure_owner(match.user_id, user)
        return match

    def download(self, user, optimized_id: int, fmt: str) -> Tuple[bytes, str, str]:
        resume = self.get_owned(user, optimized_id)
        structured = ResumeContent.model_validate(resume.resume_content or {})
        # Fall back to the plain optimized text when structured content is missing
        if not structured.experience and not structured.contact_info.full_name:
            data = render_document(resume.content, fmt)
        else:
            data = render_document(structured, fmt)
        fmt = fmt.lower()
        filename = with_extension((resume.metadata_ or {}).get("filename") or f"resume_{resume.id}", fmt)
        return data, filename, DOWNLOAD_FORMATS[fmt]

    def delete(self, user, optimized_id: int) -> None:
        self.get_owned(user, optimized_id)
        if not self.storage.delete_optimized_resume(optimized_id):
            raise NotFoundError("Optimized resume not found")


class UploadedResumeService:
    def __init__(self, storage, max_bytes: int):
        self.storage = storage
        self.max_bytes = max_bytes

    def upload(self, user, filename: str, mime_type: str, data: bytes) -> UploadedResumeResponse:
        if len(data) > self.max_bytes:
            raise InvalidInputError(
                f"File exceeds the {self.max_bytes // (1024 * 1024)}MB limit",
                details={"size": len(data)},
            )
        content = parse_document(data, mime_type)
        row = self.storage.create_uploaded_resume(
            user.id,
            content,
            {
                "filename": filename,
                "fileType": mime_type,
                "uploadedAt": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.info(f"Uploaded resume {row.id} stored ({len(content)} chars)")
        return UploadedResumeResponse.from_entity(row)

    def delete(self, user, resume_id: int) -> None:
        resume = self.storage.get_uploaded_resume(resume_id)
        if resume is None:
            raise NotFoundError("Uploaded resume not found")
        ensure_owner(resume.user_id, user)
        self.storage.delete_uploaded_resume(resume_id)
