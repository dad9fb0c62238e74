import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from resume_optimizer.core import prompts
from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import (
    AIError,
    NotFoundError,
    OptimizationError,
    StepTimeoutError,
)
from resume_optimizer.core.schemas import Malformed, validate_as
from resume_optimizer.models import CoverLetter, OptimizedResume
from resume_optimizer.schemas.cover_letter import CoverLetterDraft
from resume_optimizer.services.auth import ensure_owner
from resume_optimizer.services.documents import DOWNLOAD_FORMATS, get_initials, render_document, with_extension
from resume_optimizer.services.version_ledger import VersionLedger, cover_letter_lineage

logger = logging.getLogger(__name__)

STEP = "generating_cover_letter"


class CoverLetterService:
    """Generates and regenerates the cover letter attached to an optimized resume."""

    def __init__(self, storage, ai, ledger: Optional[VersionLedger] = None, timeout: Optional[float] = None):
        self.storage = storage
        self.ai = ai
        self.ledger = ledger or VersionLedger(storage)
        self.timeout = settings.pipeline.cover_letter_timeout if timeout is None else timeout

    def get_owned(self, user, cover_letter_id: int) -> CoverLetter:
        letter = self.storage.get_cover_letter(cover_letter_id)
        if letter is None:
            raise NotFoundError("Cover letter not found")
        ensure_owner(letter.user_id, user)
        return letter

    def _source_resume(self, user, optimized_resume_id: int, version: Optional[str]) -> OptimizedResume:
        resume = self.storage.get_optimized_resume(optimized_resume_id)
        if resume is None:
            raise NotFoundError("Optimized resume not found")
        ensure_owner(resume.user_id, user)
        if not version or version == resume.version:
            return resume

        source = self.storage.find_optimized_version(resume.uploaded_resume_id, version)
        if source is None:
            raise NotFoundError(f"Version {version} not found")
        ensure_owner(source.user_id, user)
        return source

    async def generate(self, user, optimized_resume_id: int, version: Optional[str] = None) -> CoverLetter:
        """
        Create the first cover letter for a resume, or regenerate it.
        Regeneration keeps the previous text in the letter's version history.
        """
        source = self._source_resume(user, optimized_resume_id, version)

        draft = await self._draft(source)

        generated_at = datetime.now(timezone.utc).isoformat()
        new_version = self.ledger.next_version(cover_letter_lineage(optimized_resume_id))
        job_title = (source.job_details or {}).get("title", "")
        metadata = {
            "filename": f"{get_initials(source.original_content)}_cover_letter.pdf",
            "generatedAt": generated_at,
            "basedOnVersion": source.version,
            "jobTitle": job_title,
        }

        existing = self.storage.find_cover_letter_for(optimized_resume_id)
        if existing is None:
            letter = self.storage.create_cover_letter(
                user_id=user.id,
                optimized_resume_id=optimized_resume_id,
                content=draft.cover_letter,
                version=new_version,
                version_history=[],
                highlights=draft.highlights,
                confidence=draft.confidence,
                metadata_=metadata,
            )
        else:
            previous = {
                "content": existing.content,
                "version": existing.version,
                "generatedAt": (existing.metadata_ or {}).get("generatedAt", ""),
            }
            letter = self.storage.update_cover_letter(
                existing,
                content=draft.cover_letter,
                version=new_version,
                version_history=list(existing.version_history or []) + [previous],
                highlights=draft.highlights,
                confidence=draft.confidence,
                metadata_=metadata,
            )
        logger.info(f"Cover letter {letter.id} generated at version {new_version}")
        return letter

    async def _draft(self, source: OptimizedResume) -> CoverLetterDraft:
        user_content = prompts.get_prompt(
            prompts.COVER_LETTER_USER_TEMPLATE,
            resume_text=source.content,
            job_description=source.job_description,
        )
        try:
            result = await asyncio.wait_for(
                self.ai.generate_structured(prompts.COVER_LETTER_SYSTEM, user_content, temperature=0.7),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise StepTimeoutError(
                f"Cover letter generation timed out after {int(self.timeout)} seconds", step=STEP
            )
        except AIError as e:
            raise OptimizationError(f"Cover letter generation failed: {e.message}", step=STEP, details={"cause": e.error_code})

        result = validate_as(result, CoverLetterDraft)
        if isinstance(result, Malformed) or not result.value.cover_letter:
            reason = result.reason if isinstance(result, Malformed) else "empty cover letter"
            raise OptimizationError("Cover letter generation returned an unusable response", step=STEP, details={"reason": reason})
        return result.value

    def get_version(self, user, cover_letter_id: int, version: str) -> str:
        letter = self.get_owned(user, cover_letter_id)
        if letter.version == version:
            return letter.content
        for entry in letter.version_history or []:
            if entry.get("version") == version:
                return entry.get("content", "")
        raise NotFoundError(f"Version {version} not found")

    def delete(self, user, cover_letter_id: int) -> None:
        self.get_owned(user, cover_letter_id)
        if not self.storage.delete_cover_letter(cover_letter_id):
            raise NotFoundError("Cover letter not found")

    def download(self, user, cover_letter_id: int, fmt: str) -> Tuple[bytes, str, str]:
        letter = self.get_owned(user, cover_letter_id)
        data = render_document(letter.content, fmt)
        fmt = fmt.lower()
        filename = with_extension((letter.metadata_ or {}).get("filename") or f"cover_letter_{letter.id}", fmt)
        return data, filename, DOWNLOAD_FORMATS[fmt]
