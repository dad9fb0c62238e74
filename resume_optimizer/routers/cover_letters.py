from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from resume_optimizer.database import get_db
from resume_optimizer.dependencies import get_ai_orchestrator
from resume_optimizer.models.user import User
from resume_optimizer.routers.auth_deps import get_current_user
from resume_optimizer.schemas.cover_letter import CoverLetterResponse
from resume_optimizer.schemas.resume import VersionContentResponse
from resume_optimizer.services.cover_letter import CoverLetterService
from resume_optimizer.services.storage import SqlStorage

router = APIRouter()


@router.post("/optimized-resumes/{optimized_id}/cover-letter", response_model=CoverLetterResponse)
async def generate_cover_letter(
    optimized_id: int,
    version: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ai=Depends(get_ai_orchestrator),
):
    """Generate (or regenerate) the cover letter for an optimized resume, optionally from an older version."""
    letter = await CoverLetterService(SqlStorage(db), ai).generate(current_user, optimized_id, version)
    return CoverLetterResponse.from_entity(letter)


@router.get("/cover-letters", response_model=List[CoverLetterResponse])
def list_cover_letters(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [CoverLetterResponse.from_entity(row) for row in SqlStorage(db).list_cover_letters(current_user.id)]


@router.get("/cover-letters/{cover_letter_id}", response_model=CoverLetterResponse)
def get_cover_letter(
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    letter = CoverLetterService(SqlStorage(db), ai=None).get_owned(current_user, cover_letter_id)
    return CoverLetterResponse.from_entity(letter)


@router.get("/cover-letters/{cover_letter_id}/versions/{version}", response_model=VersionContentResponse)
def get_cover_letter_version(
    cover_letter_id: int,
    version: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    content = CoverLetterService(SqlStorage(db), ai=None).get_version(current_user, cover_letter_id, version)
    return VersionContentResponse(entity_id=cover_letter_id, version=version, content=content)


@router.get("/cover-letters/{cover_letter_id}/download")
def download_cover_letter(
    cover_letter_id: int,
    format: str = Query(default="pdf"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data, filename, media_type = CoverLetterService(SqlStorage(db), ai=None).download(
        current_user, cover_letter_id, format
    )
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/cover-letters/{cover_letter_id}")
def delete_cover_letter(
    cover_letter_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    CoverLetterService(SqlStorage(db), ai=None).delete(current_user, cover_letter_id)
    return {"success": True, "message": "Cover letter deleted"}
