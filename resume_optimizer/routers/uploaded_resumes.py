from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from resume_optimizer.core.config import settings
from resume_optimizer.database import get_db
from resume_optimizer.models.user import User
from resume_optimizer.routers.auth_deps import get_current_user
from resume_optimizer.schemas.resume import UploadedResumeResponse
from resume_optimizer.services.resume_service import UploadedResumeService
from resume_optimizer.services.storage import SqlStorage

router = APIRouter(prefix="/uploaded-resumes")


@router.post("", response_model=UploadedResumeResponse, status_code=201)
async def upload_resume(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Accept a PDF, DOCX or TXT resume and store its extracted text."""
    data = await file.read()
    service = UploadedResumeService(SqlStorage(db), max_bytes=settings.max_upload_bytes)
    return service.upload(current_user, file.filename or "resume", file.content_type or "", data)


@router.get("", response_model=List[UploadedResumeResponse])
def list_uploaded_resumes(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [UploadedResumeResponse.from_entity(row) for row in SqlStorage(db).list_uploaded_resumes(current_user.id)]


@router.delete("/{resume_id}")
def delete_uploaded_resume(
    resume_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Optimized resumes derived from this upload are kept."""
    UploadedResumeService(SqlStorage(db), max_bytes=settings.max_upload_bytes).delete(current_user, resume_id)
    return {"success": True, "message": "Uploaded resume deleted"}
