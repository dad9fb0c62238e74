from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from resume_optimizer.database import get_db
from resume_optimizer.dependencies import get_ai_orchestrator
from resume_optimizer.models.user import User
from resume_optimizer.routers.auth_deps import get_current_user
from resume_optimizer.schemas.resume import AnalysisResponse, OptimizedResumeResponse, VersionContentResponse
from resume_optimizer.services.resume_service import OptimizedResumeService
from resume_optimizer.services.scoring import MatchScorer
from resume_optimizer.services.storage import SqlStorage

router = APIRouter(prefix="/optimized-resumes")


@router.get("", response_model=List[OptimizedResumeResponse])
def list_optimized_resumes(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    rows = SqlStorage(db).list_optimized_resumes(current_user.id)
    return [OptimizedResumeResponse.from_entity(row) for row in rows]


@router.get("/{optimized_id}", response_model=OptimizedResumeResponse)
def get_optimized_resume(
    optimized_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = OptimizedResumeService(SqlStorage(db))
    return OptimizedResumeResponse.from_entity(service.get_owned(current_user, optimized_id))


@router.post("/{optimized_id}/analyze", response_model=AnalysisResponse)
async def analyze_optimized_resume(
    optimized_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ai=Depends(get_ai_orchestrator),
):
    """Re-score the stored before/after content without re-optimizing."""
    service = OptimizedResumeService(SqlStorage(db), scorer=MatchScorer(ai))
    return await service.analyze_existing(current_user, optimized_id)


@router.get("/{optimized_id}/versions/{version}", response_model=VersionContentResponse)
def get_optimized_resume_version(
    optimized_id: int,
    version: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    row = OptimizedResumeService(SqlStorage(db)).get_version(current_user, optimized_id, version)
    return VersionContentResponse(entity_id=row.id, version=row.version, content=row.content)


@router.get("/{optimized_id}/download")
def download_optimized_resume(
    optimized_id: int,
    format: str = Query(default="pdf"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data, filename, media_type = OptimizedResumeService(SqlStorage(db)).download(current_user, optimized_id, format)
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{optimized_id}")
def delete_optimized_resume(
    optimized_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    OptimizedResumeService(SqlStorage(db)).delete(current_user, optimized_id)
    return {"success": True, "message": "Optimized resume deleted"}
