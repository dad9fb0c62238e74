"""
SQL storage collaborator.

All persistence for the pipeline goes through SqlStorage so the orchestrator
can be handed a fake in tests. Every write commits (or rolls back) before it
returns; SQLAlchemy failures are re-signaled as StorageError.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from resume_optimizer.core.exceptions import StorageError
from resume_optimizer.models import CoverLetter, OptimizationStep, OptimizedResume, UploadedResume, VersionCounter

logger = logging.getLogger(__name__)


class SqlStorage:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Storage failure during {action}: {e}")
            raise StorageError(f"Failed to {action}", details={"cause": str(e)})

    def _add(self, row, action: str):
        self.db.add(row)
        self._commit(action)
        self.db.refresh(row)
        return row

    # --- Uploaded resumes ---

    def get_uploaded_resume(self, resume_id: int) -> Optional[UploadedResume]:
        return self.db.get(UploadedResume, resume_id)

    def list_uploaded_resumes(self, user_id: int) -> List[UploadedResume]:
        return (
            self.db.query(UploadedResume)
            .filter(UploadedResume.user_id == user_id)
            .order_by(UploadedResume.id.desc())
            .all()
        )

    def create_uploaded_resume(self, user_id: int, content: str, metadata: Dict[str, Any]) -> UploadedResume:
        row = UploadedResume(user_id=user_id, content=content, metadata_=metadata)
        return self._add(row, "save uploaded resume")

    def delete_uploaded_resume(self, resume_id: int) -> bool:
        """Optimized resumes derived from it are kept; they hold a non-owning reference."""
        row = self.get_uploaded_resume(resume_id)
        if row is None:
            return False
        self.db.delete(row)
        self._commit("delete uploaded resume")
        return True

    # --- Optimized resumes ---

    def get_optimized_resume(self, optimized_id: int) -> Optional[OptimizedResume]:
        return self.db.get(OptimizedResume, optimized_id)

    def list_optimized_resumes(self, user_id: int) -> List[OptimizedResume]:
        return (
            self.db.query(OptimizedResume)
            .filter(OptimizedResume.user_id == user_id)
            .order_by(OptimizedResume.id.desc())
            .all()
        )

    def lineage_history(self, uploaded_resume_id: int) -> List[OptimizedResume]:
        return (
            self.db.query(OptimizedResume)
            .filter(OptimizedResume.uploaded_resume_id == uploaded_resume_id)
            .order_by(OptimizedResume.id.asc())
            .all()
        )

    def find_optimized_version(self, uploaded_resume_id: int, version: str) -> Optional[OptimizedResume]:
        return (
            self.db.query(OptimizedResume)
            .filter(
                OptimizedResume.uploaded_resume_id == uploaded_resume_id,
                OptimizedResume.version == version,
            )
            .first()
        )

    def create_optimized_resume(self, **fields) -> OptimizedResume:
        return self._add(OptimizedResume(**fields), "save optimized resume")

    def delete_optimized_resume(self, optimized_id: int) -> bool:
        """Hard delete; the resume's cover letters go with it."""
        row = self.get_optimized_resume(optimized_id)
        if row is None:
            return False
        self.db.query(CoverLetter).filter(CoverLetter.optimized_resume_id == optimized_id).delete()
        self.db.delete(row)
        self._commit("delete optimized resume")
        return True

    # --- Cover letters ---

    def get_cover_letter(self, cover_letter_id: int) -> Optional[CoverLetter]:
        return self.db.get(CoverLetter, cover_letter_id)

    def list_cover_letters(self, user_id: int) -> List[CoverLetter]:
        return (
            self.db.query(CoverLetter)
            .filter(CoverLetter.user_id == user_id)
            .order_by(CoverLetter.id.desc())
            .all()
        )

    def find_cover_letter_for(self, optimized_resume_id: int) -> Optional[CoverLetter]:
        return (
            self.db.query(CoverLetter)
            .filter(CoverLetter.optimized_resume_id == optimized_resume_id)
            .order_by(CoverLetter.id.desc())
            .first()
        )

    def create_cover_letter(self, **fields) -> CoverLetter:
        return self._add(CoverLetter(**fields), "save cover letter")

    def update_cover_letter(self, row: CoverLetter, **fields) -> CoverLetter:
        for key, value in fields.items():
            setattr(row, key, value)
        self._commit("update cover letter")
        self.db.refresh(row)
        return row

    def delete_cover_letter(self, cover_letter_id: int) -> bool:
        row = self.get_cover_letter(cover_letter_id)
        if row is None:
            return False
        self.db.delete(row)
        self._commit("delete cover letter")
        return True

    # --- Step snapshots ---

    def save_step(self, session_id: str, step: str, data: Dict[str, Any]) -> None:
        """Upsert by (session, step); a retried step overwrites its earlier snapshot."""
        try:
            row = (
                self.db.query(OptimizationStep)
                .filter(OptimizationStep.session_id == session_id, OptimizationStep.step == step)
                .first()
            )
            if row is None:
                self.db.add(OptimizationStep(session_id=session_id, step=step, data=data))
            else:
                row.data = data
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to save step snapshot", details={"cause": str(e)})
        self._commit("save step snapshot")

    def get_steps(self, session_id: str) -> List[OptimizationStep]:
        return (
            self.db.query(OptimizationStep)
            .filter(OptimizationStep.session_id == session_id)
            .order_by(OptimizationStep.id.asc())
            .all()
        )

    # --- Version counters ---

    def increment_counter(self, lineage_key: str) -> int:
        """
        Atomically bump and return the counter for a lineage.
        The increment happens inside the database, so concurrent callers are
        serialized by the row write lock and never observe the same value.
        """
        bump = (
            update(VersionCounter)
            .where(VersionCounter.lineage_key == lineage_key)
            .values(counter=VersionCounter.counter + 1)
        )
        try:
            result = self.db.execute(bump)
            if result.rowcount == 0:
                try:
                    with self.db.begin_nested():
                        self.db.add(VersionCounter(lineage_key=lineage_key, counter=1))
                except IntegrityError:
                    # Another writer created the row first
                    self.db.execute(bump)
            value = self.db.execute(
                select(VersionCounter.counter).where(VersionCounter.lineage_key == lineage_key)
            ).scalar_one()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to issue version", details={"cause": str(e), "lineageKey": lineage_key})
        self._commit("issue version")
        return value
