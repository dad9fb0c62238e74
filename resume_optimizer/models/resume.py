from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from resume_optimizer.database import Base


class UploadedResume(Base):
    """Root of a lineage: the text extracted from a user's uploaded document."""
    __tablename__ = "uploaded_resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)  # {filename, fileType, uploadedAt}
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OptimizedResume(Base):
    __tablename__ = "optimized_resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Non-owning reference: deleting the uploaded resume leaves this row in place
    uploaded_resume_id = Column(Integer, nullable=False, index=True)
    session_id = Column(String, nullable=False, index=True)

    content = Column(Text, nullable=False)
    original_content = Column(Text, nullable=False)
    job_description = Column(Text, nullable=False)
    job_url = Column(String, nullable=True)
    job_details = Column(JSON, nullable=False, default=dict)

    metrics = Column(JSON, nullable=False, default=dict)  # {before: MatchScore, after: MatchScore}
    analysis = Column(JSON, nullable=False, default=dict)
    changes = Column(JSON, nullable=False, default=list)
    resume_content = Column(JSON, nullable=False, default=dict)
    contact_info = Column(JSON, nullable=False, default=dict)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)  # {filename, optimizedAt, version}
    version = Column(String, nullable=False, index=True)
    version_history = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("idx_optimized_lineage_version", "uploaded_resume_id", "version", unique=True),
    )
