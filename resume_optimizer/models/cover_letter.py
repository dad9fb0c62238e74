from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Float
from sqlalchemy.sql import func
from resume_optimizer.database import Base


class CoverLetter(Base):
    __tablename__ = "cover_letters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    optimized_resume_id = Column(Integer, ForeignKey("optimized_resumes.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    version = Column(String, nullable=False)
    version_history = Column(JSON, nullable=False, default=list)  # [{content, version, generatedAt}]
    highlights = Column(JSON, nullable=False, default=list)
    confidence = Column(Float, nullable=False, default=0.0)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)  # {filename, generatedAt}

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
