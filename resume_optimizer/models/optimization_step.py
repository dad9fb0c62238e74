from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from resume_optimizer.database import Base


class OptimizationStep(Base):
    """
    Audit/recovery trail of a run: one row per (session, step).
    Written after each step completes; never read on the completion path.
    """
    __tablename__ = "optimization_steps"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, nullable=False, index=True)
    step = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("session_id", "step", name="uq_optimization_step_session_step"),
    )
