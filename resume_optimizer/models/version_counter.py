from sqlalchemy import Column, Integer, String
from resume_optimizer.database import Base


class VersionCounter(Base):
    """Per-lineage issue counter. Only ever mutated with an in-database increment."""
    __tablename__ = "version_counters"

    lineage_key = Column(String, primary_key=True)
    counter = Column(Integer, nullable=False, default=0)
