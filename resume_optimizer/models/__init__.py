# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, resume, cover_letter, optimization_step, version_counter

# Explicit class exports for cleaner imports
from .user import User
from .resume import UploadedResume, OptimizedResume
from .cover_letter import CoverLetter
from .optimization_step import OptimizationStep
from .version_counter import VersionCounter

__all__ = [
    "User",
    "UploadedResume",
    "OptimizedResume",
    "CoverLetter",
    "OptimizationStep",
    "VersionCounter",
]
