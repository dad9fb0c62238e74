import logging

from resume_optimizer.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

MINORS_PER_MAJOR = 10


def format_version(counter: int) -> str:
    """1 -> "1.0", 10 -> "1.9", 11 -> "2.0"."""
    if counter < 1:
        raise ValueError("version counters start at 1")
    major, minor = divmod(counter - 1, MINORS_PER_MAJOR)
    return f"{major + 1}.{minor}"


def parse_version(version: str) -> int:
    """Inverse of format_version."""
    try:
        major, minor = (int(part) for part in version.split("."))
    except ValueError:
        raise InvalidInputError(f"Invalid version '{version}', expected 'major.minor'")
    if major < 1 or not 0 <= minor < MINORS_PER_MAJOR:
        raise InvalidInputError(f"Invalid version '{version}', expected 'major.minor'")
    return (major - 1) * MINORS_PER_MAJOR + minor + 1


def resume_lineage(uploaded_resume_id: int) -> str:
    return f"uploaded_resume:{uploaded_resume_id}"


def cover_letter_lineage(optimized_resume_id: int) -> str:
    return f"cover_letter:{optimized_resume_id}"


class VersionLedger:
    """Issues monotonically increasing "major.minor" versions per lineage."""

    def __init__(self, storage):
        self.storage = storage

    def next_version(self, lineage_key: str) -> str:
        version = format_version(self.storage.increment_counter(lineage_key))
        logger.info(f"Issued version {version} for {lineage_key}")
        return version
