from typing import Optional, Tuple

from skillsync.models import Requirement, SkillLevel

# (substring, bucket) checked in order
REQUIREMENT_RULES: Tuple[Tuple[str, Requirement], ...] = (
    ("must", Requirement.MANDATORY),
    ("should", Requirement.OPTIONAL),
    ("nice", Requirement.OPTIONAL),
)

# (prefix, bucket) checked in order
LEVEL_RULES: Tuple[Tuple[str, SkillLevel], ...] = (
    ("entry", SkillLevel.BEGINNER),
    ("begin", SkillLevel.BEGINNER),
    ("inter", SkillLevel.INTERMEDIATE),
    ("prof", SkillLevel.PROFESSIONAL),
    ("expert", SkillLevel.EXPERT),
)


def _normalize(text: Optional[str]) -> str:
    if not isinstance(text, str):
        return ""
    return text.strip().lower()


def map_requirement(text: Optional[str]) -> Optional[Requirement]:
    """
    Maps a free-text requirement such as "Must have" or "Nice to have" onto
    the local vocabulary.

    Args:
        text (Optional[str]): Requirement label from the recruiting platform.
    Returns:
        Optional[Requirement]: The bucket, or None when nothing matches.
    """
    normalized = _normalize(text)
    if not normalized:
        return None
    for needle, bucket in REQUIREMENT_RULES:
        if needle in normalized:
            return bucket
    return None


def map_level(text: Optional[str]) -> Optional[SkillLevel]:
    """
    Maps a free-text level such as "Entry level" or "Professional" onto
    the local vocabulary.

    Args:
        text (Optional[str]): Level label from the recruiting platform.
    Returns:
        Optional[SkillLevel]: The bucket, or None when nothing matches.
    """
    normalized = _normalize(text)
    if not normalized:
        return None
    for prefix, bucket in LEVEL_RULES:
        if normalized.startswith(prefix):
            return bucket
    return None
