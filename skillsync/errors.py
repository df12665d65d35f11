"""
Exception hierarchy shared by the sync and regeneration services.

Every error carries the HTTP status the API layer answers with, so services
can raise without knowing about FastAPI.
"""
from typing import Any, Dict, Optional


class SkillSyncError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(SkillSyncError):
    status_code = 400


class NotFoundError(SkillSyncError):
    status_code = 404


class NoDataError(SkillSyncError):
    status_code = 422


class ExternalServiceError(SkillSyncError):
    """The recruiting platform could not be reached or answered badly."""
    status_code = 502


class GeneratorError(SkillSyncError):
    """The AI completion provider failed or returned nothing."""
    status_code = 502


class MalformedOutputError(GeneratorError):
    """Generator output could not be read as question-shaped content."""


class ChunkApplyError(SkillSyncError):
    """
    A chunk of mutations failed to commit. Chunks before `chunk_index` stay
    committed; `applied` holds their counts.
    """
    status_code = 500

    def __init__(self, chunk_index: int, applied: Dict[str, Dict[str, int]], cause: Optional[BaseException] = None):
        message = f"Failed to apply chunk {chunk_index}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.chunk_index = chunk_index
        self.applied = applied
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {"chunk": self.chunk_index, "applied": self.applied}
