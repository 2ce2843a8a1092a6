# recoengine/core/errors.py
"""
Error taxonomy of the recommendation engine.

NotFoundError and UpstreamUnavailableError abort a whole operation and are
mapped to HTTP responses by the exception handler registered in main.py.
An empty candidate list is never an error.
"""
from typing import Any, Dict, Optional


class RecoEngineError(Exception):
    """Base exception for engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class NotFoundError(RecoEngineError):
    """Raised when the anchor user, product or category does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity.capitalize()} '{entity_id}' not found",
            status_code=404,
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class UpstreamUnavailableError(RecoEngineError):
    """Raised when the catalog store cannot be reached or a read times out."""

    def __init__(self, operation: str, error: Optional[BaseException] = None):
        reason = f": {error}" if error is not None else ""
        super().__init__(
            message=f"Catalog store unavailable during '{operation}'{reason}",
            status_code=503,
            details={
                "operation": operation,
                "error_type": type(error).__name__ if error is not None else None,
            },
        )
        self.operation = operation
