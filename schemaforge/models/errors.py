"""
Caller-Facing Errors

Rejections raised before any billable work happens, plus lookup errors for
record operations. Collaborator errors (analyzer, provider, shape validator,
ledger) live beside the collaborator that raises them.
"""

from typing import Any, Dict


class SchemaForgeError(Exception):
    """Base class for errors whose message is safe to show to callers."""

    code = "error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class InvalidRequestError(SchemaForgeError):
    """Malformed request (bad URL, empty type, missing account)."""
    code = "invalid_request"


class GenerationRejected(SchemaForgeError):
    """Business rule rejected a generation before any work was done."""
    code = "generation_rejected"


class DuplicateSchemaType(GenerationRejected):
    code = "duplicate_schema_type"


class RegenerationLimitReached(GenerationRejected):
    code = "regeneration_limit_reached"


class SchemaTypeLimitReached(GenerationRejected):
    code = "schema_type_limit_reached"


class DeletionLimitReached(GenerationRejected):
    code = "deletion_limit_reached"


class BatchTooLarge(GenerationRejected):
    code = "batch_too_large"


class RecordNotFound(SchemaForgeError):
    code = "record_not_found"


class RecordAccessDenied(SchemaForgeError):
    code = "record_access_denied"
