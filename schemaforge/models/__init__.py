"""Domain types and caller-facing errors for SchemaForge."""

from .errors import (
    SchemaForgeError,
    InvalidRequestError,
    GenerationRejected,
    DuplicateSchemaType,
    RegenerationLimitReached,
    SchemaTypeLimitReached,
    DeletionLimitReached,
    BatchTooLarge,
    RecordNotFound,
    RecordAccessDenied,
)
from .types import (
    AUTO_TYPE,
    Candidate,
    FactSheet,
    GenerationRequest,
    GenerationResult,
    RefinementResult,
    primary_type,
    detect_type,
    display_type_name,
    html_script_tags,
)

__all__ = [
    # Errors
    "SchemaForgeError",
    "InvalidRequestError",
    "GenerationRejected",
    "DuplicateSchemaType",
    "RegenerationLimitReached",
    "SchemaTypeLimitReached",
    "DeletionLimitReached",
    "BatchTooLarge",
    "RecordNotFound",
    "RecordAccessDenied",
    # Types
    "AUTO_TYPE",
    "Candidate",
    "FactSheet",
    "GenerationRequest",
    "GenerationResult",
    "RefinementResult",
    "primary_type",
    "detect_type",
    "display_type_name",
    "html_script_tags",
]
