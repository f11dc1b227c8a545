"""Structural and compliance validation of JSON-LD candidates."""

from .shape import (
    ShapeValidator,
    ShapeValidationResult,
    ShapeValidationError,
    ValidationIssue,
)
from .compliance import ComplianceValidator

__all__ = [
    "ShapeValidator",
    "ShapeValidationResult",
    "ShapeValidationError",
    "ValidationIssue",
    "ComplianceValidator",
]
