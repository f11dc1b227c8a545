"""Bounded, re-scored refinement of generated schemas."""

from .limiter import (
    MAX_REFINEMENTS,
    RefinementLimiter,
    RefinementLimitReached,
    RefinementConflict,
    RefinementFailed,
)
from .sanitizer import (
    PROTECTED_PROPERTIES,
    PROTECTED_ORG_PROPERTIES,
    sanitize_refined_candidate,
)

__all__ = [
    "MAX_REFINEMENTS",
    "RefinementLimiter",
    "RefinementLimitReached",
    "RefinementConflict",
    "RefinementFailed",
    "PROTECTED_PROPERTIES",
    "PROTECTED_ORG_PROPERTIES",
    "sanitize_refined_candidate",
]
