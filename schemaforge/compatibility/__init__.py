"""Pre-billing compatibility gate between requested schema types and page content."""

from .checker import (
    ALWAYS_COMPATIBLE_TYPES,
    COMPATIBILITY_RULES,
    CompatibilityResult,
    check_compatibility,
)

__all__ = [
    "ALWAYS_COMPATIBLE_TYPES",
    "COMPATIBILITY_RULES",
    "CompatibilityResult",
    "check_compatibility",
]
