"""
Compliance Validator

Produces the error/warning counts that feed the scoring engine's compliance
tier. Combines the structural checks of the shape validator with
property-type restrictions that trip up validator.schema.org:

- articleSection / articleBody / wordCount outside Article types (error)
- speakable anywhere (warning, its CSS selectors are rarely valid)
- headline on types that should use name (warning)
"""

import logging
from typing import Any, Dict, List, Optional

from ..scoring import ComplianceSignal
from ..scoring.properties import ARTICLE_TYPES, declared_type, primary_node
from .shape import ShapeValidator, ValidationIssue

logger = logging.getLogger(__name__)

ARTICLE_ONLY_PROPERTIES = ("articleSection", "articleBody", "wordCount")
CREATIVE_WORK_TYPES = ARTICLE_TYPES | frozenset({"SocialMediaPosting", "CreativeWork", "Book", "Review"})
HEADLINE_INVALID_FOR = frozenset({
    "WebPage", "Organization", "LocalBusiness", "Product",
    "Service", "Event", "Person", "Place",
})


class ComplianceValidator:
    """
    Usage:
        signal = ComplianceValidator().check(candidate)
        score = calculate_schema_score(candidate, signal)
    """

    def __init__(self, shape_validator: Optional[ShapeValidator] = None):
        self.shape_validator = shape_validator or ShapeValidator()

    def issues(self, candidate: Any) -> Dict[str, List[ValidationIssue]]:
        result = self.shape_validator.validate(candidate)
        errors = list(result.errors)
        warnings = list(result.warnings)

        node = primary_node(candidate)
        schema_type = declared_type(node)
        if schema_type:
            for prop in ARTICLE_ONLY_PROPERTIES:
                if prop not in node:
                    continue
                allowed = CREATIVE_WORK_TYPES if prop == "wordCount" else ARTICLE_TYPES
                if schema_type not in allowed:
                    errors.append(ValidationIssue(
                        prop, f"\"{prop}\" is not a valid property of {schema_type}", "error"))

            if "headline" in node and schema_type in HEADLINE_INVALID_FOR:
                warnings.append(ValidationIssue(
                    "headline", f"{schema_type} should use \"name\" instead of \"headline\"", "warning"))

        if isinstance(node, dict) and "speakable" in node:
            warnings.append(ValidationIssue(
                "speakable", "speakable selectors are frequently rejected by validators", "warning"))

        return {"errors": errors, "warnings": warnings}

    def check(self, candidate: Any) -> ComplianceSignal:
        found = self.issues(candidate)
        signal = ComplianceSignal(
            error_count=len(found["errors"]),
            warning_count=len(found["warnings"]),
        )
        logger.debug(f"Compliance: {signal.error_count} errors, {signal.warning_count} warnings")
        return signal
