"""
JSON-LD Shape Validator

Structural validation of generated candidates:

Errors (candidate is unusable):
- not an object
- missing @context or @type, or a malformed @type
- non-numeric ratingValue
- event ending before it starts

Warnings (usable, but worth fixing):
- @context that is not schema.org
- unrecognised @type
- badly formatted url / email / date / rating properties
- content-specific gaps (articles without author, products without offers, ...)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..models.errors import SchemaForgeError

logger = logging.getLogger(__name__)


class ShapeValidationError(SchemaForgeError):
    """No candidate survived shape validation."""
    code = "validation_error"


VALID_CONTEXTS = frozenset({
    "https://schema.org",
    "http://schema.org",
    "https://schema.org/",
    "http://schema.org/",
})

KNOWN_TYPES = frozenset({
    "Article", "BlogPosting", "NewsArticle", "TechArticle", "ScholarlyArticle", "Report",
    "Product", "Offer", "AggregateOffer", "Brand",
    "Organization", "Corporation", "LocalBusiness", "Restaurant", "Store",
    "Person", "Event", "Place", "PostalAddress", "GeoCoordinates", "ContactPoint",
    "Recipe", "HowTo", "HowToStep", "Course", "JobPosting",
    "WebSite", "WebPage", "BreadcrumbList", "ListItem", "SearchAction",
    "Review", "Rating", "AggregateRating",
    "FAQPage", "QAPage", "Question", "Answer",
    "ImageObject", "VideoObject", "SpeakableSpecification",
    "OpeningHoursSpecification", "NutritionInformation", "Thing", "CreativeWork",
})

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _is_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


def _is_date(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def _is_non_negative_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


PROPERTY_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "url": _is_url,
    "email": lambda v: isinstance(v, str) and bool(EMAIL_PATTERN.match(v)),
    "telephone": lambda v: isinstance(v, str) and len(v) > 0,
    "datePublished": _is_date,
    "dateModified": _is_date,
    "startDate": _is_date,
    "endDate": _is_date,
    "price": lambda v: isinstance(v, (str, int, float)) and not isinstance(v, bool),
    "ratingValue": _is_non_negative_number,
    "bestRating": _is_non_negative_number,
    "worstRating": _is_non_negative_number,
}


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: str  # error | warning

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "severity": self.severity}


@dataclass
class ShapeValidationResult:
    """Structural validity of one candidate."""
    is_valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


class ShapeValidator:
    """
    Validates JSON-LD candidates.

    Usage:
        validator = ShapeValidator()
        result = validator.validate(candidate)
        results = validator.validate_many(candidates)
    """

    def validate(self, candidate: Any) -> ShapeValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if not isinstance(candidate, dict):
            errors.append(ValidationIssue("schema", "Schema must be a JSON object", "error"))
            return ShapeValidationResult(False, errors, warnings)

        if isinstance(candidate.get("@graph"), list) and "@type" not in candidate:
            self._validate_graph(candidate, errors, warnings)
        else:
            self._validate_context(candidate, errors, warnings)
            schema_type = self._validate_type(candidate, errors, warnings)
            self._validate_formats(candidate, "", errors, warnings)
            self._validate_nested(candidate, "", errors, warnings)
            self._validate_content_rules(candidate, schema_type, errors, warnings)

        return ShapeValidationResult(not errors, errors, warnings)

    def validate_many(self, candidates: List[Any]) -> List[ShapeValidationResult]:
        return [self.validate(candidate) for candidate in candidates]

    @staticmethod
    def summarize(results: List[ShapeValidationResult]) -> Dict[str, Any]:
        total = len(results)
        valid = sum(1 for r in results if r.is_valid)
        return {
            "total_schemas": total,
            "valid_schemas": valid,
            "total_errors": sum(len(r.errors) for r in results),
            "total_warnings": sum(len(r.warnings) for r in results),
            "error_rate": round((total - valid) / total, 3) if total else 0.0,
        }

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _validate_graph(self, candidate, errors, warnings) -> None:
        self._validate_context(candidate, errors, warnings)
        nodes = candidate["@graph"]
        if not nodes:
            errors.append(ValidationIssue("@graph", "@graph must contain at least one node", "error"))
        for index, node in enumerate(nodes):
            path = f"@graph[{index}]"
            if not isinstance(node, dict):
                errors.append(ValidationIssue(path, "Graph nodes must be objects", "error"))
                continue
            schema_type = self._validate_type(node, errors, warnings, prefix=f"{path}.")
            self._validate_formats(node, f"{path}.", errors, warnings)
            self._validate_nested(node, path, errors, warnings)
            self._validate_content_rules(node, schema_type, errors, warnings, prefix=f"{path}.")

    def _validate_context(self, candidate, errors, warnings) -> None:
        context = candidate.get("@context")
        if not context:
            errors.append(ValidationIssue("@context", "@context is required for JSON-LD", "error"))
            return

        contexts = context if isinstance(context, list) else [context]
        if not any(isinstance(c, str) and c in VALID_CONTEXTS for c in contexts):
            warnings.append(ValidationIssue("@context", "Context should be a valid Schema.org URL", "warning"))

    def _validate_type(self, candidate, errors, warnings, prefix: str = "") -> Optional[str]:
        schema_type = candidate.get("@type")
        if not schema_type:
            errors.append(ValidationIssue(f"{prefix}@type", "@type is required for JSON-LD", "error"))
            return None

        types = schema_type if isinstance(schema_type, list) else [schema_type]
        if not types or not all(isinstance(t, str) and t for t in types):
            errors.append(ValidationIssue(f"{prefix}@type", "@type must be a string", "error"))
            return None

        for t in types:
            if t not in KNOWN_TYPES:
                warnings.append(ValidationIssue(
                    f"{prefix}@type", f"\"{t}\" is not a recognized Schema.org type", "warning"))
        return types[0]

    def _validate_formats(self, obj, prefix, errors, warnings) -> None:
        for prop, check in PROPERTY_VALIDATORS.items():
            if prop in obj and obj[prop] not in (None, "") and not check(obj[prop]):
                warnings.append(ValidationIssue(f"{prefix}{prop}", f"\"{prop}\" has invalid format", "warning"))

        image = obj.get("image")
        if isinstance(image, str) and not _is_url(image):
            warnings.append(ValidationIssue(f"{prefix}image", "Image should be a valid URL", "warning"))
        elif isinstance(image, list):
            for index, item in enumerate(image):
                if isinstance(item, str) and not _is_url(item):
                    warnings.append(ValidationIssue(f"{prefix}image[{index}]", "Image URL is invalid", "warning"))
        elif isinstance(image, dict) and not image.get("url") and not image.get("contentUrl"):
            warnings.append(ValidationIssue(f"{prefix}image.url", "Image object should have a url property", "warning"))

        author = obj.get("author")
        if isinstance(author, dict):
            if not author.get("@type"):
                warnings.append(ValidationIssue(f"{prefix}author.@type", "Author object should have @type property", "warning"))
            if not author.get("name"):
                warnings.append(ValidationIssue(f"{prefix}author.name", "Author should have a name", "warning"))

        rating = obj.get("aggregateRating")
        if rating is not None:
            self._validate_rating(rating, f"{prefix}aggregateRating", errors, warnings)

    def _validate_rating(self, rating, path, errors, warnings) -> None:
        if not isinstance(rating, dict):
            warnings.append(ValidationIssue(path, "Rating should be an object", "warning"))
            return

        value = rating.get("ratingValue")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(ValidationIssue(f"{path}.ratingValue", "ratingValue must be a number", "error"))
            return

        best, worst = rating.get("bestRating"), rating.get("worstRating")
        if _is_non_negative_number(best) and _is_non_negative_number(worst):
            if value > best or value < worst:
                warnings.append(ValidationIssue(
                    f"{path}.ratingValue", "ratingValue should be between worstRating and bestRating", "warning"))

    def _validate_nested(self, obj, parent, errors, warnings) -> None:
        # Nested objects inherit @context from the parent
        for key, value in obj.items():
            if key.startswith("@"):
                continue
            items = value if isinstance(value, list) else [value]
            for item in items:
                if isinstance(item, dict) and "@type" in item:
                    path = f"{parent}.{key}" if parent else key
                    self._validate_nested_object(item, path, errors, warnings)

    def _validate_nested_object(self, obj, path, errors, warnings) -> None:
        schema_type = obj.get("@type")
        if not schema_type:
            errors.append(ValidationIssue(f"{path}.@type", "@type is required for nested objects", "error"))
            return

        if isinstance(schema_type, str) and schema_type not in KNOWN_TYPES:
            warnings.append(ValidationIssue(
                f"{path}.@type", f"\"{schema_type}\" is not a recognized Schema.org type", "warning"))

        self._validate_formats(obj, f"{path}.", errors, warnings)

        if schema_type in ("Organization", "LocalBusiness") and path.endswith(("provider", "organizer")):
            self._validate_business(obj, f"{path}.", warnings)

        self._validate_nested(obj, path, errors, warnings)

    def _validate_content_rules(self, obj, schema_type, errors, warnings, prefix: str = "") -> None:
        if schema_type in ("Article", "BlogPosting", "NewsArticle"):
            for prop, message in (
                ("author", "Articles should have an author for better SEO"),
                ("datePublished", "Articles should have a publication date"),
                ("image", "Articles should have an image for better visibility"),
            ):
                if not obj.get(prop):
                    warnings.append(ValidationIssue(f"{prefix}{prop}", message, "warning"))

        elif schema_type == "Product":
            if not obj.get("image"):
                warnings.append(ValidationIssue(f"{prefix}image", "Products should have images for better visibility", "warning"))
            if not obj.get("description"):
                warnings.append(ValidationIssue(f"{prefix}description", "Products should have descriptions", "warning"))
            if not obj.get("offers") and not obj.get("price"):
                warnings.append(ValidationIssue(f"{prefix}offers", "Products should have offers or price information", "warning"))

        elif schema_type == "Event":
            if not obj.get("location"):
                warnings.append(ValidationIssue(f"{prefix}location", "Events should have location information", "warning"))
            start, end = obj.get("startDate"), obj.get("endDate")
            if _is_date(start) and _is_date(end):
                start_dt = datetime.fromisoformat(start.strip().replace("Z", "+00:00"))
                end_dt = datetime.fromisoformat(end.strip().replace("Z", "+00:00"))
                comparable = (start_dt.tzinfo is None) == (end_dt.tzinfo is None)
                if comparable and start_dt >= end_dt:
                    errors.append(ValidationIssue(f"{prefix}endDate", "End date must be after start date", "error"))

        elif schema_type in ("LocalBusiness", "Organization"):
            self._validate_business(obj, prefix, warnings)

    @staticmethod
    def _validate_business(obj, prefix, warnings) -> None:
        if not obj.get("address"):
            warnings.append(ValidationIssue(f"{prefix}address", "Businesses should have address information", "warning"))
        if not obj.get("telephone") and not obj.get("email"):
            warnings.append(ValidationIssue(
                f"{prefix}contact", "Businesses should have contact information (telephone or email)", "warning"))
