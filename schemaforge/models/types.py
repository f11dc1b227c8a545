"""
Domain Types

Value objects passed between pipeline stages:
- FactSheet: structured summary of a scraped page
- GenerationRequest: immutable input to one generation
- GenerationResult / RefinementResult: outputs returned to callers

Candidates themselves are plain JSON-LD dicts.
"""

import json
from dataclasses import dataclass, field, asdict
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from ..database.models import BillingPolicy
from ..scoring.properties import declared_type as primary_type
from ..scoring.schema_score import SchemaScore
from ..utils.urls import is_valid_http_url
from .errors import InvalidRequestError

AUTO_TYPE = "Auto"

Candidate = Dict[str, Any]


# =============================================================================
# SCHEMA TYPE DETECTION
# =============================================================================

# Schema.org @type -> product content-type family
DISPLAY_TYPE_MAP = {
    "Article": "Article",
    "NewsArticle": "Article",
    "BlogPosting": "Article",
    "ScholarlyArticle": "Article",
    "TechArticle": "Article",
    "Report": "Article",
    "FAQPage": "FAQ",
    "HowTo": "HowTo",
    "Recipe": "Recipe",
    "Product": "Product",
    "Organization": "Organization",
    "Corporation": "Organization",
    "LocalBusiness": "Local Business",
    "Store": "Local Business",
    "Restaurant": "Local Business",
    "Event": "Event",
    "Person": "Person",
    "VideoObject": "Video",
    "Course": "Course",
    "JobPosting": "Job Posting",
    "BreadcrumbList": "Breadcrumb",
    "WebSite": "Website",
    "WebPage": "Web Page",
}


def detect_type(candidates: List[Candidate]) -> Optional[str]:
    """Type of the first candidate that declares one."""
    for candidate in candidates or []:
        schema_type = primary_type(candidate)
        if schema_type:
            return schema_type
    return None


def display_type_name(schema_type: Optional[str]) -> str:
    """Human-readable family name for a Schema.org type."""
    if not schema_type:
        return AUTO_TYPE
    return DISPLAY_TYPE_MAP.get(schema_type, schema_type)


def html_script_tags(candidates: List[Candidate]) -> str:
    """Render candidates as copy-paste ready JSON-LD script blocks."""
    blocks = []
    for candidate in candidates or []:
        body = json.dumps(candidate, indent=2, ensure_ascii=False).replace("</", "<\\/")
        blocks.append(f'<script type="application/ld+json">\n{body}\n</script>')
    return "\n\n".join(blocks)


# =============================================================================
# FACT SHEET
# =============================================================================

@dataclass
class FactSheet:
    """Structured signals extracted from one page."""
    url: str
    title: str = ""
    description: str = ""
    word_count: int = 0

    # Content signals
    has_video: bool = False
    has_faq_blocks: bool = False
    has_product_info: bool = False
    has_event_info: bool = False
    has_business_address: bool = False
    has_images: bool = False
    has_recipe_info: bool = False

    # Extracted details
    headings: List[str] = field(default_factory=list)
    images: List[Dict[str, Any]] = field(default_factory=list)
    videos: List[Dict[str, Any]] = field(default_factory=list)
    faq_items: List[Dict[str, str]] = field(default_factory=list)
    breadcrumbs: List[Dict[str, str]] = field(default_factory=list)
    author: Optional[str] = None
    date_published: Optional[str] = None
    date_modified: Optional[str] = None
    language: Optional[str] = None
    site_name: Optional[str] = None
    canonical_url: Optional[str] = None
    social_urls: List[str] = field(default_factory=list)
    existing_json_ld: List[Dict[str, Any]] = field(default_factory=list)
    text_excerpt: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def verification_metadata(self) -> Dict[str, Any]:
        """Subset kept on the record to verify later refinements against."""
        return {
            "title": self.title or None,
            "description": self.description or None,
            "author": self.author,
            "date_published": self.date_published,
            "date_modified": self.date_modified,
            "site_name": self.site_name,
            "language": self.language,
        }


# =============================================================================
# REQUEST
# =============================================================================

@dataclass(frozen=True)
class GenerationRequest:
    """
    One generation call. Immutable once constructed.

    Args:
        url: Absolute http/https URL
        requested_type: Schema.org type or "Auto"
        account_id: Billing account
        options: Pass-through options for the AI generator
        billing_policy: Per-request policy (None uses the account's policy)
    """
    url: str
    requested_type: str
    account_id: str
    options: Mapping[str, Any] = field(default_factory=dict)
    billing_policy: Optional[BillingPolicy] = None

    def __post_init__(self):
        url = (self.url or "").strip()
        if not is_valid_http_url(url):
            raise InvalidRequestError(f"URL must be an absolute http or https URL: {self.url!r}")

        requested_type = (self.requested_type or "").strip()
        if not requested_type:
            raise InvalidRequestError("Requested schema type is required")
        if requested_type.lower() == AUTO_TYPE.lower():
            requested_type = AUTO_TYPE

        if not self.account_id:
            raise InvalidRequestError("Account id is required")

        object.__setattr__(self, "url", url)
        object.__setattr__(self, "requested_type", requested_type)
        object.__setattr__(self, "options", MappingProxyType(dict(self.options or {})))

    @property
    def is_auto(self) -> bool:
        return self.requested_type == AUTO_TYPE


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class GenerationResult:
    """Outcome of one generation, success or failure."""
    success: bool
    url: str
    requested_type: str
    record_id: Optional[str] = None
    final_type: Optional[str] = None
    candidates: List[Candidate] = field(default_factory=list)
    score: Optional[SchemaScore] = None
    credits_used: int = 0
    processing_time_ms: int = 0

    # Failure diagnostics (taxonomy codes only)
    failure_reason: Optional[str] = None
    failure_stage: Optional[str] = None
    failure_step: Optional[int] = None
    message: Optional[str] = None
    suggested_types: List[str] = field(default_factory=list)
    rejection_code: Optional[str] = None  # business-rule rejection, outside the failure taxonomy

    @property
    def html_script_tags(self) -> str:
        return html_script_tags(self.candidates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "record_id": self.record_id,
            "url": self.url,
            "requested_type": self.requested_type,
            "final_type": self.final_type,
            "display_type": display_type_name(self.final_type) if self.final_type else None,
            "candidates": self.candidates,
            "html_script_tags": self.html_script_tags if self.success else "",
            "score": self.score.to_dict() if self.score else None,
            "credits_used": self.credits_used,
            "processing_time_ms": self.processing_time_ms,
            "failure_reason": self.failure_reason,
            "failure_stage": self.failure_stage,
            "failure_step": self.failure_step,
            "message": self.message,
            "suggested_types": self.suggested_types,
            "rejection_code": self.rejection_code,
        }


@dataclass
class RefinementResult:
    """Outcome of one refinement pass."""
    record_id: str
    candidates: List[Candidate]
    score: SchemaScore
    refinement_count: int
    remaining_refinements: int
    change_summary: List[str] = field(default_factory=list)

    @property
    def html_script_tags(self) -> str:
        return html_script_tags(self.candidates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "candidates": self.candidates,
            "html_script_tags": self.html_script_tags,
            "score": self.score.to_dict(),
            "refinement_count": self.refinement_count,
            "remaining_refinements": self.remaining_refinements,
            "change_summary": self.change_summary,
        }
