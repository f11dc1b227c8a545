"""
Schema Type Compatibility Checker

Cheap pre-billing gate: rejects requested schema types whose required page
signals are absent, so mismatched requests never reach the paid AI call.

Rules:
- "Auto" and generic types (Article, WebPage, Organization, ...) always pass
- Specific types need their signal (VideoObject -> video, FAQPage -> FAQ blocks, ...)
- Unknown types pass; the AI generator gets to try them

Pure function, no I/O.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..models.types import AUTO_TYPE, FactSheet

logger = logging.getLogger(__name__)


ALWAYS_COMPATIBLE_TYPES = frozenset({
    AUTO_TYPE,
    "Article",
    "BlogPosting",
    "NewsArticle",
    "WebPage",
    "WebSite",
    "Organization",
    "BreadcrumbList",
    "Person",
})

RECIPE_URL_PATTERN = re.compile(r"/(recipes?|cooking|kitchen)(/|-|$)", re.IGNORECASE)


@dataclass(frozen=True)
class CompatibilityRule:
    signal: Callable[[FactSheet], bool]
    missing: str                        # what the page lacks, for the reason text
    alternatives: Tuple[str, ...]       # 2-3 generically safe types


def _has_recipe(facts: FactSheet) -> bool:
    return facts.has_recipe_info or bool(RECIPE_URL_PATTERN.search(facts.url or ""))


COMPATIBILITY_RULES: Dict[str, CompatibilityRule] = {
    "VideoObject": CompatibilityRule(
        lambda f: f.has_video, "no embedded or linked video", ("Article", "WebPage")),
    "FAQPage": CompatibilityRule(
        lambda f: f.has_faq_blocks, "no FAQ content (question and answer blocks)", ("Article", "WebPage", "BlogPosting")),
    "QAPage": CompatibilityRule(
        lambda f: f.has_faq_blocks, "no FAQ content (question and answer blocks)", ("Article", "WebPage")),
    "Product": CompatibilityRule(
        lambda f: f.has_product_info, "no product information such as price or availability", ("WebPage", "Organization", "Article")),
    "Event": CompatibilityRule(
        lambda f: f.has_event_info, "no event details such as dates or venue", ("Article", "WebPage")),
    "LocalBusiness": CompatibilityRule(
        lambda f: f.has_business_address, "no business address", ("Organization", "WebPage")),
    "Restaurant": CompatibilityRule(
        lambda f: f.has_business_address, "no business address", ("Organization", "WebPage")),
    "Store": CompatibilityRule(
        lambda f: f.has_business_address, "no business address", ("Organization", "WebPage")),
    "ImageObject": CompatibilityRule(
        lambda f: f.has_images, "no images", ("Article", "WebPage")),
    "Recipe": CompatibilityRule(
        _has_recipe, "no recipe content (ingredients or instructions)", ("Article", "BlogPosting", "WebPage")),
}


@dataclass
class CompatibilityResult:
    """Outcome of the compatibility gate."""
    compatible: bool
    requested_type: str
    reason: Optional[str] = None
    suggested_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "compatible": self.compatible,
            "requested_type": self.requested_type,
            "reason": self.reason,
            "suggested_types": list(self.suggested_types),
        }


def check_compatibility(requested_type: str, facts: FactSheet) -> CompatibilityResult:
    """
    Decide whether generating `requested_type` for this page is plausible.

    Args:
        requested_type: Schema.org type or "Auto"
        facts: Fact sheet from the content analyzer

    Returns:
        CompatibilityResult; incompatible results carry a reason and 2-3 safe alternatives
    """
    if requested_type in ALWAYS_COMPATIBLE_TYPES:
        return CompatibilityResult(compatible=True, requested_type=requested_type)

    rule = COMPATIBILITY_RULES.get(requested_type)
    if rule is None:
        logger.debug(f"No compatibility rule for {requested_type}, allowing")
        return CompatibilityResult(compatible=True, requested_type=requested_type)

    if rule.signal(facts):
        return CompatibilityResult(compatible=True, requested_type=requested_type)

    reason = f"{requested_type} schema requires content this page does not have: {rule.missing}"
    logger.info(f"Incompatible request for {facts.url}: {reason}")
    return CompatibilityResult(
        compatible=False,
        requested_type=requested_type,
        reason=reason,
        suggested_types=list(rule.alternatives),
    )
