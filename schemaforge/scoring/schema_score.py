"""
Schema Quality Score Calculator

Calculates an explainable 0-100 quality score for one JSON-LD candidate:

1. Required properties (35%) - @context, @type, name/headline
2. Recommended properties (25%) - fixed seven-property set
3. Advanced properties (25%) - base set plus type-specific extras
4. Content quality (15%) - point rubric capped at 100

Formula:
    Overall = clamp(
        round(Required × 0.35 + Recommended × 0.25 + Advanced × 0.25 + Content × 0.15)
        + Compliance_Bonus,
        0, 100
    )

The calculation is a pure function: identical inputs always produce an
identical SchemaScore. It performs no I/O and holds no state, so it is safe
for live previews.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .compliance import ComplianceSignal, compliance_tier
from .properties import (
    REQUIRED_RULES,
    RECOMMENDED_RULES,
    CONTENT_TYPES,
    advanced_properties_for,
    declared_type,
    has_value,
    primary_node,
)

logger = logging.getLogger(__name__)

REQUIRED_WEIGHT = 0.35
RECOMMENDED_WEIGHT = 0.25
ADVANCED_WEIGHT = 0.25
CONTENT_WEIGHT = 0.15

DESCRIPTION_MIN = 50
DESCRIPTION_MAX = 160
SUBSTANTIAL_WORD_COUNT = 300


@dataclass
class ActionItem:
    """One remediation step with its estimated point impact."""
    id: str
    description: str
    priority: str           # critical | important | nice-to-have
    estimated_impact: int
    effort: str             # quick | medium | major
    category: str           # required | recommended | advanced | content

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "priority": self.priority,
            "estimated_impact": self.estimated_impact,
            "effort": self.effort,
            "category": self.category,
        }


@dataclass
class ScoreBreakdown:
    """Sub-scores, each 0-100 before weighting."""
    required_properties: int
    recommended_properties: int
    advanced_properties: int
    content_quality: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "required_properties": self.required_properties,
            "recommended_properties": self.recommended_properties,
            "advanced_properties": self.advanced_properties,
            "content_quality": self.content_quality,
        }


@dataclass
class SchemaScore:
    """Complete quality score for a candidate."""
    overall_score: int
    breakdown: ScoreBreakdown
    suggestions: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    action_items: List[ActionItem] = field(default_factory=list)
    compliance_bonus: Optional[int] = None
    compliance_tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "breakdown": self.breakdown.to_dict(),
            "suggestions": list(self.suggestions),
            "strengths": list(self.strengths),
            "action_items": [item.to_dict() for item in self.action_items],
            "compliance_bonus": self.compliance_bonus,
            "compliance_tier": self.compliance_tier,
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_schema_score(
    candidate: Dict[str, Any],
    compliance: Optional[ComplianceSignal] = None,
) -> SchemaScore:
    """
    Calculate the quality score for one candidate.

    Args:
        candidate: JSON-LD object (an @graph container scores its first typed node)
        compliance: Optional error/warning counts from a compliance validator

    Returns:
        SchemaScore with breakdown, strengths, suggestions and action items
    """
    node = primary_node(candidate)
    schema_type = declared_type(node)

    strengths: List[str] = []
    suggestions: List[str] = []
    action_items: List[ActionItem] = []

    required = _score_required(node, strengths, action_items)
    recommended = _score_recommended(node, strengths, suggestions, action_items)
    advanced = _score_advanced(node, schema_type, strengths, suggestions, action_items)
    content = _score_content(node, schema_type, strengths, suggestions, action_items)

    weighted = (
        required * REQUIRED_WEIGHT
        + recommended * RECOMMENDED_WEIGHT
        + advanced * ADVANCED_WEIGHT
        + content * CONTENT_WEIGHT
    )

    tier = compliance_tier(compliance)
    overall = max(0, min(100, _round_half_up(weighted) + tier.bonus))
    if tier.bonus > 0:
        strengths.append(f"{tier.label} (+{tier.bonus} bonus)")
    elif tier.bonus < 0:
        suggestions.append(f"{tier.label}: fix validation errors to remove the {tier.bonus} point penalty")

    suggestions.insert(0, _summary_for(overall))

    priority_order = {"critical": 0, "important": 1, "nice-to-have": 2}
    action_items.sort(key=lambda item: priority_order.get(item.priority, 3))

    return SchemaScore(
        overall_score=overall,
        breakdown=ScoreBreakdown(
            required_properties=required,
            recommended_properties=recommended,
            advanced_properties=advanced,
            content_quality=content,
        ),
        suggestions=suggestions,
        strengths=strengths,
        action_items=action_items,
        compliance_bonus=tier.bonus,
        compliance_tier=tier.name,
    )


# =============================================================================
# SUB-SCORES
# =============================================================================

def _score_required(node, strengths, action_items) -> int:
    score = 0
    for prop, share, remediation in REQUIRED_RULES:
        if prop == "name":
            present = has_value(node, "name") or has_value(node, "headline")
        else:
            present = has_value(node, prop)

        if present:
            score += share
            continue

        label = "name/headline" if prop == "name" else prop
        action_items.append(ActionItem(
            id=f"required-{prop.lstrip('@')}",
            description=remediation,
            priority="critical",
            estimated_impact=share,
            effort="quick",
            category="required",
        ))
        logger.debug(f"Missing required property: {label}")

    if score == 100:
        strengths.append("All required properties are present")
    return score


def _score_recommended(node, strengths, suggestions, action_items) -> int:
    present = 0
    for rule in RECOMMENDED_RULES:
        if has_value(node, rule.name):
            present += 1
            continue
        suggestions.append(rule.remediation)
        action_items.append(ActionItem(
            id=f"recommended-{rule.name}",
            description=rule.remediation,
            priority=rule.priority,
            estimated_impact=rule.impact,
            effort=rule.effort,
            category="recommended",
        ))

    total = len(RECOMMENDED_RULES)
    if present == total:
        strengths.append("All recommended properties are present")
    elif present >= total - 2:
        strengths.append(f"{present} of {total} recommended properties are present")
    return _round_half_up(present / total * 100)


def _score_advanced(node, schema_type, strengths, suggestions, action_items) -> int:
    applicable = advanced_properties_for(schema_type)
    missing = [prop for prop in applicable if not has_value(node, prop)]
    present = len(applicable) - len(missing)
    share = _round_half_up(100 / len(applicable))

    for prop in missing:
        action_items.append(ActionItem(
            id=f"advanced-{prop}",
            description=f"Add {prop} to strengthen topical signals for answer engines",
            priority="nice-to-have",
            estimated_impact=share,
            effort="medium",
            category="advanced",
        ))

    if present:
        strengths.append(f"{present} of {len(applicable)} advanced properties are present")
    if missing:
        suggestions.append(f"Consider adding advanced properties: {', '.join(missing[:4])}")
    return _round_half_up(present / len(applicable) * 100)


def _score_content(node, schema_type, strengths, suggestions, action_items) -> int:
    points = 0

    description = node.get("description")
    if isinstance(description, str) and description.strip():
        length = len(description.strip())
        if DESCRIPTION_MIN <= length <= DESCRIPTION_MAX:
            points += 20
            strengths.append("Description length is in the 50-160 character range")
        else:
            points += 10
            suggestions.append(
                f"Description is {length} characters; aim for {DESCRIPTION_MIN}-{DESCRIPTION_MAX}"
            )
            action_items.append(ActionItem(
                id="content-description-length",
                description=f"Rewrite the description to {DESCRIPTION_MIN}-{DESCRIPTION_MAX} characters",
                priority="nice-to-have",
                estimated_impact=10,
                effort="quick",
                category="content",
            ))

    author = node.get("author")
    if isinstance(author, list):
        author = next((a for a in author if isinstance(a, dict)), author[0] if author else None)
    if isinstance(author, dict):
        points += 15
        if has_value(author, "sameAs"):
            points += 10
            strengths.append("Author is structured and linked to a profile")
        else:
            action_items.append(ActionItem(
                id="content-author-profile",
                description="Link the author to a verified profile with sameAs",
                priority="nice-to-have",
                estimated_impact=10,
                effort="quick",
                category="content",
            ))
    elif isinstance(author, str) and author.strip():
        points += 10
        action_items.append(ActionItem(
            id="content-author-structured",
            description="Convert the author string into a Person object",
            priority="important",
            estimated_impact=15,
            effort="quick",
            category="content",
        ))

    publisher = node.get("publisher")
    if isinstance(publisher, dict):
        points += 15
        if has_value(publisher, "logo"):
            points += 10
            strengths.append("Publisher includes a logo")
        else:
            action_items.append(ActionItem(
                id="content-publisher-logo",
                description="Add a logo to the publisher Organization",
                priority="nice-to-have",
                estimated_impact=10,
                effort="quick",
                category="content",
            ))
    elif isinstance(publisher, str) and publisher.strip():
        points += 5
        action_items.append(ActionItem(
            id="content-publisher-structured",
            description="Convert the publisher string into an Organization object",
            priority="important",
            estimated_impact=20,
            effort="quick",
            category="content",
        ))

    image = node.get("image")
    if has_value(node, "image"):
        points += 10
        if isinstance(image, (dict, list)):
            points += 10
            strengths.append("Image data is structured")
        else:
            suggestions.append("Use an ImageObject (or a list of images) instead of a bare URL")

    keywords = node.get("keywords")
    if isinstance(keywords, list) and keywords:
        points += 10
    elif isinstance(keywords, str) and keywords.strip():
        points += 5

    if schema_type in CONTENT_TYPES:
        word_count = node.get("wordCount")
        if isinstance(word_count, (int, float)) and not isinstance(word_count, bool) \
                and word_count >= SUBSTANTIAL_WORD_COUNT:
            points += 10
            strengths.append(f"Substantial content ({int(word_count)} words)")

    return min(points, 100)


def _summary_for(overall: int) -> str:
    if overall >= 90:
        return "Excellent schema quality: this markup is ready for rich results and AI answers"
    if overall >= 75:
        return "Good schema quality: a few additions would make it stand out"
    if overall >= 60:
        return "Fair schema quality: add the recommended properties below"
    return "Schema needs work: start with the critical items below"
