"""
Property Sets for Schema Quality Scoring

Required, recommended and type-aware advanced property sets used by the
scoring engine, plus helpers to resolve a candidate's declared type.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PropertyRule:
    """A scored property with its remediation guidance."""
    name: str
    impact: int          # estimated points for the sub-score remediation
    priority: str        # critical | important | nice-to-have
    effort: str          # quick | medium | major
    remediation: str


# =============================================================================
# REQUIRED (weight 0.35) - shares sum to 100
# =============================================================================

REQUIRED_RULES: Tuple[Tuple[str, int, str], ...] = (
    ("@context", 33, "Add \"@context\": \"https://schema.org\" so parsers recognise the vocabulary"),
    ("@type", 33, "Declare an \"@type\" so search engines know what the markup describes"),
    ("name", 34, "Add a \"name\" or \"headline\" that matches the page title"),
)


# =============================================================================
# RECOMMENDED (weight 0.25) - fixed seven-item set
# =============================================================================

RECOMMENDED_RULES: Tuple[PropertyRule, ...] = (
    PropertyRule("description", 15, "important", "quick",
                 "Add a description of 50-160 characters summarising the page"),
    PropertyRule("url", 10, "nice-to-have", "quick",
                 "Add the canonical URL of the page"),
    PropertyRule("image", 15, "important", "quick",
                 "Add a representative image (ImageObject with width and height preferred)"),
    PropertyRule("author", 15, "important", "medium",
                 "Add the author as a Person or Organization object"),
    PropertyRule("publisher", 12, "important", "medium",
                 "Add the publisher as an Organization with a logo"),
    PropertyRule("datePublished", 12, "important", "quick",
                 "Add datePublished in ISO 8601 format"),
    PropertyRule("dateModified", 10, "nice-to-have", "quick",
                 "Add dateModified so freshness can be assessed"),
)


# =============================================================================
# ADVANCED (weight 0.25) - base set plus per-type extras
# =============================================================================

BASE_ADVANCED_PROPERTIES: Tuple[str, ...] = (
    "keywords",
    "about",
    "mentions",
    "sameAs",
    "speakable",
    "inLanguage",
    "isPartOf",
    "mainEntityOfPage",
)

ARTICLE_TYPES = frozenset({
    "Article", "BlogPosting", "NewsArticle", "TechArticle",
    "ScholarlyArticle", "Report", "LiveBlogPosting",
})
LOCAL_BUSINESS_TYPES = frozenset({"LocalBusiness", "Restaurant", "Store"})

# Types where body length is meaningful for content quality
CONTENT_TYPES = ARTICLE_TYPES | frozenset({"HowTo", "Recipe", "WebPage"})

TYPE_ADVANCED_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "Product": ("aggregateRating", "review", "offers", "brand"),
    "Recipe": ("aggregateRating", "recipeIngredient", "recipeInstructions", "nutrition"),
    "Event": ("offers", "performer", "organizer", "eventStatus"),
    "VideoObject": ("thumbnailUrl", "uploadDate", "duration", "contentUrl"),
    "HowTo": ("step", "totalTime", "tool", "supply"),
    "Course": ("provider", "hasCourseInstance"),
    "JobPosting": ("hiringOrganization", "jobLocation", "baseSalary"),
    "Organization": ("logo", "contactPoint"),
}
for _article_type in ARTICLE_TYPES:
    TYPE_ADVANCED_PROPERTIES[_article_type] = ("articleSection", "wordCount")
for _business_type in LOCAL_BUSINESS_TYPES:
    TYPE_ADVANCED_PROPERTIES[_business_type] = (
        "aggregateRating", "review", "openingHoursSpecification", "geo",
    )


def advanced_properties_for(schema_type: Optional[str]) -> List[str]:
    """Applicable advanced property list for a declared type."""
    extras = TYPE_ADVANCED_PROPERTIES.get(schema_type or "", ())
    return list(BASE_ADVANCED_PROPERTIES) + [p for p in extras if p not in BASE_ADVANCED_PROPERTIES]


# =============================================================================
# HELPERS
# =============================================================================

def has_value(candidate: Dict[str, Any], prop: str) -> bool:
    """A property counts as present when it holds a non-empty value."""
    value = candidate.get(prop)
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, dict)) and len(value) == 0:
        return False
    return True


def declared_type(candidate: Any) -> Optional[str]:
    """
    Schema.org type of a candidate.

    A list-valued @type yields its first entry; an @graph container yields
    the type of its first typed node.
    """
    if not isinstance(candidate, dict):
        return None

    schema_type = candidate.get("@type")
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if isinstance(t, str)), None)
    if isinstance(schema_type, str) and schema_type:
        return schema_type

    graph = candidate.get("@graph")
    if isinstance(graph, list):
        for node in graph:
            node_type = declared_type(node)
            if node_type:
                return node_type
    return None


def primary_node(candidate: Any) -> Dict[str, Any]:
    """
    The object to score: the candidate itself, or for an @graph container
    its first typed node carrying the container's @context.
    """
    if not isinstance(candidate, dict):
        return {}
    if "@type" in candidate or not isinstance(candidate.get("@graph"), list):
        return candidate

    for node in candidate["@graph"]:
        if isinstance(node, dict) and declared_type(node):
            merged = dict(node)
            if "@context" in candidate and "@context" not in merged:
                merged["@context"] = candidate["@context"]
            return merged
    return candidate
