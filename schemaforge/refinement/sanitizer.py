"""
Refined Schema Sanitizer

Removes properties an AI refinement pass added without support in the
page's original metadata:

1. Protected people properties (author, editor, contributor, creator)
   added during refinement are dropped unless the page metadata names an author.
2. Organization details (address, founder, contactPoint, telephone, ...)
   added to a publisher or provider are dropped on the first refinement.
   Later refinements may enhance them; placeholders are still removed.
3. Placeholder values ("John Doe", example.com, "[Your Company]",
   lorem ipsum) are removed wherever they appear in author or publisher.
"""

import copy
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


PROTECTED_PROPERTIES = ("author", "editor", "contributor", "creator")

PROTECTED_ORG_PROPERTIES = (
    "address",
    "founder",
    "founders",
    "employee",
    "employees",
    "memberOf",
    "member",
    "contactPoint",
    "telephone",
    "email",
    "faxNumber",
)

PLACEHOLDER_PATTERNS = [
    re.compile(r"john\s+doe", re.IGNORECASE),
    re.compile(r"jane\s+doe", re.IGNORECASE),
    re.compile(r"example\.com", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
    re.compile(r"\[your\s+", re.IGNORECASE),
    re.compile(r"\{your\s+", re.IGNORECASE),
    re.compile(r"\[company\s+", re.IGNORECASE),
    re.compile(r"\{company\s+", re.IGNORECASE),
    re.compile(r"lorem\s+ipsum", re.IGNORECASE),
]

FAKE_PROFILE_MARKERS = ("johndoe", "janedoe", "example")


def _is_placeholder(value: Any) -> bool:
    return isinstance(value, str) and any(p.search(value) for p in PLACEHOLDER_PATTERNS)


def _author_verified(original_facts: Optional[Mapping[str, Any]]) -> bool:
    if not original_facts:
        return False
    author = original_facts.get("author")
    return isinstance(author, str) and bool(author.strip())


def sanitize_refined_candidate(
    original: Dict[str, Any],
    refined: Dict[str, Any],
    original_facts: Optional[Mapping[str, Any]] = None,
    refinement_number: int = 1,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Strip unverified additions from one refined candidate.

    Args:
        original: Candidate before this refinement
        refined: Candidate returned by the AI refinement
        original_facts: Verification metadata captured at generation time
        refinement_number: 1 for the first refinement, 2 for the second, ...

    Returns:
        (sanitized candidate, list of human-readable removals)
    """
    original = original if isinstance(original, dict) else {}
    sanitized = copy.deepcopy(refined)
    removals: List[str] = []

    for prop in PROTECTED_PROPERTIES:
        if prop in sanitized and prop not in original:
            verified = prop == "author" and _author_verified(original_facts)
            if not verified:
                del sanitized[prop]
                removals.append(f"Removed unverified property: {prop}")

    if refinement_number <= 1:
        publisher = sanitized.get("publisher")
        if isinstance(publisher, dict):
            removals.extend(_strip_org_additions(
                original.get("publisher") if isinstance(original.get("publisher"), dict) else {},
                publisher,
                "publisher",
            ))

        main_entity = sanitized.get("mainEntity")
        if isinstance(main_entity, dict) and isinstance(main_entity.get("provider"), dict):
            original_entity = original.get("mainEntity") if isinstance(original.get("mainEntity"), dict) else {}
            original_provider = original_entity.get("provider") if isinstance(original_entity.get("provider"), dict) else {}
            removals.extend(_strip_org_additions(original_provider, main_entity["provider"], "provider"))

    removals.extend(_remove_placeholders(sanitized))

    if removals:
        logger.info(f"Sanitized refined schema (refinement #{refinement_number}): {len(removals)} removal(s)")
    return sanitized, removals


def _strip_org_additions(original: Dict[str, Any], refined: Dict[str, Any], label: str) -> List[str]:
    removals = []
    for prop in PROTECTED_ORG_PROPERTIES:
        if prop in refined and prop not in original:
            del refined[prop]
            removals.append(f"Removed unverified {label} property: {prop}")
    return removals


def _remove_placeholders(candidate: Dict[str, Any]) -> List[str]:
    removals = []

    author = candidate.get("author")
    if isinstance(author, dict):
        same_as = author.get("sameAs")
        links = same_as if isinstance(same_as, list) else [same_as]
        fake_links = any(
            isinstance(link, str) and any(marker in link.lower() for marker in FAKE_PROFILE_MARKERS)
            for link in links
        )
        if _is_placeholder(author.get("name")):
            del candidate["author"]
            removals.append("Removed placeholder author")
        elif fake_links:
            del candidate["author"]
            removals.append("Removed author with placeholder profile links")
    elif _is_placeholder(author):
        del candidate["author"]
        removals.append("Removed placeholder author")

    publisher = candidate.get("publisher")
    if isinstance(publisher, dict) and _is_placeholder(publisher.get("name")):
        del publisher["name"]
        removals.append("Removed placeholder publisher name")

    return removals
