"""
Prompt Builders

System and user prompts for schema generation and refinement. Every prompt
asks for a JSON object of the form {"schemas": [ ... ]} so both providers
can share one response parser.
"""

import json
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from ..models.types import AUTO_TYPE, FactSheet

NOT_FOUND = "[NOT FOUND]"
MAX_CONTENT_CHARS = 6000

BASE_SYSTEM_PROMPT = """You are a Schema.org expert producing production-ready JSON-LD for search and answer engines.

Rules:
1. Extract data ONLY from the page data you are given.
2. Never invent author names, dates, URLs, images, prices or contact details.
3. Never use placeholder values such as "John Doe", "Your Company" or example.com.
4. Omit a property when its value is not present in the page data.
5. Use only well-established Schema.org types and properties.
6. Keep schemas flat; nest objects only where Schema.org expects them.

Respond with a single JSON object: {"schemas": [ <JSON-LD object>, ... ]}.
Every schema must include "@context": "https://schema.org" and "@type"."""

AUTO_SELECTION_GUIDE = """Schema selection:
- BlogPosting for blog posts, Article for news and editorial content
- WebPage for static, service and landing pages
- FAQPage only when the page shows question and answer pairs
- Product, Event, Recipe or VideoObject only when the page data shows them
- LocalBusiness only when a physical address is present
Return 1 to 3 schemas, most important first."""

REFINE_SYSTEM_PROMPT = """You are a Schema.org expert improving existing JSON-LD.

Rules:
1. Keep every existing property value unless it is invalid Schema.org.
2. Add recommended properties only when the verified page metadata supports them.
3. Never add author, editor, contributor or creator unless the metadata names one.
4. Never add organization address, founder, telephone, email or contactPoint.
5. Never use placeholder values.
6. Keep the same @type for each schema and the same number of schemas.

Respond with a single JSON object: {"schemas": [ <JSON-LD object>, ... ]}."""


def build_generation_system_prompt(requested_type: str) -> str:
    if requested_type and requested_type != AUTO_TYPE:
        return (
            f"{BASE_SYSTEM_PROMPT}\n\n"
            f"Generate ONLY a {requested_type} schema as the first entry. "
            f"A BreadcrumbList may follow it when breadcrumbs are present."
        )
    return f"{BASE_SYSTEM_PROMPT}\n\n{AUTO_SELECTION_GUIDE}"


def _value(value: Any) -> str:
    if value in (None, "", [], {}):
        return NOT_FOUND
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def build_generation_prompt(
    facts: FactSheet,
    requested_type: str,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """User prompt carrying the fact sheet."""
    options = options or {}
    parsed = urlparse(facts.url)
    organization = facts.site_name or parsed.netloc.replace("www.", "")
    featured_image = facts.images[0]["url"] if facts.images else None
    reading_minutes = -(-facts.word_count // 200) if facts.word_count else 0

    sections = [
        "Extract Schema.org JSON-LD from this web page data.",
        "",
        "=== PAGE METADATA ===",
        f"URL: {facts.url}",
        f"Title: {_value(facts.title)}",
        f"Description: {_value(facts.description)}",
        f"Canonical URL: {facts.canonical_url or facts.url}",
        f"Language: {facts.language or 'en'}",
        "",
        "=== AUTHOR ===",
        f"Author: {_value(facts.author)}",
        f"If the author is {NOT_FOUND}, omit the author property entirely.",
        "",
        "=== DATES ===",
        f"Date Published: {_value(facts.date_published)}",
        f"Date Modified: {_value(facts.date_modified)}",
        "",
        "=== PUBLISHER ===",
        f"Organization: {organization}",
        f"Organization URL: {parsed.scheme}://{parsed.netloc}",
        f"Social profiles: {_value(facts.social_urls)}",
        "",
        "=== MEDIA ===",
        f"Featured Image: {_value(featured_image)}",
        f"Images: {_value(facts.images[:5])}",
        f"Videos: {_value(facts.videos[:3])}",
        "",
        "=== STRUCTURE ===",
        f"Headings: {_value(facts.headings[:15])}",
        f"Breadcrumbs: {_value(facts.breadcrumbs)}",
        f"FAQ items: {_value(facts.faq_items[:10])}",
        f"Word Count: {facts.word_count}",
        f"Reading Time: PT{reading_minutes}M",
        "",
        "=== EXISTING JSON-LD ON PAGE ===",
        _value(facts.existing_json_ld[:3]),
        "",
        f"=== CONTENT PREVIEW ({min(len(facts.text_excerpt), MAX_CONTENT_CHARS)} characters) ===",
        facts.text_excerpt[:MAX_CONTENT_CHARS] or NOT_FOUND,
    ]

    if requested_type and requested_type != AUTO_TYPE:
        sections += ["", f"Requested schema type: {requested_type}"]
    if options.get("instructions"):
        sections += ["", f"Additional instructions: {options['instructions']}"]

    sections += ["", "Remember: omit properties rather than guess."]
    return "\n".join(sections)


def build_refinement_prompt(
    candidates: List[Dict[str, Any]],
    url: str,
    refinement_count: int,
    original_facts: Optional[Mapping[str, Any]] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """User prompt for one refinement pass over existing candidates."""
    options = options or {}
    facts = {k: v for k, v in (original_facts or {}).items() if v}

    sections = [
        f"Refine the JSON-LD for {url} (refinement #{refinement_count + 1}).",
        "",
        "=== CURRENT SCHEMAS ===",
        json.dumps(candidates, indent=2, ensure_ascii=False),
        "",
        "=== VERIFIED PAGE METADATA ===",
        json.dumps(facts, indent=2, ensure_ascii=False) if facts else NOT_FOUND,
        "",
        "Improve completeness: description, image, url, dateModified, keywords,",
        "inLanguage, isPartOf, breadcrumb and mainEntityOfPage where supported.",
    ]
    if options.get("instructions"):
        sections += ["", f"Additional instructions: {options['instructions']}"]
    return "\n".join(sections)
