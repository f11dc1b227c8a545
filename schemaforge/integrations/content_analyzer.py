"""
Content Analyzer

Turns a URL into a FactSheet for the generation pipeline.

Two calls, matching the first two pipeline steps:
1. validate_url() - reachability (HTTP 2xx/3xx) and crawler permission
   (X-Robots-Tag header, robots.txt, meta robots)
2. analyze() - fetch and extract page signals: title, description, word
   count, headings, images, videos, FAQ blocks, product / event / business /
   recipe signals, author, dates, language and existing JSON-LD

Every failure is raised as AnalyzerError with a kind from a closed set.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import httpx
from bs4 import BeautifulSoup

from ..models.types import FactSheet

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SchemaForgeBot/1.0)"

BLOCKING_ROBOTS_DIRECTIVES = ("noindex", "nofollow", "none")
ROBOTS_META_NAMES = ("robots", "googlebot", "bingbot")

VIDEO_EMBED_HOSTS = ("youtube.com", "youtube-nocookie.com", "youtu.be", "vimeo.com", "wistia", "loom.com")
SOCIAL_HOSTS = ("facebook.com", "twitter.com", "x.com", "linkedin.com", "instagram.com", "youtube.com")

PRICE_PATTERN = re.compile(r"(?:[$€£¥]\s?\d{1,3}(?:[,.]\d{3})*(?:[.,]\d{2})?|\d+(?:[.,]\d{2})\s?(?:USD|EUR|GBP|SEK|kr))")
STREET_PATTERN = re.compile(
    r"\b\d{1,5}\s+[A-Za-z0-9.\s]{2,40}\b(?:Street|St\.?|Avenue|Ave\.?|Road|Rd\.?|Boulevard|Blvd\.?|Lane|Ln\.?|Drive|Dr\.?|Way)\b"
)
EVENT_WORDS = re.compile(r"\b(tickets?|register now|venue|doors open|rsvp)\b", re.IGNORECASE)
CART_WORDS = re.compile(r"\b(add to cart|add to basket|buy now|in stock|out of stock)\b", re.IGNORECASE)

MAX_IMAGES = 20
MAX_HEADINGS = 30
MAX_FAQ_ITEMS = 20
EXCERPT_CHARS = 6000


class AnalyzerErrorKind(str, Enum):
    UNREACHABLE = "unreachable"
    ROBOTS_DISALLOWED = "robots_disallowed"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"


class AnalyzerError(Exception):
    """Content analysis failure with a closed-set kind."""

    def __init__(self, message: str, kind: AnalyzerErrorKind, status_code: int = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


@dataclass
class UrlCheck:
    """Result of the reachability and crawler-permission check."""
    url: str
    final_url: str
    status_code: int
    html: str = ""
    blocked_reasons: List[str] = field(default_factory=list)


class ContentAnalyzer:
    """
    Async page analyzer built on httpx.

    Usage:
        async with ContentAnalyzer(user_agent="MyBot/1.0") as analyzer:
            check = await analyzer.validate_url("https://example.com/post")
            facts = await analyzer.analyze(check.final_url, html=check.html)
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        respect_robots: bool = True,
        url_check_timeout: float = 15.0,
        scrape_timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize content analyzer.

        Args:
            user_agent: User agent sent with every request and matched against robots.txt
            respect_robots: Enforce robots.txt, X-Robots-Tag and meta robots
            url_check_timeout: Timeout for the reachability check
            scrape_timeout: Timeout for fetching page content
            client: Pre-configured httpx client (tests pass one with a MockTransport)
        """
        self.user_agent = user_agent
        self.respect_robots = respect_robots
        self.url_check_timeout = url_check_timeout
        self.scrape_timeout = scrape_timeout

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # =========================================================================
    # STEP 1: REACHABILITY AND CRAWLER PERMISSION
    # =========================================================================

    async def validate_url(self, url: str) -> UrlCheck:
        """
        Check that a URL answers with 2xx/3xx and allows crawling.

        Raises:
            AnalyzerError(UNREACHABLE | TIMEOUT | ROBOTS_DISALLOWED)
        """
        response = await self._get(url, self.url_check_timeout)

        if not 200 <= response.status_code < 400:
            raise AnalyzerError(
                f"URL returned HTTP {response.status_code}",
                AnalyzerErrorKind.UNREACHABLE,
                status_code=response.status_code,
            )

        check = UrlCheck(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            html=response.text,
        )

        if self.respect_robots:
            check.blocked_reasons.extend(self._header_blocks(response))
            check.blocked_reasons.extend(await self._robots_txt_blocks(url))
            check.blocked_reasons.extend(self._meta_blocks(check.html))

            if check.blocked_reasons:
                logger.info(f"Crawling blocked for {url}: {', '.join(check.blocked_reasons)}")
                raise AnalyzerError(
                    f"Crawling is not allowed: {', '.join(check.blocked_reasons)}",
                    AnalyzerErrorKind.ROBOTS_DISALLOWED,
                    status_code=response.status_code,
                )

        return check

    def _header_blocks(self, response: httpx.Response) -> List[str]:
        values = [v.lower() for v in response.headers.get_list("x-robots-tag")]
        header = ", ".join(values)
        return [
            f"X-Robots-Tag header ({directive})"
            for directive in BLOCKING_ROBOTS_DIRECTIVES
            if re.search(rf"\b{directive}\b", header)
        ]

    async def _robots_txt_blocks(self, url: str) -> List[str]:
        parsed = urlparse(url)
        robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"

        try:
            response = await self._client.get(robots_url, timeout=self.url_check_timeout)
        except httpx.HTTPError as e:
            # Missing or unreachable robots.txt allows crawling
            logger.debug(f"robots.txt unavailable for {parsed.netloc}: {e}")
            return []

        if response.status_code != 200:
            return []

        parser = RobotFileParser()
        parser.parse(response.text.splitlines())
        if not parser.can_fetch(self.user_agent, url):
            return ["robots.txt restrictions"]
        return []

    def _meta_blocks(self, html: str) -> List[str]:
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        reasons = []
        for name in ROBOTS_META_NAMES:
            tag = soup.find("meta", attrs={"name": re.compile(rf"^{name}$", re.I)})
            if not tag:
                continue
            content = (tag.get("content") or "").lower()
            for directive in BLOCKING_ROBOTS_DIRECTIVES:
                if re.search(rf"\b{directive}\b", content):
                    reasons.append(f"Meta robots tag ({name}: {directive})")
        return reasons

    # =========================================================================
    # STEP 2: CONTENT ANALYSIS
    # =========================================================================

    async def analyze(self, url: str, html: Optional[str] = None) -> FactSheet:
        """
        Build a fact sheet for a page.

        Args:
            url: Page URL
            html: Already fetched HTML (skips the network fetch)

        Raises:
            AnalyzerError(UNREACHABLE | TIMEOUT | PARSE_ERROR)
        """
        if html is None:
            response = await self._get(url, self.scrape_timeout)
            if response.status_code >= 400:
                raise AnalyzerError(
                    f"Page returned HTTP {response.status_code}",
                    AnalyzerErrorKind.UNREACHABLE,
                    status_code=response.status_code,
                )
            html = response.text

        if not html or not html.strip():
            raise AnalyzerError("Page returned no content", AnalyzerErrorKind.PARSE_ERROR)

        try:
            facts = self.parse(url, html)
        except Exception as e:
            logger.error(f"Failed to parse {url}: {e}")
            raise AnalyzerError(f"Could not parse page content: {e}", AnalyzerErrorKind.PARSE_ERROR) from e

        logger.info(
            f"Analyzed {url}: {facts.word_count} words, video={facts.has_video}, "
            f"faq={facts.has_faq_blocks}, product={facts.has_product_info}, "
            f"event={facts.has_event_info}, address={facts.has_business_address}"
        )
        return facts

    async def extract_existing_schemas(self, url: str) -> List[Dict[str, Any]]:
        """JSON-LD objects already published on a page."""
        response = await self._get(url, self.scrape_timeout)
        if response.status_code >= 400:
            raise AnalyzerError(
                f"Page returned HTTP {response.status_code}",
                AnalyzerErrorKind.UNREACHABLE,
                status_code=response.status_code,
            )
        return _extract_json_ld(BeautifulSoup(response.text, "html.parser"))

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        try:
            return await self._client.get(url, timeout=timeout)
        except httpx.TimeoutException as e:
            raise AnalyzerError(f"Timed out fetching {url}", AnalyzerErrorKind.TIMEOUT) from e
        except httpx.HTTPError as e:
            raise AnalyzerError(f"Could not reach {url}: {e}", AnalyzerErrorKind.UNREACHABLE) from e

    # =========================================================================
    # PARSING
    # =========================================================================

    def parse(self, url: str, html: str) -> FactSheet:
        """Extract a fact sheet from HTML (no I/O)."""
        soup = BeautifulSoup(html, "html.parser")

        json_ld = _extract_json_ld(soup)
        nodes = _flatten_nodes(json_ld)
        ld_types = _node_types(nodes)
        microdata_types = {
            itemtype.rstrip("/").rsplit("/", 1)[-1]
            for tag in soup.find_all(attrs={"itemtype": True})
            for itemtype in (tag.get("itemtype") or "").split()
        }
        page_types = ld_types | microdata_types

        title = _meta_content(soup, prop="og:title") or _text(soup.title) or _text(soup.find("h1"))
        description = _meta_content(soup, name="description") or _meta_content(soup, prop="og:description")

        html_tag = soup.find("html")
        language = html_tag.get("lang") if html_tag else None
        site_name = _meta_content(soup, prop="og:site_name")
        canonical_tag = soup.find("link", rel="canonical")
        canonical_url = urljoin(url, canonical_tag["href"]) if canonical_tag and canonical_tag.get("href") else None

        author = self._extract_author(soup, nodes)
        date_published = (
            _meta_content(soup, prop="article:published_time")
            or _meta_content(soup, name="date")
            or _first_ld_value(nodes, "datePublished")
            or _itemprop_value(soup, "datePublished")
            or _time_datetime(soup)
        )
        date_modified = (
            _meta_content(soup, prop="article:modified_time")
            or _first_ld_value(nodes, "dateModified")
            or _itemprop_value(soup, "dateModified")
        )

        images = self._extract_images(url, soup)
        videos = self._extract_videos(url, soup, page_types)
        social_urls = _extract_social_urls(soup)
        breadcrumbs = _extract_breadcrumbs(soup, nodes)
        faq_items, faq_section = self._extract_faq(soup, nodes)

        # Visible text (after structured data has been read)
        for tag in soup.find_all(["script", "style", "noscript", "template", "svg"]):
            tag.decompose()
        headings = [
            _text(h) for h in soup.find_all(["h1", "h2", "h3"]) if _text(h)
        ][:MAX_HEADINGS]

        main = soup.find("main") or soup.find("article") or soup.body or soup
        for tag in main.find_all(["nav", "footer", "header", "aside"]):
            tag.decompose()
        text = re.sub(r"\s+", " ", main.get_text(" ", strip=True)).strip()
        word_count = len(text.split()) if text else 0
        full_text = soup.get_text(" ", strip=True)

        has_product = bool(
            page_types & {"Product", "Offer", "AggregateOffer", "IndividualProduct"}
            or _meta_content(soup, prop="og:type") in ("product", "product.item")
            or soup.find(attrs={"itemprop": "price"})
            or (PRICE_PATTERN.search(full_text) and CART_WORDS.search(full_text))
        )
        has_event = bool(
            any(t == "Event" or t.endswith("Event") for t in page_types)
            or (soup.find("time", attrs={"datetime": True}) and EVENT_WORDS.search(full_text))
        )
        has_address = bool(
            page_types & {"PostalAddress", "LocalBusiness", "Restaurant", "Store"}
            or soup.find("address")
            or soup.find(attrs={"itemprop": re.compile(r"^(address|streetAddress)$")})
            or STREET_PATTERN.search(full_text)
        )
        lowered_headings = " ".join(headings).lower()
        has_recipe = bool(
            "Recipe" in page_types
            or ("ingredients" in lowered_headings and re.search(r"instructions|directions|method", lowered_headings))
        )
        has_faq = bool(
            "FAQPage" in page_types
            or len(faq_items) >= 2
            or (faq_section and faq_items)
        )

        return FactSheet(
            url=url,
            title=title or "",
            description=description or "",
            word_count=word_count,
            has_video=bool(videos),
            has_faq_blocks=has_faq,
            has_product_info=has_product,
            has_event_info=has_event,
            has_business_address=has_address,
            has_images=bool(images),
            has_recipe_info=has_recipe,
            headings=headings,
            images=images,
            videos=videos,
            faq_items=faq_items,
            breadcrumbs=breadcrumbs,
            author=author,
            date_published=date_published,
            date_modified=date_modified,
            language=language,
            site_name=site_name,
            canonical_url=canonical_url,
            social_urls=social_urls,
            existing_json_ld=json_ld,
            text_excerpt=text[:EXCERPT_CHARS],
        )

    def _extract_author(self, soup: BeautifulSoup, nodes: List[Dict[str, Any]]) -> Optional[str]:
        author = _meta_content(soup, name="author") or _meta_content(soup, prop="article:author")
        if author and not author.startswith("http"):
            return author

        ld_author = _first_ld_value(nodes, "author")
        if isinstance(ld_author, list) and ld_author:
            ld_author = ld_author[0]
        if isinstance(ld_author, dict) and ld_author.get("name"):
            return str(ld_author["name"])
        if isinstance(ld_author, str) and ld_author.strip():
            return ld_author.strip()

        for selector in ('[rel="author"]', '[itemprop="author"]', ".author", ".byline"):
            element = soup.select_one(selector)
            if element and _text(element):
                return _text(element)[:100]
        return None

    def _extract_images(self, url: str, soup: BeautifulSoup) -> List[Dict[str, Any]]:
        images: List[Dict[str, Any]] = []
        seen: Set[str] = set()

        og_image = _meta_content(soup, prop="og:image")
        if og_image:
            src = urljoin(url, og_image)
            images.append({"url": src, "alt": "", "source": "og:image"})
            seen.add(src)

        for img in soup.find_all("img"):
            raw = img.get("src") or img.get("data-src") or ""
            if not raw or raw.startswith("data:"):
                continue
            if img.get("width") == "1" or img.get("height") == "1":
                continue
            src = urljoin(url, raw)
            if src in seen:
                continue
            seen.add(src)
            images.append({"url": src, "alt": (img.get("alt") or "").strip()})
            if len(images) >= MAX_IMAGES:
                break
        return images

    def _extract_videos(self, url: str, soup: BeautifulSoup, page_types: Set[str]) -> List[Dict[str, Any]]:
        videos: List[Dict[str, Any]] = []

        for video in soup.find_all("video"):
            src = video.get("src")
            if not src:
                source = video.find("source")
                src = source.get("src") if source else None
            videos.append({"url": urljoin(url, src) if src else None, "platform": "html5"})

        for iframe in soup.find_all("iframe"):
            src = iframe.get("src") or iframe.get("data-src") or ""
            host = urlparse(urljoin(url, src)).netloc.lower()
            platform = next((h for h in VIDEO_EMBED_HOSTS if h in host), None)
            if platform:
                videos.append({"url": urljoin(url, src), "platform": platform.split(".")[0]})

        if not videos and "VideoObject" in page_types:
            videos.append({"url": None, "platform": "json-ld"})
        return videos

    def _extract_faq(self, soup: BeautifulSoup, nodes: List[Dict[str, Any]]):
        items: List[Dict[str, str]] = []

        for node in nodes:
            if "FAQPage" not in _types_of(node):
                continue
            entities = node.get("mainEntity") or []
            for entity in entities if isinstance(entities, list) else [entities]:
                if not isinstance(entity, dict):
                    continue
                answer = entity.get("acceptedAnswer") or {}
                answer_text = answer.get("text") if isinstance(answer, dict) else None
                if entity.get("name") and answer_text:
                    items.append({"question": str(entity["name"]), "answer": _strip_tags(str(answer_text))})

        for details in soup.find_all("details"):
            summary = details.find("summary")
            question = _text(summary)
            if summary:
                summary.extract()
            answer = _text(details)
            if question and answer:
                items.append({"question": question, "answer": answer})

        faq_section = bool(soup.find(attrs={"class": re.compile(r"faq|question", re.I)})
                           or soup.find(attrs={"id": re.compile(r"faq", re.I)}))

        for heading in soup.find_all(["h2", "h3", "h4", "dt"]):
            question = _text(heading)
            if not question.endswith("?"):
                continue
            answer_tag = heading.find_next_sibling(["p", "dd", "div"])
            answer = _text(answer_tag)
            if answer:
                items.append({"question": question, "answer": answer[:500]})

        unique: List[Dict[str, str]] = []
        seen: Set[str] = set()
        for item in items:
            key = item["question"].lower()
            if key not in seen:
                seen.add(key)
                unique.append(item)
        return unique[:MAX_FAQ_ITEMS], faq_section


# =============================================================================
# HELPERS
# =============================================================================

def _text(element) -> str:
    if element is None:
        return ""
    return re.sub(r"\s+", " ", element.get_text(" ", strip=True)).strip()


def _strip_tags(value: str) -> str:
    return _text(BeautifulSoup(value, "html.parser"))


def _meta_content(soup: BeautifulSoup, name: str = None, prop: str = None) -> Optional[str]:
    if name:
        tag = soup.find("meta", attrs={"name": re.compile(rf"^{re.escape(name)}$", re.I)})
    else:
        tag = soup.find("meta", attrs={"property": prop})
    content = tag.get("content") if tag else None
    return content.strip() if content and content.strip() else None


def _itemprop_value(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find(attrs={"itemprop": prop})
    if not tag:
        return None
    return tag.get("datetime") or tag.get("content") or _text(tag) or None


def _time_datetime(soup: BeautifulSoup) -> Optional[str]:
    tag = soup.find("time", attrs={"datetime": True})
    return tag.get("datetime") if tag else None


def _extract_json_ld(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    schemas: List[Dict[str, Any]] = []
    for script in soup.find_all("script", attrs={"type": re.compile(r"application/ld\+json", re.I)}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        for item in data if isinstance(data, list) else [data]:
            if isinstance(item, dict):
                schemas.append(item)
    return schemas


def _types_of(node: Dict[str, Any]) -> Set[str]:
    value = node.get("@type")
    values = value if isinstance(value, list) else [value]
    return {v for v in values if isinstance(v, str)}


def _flatten_nodes(schemas: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    nodes: List[Dict[str, Any]] = []
    for schema in schemas:
        graph = schema.get("@graph")
        if isinstance(graph, list):
            nodes.extend(node for node in graph if isinstance(node, dict))
        else:
            nodes.append(schema)
    return nodes


def _node_types(nodes: List[Dict[str, Any]]) -> Set[str]:
    types: Set[str] = set()
    for node in nodes:
        types |= _types_of(node)
        for value in node.values():
            for nested in value if isinstance(value, list) else [value]:
                if isinstance(nested, dict):
                    types |= _types_of(nested)
    return types


def _first_ld_value(nodes: List[Dict[str, Any]], prop: str) -> Any:
    for node in nodes:
        if node.get(prop):
            return node[prop]
    return None


def _extract_social_urls(soup: BeautifulSoup) -> List[str]:
    urls: List[str] = []
    for link in soup.find_all("a", href=True):
        host = urlparse(link["href"]).netloc.lower()
        if any(host == h or host.endswith("." + h) for h in SOCIAL_HOSTS) and link["href"] not in urls:
            urls.append(link["href"])
        if len(urls) >= 5:
            break
    return urls


def _extract_breadcrumbs(soup: BeautifulSoup, nodes: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    for node in nodes:
        if "BreadcrumbList" in _types_of(node):
            crumbs = []
            for element in node.get("itemListElement") or []:
                if not isinstance(element, dict):
                    continue
                item = element.get("item")
                name = element.get("name") or (item.get("name") if isinstance(item, dict) else None)
                target = item.get("@id") if isinstance(item, dict) else item
                if name:
                    crumbs.append({"name": str(name), "url": target})
            if crumbs:
                return crumbs

    nav = soup.find("nav", attrs={"aria-label": re.compile(r"breadcrumb", re.I)})
    if nav:
        return [{"name": _text(a), "url": a.get("href")} for a in nav.find_all("a") if _text(a)]
    return []
