"""
Test Suite: Content Analyzer

Tests URL checks and fact sheet extraction against an httpx MockTransport.
"""

import json

import httpx
import pytest

from schemaforge.integrations import AnalyzerError, AnalyzerErrorKind, ContentAnalyzer


ARTICLE_HTML = """
<html lang="en">
<head>
  <title>Widget Guide | Example</title>
  <meta name="description" content="Everything you need to know about widgets.">
  <meta name="author" content="Ada Lovelace">
  <meta property="og:image" content="/images/cover.png">
  <meta property="og:site_name" content="Example">
  <meta property="article:published_time" content="2024-03-01T09:00:00Z">
  <link rel="canonical" href="https://example.org/widgets">
  <script type="application/ld+json">
    {"@context": "https://schema.org", "@graph": [
      {"@type": "WebSite", "name": "Example"},
      {"@type": "BreadcrumbList", "itemListElement": [
        {"@type": "ListItem", "position": 1, "name": "Home", "item": "https://example.org/"}
      ]}
    ]}
  </script>
</head>
<body>
  <nav>Home About Contact</nav>
  <main>
    <h1>Widget Guide</h1>
    <p>Widgets are small but important parts of every machine.</p>
    <iframe src="https://www.youtube.com/embed/abc123"></iframe>
    <img src="/images/diagram.png" alt="Diagram">
    <img src="data:image/gif;base64,AAAA">
    <section class="faq">
      <h2>What is a widget?</h2>
      <p>A small mechanical part.</p>
      <details><summary>How long do widgets last?</summary>About ten years.</details>
    </section>
  </main>
  <footer>Copyright Example</footer>
</body>
</html>
"""


def make_analyzer(routes, respect_robots=True):
    """Analyzer whose HTTP client answers from a {url: response-or-exception} map."""

    def handler(request: httpx.Request) -> httpx.Response:
        target = routes.get(str(request.url))
        if target is None:
            return httpx.Response(404, text="not found")
        if isinstance(target, Exception):
            raise target
        return target

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return ContentAnalyzer(respect_robots=respect_robots, client=client)


PAGE = "https://example.org/widgets"
ROBOTS = "https://example.org/robots.txt"


class TestValidateUrl:
    """Test reachability and crawler permission."""

    @pytest.mark.asyncio
    async def test_reachable_and_allowed(self):
        analyzer = make_analyzer({
            PAGE: httpx.Response(200, html=ARTICLE_HTML),
            ROBOTS: httpx.Response(200, text="User-agent: *\nAllow: /\n"),
        })

        check = await analyzer.validate_url(PAGE)

        assert check.status_code == 200
        assert "Widget Guide" in check.html
        assert check.blocked_reasons == []

    @pytest.mark.asyncio
    async def test_missing_robots_txt_allows(self):
        analyzer = make_analyzer({PAGE: httpx.Response(200, html=ARTICLE_HTML)})

        check = await analyzer.validate_url(PAGE)

        assert check.status_code == 200

    @pytest.mark.asyncio
    async def test_http_error_is_unreachable(self):
        analyzer = make_analyzer({PAGE: httpx.Response(500, text="boom")})

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.UNREACHABLE
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_robots_txt_disallow(self):
        analyzer = make_analyzer({
            PAGE: httpx.Response(200, html=ARTICLE_HTML),
            ROBOTS: httpx.Response(200, text="User-agent: *\nDisallow: /\n"),
        })

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.ROBOTS_DISALLOWED

    @pytest.mark.asyncio
    async def test_x_robots_tag_header(self):
        analyzer = make_analyzer({
            PAGE: httpx.Response(200, html=ARTICLE_HTML, headers={"X-Robots-Tag": "noindex"}),
        })

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert "X-Robots-Tag" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_meta_robots_nofollow(self):
        html = '<html><head><meta name="robots" content="index, nofollow"></head><body>x</body></html>'
        analyzer = make_analyzer({PAGE: httpx.Response(200, html=html)})

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.ROBOTS_DISALLOWED

    @pytest.mark.asyncio
    async def test_robots_ignored_when_disabled(self):
        analyzer = make_analyzer(
            {PAGE: httpx.Response(200, html=ARTICLE_HTML, headers={"X-Robots-Tag": "noindex"})},
            respect_robots=False,
        )

        check = await analyzer.validate_url(PAGE)

        assert check.status_code == 200

    @pytest.mark.asyncio
    async def test_timeout(self):
        request = httpx.Request("GET", PAGE)
        analyzer = make_analyzer({PAGE: httpx.ReadTimeout("too slow", request=request)})

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error(self):
        request = httpx.Request("GET", PAGE)
        analyzer = make_analyzer({PAGE: httpx.ConnectError("refused", request=request)})

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.validate_url(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.UNREACHABLE


class TestParse:
    """Test fact sheet extraction (no I/O)."""

    def setup_method(self):
        self.analyzer = ContentAnalyzer(client=httpx.AsyncClient())
        self.facts = self.analyzer.parse(PAGE, ARTICLE_HTML)

    def test_metadata(self):
        assert self.facts.title == "Widget Guide | Example"
        assert self.facts.description == "Everything you need to know about widgets."
        assert self.facts.author == "Ada Lovelace"
        assert self.facts.date_published == "2024-03-01T09:00:00Z"
        assert self.facts.language == "en"
        assert self.facts.site_name == "Example"
        assert self.facts.canonical_url == "https://example.org/widgets"

    def test_images(self):
        urls = [image["url"] for image in self.facts.images]

        assert urls[0] == "https://example.org/images/cover.png", "og:image should come first"
        assert "https://example.org/images/diagram.png" in urls
        assert not any(url.startswith("data:") for url in urls)
        assert self.facts.has_images

    def test_video_embed(self):
        assert self.facts.has_video
        assert self.facts.videos[0]["platform"] == "youtube"

    def test_faq_blocks(self):
        questions = [item["question"] for item in self.facts.faq_items]

        assert "What is a widget?" in questions
        assert "How long do widgets last?" in questions
        assert self.facts.has_faq_blocks

    def test_no_commerce_signals(self):
        assert not self.facts.has_product_info
        assert not self.facts.has_event_info
        assert not self.facts.has_recipe_info

    def test_word_count_excludes_chrome(self):
        assert self.facts.word_count > 0
        assert "Copyright" not in self.facts.text_excerpt
        assert "Contact" not in self.facts.text_excerpt

    def test_existing_json_ld_and_breadcrumbs(self):
        assert len(self.facts.existing_json_ld) == 1
        assert self.facts.breadcrumbs, "BreadcrumbList from @graph should be read"

    def test_product_signals(self):
        html = """
        <html><body>
          <script type="application/ld+json">{"@context": "https://schema.org", "@type": "Product", "name": "Widget"}</script>
          <h1>Widget</h1><p>$19.99 Add to cart</p>
          <address>12 Main Street, Springfield</address>
        </body></html>
        """

        facts = self.analyzer.parse(PAGE, html)

        assert facts.has_product_info
        assert facts.has_business_address
        assert not facts.has_faq_blocks


class TestAnalyze:
    """Test the analyze() and extraction entry points."""

    @pytest.mark.asyncio
    async def test_analyze_uses_supplied_html(self):
        analyzer = make_analyzer({})

        facts = await analyzer.analyze(PAGE, html=ARTICLE_HTML)

        assert facts.url == PAGE
        assert facts.title

    @pytest.mark.asyncio
    async def test_empty_page_is_parse_error(self):
        analyzer = make_analyzer({PAGE: httpx.Response(200, text="   ")})

        with pytest.raises(AnalyzerError) as exc_info:
            await analyzer.analyze(PAGE)

        assert exc_info.value.kind == AnalyzerErrorKind.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_extract_existing_schemas(self):
        schema = {"@context": "https://schema.org", "@type": "Organization", "name": "Example"}
        html = f'<html><head><script type="application/ld+json">{json.dumps(schema)}</script></head></html>'
        analyzer = make_analyzer({PAGE: httpx.Response(200, html=html)})

        schemas = await analyzer.extract_existing_schemas(PAGE)

        assert schemas == [schema]
