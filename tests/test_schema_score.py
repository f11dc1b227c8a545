"""
Test Suite: Schema Quality Score

Tests the 0-100 scoring engine:
- Weighted sub-scores and rounding
- Compliance tier bonus and clamping
- Type-aware advanced properties
- Determinism and monotonicity
"""

import copy

import pytest

from schemaforge.scoring import ComplianceSignal, calculate_schema_score, compliance_tier


MINIMAL = {"@context": "https://schema.org", "@type": "Thing", "name": "Widget"}
BASE_ADVANCED = {
    "keywords": ["a", "b"],
    "about": {"@type": "Thing", "name": "Topic"},
    "mentions": [{"@type": "Thing", "name": "Other"}],
    "sameAs": ["https://en.wikipedia.org/wiki/Topic"],
    "speakable": {"@type": "SpeakableSpecification", "cssSelector": ["h1"]},
    "inLanguage": "en",
    "isPartOf": {"@type": "WebSite", "name": "Example"},
    "mainEntityOfPage": "https://example.org/page",
}


class TestFormula:
    """Test the weighted formula on hand-computed inputs."""

    def test_minimal_candidate(self):
        """Only required properties: 100 * 0.35 = 35, plus the perfect-tier bonus."""
        score = calculate_schema_score(MINIMAL)

        assert score.breakdown.required_properties == 100
        assert score.breakdown.recommended_properties == 0
        assert score.breakdown.advanced_properties == 0
        assert score.breakdown.content_quality == 0
        assert score.overall_score == 45, f"Expected 45, got {score.overall_score}"
        assert score.compliance_tier == "perfect"
        assert score.compliance_bonus == 10

    def test_description_in_range(self):
        """One of seven recommended (14) and 20 content points: 35 + 3.5 + 3 = 41.5 -> 42."""
        candidate = dict(MINIMAL, description="d" * 100)

        score = calculate_schema_score(candidate)

        assert score.breakdown.recommended_properties == 14
        assert score.breakdown.content_quality == 20
        assert score.overall_score == 52, f"Expected 52, got {score.overall_score}"

    def test_missing_required_properties(self):
        score = calculate_schema_score({"name": "No type"})

        assert score.breakdown.required_properties == 34
        critical = [item for item in score.action_items if item.priority == "critical"]
        assert {item.id for item in critical} == {"required-context", "required-type"}
        assert score.action_items[0].priority == "critical", "Critical items should sort first"

    def test_headline_satisfies_name(self):
        candidate = {"@context": "https://schema.org", "@type": "Article", "headline": "Title"}

        assert calculate_schema_score(candidate).breakdown.required_properties == 100

    def test_graph_container_scores_first_typed_node(self):
        candidate = {
            "@context": "https://schema.org",
            "@graph": [{"@id": "#x"}, {"@type": "Thing", "name": "Widget"}],
        }

        assert calculate_schema_score(candidate).overall_score == 45


class TestComplianceTiers:
    """Test compliance tier mapping and clamping."""

    @pytest.mark.parametrize("errors,warnings,name,bonus", [
        (0, 0, "perfect", 10),
        (0, 2, "good", 7),
        (0, 5, "acceptable", 5),
        (1, 9, "minor_issues", 0),
        (3, 0, "non_compliant", -5),
        (4, 0, "severely_non_compliant", -10),
    ])
    def test_tier_table(self, errors, warnings, name, bonus):
        tier = compliance_tier(ComplianceSignal(errors, warnings))

        assert tier.name == name
        assert tier.bonus == bonus

    def test_no_signal_is_perfect(self):
        assert compliance_tier(None).name == "perfect"

    def test_penalty_applies(self):
        score = calculate_schema_score(MINIMAL, ComplianceSignal(error_count=4))

        assert score.overall_score == 25, f"Expected 35 - 10 = 25, got {score.overall_score}"
        assert any("penalty" in s for s in score.suggestions)

    def test_score_clamped_to_range(self):
        score = calculate_schema_score({}, ComplianceSignal(error_count=10))

        assert score.overall_score == 0

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            ComplianceSignal(error_count=-1)


class TestAdvancedProperties:
    """Test type-aware advanced property sets."""

    def test_article_has_extra_properties(self):
        article = dict(MINIMAL, **BASE_ADVANCED)
        article["@type"] = "Article"
        webpage = dict(article, **{"@type": "WebPage"})

        assert calculate_schema_score(webpage).breakdown.advanced_properties == 100
        assert calculate_schema_score(article).breakdown.advanced_properties == 80, \
            "Article should also expect articleSection and wordCount"

    def test_word_count_rewards_content_types_only(self):
        article = dict(MINIMAL, **{"@type": "Article", "wordCount": 1200})
        product = dict(MINIMAL, **{"@type": "Product", "wordCount": 1200})

        assert calculate_schema_score(article).breakdown.content_quality == 10
        assert calculate_schema_score(product).breakdown.content_quality == 0


class TestProperties:
    """Test determinism, monotonicity and output shape."""

    def test_deterministic(self, article_candidate):
        first = calculate_schema_score(copy.deepcopy(article_candidate))
        second = calculate_schema_score(copy.deepcopy(article_candidate))

        assert first.to_dict() == second.to_dict()

    def test_adding_recommended_property_never_lowers_score(self, article_candidate):
        before = calculate_schema_score(article_candidate)
        improved = dict(article_candidate, dateModified="2024-04-01")

        after = calculate_schema_score(improved)

        assert after.overall_score >= before.overall_score

    def test_structured_author_beats_string(self, article_candidate):
        string_author = dict(article_candidate, author="Ada Lovelace")

        assert calculate_schema_score(article_candidate).breakdown.content_quality > \
            calculate_schema_score(string_author).breakdown.content_quality

    def test_summary_is_first_suggestion(self, article_candidate):
        score = calculate_schema_score(article_candidate)

        assert score.suggestions, "Expected at least the summary suggestion"
        assert "schema" in score.suggestions[0].lower()

    def test_rich_candidate_scores_excellent(self):
        candidate = dict(
            MINIMAL,
            **BASE_ADVANCED,
            **{
                "@type": "Article",
                "headline": "Widget guide",
                "description": "A thorough guide to widgets covering selection, setup and maintenance for teams.",
                "url": "https://example.org/widgets",
                "image": {"@type": "ImageObject", "url": "https://example.org/w.png"},
                "author": {"@type": "Person", "name": "Ada", "sameAs": ["https://ada.example.org"]},
                "publisher": {"@type": "Organization", "name": "Example", "logo": "https://example.org/l.png"},
                "datePublished": "2024-01-01",
                "dateModified": "2024-02-01",
                "articleSection": "Guides",
                "wordCount": 1500,
            },
        )

        score = calculate_schema_score(candidate)

        assert score.overall_score == 100, f"Expected a capped 100, got {score.overall_score}"
        assert score.suggestions[0].startswith("Excellent")

    def test_to_dict_shape(self, article_candidate):
        data = calculate_schema_score(article_candidate).to_dict()

        assert set(data["breakdown"]) == {
            "required_properties", "recommended_properties",
            "advanced_properties", "content_quality",
        }
        for item in data["action_items"]:
            assert item["priority"] in ("critical", "important", "nice-to-have")
            assert item["effort"] in ("quick", "medium", "major")
