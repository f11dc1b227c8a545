"""
Test Suite: Schema Type Compatibility

Tests the pre-billing gate that rejects types the page cannot support.
"""

import pytest

from schemaforge.compatibility import check_compatibility


class TestAlwaysCompatible:
    """Generic types and Auto always pass."""

    @pytest.mark.parametrize("schema_type", ["Auto", "Article", "WebPage", "Organization", "BlogPosting"])
    def test_generic_types_pass_on_bare_page(self, fact_sheet_factory, schema_type):
        facts = fact_sheet_factory(has_images=False, images=[])

        result = check_compatibility(schema_type, facts)

        assert result.compatible, f"{schema_type} should always be compatible"
        assert result.reason is None
        assert result.suggested_types == []

    def test_unknown_type_passes(self, fact_sheet):
        result = check_compatibility("SoftwareApplication", fact_sheet)

        assert result.compatible


class TestSignalRequired:
    """Specific types need their page signal."""

    def test_faq_without_faq_blocks(self, fact_sheet):
        result = check_compatibility("FAQPage", fact_sheet)

        assert not result.compatible
        assert "FAQ" in result.reason
        assert 2 <= len(result.suggested_types) <= 3
        assert "Article" in result.suggested_types

    def test_faq_with_faq_blocks(self, fact_sheet_factory):
        facts = fact_sheet_factory(has_faq_blocks=True)

        assert check_compatibility("FAQPage", facts).compatible

    @pytest.mark.parametrize("schema_type,signal", [
        ("VideoObject", "has_video"),
        ("Product", "has_product_info"),
        ("Event", "has_event_info"),
        ("LocalBusiness", "has_business_address"),
        ("Recipe", "has_recipe_info"),
    ])
    def test_signal_unlocks_type(self, fact_sheet_factory, schema_type, signal):
        without = check_compatibility(schema_type, fact_sheet_factory())
        with_signal = check_compatibility(schema_type, fact_sheet_factory(**{signal: True}))

        assert not without.compatible, f"{schema_type} should need {signal}"
        assert with_signal.compatible, f"{schema_type} should pass with {signal}"

    def test_recipe_url_counts_as_signal(self, fact_sheet_factory):
        facts = fact_sheet_factory(url="https://example.org/recipes/banana-bread")

        assert check_compatibility("Recipe", facts).compatible

    def test_result_serializes(self, fact_sheet):
        data = check_compatibility("Product", fact_sheet).to_dict()

        assert data["compatible"] is False
        assert data["requested_type"] == "Product"
        assert data["suggested_types"]
