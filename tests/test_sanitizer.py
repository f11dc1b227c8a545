"""
Test Suite: Refined Schema Sanitizer

Tests removal of unverified people and organization details added by
AI refinement, and placeholder stripping.
"""

from schemaforge.refinement import sanitize_refined_candidate


ORIGINAL = {
    "@context": "https://schema.org",
    "@type": "Article",
    "headline": "Widget guide",
    "publisher": {"@type": "Organization", "name": "Example Org"},
}


class TestProtectedProperties:
    """Test people properties added during refinement."""

    def test_unverified_author_removed(self):
        refined = dict(ORIGINAL, author={"@type": "Person", "name": "Grace Hopper"})

        clean, removals = sanitize_refined_candidate(ORIGINAL, refined, original_facts={})

        assert "author" not in clean
        assert "Removed unverified property: author" in removals

    def test_author_kept_when_page_names_one(self):
        refined = dict(ORIGINAL, author={"@type": "Person", "name": "Grace Hopper"})

        clean, _ = sanitize_refined_candidate(ORIGINAL, refined, original_facts={"author": "Grace Hopper"})

        assert clean["author"]["name"] == "Grace Hopper"

    def test_editor_always_removed_when_added(self):
        refined = dict(ORIGINAL, editor={"@type": "Person", "name": "Someone"})

        clean, _ = sanitize_refined_candidate(ORIGINAL, refined, original_facts={"author": "Someone"})

        assert "editor" not in clean

    def test_existing_author_untouched(self):
        original = dict(ORIGINAL, author={"@type": "Person", "name": "Ada Lovelace"})
        refined = dict(original, keywords=["widgets"])

        clean, removals = sanitize_refined_candidate(original, refined)

        assert clean["author"]["name"] == "Ada Lovelace"
        assert removals == []


class TestOrganizationDetails:
    """Test publisher and provider additions."""

    def test_first_refinement_strips_publisher_additions(self):
        refined = dict(ORIGINAL, publisher={
            "@type": "Organization",
            "name": "Example Org",
            "telephone": "+1 555 0100",
            "address": {"@type": "PostalAddress", "streetAddress": "1 Main St"},
            "logo": "https://example.org/logo.png",
        })

        clean, removals = sanitize_refined_candidate(ORIGINAL, refined, refinement_number=1)

        assert set(clean["publisher"]) == {"@type", "name", "logo"}
        assert len(removals) == 2

    def test_second_refinement_may_enhance_publisher(self):
        refined = dict(ORIGINAL, publisher={
            "@type": "Organization",
            "name": "Example Org",
            "telephone": "+1 555 0100",
        })

        clean, _ = sanitize_refined_candidate(ORIGINAL, refined, refinement_number=2)

        assert clean["publisher"]["telephone"] == "+1 555 0100"

    def test_provider_additions_stripped(self):
        original = {"@type": "Course", "mainEntity": {"provider": {"@type": "Organization", "name": "Uni"}}}
        refined = {"@type": "Course", "mainEntity": {"provider": {
            "@type": "Organization", "name": "Uni", "founder": "Someone",
        }}}

        clean, removals = sanitize_refined_candidate(original, refined, refinement_number=1)

        assert "founder" not in clean["mainEntity"]["provider"]
        assert removals == ["Removed unverified provider property: founder"]


class TestPlaceholders:
    """Test placeholder detection."""

    def test_placeholder_author_removed(self):
        original = dict(ORIGINAL, author={"@type": "Person", "name": "Real Name"})
        refined = dict(ORIGINAL, author={"@type": "Person", "name": "John Doe"})

        clean, removals = sanitize_refined_candidate(original, refined, refinement_number=2)

        assert "author" not in clean
        assert "Removed placeholder author" in removals

    def test_fake_profile_links_remove_author(self):
        original = dict(ORIGINAL, author={"@type": "Person", "name": "Ada"})
        refined = dict(ORIGINAL, author={
            "@type": "Person", "name": "Ada", "sameAs": ["https://example.com/ada"],
        })

        clean, _ = sanitize_refined_candidate(original, refined)

        assert "author" not in clean

    def test_placeholder_publisher_name_removed(self):
        refined = dict(ORIGINAL, publisher={"@type": "Organization", "name": "[Your Company Name]"})

        clean, _ = sanitize_refined_candidate(ORIGINAL, refined, refinement_number=2)

        assert "name" not in clean["publisher"]

    def test_input_not_mutated(self):
        refined = dict(ORIGINAL, author={"@type": "Person", "name": "John Doe"})

        sanitize_refined_candidate(ORIGINAL, refined)

        assert refined["author"]["name"] == "John Doe"
