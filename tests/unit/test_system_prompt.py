"""Tests for system prompt rendering."""

from turnloop.models.tools import WebSource, WebToolCategory
from turnloop.orchestrator.prompts import build_system_prompt
from turnloop.tools.catalog import NO_CATEGORIES_TEXT, SourceCatalog


class TestBuildSystemPrompt:
    """Tests for build_system_prompt."""

    def test_default_template_filled(self) -> None:
        """User details are substituted into the default prompt."""
        prompt = build_system_prompt(
            user_name="Sam", location="Towson, Maryland", timezone="America/New_York"
        )
        assert prompt.startswith("You are Claude, an AI assistant in a natural conversation with Sam")
        assert "- Location: Towson, Maryland (America/New_York timezone)" in prompt
        assert NO_CATEGORIES_TEXT in prompt
        assert "{" not in prompt.replace("<!--", "")

    def test_tip_instructions_present(self) -> None:
        """The prompt asks for a trailing tip marker."""
        assert "<!--tip:" in build_system_prompt()

    def test_catalog_listed(self) -> None:
        """Enabled categories appear with their source counts."""
        catalog = SourceCatalog(
            [
                WebToolCategory(
                    keyword="tides",
                    name="Tide Tables",
                    extraction_hint="NOAA stations",
                    sources=[
                        WebSource(url_pattern="https://a.example"),
                        WebSource(url_pattern="https://b.example", enabled=False),
                    ],
                ),
                WebToolCategory(keyword="hidden", enabled=False),
            ]
        )
        prompt = build_system_prompt(catalog=catalog)
        assert "Available categories:\n- tides: Tide Tables (NOAA stations) [1 source]" in prompt
        assert "hidden" not in prompt

    def test_custom_template(self) -> None:
        """Custom templates only get the web tools section filled in."""
        prompt = build_system_prompt("Be terse. {user_name}\n{web_tools}", user_name="Sam")
        assert prompt == f"Be terse. {{user_name}}\n{NO_CATEGORIES_TEXT}"
