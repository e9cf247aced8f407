"""Catalog of curated lookup categories and their web sources."""

from collections.abc import Iterable

from turnloop.models.tools import WebSource, WebToolCategory

NO_CATEGORIES_TEXT = "No web tool categories are currently configured."


class SourceCatalog:
    """In-memory view of the configured lookup categories."""

    def __init__(self, categories: Iterable[WebToolCategory] = ()) -> None:
        self._categories = list(categories)

    @property
    def categories(self) -> list[WebToolCategory]:
        return list(self._categories)

    def enabled_categories(self) -> list[WebToolCategory]:
        return [category for category in self._categories if category.enabled]

    def enabled_sources(self, keyword: str) -> list[WebSource]:
        """Enabled sources of an enabled category, ordered by priority.

        Keywords match case-insensitively. Unknown keywords yield no sources.
        """
        key = keyword.strip().lower()
        for category in self.enabled_categories():
            if category.keyword.lower() == key:
                sources = [source for source in category.sources if source.enabled]
                return sorted(sources, key=lambda source: source.priority)
        return []

    def prompt_section(self) -> str:
        """Render the category list for the system prompt."""
        categories = self.enabled_categories()
        if not categories:
            return NO_CATEGORIES_TEXT
        lines = ["Available categories:"]
        for category in categories:
            count = sum(1 for source in category.sources if source.enabled)
            hint = f" ({category.extraction_hint})" if category.extraction_hint else ""
            plural = "" if count == 1 else "s"
            label = category.name or category.keyword
            lines.append(f"- {category.keyword}: {label}{hint} [{count} source{plural}]")
        return "\n".join(lines)
