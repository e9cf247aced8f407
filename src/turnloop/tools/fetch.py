"""Source-fallback web fetcher.

Resolves URL patterns, fetches pages, strips them to readable text and walks
an ordered list of sources until one returns usable content.
"""

import html
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from turnloop.models.tools import WebSource

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/18.0 Safari/605.1.15"
)
ACCEPT = "text/html,application/xhtml+xml,text/plain"

# Characters of cleaned text sent on to the model
MAX_CONTENT_LENGTH = 4000
# Below this the page is treated as blocked or empty
MIN_CONTENT_LENGTH = 50

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")

_DROP_BLOCKS = [
    re.compile(rf"<{tag}[^>]*>[\s\S]*?</{tag}>", re.IGNORECASE)
    for tag in ("script", "style", "nav", "header", "footer", "noscript")
]
_LINE_BREAKS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (r"<br[^>]*/?>", r"</p>", r"</div>", r"</li>", r"</tr>", r"</h[1-6]>")
]
_TAG = re.compile(r"<[^>]+>")
_SPACES = re.compile(r"[ \t\xa0]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class FetchSuccess:
    content: str
    url: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    reason: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return False


FetchResult = FetchSuccess | FetchFailure


def resolve_url(pattern: str, parameters: Mapping[str, str]) -> str | None:
    """Substitute ``{name}`` placeholders with URL-quoted values.

    Args:
        pattern: URL containing ``{name}`` placeholders.
        parameters: Placeholder values.

    Returns:
        The resolved URL, or None if any placeholder has no non-empty value.
    """
    missing = [
        name for name in PLACEHOLDER_PATTERN.findall(pattern) if not parameters.get(name)
    ]
    if missing:
        logger.debug("Missing parameter(s) %s for URL pattern %s", missing, pattern)
        return None
    return PLACEHOLDER_PATTERN.sub(lambda m: quote(str(parameters[m.group(1)]), safe=""), pattern)


def strip_html(raw_html: str) -> str:
    """Reduce an HTML page to readable plain text."""
    text = raw_html
    for pattern in _DROP_BLOCKS:
        text = pattern.sub(" ", text)
    for pattern in _LINE_BREAKS:
        text = pattern.sub("\n", text)
    text = _TAG.sub(" ", text)
    text = html.unescape(text)
    text = _SPACES.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE.sub("\n", text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


class SourceFetcher:
    """Fetch pages and walk source fallback chains."""

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout_seconds

    async def fetch(self, url: str, extraction_hint: str = "") -> FetchResult:
        """Fetch one URL and return its cleaned text.

        Never raises: every problem becomes a FetchFailure with a reason.
        """
        logger.debug("Fetching %s (hint: %s)", url, extraction_hint or "none")
        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": ACCEPT},
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException:
            return FetchFailure(f"Request timed out after {self._timeout:g}s", url)
        except httpx.InvalidURL:
            return FetchFailure(f"Invalid URL: {url}", url)
        except httpx.HTTPError as e:
            return FetchFailure(f"Fetch error: {e}", url)

        if not response.is_success:
            return FetchFailure(f"HTTP {response.status_code}", url)

        try:
            raw = response.content.decode(response.encoding or "utf-8")
        except (LookupError, UnicodeDecodeError):
            try:
                raw = response.content.decode("ascii")
            except UnicodeDecodeError:
                return FetchFailure("Unable to decode response body", url)

        cleaned = strip_html(raw)
        if len(cleaned) < MIN_CONTENT_LENGTH:
            return FetchFailure(
                f"Content too short ({len(cleaned)} chars), likely blocked or empty page",
                url,
            )

        content = cleaned[:MAX_CONTENT_LENGTH]
        logger.debug("Fetched %d chars from %s", len(content), url)
        return FetchSuccess(content, url)

    async def fetch_with_fallback(
        self,
        sources: Sequence[WebSource],
        parameters: Mapping[str, str],
    ) -> FetchResult:
        """Try sources by ascending priority until one succeeds.

        Args:
            sources: Candidate sources; disabled ones are skipped.
            parameters: Placeholder values for the URL patterns.

        Returns:
            The first success, or the last failure.
        """
        last_failure: FetchResult = FetchFailure("No sources configured")
        ordered = sorted((s for s in sources if s.enabled), key=lambda s: s.priority)

        for source in ordered:
            url = resolve_url(source.url_pattern, parameters)
            if url is None:
                last_failure = FetchFailure(
                    f"Could not resolve URL pattern: {source.url_pattern}",
                    source.url_pattern,
                )
                continue

            result = await self.fetch(url, source.extraction_hint)
            if isinstance(result, FetchSuccess):
                return result

            logger.info("Source %s failed (%s), trying next", url, result.reason)
            last_failure = result

        return last_failure
