"""Tests for embedded tip and structured markers."""

import json

import pytest

from turnloop.markers import (
    embedded_marker,
    extract_and_strip_tip,
    extract_images,
    extract_images_and_clean_text,
    extract_markers,
    extract_tip,
    extract_weather,
    make_marker,
    parse_content,
    strip_all_markers,
    strip_markers,
    strip_tip,
)
from turnloop.models.tools import PlainToolResult, RichToolResult, WeatherData


class TestTips:
    """Tests for tip extraction and stripping."""

    def test_extract_tip(self) -> None:
        """The tip text is returned trimmed."""
        assert extract_tip("Hello!\n<!--tip: Greeted user -->") == "Greeted user"

    def test_extract_missing_tip(self) -> None:
        """No tip yields None."""
        assert extract_tip("Just text") is None

    def test_multiline_tip(self) -> None:
        """Tips may span lines."""
        assert extract_tip("x <!--tip:line one\nline two-->") == "line one\nline two"

    def test_extract_and_strip(self) -> None:
        """The tip and its trailing newline are removed from the text."""
        cleaned, tip = extract_and_strip_tip("It is sunny.\n<!--tip:Gave weather-->\n")
        assert cleaned == "It is sunny."
        assert tip == "Gave weather"

    def test_strip_without_tip(self) -> None:
        """Text without a tip is only trimmed."""
        assert strip_tip("  plain  ") == "plain"


class TestStructuredMarkers:
    """Tests for kind:json markers."""

    def test_make_marker_is_compact(self) -> None:
        """Markers use compact JSON."""
        assert make_marker("weather", {"city": "Baltimore", "temp": 44}) == (
            '<!--weather:{"city":"Baltimore","temp":44}-->'
        )

    def test_make_marker_escapes_comment_close(self) -> None:
        """A '-->' inside a value cannot terminate the comment early."""
        marker = make_marker("weather", {"conditions": "a --> b"})
        assert marker.count("-->") == 1
        assert extract_markers(marker, "weather") == [{"conditions": "a --> b"}]

    def test_make_marker_from_model(self) -> None:
        """Pydantic payloads are dumped with their aliases."""
        marker = make_marker("weather", WeatherData(city="Towson", feels_like=40.0))
        payload = extract_markers(marker, "weather")[0]
        assert payload["feelsLike"] == 40.0

    def test_extract_by_kind(self) -> None:
        """Only markers of the requested kind are returned."""
        text = '<!--weather:{"city":"A"}-->\n<!--image:{"id":"1"}-->\nBody'
        assert extract_markers(text, "weather") == [{"city": "A"}]
        assert extract_markers(text, "image") == [{"id": "1"}]

    def test_malformed_payload_skipped(self) -> None:
        """A marker whose payload is not valid JSON is skipped."""
        text = '<!--weather:{"city": nope}-->\n<!--weather:{"city":"B"}-->'
        assert extract_markers(text, "weather") == [{"city": "B"}]

    def test_strip_markers_by_kind(self) -> None:
        """strip_markers only removes one kind."""
        text = '<!--weather:{"a":1}-->\n<!--image:{"b":2}-->\nBody'
        assert strip_markers(text, "weather") == '<!--image:{"b":2}-->\nBody'

    def test_embedded_marker_for_results(self) -> None:
        """Rich results get a marker, plain results do not."""
        rich = RichToolResult(text="t", marker_kind="weather", payload={"city": "C"})
        assert embedded_marker(rich) == '<!--weather:{"city":"C"}-->'
        assert embedded_marker(PlainToolResult(text="t")) is None


class TestStripAll:
    """Tests for removing every marker."""

    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_round_trip(self, count: int) -> None:
        """Tip and body survive any number of structured markers."""
        markers = [make_marker("weather", {"city": f"City {i}"}) for i in range(count)]
        body = "The forecast looks fine.\n\nEnjoy the day."
        text = "".join(marker + "\n" for marker in markers) + body + "\n<!--tip:Gave forecast-->"

        assert extract_tip(text) == "Gave forecast"
        cleaned = strip_all_markers(text)
        assert cleaned == body
        assert "<!--" not in cleaned

    def test_html_comment_without_json_kept(self) -> None:
        """Ordinary HTML comments are not markers."""
        assert strip_all_markers("a <!-- note --> b") == "a <!-- note --> b"


class TestTypedExtraction:
    """Tests for weather and image extraction."""

    def test_extract_weather(self) -> None:
        """Weather markers become WeatherData."""
        payload = {"city": "Catonsville", "temp": 44.0, "feelsLike": 40.0, "iconCode": "01d"}
        text = f"<!--weather:{json.dumps(payload)}-->\nSunny."
        weather = extract_weather(text)
        assert len(weather) == 1
        assert weather[0].city == "Catonsville"
        assert weather[0].icon_code == "01d"

    def test_weather_missing_city_skipped(self) -> None:
        """Payloads that don't fit WeatherData are skipped."""
        assert extract_weather('<!--weather:{"temp":1}-->') == []

    def test_extract_images_and_clean_text(self) -> None:
        """Image markers are split from the text."""
        marker = make_marker("image", {"id": "i1", "media_type": "image/png", "data": "AAAA"})
        images, text = extract_images_and_clean_text(f"{marker}\nWhat is this?")
        assert [image.id for image in images] == ["i1"]
        assert text == "What is this?"

    def test_incomplete_image_skipped(self) -> None:
        """Image markers missing fields are skipped."""
        assert extract_images('<!--image:{"id":"x"}-->') == []

    def test_parse_content(self) -> None:
        """parse_content gathers display text, tip and payloads."""
        weather = make_marker("weather", {"city": "X"})
        parsed = parse_content(f"{weather}\nNice out.\n<!--tip:Weather chat-->")
        assert parsed.display_text == "Nice out."
        assert parsed.tip == "Weather chat"
        assert parsed.weather[0].city == "X"
        assert parsed.images == []
