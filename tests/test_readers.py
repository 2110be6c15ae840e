"""Tests for content readers (markdown passthrough, component schemas)."""
import json

from docharbor.readers import extract_text, is_supported, item_kind, strip_extension

from conftest import BUTTON_SCHEMA


class TestClassification:
    def test_supported(self):
        assert is_supported("docs/a.md")
        assert is_supported("components/Button.SCHEMA.JSON")
        assert not is_supported("package.json")
        assert not is_supported("logo.png")

    def test_kind(self):
        assert item_kind("a/button.schema.json") == "schema"
        assert item_kind("a/button.md") == "document"

    def test_strip_extension(self):
        assert strip_extension("button.schema.json") == "button"
        assert strip_extension("intro.md") == "intro"
        assert strip_extension("notes.txt") == "notes.txt"


class TestExtractText:
    def test_markdown_passthrough(self):
        raw = "# Title\n\nBody | with pipes\n"
        assert extract_text("docs/title.md", raw) == raw

    def test_schema_rendered_as_markdown(self):
        text = extract_text("components/button.schema.json", json.dumps(BUTTON_SCHEMA))
        assert text.startswith("# Button")
        assert "`<wa-button>`" in text
        assert "## Properties" in text
        assert "| variant | neutral \\| brand \\| danger |" in text
        assert "wa-focus" in text
        assert "| default | The button's label. |" in text

    def test_schema_without_title_uses_file_name(self):
        text = extract_text("components/card.schema.json", json.dumps({"description": "A card."}))
        assert text.startswith("# card")
        assert "A card." in text

    def test_invalid_schema_json_is_fenced(self):
        text = extract_text("components/bad.schema.json", "{oops")
        assert text == "# bad.schema.json\n\n```json\n{oops\n```"
