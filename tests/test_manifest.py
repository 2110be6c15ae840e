"""Tests for the docharbor.json manifest checker."""
import json

import pytest

from docharbor.errors import InvalidStructure
from docharbor.manifest import check_manifest, parse_manifest


def _severities(issues):
    return [i["severity"] for i in issues]


class TestCheckManifest:
    def test_valid_manifest_has_no_issues(self):
        data = {
            "title": "Docs",
            "description": "All the docs",
            "version": "1.0.0",
            "categories": {"guides": {"title": "Guides", "order": 1}},
        }
        assert check_manifest(data) == []

    def test_not_an_object(self):
        assert _severities(check_manifest(["x"])) == ["critical"]

    def test_numeric_version_is_a_warning(self):
        assert _severities(check_manifest({"version": 2})) == ["warning"]

    def test_unknown_keys_are_info(self):
        issues = check_manifest({"theme": "dark", "categories": {"a": {"icon": "x"}}})
        assert _severities(issues) == ["info", "info"]
        assert issues[1]["field"] == "categories.a.icon"

    def test_bad_order(self):
        issues = check_manifest({"categories": {"a": {"order": "first"}}})
        assert issues[0]["severity"] == "critical"
        assert issues[0]["field"] == "categories.a.order"

    def test_unknown_type(self):
        issues = check_manifest({"categories": {"a": {"type": "gallery"}}})
        assert _severities(issues) == ["warning"]


class TestParseManifest:
    def test_parses_categories(self):
        m = parse_manifest(json.dumps({
            "title": "Docs",
            "version": 3,
            "categories": {
                "guides": {"title": "Guides", "order": 2},
                "components": {"type": "schemas", "path": "src/components"},
                "misc": {"type": "gallery"},
            },
        }))
        assert m.title == "Docs"
        assert m.version == "3"
        assert m.categories["guides"].order == 2
        assert m.categories["components"].type == "schemas"
        assert m.categories["components"].path == "src/components"
        assert m.categories["misc"].type == "items"

    def test_invalid_json(self):
        with pytest.raises(InvalidStructure) as exc:
            parse_manifest("{", source="docs/docharbor.json")
        assert "docs/docharbor.json" in str(exc.value)

    def test_critical_issue_rejects(self):
        with pytest.raises(InvalidStructure) as exc:
            parse_manifest(json.dumps({"title": 5}))
        assert exc.value.issues[0]["field"] == "title"
