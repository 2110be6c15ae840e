# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Manifest checker – validates the optional docharbor.json at a
documentation root before discovery applies its overrides.

Issues have severity levels: critical, warning, info.
Any critical issue rejects the manifest (InvalidStructure).

Format:
    {
      "title": "...", "description": "...", "version": "...",
      "categories": {
        "<id>": {"title": "...", "order": 1},
        "<id>": {"title": "...", "type": "schemas", "path": "components"}
      }
    }
"""
import json
from dataclasses import dataclass, field
from typing import Optional

from .errors import InvalidStructure

MANIFEST_FILE = "docharbor.json"

KNOWN_KEYS = {"title", "description", "version", "categories"}
CATEGORY_KEYS = {"title", "order", "type", "path"}
CATEGORY_TYPES = {"items", "schemas"}


@dataclass
class ManifestCategory:
    title: Optional[str] = None
    order: Optional[int] = None
    type: str = "items"
    path: Optional[str] = None


@dataclass
class Manifest:
    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    categories: dict[str, ManifestCategory] = field(default_factory=dict)


def _issue(severity: str, where: str, message: str) -> dict:
    return {"severity": severity, "field": where, "message": message}


def check_manifest(data) -> list[dict]:
    """Return the list of issues found in a decoded manifest."""
    if not isinstance(data, dict):
        return [_issue("critical", "$", "Manifest must be a JSON object")]

    issues: list[dict] = []
    for key in ("title", "description"):
        if key in data and not isinstance(data[key], str):
            issues.append(_issue("critical", key, f"'{key}' must be a string"))

    if "version" in data and not isinstance(data["version"], str):
        if isinstance(data["version"], (int, float)) and not isinstance(data["version"], bool):
            issues.append(_issue("warning", "version", "'version' should be a string"))
        else:
            issues.append(_issue("critical", "version", "'version' must be a string"))

    for key in sorted(set(data) - KNOWN_KEYS):
        issues.append(_issue("info", key, f"Unknown key '{key}' ignored"))

    categories = data.get("categories", {})
    if not isinstance(categories, dict):
        issues.append(_issue("critical", "categories", "'categories' must be an object"))
        return issues

    for cat_id, entry in categories.items():
        where = f"categories.{cat_id}"
        if not isinstance(entry, dict):
            issues.append(_issue("critical", where, "Category entry must be an object"))
            continue
        if "title" in entry and not isinstance(entry["title"], str):
            issues.append(_issue("critical", f"{where}.title", "'title' must be a string"))
        order = entry.get("order")
        if order is not None and (isinstance(order, bool) or not isinstance(order, int)):
            issues.append(_issue("critical", f"{where}.order", "'order' must be an integer"))
        cat_type = entry.get("type", "items")
        if cat_type not in CATEGORY_TYPES:
            issues.append(_issue(
                "warning", f"{where}.type",
                f"Unknown category type '{cat_type}', treated as 'items'",
            ))
        if "path" in entry and not isinstance(entry["path"], str):
            issues.append(_issue("critical", f"{where}.path", "'path' must be a string"))
        for key in sorted(set(entry) - CATEGORY_KEYS):
            issues.append(_issue("info", f"{where}.{key}", f"Unknown key '{key}' ignored"))

    return issues


def parse_manifest(raw: str, source: str = MANIFEST_FILE) -> Manifest:
    """Decode and check a manifest. Raises InvalidStructure on critical issues."""
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise InvalidStructure(
            f"{source}: invalid JSON ({e})",
            [_issue("critical", "$", str(e))],
        ) from e

    issues = check_manifest(data)
    critical = [i for i in issues if i["severity"] == "critical"]
    if critical:
        summary = "; ".join(f"{i['field']}: {i['message']}" for i in critical)
        raise InvalidStructure(f"{source}: {summary}", issues)

    categories = {}
    for cat_id, entry in data.get("categories", {}).items():
        cat_type = entry.get("type", "items")
        categories[str(cat_id)] = ManifestCategory(
            title=entry.get("title"),
            order=entry.get("order"),
            type=cat_type if cat_type in CATEGORY_TYPES else "items",
            path=entry.get("path"),
        )

    version = data.get("version")
    return Manifest(
        title=data.get("title") or None,
        description=data.get("description") or None,
        version=str(version) if version is not None else None,
        categories=categories,
    )
