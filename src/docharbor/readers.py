# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Content readers – turn raw cached file content into markdown-like text
for the search indexes. The cache always keeps the raw content.

Supported: .md, .markdown, .schema.json (component schemas)
"""
import json

from .logging import get_logger

logger = get_logger(__name__)

SCHEMA_SUFFIX = ".schema.json"
SUPPORTED_EXTENSIONS: tuple[str, ...] = (".md", SCHEMA_SUFFIX)


def is_supported(path: str) -> bool:
    name = path.lower()
    return any(name.endswith(ext) for ext in SUPPORTED_EXTENSIONS)


def item_kind(path: str) -> str:
    return "schema" if path.lower().endswith(SCHEMA_SUFFIX) else "document"


def strip_extension(name: str) -> str:
    lower = name.lower()
    for ext in (SCHEMA_SUFFIX, ".markdown", ".md"):
        if lower.endswith(ext):
            return name[: -len(ext)]
    return name


def extract_text(path: str, raw: str) -> str:
    """Return indexable text for *raw* content loaded from *path*."""
    if path.lower().endswith(SCHEMA_SUFFIX):
        return _read_schema(path, raw)
    return raw


# ── Component schemas ────────────────────────────────


def _read_schema(path: str, raw: str) -> str:
    try:
        schema = json.loads(raw)
    except ValueError as exc:
        logger.warning("Invalid schema JSON in %s: %s", path, exc)
        return f"# {path.rsplit('/', 1)[-1]}\n\n```json\n{raw}\n```"
    if not isinstance(schema, dict):
        formatted = json.dumps(schema, indent=2, ensure_ascii=False)
        return f"# {path.rsplit('/', 1)[-1]}\n\n```json\n{formatted}\n```"
    return schema_to_markdown(schema, fallback_title=strip_extension(path.rsplit("/", 1)[-1]))


def _cell(value) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def schema_to_markdown(schema: dict, fallback_title: str = "") -> str:
    parts = [f"# {schema.get('title') or fallback_title}\n"]
    if schema.get("description"):
        parts.append(f"{schema['description']}\n")

    tokens = schema.get("tokens")
    if isinstance(tokens, dict):
        parts.append(_render_tokens(tokens))

    if schema.get("tagName"):
        parts.append(f"**Tag:** `<{schema['tagName']}>`\n")

    examples = schema.get("examples") or []
    if examples:
        parts.append("## Examples\n")
        for ex in examples:
            if not isinstance(ex, dict):
                continue
            parts.append(f"### {ex.get('title', 'Example')}\n")
            parts.append(f"```{ex.get('language', 'html')}\n{ex.get('code', '')}\n```\n")

    properties = schema.get("properties") or {}
    if isinstance(properties, dict) and properties:
        rows = ["## Properties\n",
                "| Property | Type | Default | Description |",
                "|----------|------|---------|-------------|"]
        for name, prop in properties.items():
            prop = prop if isinstance(prop, dict) else {}
            prop_type = " \\| ".join(map(str, prop["enum"])) if prop.get("enum") else prop.get("type", "-")
            default = json.dumps(prop["default"]) if "default" in prop else "-"
            rows.append(f"| {name} | {prop_type} | {_cell(default)} | {_cell(prop.get('description', '-'))} |")
        parts.append("\n".join(rows) + "\n")

    events = schema.get("events") or []
    if events:
        rows = ["## Events\n", "| Event | Type | Description |", "|-------|------|-------------|"]
        for event in events:
            if isinstance(event, dict):
                rows.append(
                    f"| {event.get('name', '-')} | {event.get('type', 'Event')} "
                    f"| {_cell(event.get('description', '-'))} |"
                )
        parts.append("\n".join(rows) + "\n")

    slots = schema.get("slots") or []
    if slots:
        rows = ["## Slots\n", "| Slot | Description |", "|------|-------------|"]
        for slot in slots:
            if isinstance(slot, dict):
                rows.append(f"| {slot.get('name') or 'default'} | {_cell(slot.get('description', '-'))} |")
        parts.append("\n".join(rows) + "\n")

    css_parts = schema.get("cssParts") or []
    if css_parts:
        lines = ["## CSS Parts\n"]
        for part in css_parts:
            if isinstance(part, dict):
                lines.append(f"- `::part({part.get('name', '')})` - {part.get('description', '')}")
        parts.append("\n".join(lines) + "\n")

    css_props = schema.get("cssProperties") or []
    if css_props:
        rows = ["## CSS Properties\n", "| Property | Description | Default |",
                "|----------|-------------|---------|"]
        for prop in css_props:
            if isinstance(prop, dict):
                rows.append(
                    f"| {prop.get('name', '-')} | {_cell(prop.get('description', '-'))} "
                    f"| {prop.get('default') or '-'} |"
                )
        parts.append("\n".join(rows) + "\n")

    return "\n".join(parts)


def _flatten(values: dict, prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in values.items():
        name = f"{prefix}-{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        else:
            flat[name] = str(value)
    return flat


def _render_tokens(tokens: dict) -> str:
    out = []
    for category, values in tokens.items():
        out.append(f"## {str(category)[:1].upper()}{str(category)[1:]}\n")
        if isinstance(values, dict):
            out.append("| Token | Value |\n|-------|-------|")
            for key, value in _flatten(values).items():
                out.append(f"| {key} | `{value}` |")
            out.append("")
    return "\n".join(out) + "\n"
