import asyncio
import json
from pathlib import Path

import pytest

from docharbor.config import Config
from docharbor.health import HealthTracker
from docharbor.manager import CorpusManager
from docharbor.models import IndexedDocument

BUTTON_SCHEMA = {
    "title": "Button",
    "description": "Buttons represent actions that are available to the user.",
    "tagName": "wa-button",
    "properties": {
        "variant": {
            "type": "string",
            "enum": ["neutral", "brand", "danger"],
            "default": "neutral",
            "description": "The button's theme variant.",
        },
        "disabled": {"type": "boolean", "default": False, "description": "Disables the button."},
    },
    "events": [{"name": "wa-focus", "description": "Emitted when the button gains focus."}],
    "slots": [{"name": "", "description": "The button's label."}],
}


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def sources(tmp_path):
    """Two local documentation sources below tmp_path/sources."""
    root = tmp_path / "sources"

    wa = root / "webawesome"
    write(wa / "README.md", "# Web Awesome\n\nA library of framework-agnostic web components.\n")
    write(wa / "package.json", json.dumps({"name": "webawesome", "version": "3.0.0"}))
    write(
        wa / "getting-started" / "installation.md",
        "# Installation\n\nInstall webawesome with npm and import the autoloader.\n",
    )
    write(
        wa / "getting-started" / "themes.md",
        "# Themes\n\nThemes change the look of every component via CSS custom properties.\n",
    )
    write(
        wa / "components" / "button.schema.json",
        json.dumps(BUTTON_SCHEMA),
    )
    write(
        wa / "components" / "button-styles.md",
        "# Button Styles\n\nStyle the webawesome button with variants, sizes and pill shapes.\n",
    )

    guides = root / "routerkit" / "docs"
    write(
        guides / "guides" / "routing.md",
        "# Routing\n\nDefine a route for every page and link between routes.\n",
    )
    write(
        guides / "api" / "router.md",
        "# Router\n\nThe router object exposes navigate() and the current route.\n",
    )
    return root


@pytest.fixture
def config(tmp_path, sources):
    """Config pointing at tmp data/cache dirs and the local sources."""
    return Config(
        repositories_config=str(tmp_path / "data" / "repositories.json"),
        cache_dir=str(tmp_path / "data" / "cache"),
        local_root=str(tmp_path),
        github_token="",
    )


@pytest.fixture
def repositories_file(config):
    path = write(
        Path(config.repositories_config),
        json.dumps({
            "version": "1.0.0",
            "repositories": [
                {
                    "id": "webawesome",
                    "name": "Web Awesome",
                    "description": "Web components",
                    "url": "local://sources/webawesome",
                    "enabled": True,
                },
                {
                    "id": "routerkit",
                    "name": "RouterKit",
                    "url": "local://sources/routerkit/docs",
                    "enabled": True,
                    "keywords": ["router", "routing"],
                },
            ],
        }),
    )
    return path


@pytest.fixture
def health():
    return HealthTracker()


@pytest.fixture
def manager(config, repositories_file, health):
    """Initialized manager over the two local corpora."""
    mgr = CorpusManager(config, health=health)
    asyncio.run(mgr.initialize())
    return mgr


def make_doc(title, content="", corpus_id="lib", path=None, description="", category="General"):
    return IndexedDocument(
        corpus_id=corpus_id,
        corpus_name=corpus_id.title(),
        category=category,
        title=title,
        path=path or f"{title.lower().replace(' ', '-')}.md",
        kind="document",
        content=content,
        description=description,
    )
