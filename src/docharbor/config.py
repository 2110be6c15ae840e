# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Central configuration – configurable via:
1. Environment variables (DOCHARBOR_ prefix, GITHUB_TOKEN for the token)
2. .env file
3. JSON overrides in data/config.json

Per-corpus settings live in repositories.json (see CorpusConfig).
"""
import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import get_logger

logger = get_logger(__name__)

CONFIG_FILE = Path("data/config.json")


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCHARBOR_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Corpora / Cache ──────────────────────────
    repositories_config: str = "data/repositories.json"
    cache_dir: str = "data/cache"
    local_root: str = "."
    cache_max_age_days: int = 7

    # ── GitHub ───────────────────────────────────
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "github_token", "DOCHARBOR_GITHUB_TOKEN", "GITHUB_TOKEN",
        ),
    )
    github_api_url: str = "https://api.github.com"
    request_timeout: float = 30.0
    max_concurrent_fetches: int = 8
    api_cache_ttl: int = 300

    # ── Discovery ────────────────────────────────
    discovery_max_depth: int = 3

    # ── Search ───────────────────────────────────
    bm25_weight: float = 0.5
    semantic_weight: float = 0.5
    mmr_lambda: float = 0.7
    per_corpus_limit: int = 5
    default_top_k: int = 10

    # ── Server / Transport ───────────────────────
    transport: Literal["stdio", "sse"] = "stdio"
    sse_port: int = 8081
    web_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def load(cls) -> "Config":
        """Load config: ENV -> .env -> config.json overrides."""
        config = cls()

        if CONFIG_FILE.exists():
            try:
                overrides = json.loads(CONFIG_FILE.read_text())
                for key, value in overrides.items():
                    if hasattr(config, key) and value != "":
                        setattr(config, key, value)
            except (OSError, ValueError) as e:
                logger.warning("Config file error: %s", e)

        return config

    def save(self):
        """Persist current config as JSON overrides."""
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(
            json.dumps(self.model_dump(), indent=2, default=str)
        )

    def to_safe_dict(self) -> dict:
        """Config without secrets (for status display)."""
        d = self.model_dump()
        if d.get("github_token"):
            d["github_token"] = "***set***"
        return d

    @property
    def cache_max_age_hours(self) -> float:
        return self.cache_max_age_days * 24.0


class CorpusConfig(BaseModel):
    """Per-corpus configuration (persisted in repositories.json)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    name: str = ""
    description: str = ""
    parent: Optional[str] = None
    token: str = ""
    enabled: bool = True
    keywords: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)

    @field_validator("id", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    def ensure_defaults(self):
        if not self.name:
            self.name = self.id

    def to_safe_dict(self) -> dict:
        d = self.model_dump()
        if d.get("token"):
            d["token"] = "***set***"
        return d

    def to_file_dict(self) -> dict:
        """Shape written to repositories.json (empty optionals dropped)."""
        d = self.model_dump()
        for key in ("parent", "token"):
            if not d.get(key):
                d.pop(key, None)
        for key in ("keywords", "aliases"):
            if not d.get(key):
                d.pop(key, None)
        return d
