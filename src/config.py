"""Unified configuration loaded from .backlinks.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from backlinks.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".backlinks.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
    Path.home() / ".config" / "backlinks",
]


class SiteConfig(BaseModel):
    """[site] section."""

    directory: str = "."
    base_url: str = "https://example.com/"


class TrackingConfig(BaseModel):
    """[tracking] section — which items take part in the graph."""

    post_types: list[str] = Field(default_factory=lambda: ["post", "page"])
    post_statuses: list[str] = Field(default_factory=lambda: ["publish", "future"])


class TaxonomyConfig(BaseModel):
    """[taxonomy] section — names of the graph's own bookkeeping."""

    link_taxonomy: str = "backlink"
    count_taxonomy: str = "backlink_count"
    count_meta_key: str = "_backlinks_count"
    scan_meta_key: str = "_backlinks_scanned"


class SuggestionsConfig(BaseModel):
    """[suggestions] section."""

    common_term_divisor: int = 3
    published_status: str = "publish"


class BacklogConfig(BaseModel):
    """[backlog] section."""

    batch_size: int = 20
    delay_seconds: int = 60
    lock_ttl_seconds: int = 30 * 60
    lock_key: str = "backlinks-backlog-lock"
    task_id: str = "backlinks_backlog"


class BacklinksConfig(BaseModel):
    """Top-level configuration model for the link graph."""

    site: SiteConfig = Field(default_factory=SiteConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    taxonomy: TaxonomyConfig = Field(default_factory=TaxonomyConfig)
    suggestions: SuggestionsConfig = Field(default_factory=SuggestionsConfig)
    backlog: BacklogConfig = Field(default_factory=BacklogConfig)

    @model_validator(mode="after")
    def _check_limits(self) -> BacklinksConfig:
        if self.backlog.batch_size < 1:
            raise ValueError("backlog.batch_size must be at least 1")
        if self.backlog.lock_ttl_seconds <= self.backlog.delay_seconds:
            raise ValueError("backlog.lock_ttl_seconds must exceed backlog.delay_seconds")
        if self.suggestions.common_term_divisor < 1:
            raise ValueError("suggestions.common_term_divisor must be at least 1")
        return self

    @property
    def site_directory(self) -> Path:
        return Path(self.site.directory)


def filter_option_list(
    values: Iterable[str],
    valid: Iterable[str],
    default: Iterable[str],
) -> list[str]:
    """Keep the configured *values* the site recognises.

    Falls back to *default* when nothing valid remains.
    """
    valid_set = set(valid)
    values = list(values)
    output = [v for v in values if v and v in valid_set]
    dropped = [v for v in values if v and v not in valid_set]
    if dropped:
        logger.warning("Ignoring unknown configured values: %s", ", ".join(dropped))
    return output or list(default)


def load_config(path: str | Path | None = None) -> BacklinksConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .backlinks.toml in CWD
    3. ~/.config/backlinks/.backlinks.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged BacklinksConfig.

    Raises:
        ConfigError: If the merged values fail validation.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break

    config = _validate(data)
    return _apply_env_vars(config)


def merge_cli_overrides(config: BacklinksConfig, **cli_kwargs: object) -> BacklinksConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "site_dir": ("site", "directory"),
        "base_url": ("site", "base_url"),
        "post_types": ("tracking", "post_types"),
        "post_statuses": ("tracking", "post_statuses"),
        "batch_size": ("backlog", "batch_size"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = str(value) if isinstance(value, Path) else value

    return _validate(data)


def _validate(data: dict[str, object]) -> BacklinksConfig:
    try:
        return BacklinksConfig.model_validate(data) if data else BacklinksConfig()
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _apply_env_vars(config: BacklinksConfig) -> BacklinksConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    site_dir = os.environ.get("BACKLINKS_SITE_DIR")
    if site_dir is not None:
        data["site"]["directory"] = site_dir
    base_url = os.environ.get("BACKLINKS_BASE_URL")
    if base_url is not None:
        data["site"]["base_url"] = base_url

    for env_var, field in [
        ("BACKLINKS_POST_TYPES", "post_types"),
        ("BACKLINKS_POST_STATUSES", "post_statuses"),
    ]:
        raw = os.environ.get(env_var)
        if raw is not None:
            data["tracking"][field] = _split_list(raw)

    batch_raw = os.environ.get("BACKLINKS_BATCH_SIZE")
    if batch_raw is not None:
        try:
            data["backlog"]["batch_size"] = int(batch_raw)
        except ValueError:
            raise ConfigError(f"BACKLINKS_BATCH_SIZE must be an integer, got {batch_raw!r}") from None

    return _validate(data)
