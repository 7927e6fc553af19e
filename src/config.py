"""Unified configuration loaded from .feedvault.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from feedvault.articles.models import DEFAULT_TEMPLATE, ArticleSavingSettings
from feedvault.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".feedvault.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "feedvault" / "config.toml"


class VaultConfig(BaseModel):
    """[vault] section."""

    directory: str = "./vault"


class StateConfig(BaseModel):
    """[state] section. An empty directory means the vault directory."""

    directory: str = ""


class SavingSectionConfig(BaseModel):
    """[saving] section."""

    default_folder: str = "RSS articles"
    default_template: str = DEFAULT_TEMPLATE
    include_frontmatter: bool = True
    frontmatter_template: str = ""
    add_saved_tag: bool = True
    fetch_full_content: bool = False


class ImportSectionConfig(BaseModel):
    """[import] section."""

    max_items: int = 50
    entry_delay: float = 0.1
    persist_every: int = 5
    render_every: int = 3


class ReconcileSectionConfig(BaseModel):
    """[reconcile] section."""

    debounce_seconds: float = 300.0


class MediaSectionConfig(BaseModel):
    """[media] section: default folders for non-article feeds."""

    video_folder: str = "Videos"
    podcast_folder: str = "Podcasts"


class FetchSectionConfig(BaseModel):
    """[fetch] section. No timeout means the HTTP client default."""

    timeout: float | None = None


class FeedvaultConfig(BaseModel):
    """Top-level configuration model."""

    vault: VaultConfig = Field(default_factory=VaultConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    saving: SavingSectionConfig = Field(default_factory=SavingSectionConfig)
    import_: ImportSectionConfig = Field(default_factory=ImportSectionConfig, alias="import")
    reconcile: ReconcileSectionConfig = Field(default_factory=ReconcileSectionConfig)
    media: MediaSectionConfig = Field(default_factory=MediaSectionConfig)
    fetch: FetchSectionConfig = Field(default_factory=FetchSectionConfig)

    model_config = {"populate_by_name": True}

    @property
    def vault_dir(self) -> Path:
        return Path(self.vault.directory).expanduser()

    @property
    def state_dir(self) -> Path:
        if self.state.directory:
            return Path(self.state.directory).expanduser()
        return self.vault_dir

    def to_saving_settings(self) -> ArticleSavingSettings:
        """Convert to the settings the saver and reconciler use."""
        return ArticleSavingSettings(
            default_folder=self.saving.default_folder,
            default_template=self.saving.default_template,
            include_frontmatter=self.saving.include_frontmatter,
            frontmatter_template=self.saving.frontmatter_template,
            add_saved_tag=self.saving.add_saved_tag,
            fetch_full_content=self.saving.fetch_full_content,
            fetch_timeout=self.fetch.timeout,
        )


def load_config(path: str | Path | None = None) -> FeedvaultConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .feedvault.toml in CWD
    3. ~/.config/feedvault/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged FeedvaultConfig.
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
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    try:
        config = FeedvaultConfig.model_validate(data) if data else FeedvaultConfig()
    except ValidationError as exc:
        logger.warning("Invalid config, using defaults: %s", exc)
        config = FeedvaultConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: FeedvaultConfig, **cli_kwargs: object) -> FeedvaultConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values, e.g. ``vault_directory``,
            ``saving_folder``.

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump(by_alias=True)

    mapping: dict[str, tuple[str, str]] = {
        "vault_directory": ("vault", "directory"),
        "state_directory": ("state", "directory"),
        "saving_folder": ("saving", "default_folder"),
        "full_content": ("saving", "fetch_full_content"),
        "fetch_timeout": ("fetch", "timeout"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key not in mapping:
            raise ConfigError(f"Unknown CLI override: {key}")
        section, field = mapping[key]
        data[section][field] = value

    return FeedvaultConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: FeedvaultConfig) -> FeedvaultConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump(by_alias=True)

    env_mapping: dict[str, tuple[str, str]] = {
        "FEEDVAULT_VAULT_DIR": ("vault", "directory"),
        "FEEDVAULT_STATE_DIR": ("state", "directory"),
        "FEEDVAULT_SAVE_FOLDER": ("saving", "default_folder"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    tag_raw = os.environ.get("FEEDVAULT_ADD_SAVED_TAG")
    if tag_raw is not None:
        data["saving"]["add_saved_tag"] = tag_raw.lower() in ("true", "1", "yes")

    timeout_raw = os.environ.get("FEEDVAULT_FETCH_TIMEOUT")
    if timeout_raw:
        try:
            data["fetch"]["timeout"] = float(timeout_raw)
        except ValueError:
            logger.warning("Ignoring non-numeric FEEDVAULT_FETCH_TIMEOUT=%r", timeout_raw)

    return FeedvaultConfig.model_validate(data)
