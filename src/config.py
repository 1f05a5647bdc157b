"""Unified configuration loaded from .studybuddy.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".studybuddy.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "studybuddy" / "config.toml"


class DiagramSectionConfig(BaseModel):
    """[diagrams] section."""

    debounce_ms: int = 800
    fallback: bool = True

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


class RenderSectionConfig(BaseModel):
    """[render] section."""

    command: str = "mmdc"
    theme: str = "neutral"
    work_dir: str = ""


class StorageSectionConfig(BaseModel):
    """[storage] section."""

    directory: str = "~/.studybuddy"

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class StudyBuddyConfig(BaseModel):
    """Top-level configuration model."""

    diagrams: DiagramSectionConfig = Field(default_factory=DiagramSectionConfig)
    render: RenderSectionConfig = Field(default_factory=RenderSectionConfig)
    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)

    @property
    def render_work_dir(self) -> Path:
        """Scratch directory for render artifacts."""
        if self.render.work_dir:
            return Path(self.render.work_dir).expanduser()
        return self.storage.path / "render"


def load_config(path: str | Path | None = None) -> StudyBuddyConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .studybuddy.toml in CWD
    3. ~/.config/studybuddy/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged StudyBuddyConfig.
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
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = StudyBuddyConfig.model_validate(data) if data else StudyBuddyConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: StudyBuddyConfig, **cli_kwargs: object) -> StudyBuddyConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "command": ("render", "command"),
        "theme": ("render", "theme"),
        "work_dir": ("render", "work_dir"),
        "fallback": ("diagrams", "fallback"),
        "storage_dir": ("storage", "directory"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return StudyBuddyConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: StudyBuddyConfig) -> StudyBuddyConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "STUDYBUDDY_MMDC": ("render", "command"),
        "STUDYBUDDY_THEME": ("render", "theme"),
        "STUDYBUDDY_RENDER_DIR": ("render", "work_dir"),
        "STUDYBUDDY_STORAGE_DIR": ("storage", "directory"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    debounce_raw = os.environ.get("STUDYBUDDY_DEBOUNCE_MS")
    if debounce_raw is not None:
        try:
            data["diagrams"]["debounce_ms"] = int(debounce_raw)
        except ValueError:
            logger.warning("Ignoring non-integer STUDYBUDDY_DEBOUNCE_MS=%r", debounce_raw)
    fallback_raw = os.environ.get("STUDYBUDDY_FALLBACK")
    if fallback_raw is not None:
        data["diagrams"]["fallback"] = fallback_raw.lower() in ("true", "1", "yes")

    return StudyBuddyConfig.model_validate(data)
