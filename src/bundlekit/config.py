"""Configuration management for Bundlekit."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configure logger
logger = logging.getLogger(__name__)

# Advisory categories for extended-shape metadata. Tags outside this set are
# reported as warnings only.
DEFAULT_CATEGORIES = [
    "development",
    "productivity",
    "infrastructure",
    "testing",
    "documentation",
    "security",
    "data",
    "design",
    "workflow",
    "integration",
]


class BundleSettings(BaseSettings):
    """Bundlekit configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUNDLEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Manifest discovery, relative to the bundle root
    manifest_paths: list[str] = Field(
        default_factory=lambda: [".claude-plugin/plugin.json", "plugin.json"]
    )
    server_config_file: str = Field(default=".mcp.json")
    skill_header_file: str = Field(default="SKILL.md")
    root_placeholder: str = Field(default="CLAUDE_PLUGIN_ROOT")

    allowed_categories: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    # Execution
    max_workers: int | None = Field(default=None)
    log_level: str = Field(default="WARNING")


def get_settings() -> BundleSettings:
    """Get Bundlekit settings instance."""
    return BundleSettings()
