"""Request-filter rule models and YAML loader.

Provides the typed Pydantic model for the filter's rule set and a loader
that parses an optional YAML file into it. Missing or invalid files fall
back to the built-in ad-network defaults.

Example file::

    block_resource_types:
      balanced: [media]
      aggressive: [image, media, font]
    block_url_patterns:
      - doubleclick.net
      - /ads/
    allowlist_domains:
      - example.com
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_URL_PATTERNS: list[str] = [
    "doubleclick.net",
    "googlesyndication.com",
    "googleadservices.com",
    "taboola.com",
    "outbrain.com",
    "criteo.com",
    "adnxs.com",
]


def _default_resource_types() -> dict[str, list[str]]:
    return {
        "balanced": ["media"],
        "aggressive": ["image", "media", "font"],
    }


class FilterConfig(BaseModel):
    """Complete, mutable-by-replacement configuration of the request filter."""

    enabled: bool = True
    mode: str = "balanced"
    block_resource_types: dict[str, list[str]] = Field(default_factory=_default_resource_types)
    block_url_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_BLOCK_URL_PATTERNS))
    allowlist_domains: list[str] = Field(default_factory=list)
    log_every_blocked: int = Field(default=25, ge=1)


def load_filter_rules(yaml_path: str) -> FilterConfig:
    """Parse a filter rules YAML file into a FilterConfig.

    Args:
        yaml_path: Path to the YAML rules file.

    Returns:
        The parsed configuration, or the built-in defaults when the file is
        absent, unparsable or invalid.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.debug("Filter rules file not found at %s, using built-in defaults", yaml_path)
        return FilterConfig()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse filter rules YAML at %s: %s", yaml_path, exc)
        return FilterConfig()

    if raw is None:
        return FilterConfig()

    if not isinstance(raw, dict):
        logger.warning("Filter rules YAML at %s is not a mapping, using built-in defaults", yaml_path)
        return FilterConfig()

    try:
        return FilterConfig.model_validate(raw)
    except Exception as exc:
        logger.error("Invalid filter rules in %s: %s, using built-in defaults", yaml_path, exc)
        return FilterConfig()
