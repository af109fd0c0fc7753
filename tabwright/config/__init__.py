"""Configuration module: settings and filter rules."""

from tabwright.config.filter_rules import FilterConfig, load_filter_rules
from tabwright.config.settings import AgentSettings

__all__ = [
    "AgentSettings",
    "FilterConfig",
    "load_filter_rules",
]
