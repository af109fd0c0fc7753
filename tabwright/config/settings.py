"""Pydantic Settings for the browser agent.

All environment variables use the TABWRIGHT_ prefix.
Example: TABWRIGHT_PROXY_ENABLED=true, TABWRIGHT_FILTER_MODE=aggressive
List values are JSON: TABWRIGHT_PROXY_ENDPOINTS='["http://user:pass@p1:8080"]'
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class AgentSettings(BaseSettings):
    """Agent configuration validated from environment variables."""

    log_level: str = "INFO"

    # Browser engine
    browser_headless: bool = True
    browser_timeout_ms: int = Field(default=30000, ge=1000)
    browser_slow_mo_ms: int = Field(default=0, ge=0)
    browser_viewport_width: int = Field(default=1280, ge=320)
    browser_viewport_height: int = Field(default=800, ge=320)
    browser_use_cdp: bool = False  # attach to an externally running Chrome
    browser_cdp_endpoint: str = "http://localhost:9222"
    auto_dismiss_cookies: bool = False

    # Action boundary
    action_timeout_seconds: int = Field(default=120, ge=5)

    # Proxy pool
    proxy_enabled: bool = False
    proxy_endpoints: list[str] = []
    proxy_state_dir: str = "./data"
    proxy_fail_threshold: int = Field(default=3, ge=1)
    proxy_fail_window_seconds: int = Field(default=3600, ge=1)
    proxy_ban_seconds: int = Field(default=43200, ge=1)
    proxy_fallback_direct: bool = False
    proxy_check_url: str = "https://httpbin.org/status/200"
    proxy_check_timeout_seconds: float = Field(default=10.0, gt=0)

    # Request filter
    filter_enabled: bool = True
    filter_mode: Literal["balanced", "aggressive"] = "balanced"
    filter_rules_path: str = "filter_rules.yaml"
    filter_log_every_blocked: int = Field(default=25, ge=1)
    filter_host_capacity: int = Field(default=500, ge=1)

    # Stealth
    stealth_enabled: bool = True
    stealth_device_type: Literal["desktop", "mobile"] = "desktop"
    stealth_browser_type: str = "chrome"
    stealth_behavior_profile: str = "stealth"

    # Result persistence
    results_dir: str = "./results"

    model_config = {"env_prefix": "TABWRIGHT_"}
