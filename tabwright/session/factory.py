"""Wire an :class:`AgentSession` and its collaborators from settings."""

from __future__ import annotations

import logging
import random

from tabwright.browser.launcher import BrowserLauncher
from tabwright.browser.stealth import StealthSession
from tabwright.config.filter_rules import load_filter_rules
from tabwright.config.settings import AgentSettings
from tabwright.filtering.request_filter import RequestFilter
from tabwright.proxy.ban_store import BanStore
from tabwright.proxy.manager import ProxyPool
from tabwright.session.session import AgentSession

logger = logging.getLogger(__name__)


def build_proxy_pool(settings: AgentSettings, *, rng: random.Random | None = None) -> ProxyPool | None:
    """Return a file-backed pool when proxy support is enabled, else ``None``."""
    if not settings.proxy_enabled:
        return None
    return ProxyPool(
        settings.proxy_endpoints,
        store=BanStore.in_dir(settings.proxy_state_dir),
        fail_threshold=settings.proxy_fail_threshold,
        fail_window_seconds=settings.proxy_fail_window_seconds,
        ban_seconds=settings.proxy_ban_seconds,
        check_url=settings.proxy_check_url,
        check_timeout_seconds=settings.proxy_check_timeout_seconds,
        rng=rng,
    )


def build_request_filter(settings: AgentSettings) -> RequestFilter:
    """Rules from the YAML file; enable flag, mode and log cadence from settings."""
    config = load_filter_rules(settings.filter_rules_path).model_copy(
        update={
            "enabled": settings.filter_enabled,
            "mode": settings.filter_mode,
            "log_every_blocked": settings.filter_log_every_blocked,
        }
    )
    return RequestFilter(config, host_capacity=settings.filter_host_capacity)


def build_stealth(settings: AgentSettings, *, rng: random.Random | None = None) -> StealthSession | None:
    if not settings.stealth_enabled:
        return None
    return StealthSession(
        device_type=settings.stealth_device_type,
        browser_type=settings.stealth_browser_type,
        behavior_profile=settings.stealth_behavior_profile,
        rng=rng,
    )


def build_session(settings: AgentSettings, *, launcher: BrowserLauncher | None = None) -> AgentSession:
    """Create a standalone session with every collaborator the settings enable."""
    return AgentSession(
        settings,
        launcher=launcher or BrowserLauncher(),
        proxy_pool=build_proxy_pool(settings),
        request_filter=build_request_filter(settings),
        stealth=build_stealth(settings),
    )
