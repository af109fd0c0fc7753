"""Shared test fixtures for the agent test suite."""

from __future__ import annotations

import os
import random

import pytest

from fakes import FakeContext, FakeLauncher, FakePage, button
from tabwright.config.settings import AgentSettings
from tabwright.filtering.request_filter import RequestFilter
from tabwright.proxy.ban_store import BanStore
from tabwright.proxy.manager import ProxyPool
from tabwright.session.session import AgentSession


# ---------------------------------------------------------------------------
# Keep the developer's environment out of AgentSettings
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop TABWRIGHT_* variables so settings start from their defaults."""
    for key in list(os.environ):
        if key.startswith("TABWRIGHT_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path) -> AgentSettings:
    """Test settings with every path under tmp_path."""
    return AgentSettings(
        proxy_state_dir=str(tmp_path / "state"),
        results_dir=str(tmp_path / "results"),
        filter_rules_path=str(tmp_path / "missing_rules.yaml"),
        browser_timeout_ms=5000,
    )


@pytest.fixture
def proxy_settings(settings: AgentSettings) -> AgentSettings:
    return settings.model_copy(
        update={
            "proxy_enabled": True,
            "proxy_endpoints": ["http://p1:8080", "http://p2:8080", "http://p3:8080"],
        }
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced clock for time-window tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def proxy_pool(clock: FakeClock) -> ProxyPool:
    return ProxyPool(
        ["http://p1:8080", "http://p2:8080", "http://p3:8080"],
        store=BanStore(None),
        rng=random.Random(0),
        clock=clock,
    )


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def make_session(settings: AgentSettings, launcher: FakeLauncher):
    """Build an AgentSession wired to fakes; keyword args override collaborators."""

    def factory(**kwargs) -> AgentSession:
        kwargs.setdefault("launcher", launcher)
        kwargs.setdefault("settle_seconds", 0)
        kwargs.setdefault("sleep", _no_sleep)
        return AgentSession(kwargs.pop("settings", settings), **kwargs)

    return factory


@pytest.fixture
def request_filter() -> RequestFilter:
    return RequestFilter()


@pytest.fixture
def page_with_buttons() -> FakePage:
    page = FakePage(context=FakeContext(), url="https://example.com/")
    page.elements = [
        button("#submit", "Submit"),
        button("a[name=\"docs\"]", "Docs", role="link", href="/docs"),
        button("#q", "Search", role="textbox"),
    ]
    return page
