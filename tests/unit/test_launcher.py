"""Unit tests for browser connection tracking in the launcher."""

from __future__ import annotations

import pytest

from fakes import EventEmitter
from tabwright.browser.launcher import BrowserLauncher


class _FakeBrowser(EventEmitter):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _attached(browser: _FakeBrowser) -> BrowserLauncher:
    launcher = BrowserLauncher()
    launcher._browser = browser
    launcher._watch(browser)
    return launcher


class TestConnectionTracking:
    def test_not_connected_before_launch(self):
        assert BrowserLauncher().is_connected is False

    def test_connected_after_attach(self):
        assert _attached(_FakeBrowser()).is_connected is True

    def test_disconnected_event_clears_connection(self, caplog):
        browser = _FakeBrowser()
        launcher = _attached(browser)

        browser.emit("disconnected", browser)

        assert launcher.is_connected is False
        assert "disconnected unexpectedly" in caplog.text

    @pytest.mark.asyncio
    async def test_shutdown_is_not_reported_as_loss(self, caplog):
        browser = _FakeBrowser()
        launcher = _attached(browser)

        await launcher.shutdown()
        browser.emit("disconnected", browser)

        assert browser.closed is True
        assert launcher.is_connected is False
        assert "disconnected unexpectedly" not in caplog.text
