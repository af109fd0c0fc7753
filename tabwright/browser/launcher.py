"""Playwright Chromium launch / attach for a single agent session.

Either launches a fresh Chromium (optionally through a proxy endpoint) or, in
compatibility mode, attaches to an already running Chrome over CDP. A
``disconnected`` callback clears ``is_connected`` on unexpected browser loss;
the session checks it and fails the next action with ``SessionClosedError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright
    from tabwright.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)

# Chromium flags for containerized / headless operation
CHROMIUM_ARGS: list[str] = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

DEFAULT_CDP_ENDPOINT = "http://localhost:9222"


class BrowserLauncher:
    """Owns the Playwright driver and one browser for the session's lifetime.

    Lifecycle
    ---------
    1. ``launch(proxy=...)`` or ``connect(endpoint)``: start/attach, return the first page.
    2. ``shutdown()``: close the browser and stop Playwright. Safe to call twice.
    """

    def __init__(self) -> None:
        self._playwright: "Playwright | None" = None
        self._browser: "Browser | None" = None
        self._disconnected = False

    @property
    def browser(self) -> "Browser | None":
        return self._browser

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and not self._disconnected

    # ------------------------------------------------------------------
    # launch / connect
    # ------------------------------------------------------------------

    async def launch(
        self,
        *,
        proxy: "ProxyEndpoint | None" = None,
        headless: bool = True,
        slow_mo_ms: int = 0,
        viewport: dict[str, int] | None = None,
        timeout_ms: int = 30000,
    ) -> "Page":
        """Launch Chromium and open the first page."""
        await self._start()
        assert self._playwright is not None, "Playwright not started"

        launch_kwargs: dict[str, Any] = {
            "headless": headless,
            "slow_mo": slow_mo_ms,
            "args": CHROMIUM_ARGS,
        }
        if proxy is not None:
            launch_kwargs["proxy"] = proxy.launch_options()

        self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        self._watch(self._browser)

        page = await self._browser.new_page(viewport=viewport)
        page.set_default_timeout(timeout_ms)
        logger.info(
            "Browser launched (headless=%s, proxy=%s)",
            headless,
            "on" if proxy is not None else "off",
            extra={"proxy_used": proxy.server if proxy is not None else None},
        )
        return page

    async def connect(
        self,
        endpoint: str = DEFAULT_CDP_ENDPOINT,
        *,
        viewport: dict[str, int] | None = None,
        timeout_ms: int = 30000,
    ) -> "Page":
        """Attach to a running Chrome over CDP and reuse its first page."""
        await self._start()
        assert self._playwright is not None, "Playwright not started"

        logger.info("Connecting to Chrome via CDP at %s", endpoint)
        self._browser = await self._playwright.chromium.connect_over_cdp(endpoint)
        self._watch(self._browser)

        contexts = self._browser.contexts
        if contexts:
            context = contexts[0]
            page = context.pages[0] if context.pages else await context.new_page()
        else:
            context = await self._browser.new_context(viewport=viewport)
            page = await context.new_page()
        page.set_default_timeout(timeout_ms)
        return page

    # ------------------------------------------------------------------
    # shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright; errors are logged, not raised."""
        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception:
                logger.debug("Error closing browser (may already be closed)", exc_info=True)

        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception:
                logger.debug("Error stopping Playwright", exc_info=True)

        logger.debug("Browser launcher shut down")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _start(self) -> None:
        from playwright.async_api import async_playwright

        if self._playwright is None:
            self._playwright = await async_playwright().start()
        self._disconnected = False

    def _watch(self, browser: "Browser") -> None:
        browser.on("disconnected", lambda _browser: self._on_disconnected())

    def _on_disconnected(self) -> None:
        if self._browser is None:
            return
        self._disconnected = True
        logger.warning("Browser disconnected unexpectedly")
