"""Agent session: browser lifecycle, tab bookkeeping and proxy rotation.

State machine::

    UNINITIALIZED --init()--> ACTIVE --rotate()--> ROTATING --init()--> ACTIVE
          \\                     \\
           `------close()-------`--> CLOSED (terminal)

The session exclusively owns the page list, the active tab pointer, the
visited-URL set and at most one Element Index. The proxy pool and request
filter are attached collaborators that survive a rotation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tabwright.browser.launcher import BrowserLauncher
from tabwright.browser.snapshot import ElementIndex, ElementRecord, create_snapshot
from tabwright.errors import (
    ActionTimeoutError,
    ElementNotFoundError,
    NavigationError,
    ProxyUnavailableError,
    SessionClosedError,
)

if TYPE_CHECKING:
    from playwright.async_api import ConsoleMessage, Page
    from tabwright.browser.stealth import StealthSession
    from tabwright.config.settings import AgentSettings
    from tabwright.filtering.request_filter import RequestFilter
    from tabwright.proxy.manager import ProxyPool
    from tabwright.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)

TUNNEL_FAILURE_MARKERS: tuple[str, ...] = (
    "ERR_TUNNEL_CONNECTION_FAILED",
    "ERR_PROXY_CONNECTION_FAILED",
)

COOKIE_SELECTORS: list[str] = [
    "#onetrust-accept-btn-handler",
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    "#L2AGLb",
    ".osano-cm-accept-all",
    '[data-testid="cookie-policy-dialog-accept-button"]',
    '[data-testid="GDPR-accept"]',
    'button[data-cookiebanner="accept_button"]',
]
COOKIE_CLICK_TIMEOUT_MS = 800

CONSOLE_NOISE: tuple[str, ...] = ("Third-party cookie", "preload")
CONSOLE_TEXT_LIMIT = 200

BLANK_URL = "about:blank"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    ROTATING = "rotating"
    CLOSED = "closed"


class Ownership(str, Enum):
    """Who owns the browser: the session, or an external pool lending a page."""

    STANDALONE = "standalone"
    POOLED = "pooled"


class AgentSession:
    """One logical browsing session driven by CLI actions."""

    def __init__(
        self,
        settings: "AgentSettings",
        *,
        launcher: BrowserLauncher | None = None,
        proxy_pool: "ProxyPool | None" = None,
        request_filter: "RequestFilter | None" = None,
        stealth: "StealthSession | None" = None,
        ownership: Ownership = Ownership.STANDALONE,
        page: "Page | None" = None,
        settle_seconds: float = 0.5,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        if ownership is Ownership.POOLED and page is None:
            raise ValueError("pooled sessions require an externally owned page")

        self.settings = settings
        self.launcher = launcher or BrowserLauncher()
        self.proxy_pool = proxy_pool
        self.request_filter = request_filter
        self.stealth = stealth
        self.ownership = ownership
        self.settle_seconds = settle_seconds
        self._sleep = sleep

        self.state = SessionState.UNINITIALIZED
        self._external_page = page
        self.pages: list[Any] = []
        self.current_index = 0
        self._page: "Page | None" = None
        self.current_url = BLANK_URL
        self.visited: set[str] = {BLANK_URL}
        self.current_proxy: "ProxyEndpoint | None" = None
        self.index: ElementIndex | None = None
        self._generation = 0
        self.last_error: str | None = None
        self._cookie_url = ""
        self._cookie_attempts = 0

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def page(self) -> "Page":
        if self.state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed")
        if self._page is None:
            raise SessionClosedError("Session is not initialized")
        self._check_browser()
        return self._page

    @property
    def tab_count(self) -> int:
        return len(self.pages)

    @property
    def navigation_timeout_ms(self) -> int:
        return self.settings.browser_timeout_ms

    def record_visit(self, url: str) -> None:
        if url:
            self.current_url = url
            self.visited.add(url)

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    async def settle(self) -> None:
        await self.pause(self.settle_seconds)

    # ------------------------------------------------------------------
    # init
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Bring the session to ACTIVE: proxy, browser, filter, stealth, listeners."""
        if self.state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed; create a new session")
        if self.state is SessionState.ACTIVE:
            return

        try:
            page = await self._open_first_page()
            self.pages = [page]
            self.current_index = 0
            self._page = page
            self.current_url = page.url or BLANK_URL

            if self.request_filter is not None:
                await self.request_filter.attach(page)
            if self.stealth is not None:
                await self.stealth.attach(page)

            page.context.on("page", self._on_new_page)
            page.on("console", self._on_console)
        except BaseException:
            await self._release_browser()
            self.state = SessionState.UNINITIALIZED
            raise

        self.state = SessionState.ACTIVE
        logger.info(
            "Browser ready",
            extra={
                "proxy_used": self.current_proxy.server if self.current_proxy else None,
                "tab_count": len(self.pages),
            },
        )

    async def _open_first_page(self) -> "Page":
        settings = self.settings
        viewport = {
            "width": settings.browser_viewport_width,
            "height": settings.browser_viewport_height,
        }

        if self.ownership is Ownership.POOLED:
            assert self._external_page is not None
            return self._external_page

        if settings.browser_use_cdp:
            return await self.launcher.connect(
                settings.browser_cdp_endpoint,
                viewport=viewport,
                timeout_ms=settings.browser_timeout_ms,
            )

        self.current_proxy = None
        if settings.proxy_enabled:
            if self.proxy_pool is None:
                raise ProxyUnavailableError("Proxy support enabled but no proxy pool configured")
            self.current_proxy = self.proxy_pool.next()
            if self.current_proxy is None:
                if not settings.proxy_fallback_direct:
                    raise ProxyUnavailableError(
                        "All proxy endpoints are banned", **self.proxy_pool.stats()
                    )
                logger.warning("Proxy enabled but no available proxies; launching direct")

        return await self.launcher.launch(
            proxy=self.current_proxy,
            headless=settings.browser_headless,
            slow_mo_ms=settings.browser_slow_mo_ms,
            viewport=viewport,
            timeout_ms=settings.browser_timeout_ms,
        )

    def _on_new_page(self, page: "Page") -> None:
        if page in self.pages:
            return
        self.pages.append(page)
        logger.info("New tab opened", extra={"tab_count": len(self.pages)})

    def _on_console(self, message: "ConsoleMessage") -> None:
        try:
            kind = message.type
            if kind not in ("error", "warning"):
                return
            text = message.text
            if any(noise in text for noise in CONSOLE_NOISE):
                return
            logger.warning("Console %s: %s", kind, text[:CONSOLE_TEXT_LIMIT])
        except PlaywrightError:
            logger.debug("Unreadable console message", exc_info=True)

    # ------------------------------------------------------------------
    # navigate
    # ------------------------------------------------------------------

    async def navigate(self, url: str) -> dict:
        """Go to *url*, rotating the proxy once on a tunnel failure."""
        self._require_active()
        started = time.monotonic()

        try:
            await self._goto(url)
        except PlaywrightError as exc:
            if not (self._is_tunnel_failure(exc) and self.proxy_pool is not None):
                raise self._navigation_error(url, exc) from exc
            logger.warning(
                "Tunnel failed, rotating proxy",
                extra={"target_url": url, "error_reason": str(exc)},
            )
            await self.rotate()
            try:
                await self._goto(url)
            except PlaywrightError as retry_exc:
                raise self._navigation_error(url, retry_exc) from retry_exc

        await self.settle()
        self.record_visit(self.page.url)
        if self.proxy_pool is not None and self.current_proxy is not None:
            self.proxy_pool.report_success(self.current_proxy)

        if self.settings.auto_dismiss_cookies:
            await self.handle_cookie_policy()

        index = await self.snapshot()
        logger.info(
            "Navigated",
            extra={
                "target_url": self.current_url,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return {
            "url": self.current_url,
            "element_count": len(index),
            "snapshot": index.text(),
        }

    async def _goto(self, url: str) -> None:
        await self.page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self.settings.browser_timeout_ms,
        )

    @staticmethod
    def _is_tunnel_failure(exc: BaseException) -> bool:
        message = str(exc)
        return any(marker in message for marker in TUNNEL_FAILURE_MARKERS)

    def _navigation_error(self, url: str, exc: BaseException) -> Exception:
        self.last_error = str(exc)
        if isinstance(exc, PlaywrightTimeoutError):
            return ActionTimeoutError(f"Navigation to {url} timed out", url=url)
        return NavigationError(f"Navigation to {url} failed: {exc}", url=url)

    # ------------------------------------------------------------------
    # tabs
    # ------------------------------------------------------------------

    async def switch_tab(self, target: int | str) -> bool:
        """Focus a tab by index, or by the first URL containing *target*.

        Returns False (never raises) when nothing matches.
        """
        self._require_active()
        if isinstance(target, int):
            if target < 0 or target >= len(self.pages):
                return False
            self._page = self.pages[target]
            self.current_index = target
            self.current_url = self._page.url
            self.invalidate_index()
            logger.info(
                "Switched to tab %d/%d", target + 1, len(self.pages), extra={"tab_count": len(self.pages)}
            )
            return True

        needle = str(target or "")
        for idx, page in enumerate(self.pages):
            if needle in (page.url or ""):
                return await self.switch_tab(idx)
        return False

    def tab_urls(self) -> list[str]:
        return [f"{idx}: {page.url}" for idx, page in enumerate(self.pages)]

    # ------------------------------------------------------------------
    # rotate
    # ------------------------------------------------------------------

    async def rotate(self, reason: str = "") -> dict:
        """Report the current proxy as failed and restart the whole browser."""
        if self.proxy_pool is None:
            raise ProxyUnavailableError("Proxy rotation unavailable: proxy support is disabled")
        if self.ownership is Ownership.POOLED:
            raise ProxyUnavailableError("Proxy rotation unavailable for pooled sessions")
        if self.state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed")

        previous = self.current_proxy
        self.state = SessionState.ROTATING
        if previous is not None:
            self.proxy_pool.report_failure(previous)
        logger.info(
            "Rotating proxy, restarting browser%s",
            f" ({reason})" if reason else "",
            extra={"proxy_used": previous.server if previous else None},
        )

        await self._release_browser()
        self.state = SessionState.UNINITIALIZED
        await self.init()

        return {
            "rotated": True,
            "proxy": self.current_proxy.server if self.current_proxy else None,
            "url": self.current_url,
            "stats": self.proxy_pool.stats(),
        }

    # ------------------------------------------------------------------
    # close
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release resources. Pooled sessions only drop their page references."""
        if self.state is SessionState.CLOSED:
            return
        await self._release_browser()
        self.state = SessionState.CLOSED
        logger.debug("Session closed")

    async def _release_browser(self) -> None:
        for page in self.pages:
            if self.request_filter is not None:
                await self.request_filter.detach(page)
            if self.stealth is not None:
                await self.stealth.detach(page)
        if self.ownership is not Ownership.POOLED:
            await self.launcher.shutdown()
        self._page = None
        self.pages = []
        self.current_index = 0
        self.invalidate_index()
        self.index = None

    def _require_active(self) -> None:
        if self.state is not SessionState.ACTIVE:
            raise SessionClosedError(f"Session is {self.state.value}")
        self._check_browser()

    def _check_browser(self) -> None:
        if self.ownership is Ownership.POOLED or self.launcher.is_connected:
            return
        self.last_error = "Browser disconnected"
        raise SessionClosedError("Browser disconnected", state=self.state.value)

    # ------------------------------------------------------------------
    # Element Index
    # ------------------------------------------------------------------

    async def snapshot(self, verbose: bool = False) -> ElementIndex:
        """Replace the Element Index with a fresh one from the current page."""
        self._require_active()
        self.invalidate_index()
        self._generation += 1
        self.index = await create_snapshot(self.page, verbose, self._generation)
        return self.index

    def lookup(self, element_id: str) -> ElementRecord:
        if self.index is None:
            raise ElementNotFoundError(
                f"Element not found in snapshot: {element_id} (no snapshot taken)",
                element_id=element_id,
            )
        return self.index.lookup(element_id)

    def invalidate_index(self) -> None:
        if self.index is not None:
            self.index.invalidate()

    # ------------------------------------------------------------------
    # Cookie banners
    # ------------------------------------------------------------------

    async def handle_cookie_policy(self, force: bool = False) -> dict:
        """Click known consent buttons; one attempt per URL unless forced. Never raises."""
        if self._page is None:
            return {"handled": False, "clicks": 0}

        url_key = (self._page.url or "").split("#")[0]
        if not force and self._cookie_url == url_key and self._cookie_attempts >= 1:
            return {"handled": False, "clicks": 0, "skipped": True}
        if self._cookie_url != url_key:
            self._cookie_url, self._cookie_attempts = url_key, 0
        self._cookie_attempts += 1

        clicks = 0
        for selector in COOKIE_SELECTORS:
            try:
                locator = self._page.locator(selector).first
                if await locator.count() == 0:
                    continue
                if not await locator.is_visible():
                    continue
                await locator.click(timeout=COOKIE_CLICK_TIMEOUT_MS, force=True)
                clicks += 1
            except (PlaywrightError, asyncio.TimeoutError):
                continue

        if clicks:
            logger.info("Cookie handler: %d banner(s) dismissed", clicks)
        return {"handled": clicks > 0, "clicks": clicks}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def live_status(self) -> dict:
        return {
            "state": self.state.value,
            "ownership": self.ownership.value,
            "url": self.current_url,
            "tabs": len(self.pages),
            "active_tab": self.current_index,
            "visited_count": len(self.visited),
            "snapshot": {
                "generation": self._generation,
                "valid": bool(self.index is not None and self.index.valid),
                "elements": len(self.index) if self.index is not None else 0,
            },
            "proxy": {
                "enabled": self.proxy_pool is not None,
                "current": self.current_proxy.server if self.current_proxy else None,
                "stats": self.proxy_pool.stats() if self.proxy_pool is not None else None,
            },
            "adblock": self.request_filter.status() if self.request_filter else {"enabled": False},
            "stealth": self.stealth.status() if self.stealth else {"enabled": False},
            "last_error": self.last_error,
        }
