"""Multi-strategy element actions against the live page.

``click`` walks a fixed list of resolution strategies and stops at the first
that succeeds; a timeout or not-found inside a strategy only moves on to the
next one. ``fill`` has a single resolution path. Both consume identifiers
from the session's current Element Index and invalidate it afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tabwright.browser.snapshot import ElementRecord
from tabwright.errors import ActionTimeoutError, NavigationError, ResolutionExhaustedError

if TYPE_CHECKING:
    from playwright.async_api import Page
    from tabwright.session.session import AgentSession

logger = logging.getLogger(__name__)

SCROLL_TIMEOUT_MS = 2000
SELECTOR_CLICK_TIMEOUT_MS = 5000
FALLBACK_TIMEOUT_MS = 3000
FILL_TIMEOUT_MS = 5000

# Errors that mean "this strategy did not work", never fatal for the action.
STRATEGY_ERRORS = (PlaywrightError, asyncio.TimeoutError, LookupError)

HREF_LOOKUP_JS = """
(selector) => {
    try {
        const el = document.querySelector(selector);
        return (el && (el.href || el.getAttribute('href'))) || null;
    } catch (e) {
        return null;
    }
}
"""

Strategy = Callable[["Page", ElementRecord], Awaitable[None]]


async def click_by_selector(page: "Page", record: ElementRecord) -> None:
    locator = page.locator(record.selector).first
    try:
        await locator.scroll_into_view_if_needed(timeout=SCROLL_TIMEOUT_MS)
    except PlaywrightError:
        pass  # not scrollable is not a click failure
    await locator.click(timeout=SELECTOR_CLICK_TIMEOUT_MS, force=True)


async def click_by_role(page: "Page", record: ElementRecord) -> None:
    if not (record.role and record.label):
        raise LookupError("no role/label captured")
    locator = page.get_by_role(record.role, name=record.label, exact=False).first
    await locator.click(timeout=FALLBACK_TIMEOUT_MS, force=True)


async def click_by_text(page: "Page", record: ElementRecord) -> None:
    if not record.label:
        raise LookupError("no label captured")
    locator = page.get_by_text(record.label, exact=False).first
    await locator.click(timeout=FALLBACK_TIMEOUT_MS, force=True)


async def click_by_script(page: "Page", record: ElementRecord) -> None:
    locator = page.locator(record.selector).first
    await locator.evaluate("(el) => el.click()", timeout=FALLBACK_TIMEOUT_MS)


CLICK_STRATEGIES: list[tuple[str, Strategy]] = [
    ("selector", click_by_selector),
    ("role", click_by_role),
    ("text", click_by_text),
    ("script", click_by_script),
]


class ActionResolver:
    """Executes element actions for one :class:`AgentSession`."""

    def __init__(
        self,
        session: "AgentSession",
        strategies: list[tuple[str, Strategy]] | None = None,
    ) -> None:
        self._session = session
        self._strategies = strategies or CLICK_STRATEGIES

    # ------------------------------------------------------------------
    # click
    # ------------------------------------------------------------------

    async def click(self, element_id: str) -> dict:
        session = self._session
        record = session.lookup(element_id)
        page = session.page
        url_before = page.url
        tabs_before = session.tab_count

        if session.stealth is not None:
            await session.pause(session.stealth.click_delay())
        strategy = await self._run_strategies(page, record)

        await session.settle()
        new_tab = session.tab_count > tabs_before
        if new_tab:
            await session.switch_tab(session.tab_count - 1)

        page = session.page
        url = page.url
        session.record_visit(url)

        fallback = False
        if url == url_before and record.is_link and record.href:
            fallback = await self._follow_href(page, record.href)
            url = page.url
            session.record_visit(url)

        session.invalidate_index()
        logger.info(
            "Clicked %s via %s",
            element_id,
            strategy,
            extra={"element_id": element_id, "strategy": strategy, "target_url": url},
        )
        return {
            "clicked": element_id,
            "strategy": strategy,
            "new_tab_opened": new_tab,
            "link_fallback": fallback,
            "url": url,
        }

    async def _run_strategies(self, page: "Page", record: ElementRecord) -> str:
        last_error: BaseException | None = None
        for name, strategy in self._strategies:
            try:
                await strategy(page, record)
            except STRATEGY_ERRORS as exc:
                logger.debug("Click strategy %s failed for %s: %s", name, record.id, exc)
                last_error = exc
                continue
            return name

        raise ResolutionExhaustedError(
            f"All click strategies failed for {record.id}: {last_error}",
            element_id=record.id,
            cause=str(last_error),
            strategies=[name for name, _ in self._strategies],
        )

    async def _follow_href(self, page: "Page", href: str) -> bool:
        """Navigate straight to a link target the click did not follow. Never raises."""
        try:
            target = urljoin(page.url, href)
            await page.goto(
                target,
                wait_until="domcontentloaded",
                timeout=self._session.navigation_timeout_ms,
            )
            await self._session.settle()
        except (PlaywrightError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Link fallback navigation failed: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # fill
    # ------------------------------------------------------------------

    async def fill(self, element_id: str, text: str) -> dict:
        session = self._session
        record = session.lookup(element_id)
        page = session.page

        try:
            if session.stealth is not None:
                await session.stealth.emulate_typing(page, record.selector, text, FILL_TIMEOUT_MS)
            else:
                if record.selector:
                    locator = page.locator(record.selector).first
                else:
                    locator = page.get_by_role("textbox", name=record.label).first
                await locator.fill(text, timeout=FILL_TIMEOUT_MS)
        except PlaywrightTimeoutError as exc:
            raise ActionTimeoutError(
                f"Fill timed out for {element_id}", element_id=element_id, cause=str(exc)
            ) from exc
        except PlaywrightError as exc:
            raise ResolutionExhaustedError(
                f"Fill failed for {element_id}: {exc}", element_id=element_id, cause=str(exc)
            ) from exc
        finally:
            session.invalidate_index()

        logger.info("Filled %s", element_id, extra={"element_id": element_id})
        return {"uid": element_id, "text_length": len(text or "")}

    # ------------------------------------------------------------------
    # open_link
    # ------------------------------------------------------------------

    async def open_link(self, element_id: str) -> dict:
        """Navigate directly to the element's link target."""
        session = self._session
        record = session.lookup(element_id)
        href = record.href
        if not href:
            try:
                href = await session.page.evaluate(HREF_LOOKUP_JS, record.selector)
            except PlaywrightError:
                href = None
        if not href:
            raise NavigationError(f"Element has no href: {element_id}", element_id=element_id)
        if str(href).strip().lower().startswith("javascript:"):
            raise NavigationError("Cannot navigate to javascript: href", element_id=element_id)

        target = urljoin(session.page.url, str(href))
        return await session.navigate(target)
