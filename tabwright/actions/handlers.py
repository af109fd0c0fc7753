"""Action handlers, one per CLI sub-command.

Every handler takes the session and its validated parameter model and
returns the ``data`` dict of the result envelope. Failures are raised as
``AgentError`` subclasses; the executor turns them into error envelopes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from tabwright.actions.registry import ActionRegistry, ActionSpec
from tabwright.browser.resolver import ActionResolver
from tabwright.browser.stealth import StealthSession
from tabwright.errors import (
    ActionTimeoutError,
    FilterMisconfiguredError,
    InvalidParamsError,
    ProxyUnavailableError,
    ResultNotFoundError,
    TabNotFoundError,
)
from tabwright.models.actions import (
    ActionName,
    AdblockAction,
    AdblockParams,
    CookiesParams,
    DialogAction,
    DialogParams,
    DoneParams,
    ElementParams,
    EmptyParams,
    EvalParams,
    ExtractParams,
    FillParams,
    FingerprintParams,
    KeyParams,
    NavigateParams,
    ProxyAction,
    ProxyParams,
    ReadParams,
    SaveParams,
    ScrollDirection,
    ScrollParams,
    SnapshotParams,
    SourceParams,
    TabParams,
    WaitParams,
)

if TYPE_CHECKING:
    from tabwright.session.session import AgentSession

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 164_000
EVAL_PREVIEW_LENGTH = 2000
DIALOG_TIMEOUT_SECONDS = 2.0
KEY_SETTLE_SECONDS = 0.2
SCROLL_SETTLE_SECONDS = 0.3
FILENAME_LIMIT = 100
_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9_.\-]")
SAVE_SEPARATOR = "\n\n---\n\n"

EXTRACT_JS = """
(selector) => {
    const target = document.querySelector(selector) || document.body;
    const clone = target.cloneNode(true);
    for (const tag of ['script', 'style', 'nav', 'header', 'footer', 'aside', 'noscript']) {
        clone.querySelectorAll(tag).forEach((el) => el.remove());
    }
    const getText = (node) => {
        if (node.nodeType === Node.TEXT_NODE) return node.textContent.trim();
        if (node.nodeType === Node.ELEMENT_NODE) {
            return Array.from(node.childNodes).map(getText).filter(Boolean).join(' ');
        }
        return '';
    };
    return getText(clone).replace(/\\s+/g, ' ').trim();
}
"""

EVAL_JS = """
async ({ userScript }) => {
    const fn = new Function(`return (async () => { ${userScript} })();`);
    return await fn();
}
"""

SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


def truncate(text: str, marker: str) -> tuple[str, bool]:
    """Cap *text* at the content limit, appending *marker* when cut."""
    if len(text) <= MAX_CONTENT_LENGTH:
        return text, False
    return text[:MAX_CONTENT_LENGTH] + marker, True


def safe_filename(name: str) -> str:
    """Replace anything outside ``[A-Za-z0-9_.-]`` and cap the length."""
    return _UNSAFE_FILENAME.sub("_", name or "")[:FILENAME_LIMIT]


def _results_path(session: "AgentSession", filename: str) -> tuple[Path, str]:
    name = safe_filename(filename)
    if name.strip(".") == "":
        raise InvalidParamsError("Invalid filename", filename=filename)
    return Path(session.settings.results_dir) / name, name


def _stealth_for(session: "AgentSession") -> StealthSession:
    """The session's stealth facade, or a detached one when stealth is off."""
    if session.stealth is not None:
        return session.stealth
    settings = session.settings
    return StealthSession(
        device_type=settings.stealth_device_type,
        browser_type=settings.stealth_browser_type,
        behavior_profile=settings.stealth_behavior_profile,
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def init_action(session: "AgentSession", params: EmptyParams) -> dict:
    await session.init()
    return {"status": "initialized", "url": session.current_url, "tabs": session.tab_count}


async def close_action(session: "AgentSession", params: EmptyParams) -> dict:
    await session.close()
    return {"status": "closed"}


async def status_action(session: "AgentSession", params: EmptyParams) -> dict:
    return session.live_status()


# ---------------------------------------------------------------------------
# Navigation & elements
# ---------------------------------------------------------------------------


async def navigate_action(session: "AgentSession", params: NavigateParams) -> dict:
    return await session.navigate(params.url)


async def snapshot_action(session: "AgentSession", params: SnapshotParams) -> dict:
    index = await session.snapshot(params.verbose)
    return {"element_count": len(index), "snapshot": index.text()}


async def click_action(session: "AgentSession", params: ElementParams) -> dict:
    return await ActionResolver(session).click(params.uid)


async def fill_action(session: "AgentSession", params: FillParams) -> dict:
    return await ActionResolver(session).fill(params.uid, params.text)


async def open_link_action(session: "AgentSession", params: ElementParams) -> dict:
    return await ActionResolver(session).open_link(params.uid)


async def scroll_action(session: "AgentSession", params: ScrollParams) -> dict:
    page = session.page
    if params.direction is ScrollDirection.BOTTOM:
        await page.evaluate(SCROLL_BOTTOM_JS)
    elif session.stealth is not None:
        await session.stealth.emulate_scroll(page, params.distance, params.direction.value)
    else:
        sign = -1 if params.direction is ScrollDirection.UP else 1
        await page.mouse.wheel(0, sign * params.distance)
    await session.pause(SCROLL_SETTLE_SECONDS)
    session.invalidate_index()
    return {"direction": params.direction.value, "distance": params.distance}


async def tab_action(session: "AgentSession", params: TabParams) -> dict:
    value = params.target.strip()
    try:
        target: int | str = int(value)
    except ValueError:
        target = value

    if not await session.switch_tab(target):
        raise TabNotFoundError(
            f"Tab not found: {params.target}",
            target=params.target,
            available=session.tab_urls(),
        )
    return {
        "index": session.current_index,
        "url": session.current_url,
        "total_tabs": session.tab_count,
    }


# ---------------------------------------------------------------------------
# Proxy & adblock
# ---------------------------------------------------------------------------


def _proxy_needs_browser(params: ProxyParams) -> bool:
    return params.action is ProxyAction.ROTATE


async def proxy_action(session: "AgentSession", params: ProxyParams) -> dict:
    pool = session.proxy_pool
    if params.action is ProxyAction.STATUS:
        if pool is None:
            return {"enabled": False, "stats": {"total": 0, "available": 0, "banned": 0}}
        return {
            "enabled": True,
            "stats": pool.stats(),
            "endpoints": pool.describe(),
        }

    if pool is None:
        raise ProxyUnavailableError("Proxy support is disabled")

    if params.action is ProxyAction.ROTATE:
        if params.reason:
            logger.info("Proxy rotate requested: %s", params.reason)
        return await session.rotate(params.reason)

    if params.action is ProxyAction.CHECK:
        results = await pool.check()
        return {"results": results, "stats": pool.stats()}

    removed = pool.reset(params.endpoint)
    return {"reset": removed, "stats": pool.stats()}


async def adblock_action(session: "AgentSession", params: AdblockParams) -> dict:
    request_filter = session.request_filter
    if request_filter is None or request_filter.installed_contexts == 0:
        raise FilterMisconfiguredError("Adblock not initialized")

    if params.action is AdblockAction.STATUS:
        return request_filter.status()
    if params.action is AdblockAction.ENABLE:
        return await request_filter.set_enabled(True)
    if params.action is AdblockAction.DISABLE:
        return await request_filter.set_enabled(False)
    if params.action is AdblockAction.SET_MODE:
        return await request_filter.set_mode(params.mode or "balanced")
    if params.action is AdblockAction.UPDATE_CONFIG:
        return await request_filter.update_config(params.patch)
    return request_filter.reset_stats()


async def cookies_action(session: "AgentSession", params: CookiesParams) -> dict:
    return await session.handle_cookie_policy(force=params.force)


# ---------------------------------------------------------------------------
# Stealth
# ---------------------------------------------------------------------------


async def fingerprint_action(session: "AgentSession", params: FingerprintParams) -> dict:
    stealth = _stealth_for(session)
    profile = stealth.regenerate(params.config)
    await stealth.inject(session.page)
    return {
        "hash": profile.hash,
        "user_agent": profile.user_agent,
        "platform": profile.platform,
        "device_type": profile.device_type,
    }


async def stealth_action(session: "AgentSession", params: EmptyParams) -> dict:
    return await _stealth_for(session).detect_issues(session.page)


async def behavior_action(session: "AgentSession", params: EmptyParams) -> dict:
    behavior = _stealth_for(session).behavior
    profile = behavior.rotate_profile()
    return {"profile": profile, "metrics": behavior.metrics()}


# ---------------------------------------------------------------------------
# Page content & input
# ---------------------------------------------------------------------------


async def wait_action(session: "AgentSession", params: WaitParams) -> dict:
    await session.pause(params.ms / 1000)
    return {"waited": params.ms}


async def extract_action(session: "AgentSession", params: ExtractParams) -> dict:
    selector = params.selector.strip() or "body"
    content = await session.page.evaluate(EXTRACT_JS, selector) or ""
    text, truncated = truncate(str(content), "\n... (truncated)")
    return {"content": text, "length": len(content), "truncated": truncated}


async def source_action(session: "AgentSession", params: SourceParams) -> dict:
    page = session.page
    html = await page.content()
    if params.include_doctype:
        html = f"<!DOCTYPE html>\n{html}"
    source, truncated = truncate(html, "\n<!-- truncated -->")
    return {"url": page.url, "source": source, "length": len(html), "truncated": truncated}


async def eval_action(session: "AgentSession", params: EvalParams) -> dict:
    result = await session.page.evaluate(EVAL_JS, {"userScript": params.script})
    session.invalidate_index()
    serialized = result if isinstance(result, str) else json.dumps(result, default=str)
    return {"result": result, "preview": serialized[:EVAL_PREVIEW_LENGTH]}


async def key_action(session: "AgentSession", params: KeyParams) -> dict:
    page = session.page
    await page.keyboard.press(params.key.strip())
    await session.pause(KEY_SETTLE_SECONDS)
    session.record_visit(page.url)
    session.invalidate_index()
    return {"key": params.key.strip()}


async def dialog_action(session: "AgentSession", params: DialogParams) -> dict:
    """Accept or dismiss the next dialog that opens within two seconds."""
    page = session.page
    loop = asyncio.get_running_loop()
    appeared: asyncio.Future = loop.create_future()

    def on_dialog(dialog) -> None:
        if not appeared.done():
            appeared.set_result(dialog)

    page.once("dialog", on_dialog)
    try:
        dialog = await asyncio.wait_for(appeared, timeout=DIALOG_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        page.remove_listener("dialog", on_dialog)
        raise ActionTimeoutError("No dialog within timeout", handled=False) from None

    if params.action is DialogAction.ACCEPT:
        await dialog.accept(params.prompt_text)
    else:
        await dialog.dismiss()
    return {
        "handled": True,
        "dialog_type": dialog.type,
        "message": dialog.message,
        "action": params.action.value,
    }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


async def save_action(session: "AgentSession", params: SaveParams) -> dict:
    path, name = _results_path(session, params.filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    body = params.content
    if params.append and path.exists():
        existing = path.read_text(encoding="utf-8")
        path.write_text(f"{existing}{SAVE_SEPARATOR}{body}", encoding="utf-8")
    else:
        path.write_text(body, encoding="utf-8")
    return {"filepath": str(path), "filename": name, "length": len(body), "appended": params.append}


async def read_action(session: "AgentSession", params: ReadParams) -> dict:
    path, name = _results_path(session, params.filename)
    if not path.is_file():
        raise ResultNotFoundError(f"File not found: {name}", filename=name)
    content = path.read_text(encoding="utf-8")
    text, truncated = truncate(content, "\n... (truncated)")
    return {"filename": name, "content": text, "length": len(content), "truncated": truncated}


async def done_action(session: "AgentSession", params: DoneParams) -> dict:
    return {"done": True, "reason": params.reason}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def default_registry() -> ActionRegistry:
    """Registry with every built-in action."""
    registry = ActionRegistry()
    specs = [
        ActionSpec(ActionName.INIT, init_action, EmptyParams, True, "Initialize browser"),
        ActionSpec(ActionName.CLOSE, close_action, EmptyParams, False, "Close browser"),
        ActionSpec(ActionName.STATUS, status_action, EmptyParams, False, "Session status"),
        ActionSpec(ActionName.NAVIGATE, navigate_action, NavigateParams, True, "Navigate to URL"),
        ActionSpec(ActionName.SNAPSHOT, snapshot_action, SnapshotParams, True, "Index interactive elements"),
        ActionSpec(ActionName.CLICK, click_action, ElementParams, True, "Click element"),
        ActionSpec(ActionName.FILL, fill_action, FillParams, True, "Fill input"),
        ActionSpec(ActionName.OPEN_LINK, open_link_action, ElementParams, True, "Open link by href"),
        ActionSpec(ActionName.SCROLL, scroll_action, ScrollParams, True, "Scroll page"),
        ActionSpec(ActionName.TAB, tab_action, TabParams, True, "Switch tab"),
        ActionSpec(ActionName.PROXY, proxy_action, ProxyParams, _proxy_needs_browser, "Proxy control"),
        ActionSpec(ActionName.ADBLOCK, adblock_action, AdblockParams, True, "Adblock control"),
        ActionSpec(ActionName.COOKIES, cookies_action, CookiesParams, True, "Dismiss cookie banners"),
        ActionSpec(ActionName.FINGERPRINT, fingerprint_action, FingerprintParams, True, "Generate fingerprint"),
        ActionSpec(ActionName.STEALTH, stealth_action, EmptyParams, True, "Detect stealth issues"),
        ActionSpec(ActionName.BEHAVIOR, behavior_action, EmptyParams, False, "Rotate behavior profile"),
        ActionSpec(ActionName.WAIT, wait_action, WaitParams, True, "Wait"),
        ActionSpec(ActionName.EXTRACT, extract_action, ExtractParams, True, "Extract page text"),
        ActionSpec(ActionName.SOURCE, source_action, SourceParams, True, "Get HTML source"),
        ActionSpec(ActionName.EVAL, eval_action, EvalParams, True, "Execute JS"),
        ActionSpec(ActionName.KEY, key_action, KeyParams, True, "Press key"),
        ActionSpec(ActionName.DIALOG, dialog_action, DialogParams, True, "Handle dialog"),
        ActionSpec(ActionName.SAVE, save_action, SaveParams, False, "Save result"),
        ActionSpec(ActionName.READ, read_action, ReadParams, False, "Read result"),
        ActionSpec(ActionName.DONE, done_action, DoneParams, False, "Signal completion"),
    ]
    for spec in specs:
        registry.register(spec)
    return registry
