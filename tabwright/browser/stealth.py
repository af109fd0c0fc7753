"""Per-session stealth facade binding fingerprint and behavior to pages."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from playwright.async_api import Error as PlaywrightError

from tabwright.browser.behavior import BehaviorEmulator
from tabwright.browser.facade import SessionFacade
from tabwright.browser.fingerprint import FingerprintProfile, FingerprintRandomizer

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

MIN_PLUGINS = 3

NAVIGATOR_PROBE_JS = """
() => ({
    webdriver: navigator.webdriver,
    plugins: navigator.plugins ? navigator.plugins.length : 0,
    languages: navigator.languages,
    platform: navigator.platform,
})
"""


class StealthSession(SessionFacade):
    """Fingerprint injection, human-like timing and self-checks for one session."""

    name = "stealth"

    def __init__(
        self,
        *,
        device_type: str = "desktop",
        browser_type: str = "chrome",
        behavior_profile: str = "stealth",
        rng: random.Random | None = None,
        fingerprints: FingerprintRandomizer | None = None,
        behavior: BehaviorEmulator | None = None,
    ) -> None:
        self.id = f"stealth-{uuid4().hex[:12]}"
        self.fingerprints = fingerprints or FingerprintRandomizer(
            device_type=device_type, browser_type=browser_type, rng=rng
        )
        self.behavior = behavior or BehaviorEmulator(behavior_profile, rng=rng)
        self.fingerprint: FingerprintProfile = self.fingerprints.generate()
        self.created_at = datetime.now(timezone.utc)
        self._pages: dict[int, Any] = {}
        self._page_loads = 0
        self._fingerprint_changes = 0

    # ------------------------------------------------------------------
    # SessionFacade
    # ------------------------------------------------------------------

    async def attach(self, page: "Page") -> None:
        if id(page) in self._pages:
            return
        self._pages[id(page)] = page
        await self.fingerprints.apply(page, self.fingerprint)
        self._page_loads += 1

    async def configure(self, **options: Any) -> dict:
        profile = options.get("behavior_profile") or options.get("behaviorProfile")
        if profile:
            self.behavior.set_profile(str(profile))
        if {"device_type", "browser_type", "deviceType", "browserType"} & set(options):
            self.regenerate(options)
        return self.status()

    def status(self) -> dict:
        return {
            "id": self.id,
            "fingerprint_hash": self.fingerprint.hash,
            "device_type": self.fingerprint.device_type,
            "browser_type": self.fingerprint.browser_type,
            "behavior": self.behavior.metrics(),
            "page_loads": self._page_loads,
            "fingerprint_changes": self._fingerprint_changes,
            "attached_pages": len(self._pages),
        }

    async def detach(self, page: "Page") -> None:
        self._pages.pop(id(page), None)

    async def teardown(self) -> None:
        self._pages.clear()

    # ------------------------------------------------------------------
    # Fingerprint
    # ------------------------------------------------------------------

    def regenerate(self, config: dict | None = None) -> FingerprintProfile:
        """Draw a new fingerprint; it applies to pages attached from now on."""
        config = config or {}
        self.fingerprint = self.fingerprints.generate(
            config.get("device_type") or config.get("deviceType"),
            config.get("browser_type") or config.get("browserType"),
        )
        self._fingerprint_changes += 1
        return self.fingerprint

    async def inject(self, page: "Page") -> FingerprintProfile:
        """Apply the current fingerprint to *page* for its next navigation."""
        self._pages[id(page)] = page
        return await self.fingerprints.apply(page, self.fingerprint)

    # ------------------------------------------------------------------
    # Behavior
    # ------------------------------------------------------------------

    def click_delay(self) -> float:
        """Seconds to pause before a click under the active behavior profile."""
        return self.behavior.get_action_delay() / 1000

    async def emulate_typing(self, page: "Page", selector: str, text: str, timeout_ms: int) -> None:
        await self.behavior.emulate_typing(page, selector, text, timeout_ms)

    async def emulate_scroll(self, page: "Page", distance: int, direction: str) -> None:
        await self.behavior.emulate_scroll(page, distance, direction)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect_issues(self, page: "Page") -> dict:
        """Report automation tells visible to page scripts."""
        issues: list[dict] = []
        try:
            props = await page.evaluate(NAVIGATOR_PROBE_JS)
        except PlaywrightError as exc:
            issues.append({"type": "evaluation", "severity": "high", "message": str(exc)})
            props = {}

        webdriver = props.get("webdriver")
        if webdriver is not None and webdriver is not False:
            issues.append(
                {"type": "webdriver", "severity": "high", "message": "Webdriver property detected"}
            )
        plugins = props.get("plugins")
        if isinstance(plugins, int) and plugins < MIN_PLUGINS:
            issues.append(
                {"type": "plugins", "severity": "medium", "message": f"Low plugin count: {plugins}"}
            )

        return {"issues": issues, "timestamp": datetime.now(timezone.utc).isoformat()}
