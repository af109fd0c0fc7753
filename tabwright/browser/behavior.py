"""Human-like timing for typing, scrolling and clicks.

Three named profiles set the delay ranges. The active profile can be set,
rotated in a fixed cycle, or checked for staleness.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

# A profile is due for a switch after this long.
SWITCH_INTERVAL_SECONDS = 10 * 60
MIN_SCROLL = 10
FOCUS_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class DelayRange:
    min_ms: int
    max_ms: int


@dataclass(frozen=True)
class BehaviorProfile:
    name: str
    click_delay: DelayRange
    type_delay: DelayRange
    scroll_pause: DelayRange


PROFILES: dict[str, BehaviorProfile] = {
    "stealth": BehaviorProfile(
        "stealth", DelayRange(250, 1100), DelayRange(50, 140), DelayRange(80, 320)
    ),
    "casual": BehaviorProfile(
        "casual", DelayRange(450, 1800), DelayRange(70, 180), DelayRange(120, 450)
    ),
    "researcher": BehaviorProfile(
        "researcher", DelayRange(800, 2600), DelayRange(80, 200), DelayRange(150, 600)
    ),
}


class BehaviorEmulator:
    """Per-session behavior profile and the delays it produces."""

    def __init__(
        self,
        profile: str = "stealth",
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], object] = asyncio.sleep,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep
        self._profile = PROFILES["stealth"]
        self._last_switch = 0.0
        self.set_profile(profile)

    @property
    def profile(self) -> BehaviorProfile:
        return self._profile

    def set_profile(self, name: str) -> bool:
        """Activate *name*; unknown names are rejected and leave the profile unchanged."""
        profile = PROFILES.get(name)
        if profile is None:
            return False
        self._profile = profile
        self._last_switch = self._clock()
        return True

    def rotate_profile(self) -> str:
        """Advance to the next profile in declaration order."""
        names = list(PROFILES)
        nxt = names[(names.index(self._profile.name) + 1) % len(names)]
        self.set_profile(nxt)
        logger.info("Behavior profile rotated to %s", nxt)
        return nxt

    def should_switch_profile(self) -> bool:
        return self._clock() - self._last_switch > SWITCH_INTERVAL_SECONDS

    def _pick(self, delay: DelayRange) -> int:
        return self._rng.randint(delay.min_ms, delay.max_ms)

    def get_action_delay(self) -> int:
        """Milliseconds to pause before a click."""
        return self._pick(self._profile.click_delay)

    async def emulate_typing(
        self, page: "Page", selector: str, text: str, timeout_ms: int = FOCUS_TIMEOUT_MS
    ) -> None:
        """Click *selector* and type *text* one character at a time."""
        await page.click(selector, timeout=timeout_ms)
        for char in str(text or ""):
            await page.keyboard.type(char)
            await self._sleep(self._pick(self._profile.type_delay) / 1000)

    async def emulate_scroll(self, page: "Page", distance: int = 500, direction: str = "down") -> None:
        """Wheel-scroll by *distance* pixels and pause."""
        amount = max(MIN_SCROLL, int(distance or 500))
        sign = -1 if direction == "up" else 1
        await page.mouse.wheel(0, sign * amount)
        await self._sleep(self._pick(self._profile.scroll_pause) / 1000)

    def metrics(self) -> dict:
        return {
            "profile": self._profile.name,
            "since_switch_ms": int((self._clock() - self._last_switch) * 1000),
            "should_switch": self.should_switch_profile(),
        }
