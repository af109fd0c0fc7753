"""Fingerprint generation and injection for a stealth session.

Generates a consistent browser fingerprint profile (user agent, platform,
hardware, WebGL vendor, screen and viewport) and injects the matching
``navigator`` overrides into Playwright pages before any page script runs.
One :class:`FingerprintRandomizer` belongs to one session; nothing here is
process-wide state.
"""

from __future__ import annotations

import json
import random
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from playwright.async_api import Page


# ---------------------------------------------------------------------------
# User agent pools by device / browser type
# ---------------------------------------------------------------------------

USER_AGENTS: dict[str, dict[str, list[str]]] = {
    "desktop": {
        "chrome": [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 11.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        ],
        "firefox": [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0",
        ],
        "edge": [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
        ],
    },
    "mobile": {
        "chrome": [
            "Mozilla/5.0 (Linux; Android 14; Pixel 8 Pro) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
            "Mozilla/5.0 (Linux; Android 14; SM-S928B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
        ],
        "safari": [
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
        ],
    },
}

TIMEZONES: list[str] = [
    "Europe/Warsaw",
    "Europe/London",
    "Europe/Paris",
    "America/New_York",
    "America/Los_Angeles",
    "Asia/Tokyo",
]

WEBGL_VENDORS: list[str] = [
    "Intel Inc.",
    "NVIDIA Corporation",
    "AMD",
    "Apple",
    "Microsoft",
    "ARM",
    "Qualcomm",
]

DESKTOP_SCREEN_WIDTHS: list[int] = [1920, 2560, 1440]

# Profiles older than this are regenerated by ``current()``.
FINGERPRINT_TTL_SECONDS = 5 * 60


# ---------------------------------------------------------------------------
# JavaScript overrides applied before any page script runs
# ---------------------------------------------------------------------------

NAVIGATOR_OVERRIDE_JS = """
(fp) => {
    const define = (name, value) => Object.defineProperty(navigator, name, {
        get: () => value,
        configurable: true,
    });
    define('userAgent', fp.user_agent);
    define('platform', fp.platform);
    define('languages', fp.languages);
    define('hardwareConcurrency', fp.hardware.concurrency);
    define('deviceMemory', fp.hardware.memory);
    define('maxTouchPoints', fp.hardware.max_touch_points);
    define('webdriver', false);

    if (!window.chrome) {
        window.chrome = {};
    }
    if (!window.chrome.runtime) {
        window.chrome.runtime = {
            connect: function() {},
            sendMessage: function() {},
        };
    }
}
"""


# ---------------------------------------------------------------------------
# FingerprintProfile dataclass
# ---------------------------------------------------------------------------

@dataclass
class FingerprintProfile:
    """A generated browser fingerprint profile."""

    user_agent: str
    device_type: str
    browser_type: str
    platform: str
    timezone: str
    webgl: dict[str, str]
    hardware: dict[str, int]
    screen: dict[str, int]
    viewport: dict[str, int]
    hash: str
    generated_at: float
    languages: list[str] = field(default_factory=lambda: ["en-US", "en"])

    def to_dict(self) -> dict:
        return asdict(self)


def platform_for(user_agent: str) -> str:
    """Derive ``navigator.platform`` from a user agent string."""
    if "iPhone" in user_agent:
        return "iPhone"
    if "Windows" in user_agent:
        return "Win32"
    if "Macintosh" in user_agent:
        return "MacIntel"
    if "Android" in user_agent:
        return "Linux armv8l"
    return "Linux x86_64"


def fingerprint_hash(value: str) -> str:
    """Short, stable base-36 digest of *value* (32-bit rolling hash)."""
    result = 0
    for char in value:
        result = ((result << 5) - result + ord(char)) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    result = abs(result)

    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if result == 0:
        return "0"
    out = []
    while result:
        result, rem = divmod(result, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


# ---------------------------------------------------------------------------
# FingerprintRandomizer
# ---------------------------------------------------------------------------

class FingerprintRandomizer:
    """Generates and applies browser fingerprint profiles for one session.

    ``generate()`` always draws a fresh profile; ``current()`` returns the
    last one, regenerating it once it is older than five minutes.
    """

    def __init__(
        self,
        *,
        device_type: str = "desktop",
        browser_type: str = "chrome",
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._device_type = device_type
        self._browser_type = browser_type
        self._rng = rng or random.Random()
        self._clock = clock
        self._last_profile: FingerprintProfile | None = None

    @property
    def last_profile(self) -> FingerprintProfile | None:
        return self._last_profile

    # ------------------------------------------------------------------
    # generate
    # ------------------------------------------------------------------

    def generate(
        self,
        device_type: str | None = None,
        browser_type: str | None = None,
    ) -> FingerprintProfile:
        """Return a new :class:`FingerprintProfile`.

        Unknown device/browser combinations fall back to desktop Chrome.
        """
        device_type = device_type or self._device_type
        browser_type = browser_type or self._browser_type
        pool = USER_AGENTS.get(device_type, {}).get(browser_type)
        if not pool:
            device_type, browser_type = "desktop", "chrome"
            pool = USER_AGENTS["desktop"]["chrome"]

        user_agent = self._rng.choice(pool)
        mobile = device_type == "mobile"

        if mobile:
            screen = {"width": 390, "height": 844, "device_pixel_ratio": 3}
        else:
            screen = {
                "width": self._rng.choice(DESKTOP_SCREEN_WIDTHS),
                "height": 1080,
                "device_pixel_ratio": 1,
            }
        viewport = {
            "width": max(320, screen["width"] - 80),
            "height": max(320, screen["height"] - 120),
        }

        profile = FingerprintProfile(
            user_agent=user_agent,
            device_type=device_type,
            browser_type=browser_type,
            platform=platform_for(user_agent),
            timezone=self._rng.choice(TIMEZONES),
            webgl={
                "vendor": self._rng.choice(WEBGL_VENDORS),
                "renderer": f"WebGL {self._rng.randint(1, 2)}.{self._rng.randint(0, 9)}",
            },
            hardware={
                "concurrency": 8 if mobile else self._rng.choice([8, 12, 16]),
                "memory": 8 if mobile else 16,
                "max_touch_points": 5 if mobile else 0,
            },
            screen=screen,
            viewport=viewport,
            hash=fingerprint_hash(
                f"{user_agent}|{screen['width']}x{screen['height']}"
                f"|{viewport['width']}x{viewport['height']}"
            ),
            generated_at=self._clock(),
        )

        self._device_type, self._browser_type = device_type, browser_type
        self._last_profile = profile
        return profile

    def current(self) -> FingerprintProfile:
        """Return the active profile, regenerating it when stale."""
        profile = self._last_profile
        if profile is None or self._clock() - profile.generated_at > FINGERPRINT_TTL_SECONDS:
            return self.generate()
        return profile

    # ------------------------------------------------------------------
    # apply
    # ------------------------------------------------------------------

    async def apply(self, page: "Page", profile: FingerprintProfile | None = None) -> FingerprintProfile:
        """Apply *profile* (default: the current one) to a Playwright *page*.

        Sets the viewport and the ``Accept-Language`` header, and injects the
        navigator overrides so they are in place on every later navigation.
        """
        profile = profile or self.current()

        await page.set_viewport_size(dict(profile.viewport))
        await page.set_extra_http_headers({"Accept-Language": ",".join(profile.languages)})
        await page.add_init_script(script=f"({NAVIGATOR_OVERRIDE_JS})({json.dumps(profile.to_dict())})")
        return profile
