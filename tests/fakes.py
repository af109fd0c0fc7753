"""In-memory Playwright test doubles.

Only the surface the agent touches is modelled. Nothing here launches a
browser or opens a socket.
"""

from __future__ import annotations

from typing import Any, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tabwright.browser.snapshot import SNAPSHOT_JS


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class FakeRequest:
    def __init__(self, url: str, resource_type: str = "document") -> None:
        self.url = url
        self.resource_type = resource_type


class FakeRoute:
    def __init__(self, url: str, resource_type: str = "document", *, reject_error_code: bool = False) -> None:
        self.request = FakeRequest(url, resource_type)
        self.reject_error_code = reject_error_code
        self.continued = False
        self.aborted_with: list[str | None] = []

    async def continue_(self) -> None:
        self.continued = True

    async def abort(self, error_code: str | None = None) -> None:
        if error_code is not None and self.reject_error_code:
            raise PlaywrightError(f"Invalid error code: {error_code}")
        self.aborted_with.append(error_code)

    @property
    def aborted(self) -> bool:
        return bool(self.aborted_with)


class EventEmitter:
    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable]] = {}

    def on(self, event: str, callback: Callable) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def once(self, event: str, callback: Callable) -> None:
        def wrapper(*args: Any) -> None:
            self.remove_listener(event, wrapper)
            callback(*args)

        wrapper.original = callback  # type: ignore[attr-defined]
        self.on(event, wrapper)

    def remove_listener(self, event: str, callback: Callable) -> None:
        self.listeners[event] = [
            cb
            for cb in self.listeners.get(event, [])
            if cb is not callback and getattr(cb, "original", None) is not callback
        ]

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self.listeners.get(event, [])):
            callback(*args)


class FakeContext(EventEmitter):
    def __init__(self) -> None:
        super().__init__()
        self.routes: list[tuple[str, Callable]] = []
        self.route_calls = 0
        self.unroute_calls = 0
        self.pages: list[FakePage] = []
        self.closed = False

    async def route(self, pattern: str, handler: Callable) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")
        self.route_calls += 1
        self.routes.append((pattern, handler))

    async def unroute(self, pattern: str, handler: Callable | None = None) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")
        self.unroute_calls += 1
        self.routes = [(p, h) for p, h in self.routes if not (p == pattern and h is handler)]

    async def dispatch(self, route: FakeRoute) -> FakeRoute:
        """Deliver *route* to the most recently registered handler."""
        if self.routes:
            await self.routes[-1][1](route)
        else:
            await route.continue_()
        return route

    async def new_page(self) -> "FakePage":
        page = FakePage(context=self)
        self.pages.append(page)
        return page

    def open_tab(self, url: str = "about:blank") -> "FakePage":
        """Simulate the page opening a popup / new tab."""
        page = FakePage(context=self, url=url)
        self.pages.append(page)
        self.emit("page", page)
        return page


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------


class FakeKeyboard:
    def __init__(self) -> None:
        self.pressed: list[str] = []
        self.typed: list[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)

    async def type(self, text: str) -> None:
        self.typed.append(text)


class FakeMouse:
    def __init__(self) -> None:
        self.wheels: list[tuple[int, int]] = []

    async def wheel(self, dx: int, dy: int) -> None:
        self.wheels.append((dx, dy))


class FakeLocator:
    """Locator whose success depends on the page's ``failing`` set.

    Keys are ``("selector", css)``, ``("role", role, name)``,
    ``("text", text)`` and ``("script", css)``.
    """

    def __init__(self, page: "FakePage", key: tuple) -> None:
        self._page = page
        self.key = key

    @property
    def first(self) -> "FakeLocator":
        return self

    async def scroll_into_view_if_needed(self, timeout: float | None = None) -> None:
        self._page.calls.append(("scroll_into_view",) + self.key)

    async def click(self, timeout: float | None = None, force: bool = False) -> None:
        self._page.calls.append(("click",) + self.key)
        if self.key in self._page.failing:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        self._page.clicked.append(self.key)
        self._page.after_click(self.key)

    async def evaluate(self, expression: str, arg: Any = None, timeout: float | None = None) -> Any:
        key = ("script",) + self.key[1:]
        self._page.calls.append(("click",) + key)
        if key in self._page.failing:
            raise PlaywrightError("Element is not attached to the DOM")
        self._page.clicked.append(key)
        self._page.after_click(key)

    async def fill(self, value: str, timeout: float | None = None) -> None:
        if self.key in self._page.failing:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        self._page.filled.append((self.key, value))

    async def count(self) -> int:
        return 1 if self.key in self._page.present else 0

    async def is_visible(self) -> bool:
        return self.key in self._page.present


class FakePage(EventEmitter):
    def __init__(self, context: FakeContext | None = None, url: str = "about:blank") -> None:
        super().__init__()
        self.context = context or FakeContext()
        self.url = url
        self.keyboard = FakeKeyboard()
        self.mouse = FakeMouse()

        self.elements: list[dict] = []
        self.html = "<html><body></body></html>"
        self.evaluate_results: dict[str, Any] = {}
        self.evaluations: list[tuple[str, Any]] = []

        self.failing: set[tuple] = set()
        self.present: set[tuple] = set()
        self.calls: list[tuple] = []
        self.clicked: list[tuple] = []
        self.filled: list[tuple] = []
        self.click_effects: dict[tuple, Callable[[], None]] = {}

        self.gotos: list[str] = []
        self.goto_errors: list[Exception] = []
        self.init_scripts: list[str] = []
        self.viewport: dict | None = None
        self.headers: dict = {}
        self.default_timeout: float | None = None

    async def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.gotos.append(url)
        if self.goto_errors:
            raise self.goto_errors.pop(0)
        self.url = url

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluations.append((expression, arg))
        if expression == SNAPSHOT_JS:
            return list(self.elements)[: arg["limit"]]
        return self.evaluate_results.get(expression)

    async def content(self) -> str:
        return self.html

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, ("selector", selector))

    def get_by_role(self, role: str, name: str | None = None, exact: bool = False) -> FakeLocator:
        return FakeLocator(self, ("role", role, name))

    def get_by_text(self, text: str, exact: bool = False) -> FakeLocator:
        return FakeLocator(self, ("text", text))

    async def click(self, selector: str, timeout: float | None = None) -> None:
        self.calls.append(("page_click", selector, timeout))
        self.clicked.append(("selector", selector))

    async def set_viewport_size(self, size: dict) -> None:
        self.viewport = size

    async def set_extra_http_headers(self, headers: dict) -> None:
        self.headers.update(headers)

    async def add_init_script(self, script: str | None = None, path: str | None = None) -> None:
        self.init_scripts.append(script or "")

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    def after_click(self, key: tuple) -> None:
        effect = self.click_effects.get(key)
        if effect is not None:
            effect()


class FakeConsoleMessage:
    def __init__(self, type: str, text: str) -> None:
        self.type = type
        self.text = text


class FakeDialog:
    def __init__(self, type: str = "confirm", message: str = "Are you sure?") -> None:
        self.type = type
        self.message = message
        self.accepted_with: str | None = None
        self.dismissed = False

    async def accept(self, prompt_text: str | None = None) -> None:
        self.accepted_with = prompt_text or ""

    async def dismiss(self) -> None:
        self.dismissed = True


# ---------------------------------------------------------------------------
# Launcher
# ---------------------------------------------------------------------------


class FakeLauncher:
    """Stands in for :class:`BrowserLauncher`; every launch gets a fresh context and page."""

    def __init__(self, page_factory: Callable[[], FakePage] | None = None) -> None:
        self._page_factory = page_factory or (lambda: FakePage(context=FakeContext()))
        self.launches: list[Any] = []
        self.connects: list[str] = []
        self.shutdowns = 0
        self.pages: list[FakePage] = []
        self.launch_error: Exception | None = None
        self.connected = False

    async def launch(self, *, proxy=None, **kwargs: Any) -> FakePage:
        if self.launch_error is not None:
            raise self.launch_error
        self.launches.append(proxy)
        page = self._page_factory()
        page.context.pages.append(page)
        self.pages.append(page)
        self.connected = True
        return page

    async def connect(self, endpoint: str, **kwargs: Any) -> FakePage:
        self.connects.append(endpoint)
        page = self._page_factory()
        self.pages.append(page)
        self.connected = True
        return page

    async def shutdown(self) -> None:
        self.shutdowns += 1
        self.connected = False
        for page in self.pages:
            page.context.closed = True

    @property
    def is_connected(self) -> bool:
        return self.connected

    def disconnect(self) -> None:
        """Simulate the browser process going away."""
        self.connected = False

    @property
    def last_page(self) -> FakePage:
        return self.pages[-1]


def button(selector: str, label: str, role: str = "button", href: str | None = None) -> dict:
    """Raw snapshot entry as returned by the in-page script."""
    return {"selector": selector, "role": role, "label": label, "href": href}
