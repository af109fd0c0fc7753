"""Network request filter (adblock) installed as a Playwright route hook.

One :class:`RequestFilter` may be attached to several browser contexts at
once. Each installed hook is a closure over the :class:`CompiledRules`
generation current at install time; configuration changes compile a new
generation and re-attach every hook, so a single request is always decided
by one complete rule set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from tabwright.browser.facade import SessionFacade
from tabwright.config.filter_rules import FilterConfig
from tabwright.filtering.lru import LRUCounter
from tabwright.filtering.rules import (
    CompiledRules,
    FilterDecision,
    FilterMode,
    compile_rules,
    evaluate,
)

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page, Route

logger = logging.getLogger(__name__)

ROUTE_PATTERN = "**/*"
HOST_CAPACITY = 500
TOP_HOSTS = 10

RouteHandler = Callable[["Route"], Awaitable[None]]


@dataclass
class FilterStats:
    """Process-lifetime counters, cleared only by :meth:`RequestFilter.reset_stats`."""

    blocked: int = 0
    allowed: int = 0
    blocked_by_type: dict[str, int] = field(default_factory=dict)
    hosts: LRUCounter = field(default_factory=lambda: LRUCounter(HOST_CAPACITY))

    def record(self, decision: FilterDecision) -> None:
        if not decision.block:
            self.allowed += 1
            return
        self.blocked += 1
        rtype = decision.resource_type or "other"
        self.blocked_by_type[rtype] = self.blocked_by_type.get(rtype, 0) + 1
        if decision.host:
            self.hosts.inc(decision.host)

    def to_dict(self) -> dict:
        return {
            "blocked": self.blocked,
            "allowed": self.allowed,
            "blocked_by_type": dict(self.blocked_by_type),
            "top_blocked_hosts": [
                {"host": host, "count": count} for host, count in self.hosts.top(TOP_HOSTS)
            ],
        }


@dataclass
class _Hook:
    context: Any
    handler: RouteHandler


class RequestFilter(SessionFacade):
    """Block/allow decisions, statistics and per-context route hooks."""

    name = "adblock"

    def __init__(
        self,
        config: FilterConfig | None = None,
        *,
        host_capacity: int = HOST_CAPACITY,
    ) -> None:
        self._config = config or FilterConfig()
        self._rules: CompiledRules = compile_rules(self._config)
        self._host_capacity = host_capacity
        self._stats = FilterStats(hosts=LRUCounter(host_capacity))
        self._hooks: dict[int, _Hook] = {}

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    @property
    def config(self) -> FilterConfig:
        return self._config

    @property
    def rules(self) -> CompiledRules:
        return self._rules

    @property
    def stats(self) -> FilterStats:
        return self._stats

    def evaluate(self, url: str, resource_type: str) -> FilterDecision:
        """Decide *url* against the current rule set without side effects."""
        return evaluate(self._rules, url, resource_type)

    def record(self, decision: FilterDecision) -> None:
        """Fold one decision into the statistics; logs every Nth block."""
        self._stats.record(decision)
        every = self._config.log_every_blocked
        if decision.block and self._stats.blocked % every == 0:
            logger.info(
                "Request filter blocked %d requests (last: %s via %s)",
                self._stats.blocked,
                decision.host or "-",
                decision.rule_id,
            )

    async def _handle_route(self, rules: CompiledRules, route: "Route") -> None:
        request = route.request
        decision = evaluate(rules, request.url, request.resource_type)
        # Stats are updated before the first await so concurrent handlers never interleave here.
        self.record(decision)

        if not decision.block:
            await route.continue_()
            return

        try:
            await route.abort("blockedbyclient")
        except PlaywrightError:
            await route.abort()

    def _make_handler(self, rules: CompiledRules) -> RouteHandler:
        async def handler(route: "Route") -> None:
            await self._handle_route(rules, route)

        return handler

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------

    def is_installed(self, context: "BrowserContext") -> bool:
        return id(context) in self._hooks

    @property
    def installed_contexts(self) -> int:
        return len(self._hooks)

    async def install(self, context: "BrowserContext") -> bool:
        """Install the route hook on *context*; a second call is a no-op."""
        if id(context) in self._hooks:
            return True
        handler = self._make_handler(self._rules)
        await context.route(ROUTE_PATTERN, handler)
        self._hooks[id(context)] = _Hook(context=context, handler=handler)
        logger.debug("Request filter installed (%d contexts)", len(self._hooks))
        return True

    async def uninstall(self, context: "BrowserContext") -> bool:
        """Remove the hook from *context*; returns False when it was not installed."""
        hook = self._hooks.pop(id(context), None)
        if hook is None:
            return False
        try:
            await context.unroute(ROUTE_PATTERN, hook.handler)
        except PlaywrightError as exc:
            logger.debug("Unroute failed on a closing context: %s", exc)
        return True

    async def _reattach_all(self) -> None:
        """Point every installed hook at the current rule generation."""
        for key, hook in list(self._hooks.items()):
            handler = self._make_handler(self._rules)
            try:
                # Newest route runs first, so routing before unrouting leaves no gap.
                await hook.context.route(ROUTE_PATTERN, handler)
                await hook.context.unroute(ROUTE_PATTERN, hook.handler)
            except PlaywrightError as exc:
                logger.warning("Dropping request filter hook on a dead context: %s", exc)
                self._hooks.pop(key, None)
                continue
            self._hooks[key] = _Hook(context=hook.context, handler=handler)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def update_config(self, patch: dict[str, Any]) -> dict:
        """Merge *patch* into the configuration and swap the rule set atomically.

        Raises pydantic's ``ValidationError`` for an invalid patch, leaving
        the active rules untouched.
        """
        merged = {**self._config.model_dump(), **patch}
        if "mode" in patch:
            merged["mode"] = FilterMode.normalize(patch["mode"]).value
        config = FilterConfig.model_validate(merged)
        rules = compile_rules(config)

        self._config, self._rules = config, rules
        await self._reattach_all()
        logger.info(
            "Request filter reconfigured: enabled=%s mode=%s",
            rules.enabled,
            rules.mode.value,
        )
        return self.status()

    async def set_mode(self, mode: str | FilterMode) -> dict:
        return await self.update_config({"mode": FilterMode.normalize(mode).value})

    async def set_enabled(self, enabled: bool) -> dict:
        return await self.update_config({"enabled": bool(enabled)})

    def reset_stats(self) -> dict:
        self._stats = FilterStats(hosts=LRUCounter(self._host_capacity))
        return self.status()

    # ------------------------------------------------------------------
    # SessionFacade
    # ------------------------------------------------------------------

    async def attach(self, page: "Page") -> None:
        await self.install(page.context)

    async def configure(self, **options: Any) -> dict:
        return await self.update_config(options)

    def status(self) -> dict:
        rules = self._rules
        return {
            "enabled": rules.enabled,
            "mode": rules.mode.value,
            "rules": {
                "blocked_types": sorted(rules.blocked_types),
                "domain_patterns": len(rules.domain_patterns),
                "url_patterns": len(rules.url_patterns),
                "allowlist_domains": list(rules.allowlist_domains),
            },
            "stats": self._stats.to_dict(),
            "installed_contexts": len(self._hooks),
        }

    async def detach(self, page: "Page") -> None:
        await self.uninstall(page.context)

    async def teardown(self) -> None:
        for hook in list(self._hooks.values()):
            await self.uninstall(hook.context)
