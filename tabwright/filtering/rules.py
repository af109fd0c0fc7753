"""Compiled request-filter rules and the pure block/allow decision.

A :class:`FilterConfig` is compiled into an immutable :class:`CompiledRules`
snapshot. :func:`evaluate` is deterministic given (url, resource type, rules).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from tabwright.config.filter_rules import FilterConfig

NON_NETWORK_SCHEMES: tuple[str, ...] = (
    "data:",
    "blob:",
    "about:",
    "chrome:",
    "chrome-extension:",
)

DOCUMENT = "document"


class FilterMode(str, Enum):
    """Which resource-category set is blocked."""

    BALANCED = "balanced"  # heavy media only
    AGGRESSIVE = "aggressive"  # images, media, fonts

    @classmethod
    def normalize(cls, value: object) -> "FilterMode":
        text = str(getattr(value, "value", value) or "").strip().lower()
        return cls.AGGRESSIVE if text == cls.AGGRESSIVE.value else cls.BALANCED


@dataclass(frozen=True)
class FilterDecision:
    """Outcome for one request. Never persisted, only aggregated into stats."""

    block: bool
    host: str = ""
    resource_type: str = ""
    rule_id: str | None = None


ALLOW = FilterDecision(block=False)


@dataclass(frozen=True)
class CompiledRules:
    """One immutable generation of the filter's rule set."""

    enabled: bool
    mode: FilterMode
    blocked_types: frozenset[str]
    domain_patterns: tuple[str, ...]
    url_patterns: tuple[str, ...]
    allowlist_domains: tuple[str, ...]


def _normalize_list(values: list[str] | None) -> list[str]:
    return [str(v).strip().lower() for v in (values or []) if str(v or "").strip()]


def normalize_domain(value: str) -> str:
    """Lowercase, strip a leading ``*.`` wildcard and trailing dots."""
    domain = str(value or "").strip().lower()
    if domain.startswith("*."):
        domain = domain[2:]
    return domain.rstrip(".")


def host_matches_domain(host: str, domain: str) -> bool:
    """True when *host* equals *domain* or is a subdomain of it."""
    h, d = normalize_domain(host), normalize_domain(domain)
    return bool(h and d and (h == d or h.endswith(f".{d}")))


def compile_rules(config: FilterConfig) -> CompiledRules:
    """Build the lookup structures for *config* in one pass."""
    mode = FilterMode.normalize(config.mode)
    patterns = _normalize_list(config.block_url_patterns)
    domain_patterns = [normalize_domain(p) for p in patterns if "/" not in p and "?" not in p]
    url_patterns = [p for p in patterns if "/" in p or "?" in p]

    return CompiledRules(
        enabled=bool(config.enabled),
        mode=mode,
        blocked_types=frozenset(_normalize_list(config.block_resource_types.get(mode.value))),
        domain_patterns=tuple(p for p in domain_patterns if p),
        url_patterns=tuple(url_patterns),
        allowlist_domains=tuple(
            d for d in (normalize_domain(a) for a in _normalize_list(config.allowlist_domains)) if d
        ),
    )


def _host_of(url: str) -> str:
    try:
        return normalize_domain(urlsplit(url).hostname or "")
    except ValueError:
        return ""


def evaluate(rules: CompiledRules, url: str, resource_type: str) -> FilterDecision:
    """Decide whether a request is blocked. First matching step wins."""
    url = str(url or "").strip().lower()
    if not rules.enabled or not url or url.startswith(NON_NETWORK_SCHEMES):
        return ALLOW

    host = _host_of(url)
    for domain in rules.allowlist_domains:
        if host_matches_domain(host, domain):
            return FilterDecision(block=False, host=host, rule_id=f"allowlist:{domain}")

    resource_type = str(resource_type or "").strip().lower()
    if resource_type in rules.blocked_types:
        return FilterDecision(True, host, resource_type, f"type:{resource_type}")

    # The top-level document is never blocked by pattern rules.
    if resource_type == DOCUMENT:
        return FilterDecision(block=False, host=host, resource_type=resource_type)

    for domain in rules.domain_patterns:
        if host_matches_domain(host, domain):
            return FilterDecision(True, host, resource_type, f"domain:{domain}")

    for pattern in rules.url_patterns:
        if pattern in url:
            return FilterDecision(True, host, resource_type, f"pattern:{pattern}")

    return FilterDecision(block=False, host=host, resource_type=resource_type)
