"""Proxy data models for the proxy pool."""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

SUPPORTED_PROTOCOLS = frozenset({"http", "https", "socks4", "socks5"})


@dataclass
class ProxyEndpoint:
    """A single upstream proxy, identified by its raw connection URL."""

    raw: str
    protocol: str  # http, https, socks4, socks5
    server: str  # scheme://host:port, no credentials
    username: str = ""
    password: str = ""
    failures: list[float] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: str) -> "ProxyEndpoint | None":
        """Parse *raw* into an endpoint, or ``None`` when it is malformed."""
        raw = (raw or "").strip()
        if not raw:
            return None
        try:
            parsed = urlparse(raw)
            port = parsed.port
        except ValueError:
            return None

        protocol = parsed.scheme.lower()
        if protocol not in SUPPORTED_PROTOCOLS or not parsed.hostname:
            return None

        host = parsed.hostname
        if ":" in host:
            host = f"[{host}]"
        server = f"{protocol}://{host}" + (f":{port}" if port else "")

        return cls(
            raw=raw,
            protocol=protocol,
            server=server,
            username=unquote(parsed.username or ""),
            password=unquote(parsed.password or ""),
        )

    def launch_options(self) -> dict[str, str]:
        """Return the Playwright ``proxy`` launch option for this endpoint."""
        options = {"server": self.server}
        if self.username:
            options["username"] = self.username
        if self.password:
            options["password"] = self.password
        return options


@dataclass
class BanRecord:
    """Time-boxed ban of one endpoint."""

    banned_at: float
    expires_at: float
    failure_count_at_ban: int

    def is_active(self, now: float) -> bool:
        return self.expires_at > now

    def to_dict(self) -> dict:
        return {
            "bannedAt": self.banned_at,
            "expiresAt": self.expires_at,
            "failureCountAtBan": self.failure_count_at_ban,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BanRecord":
        return cls(
            banned_at=float(data.get("bannedAt", 0)),
            expires_at=float(data.get("expiresAt", 0)),
            failure_count_at_ban=int(data.get("failureCountAtBan", data.get("failures", 0))),
        )
