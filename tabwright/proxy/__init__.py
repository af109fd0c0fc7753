"""Proxy management package: rotation, failure tracking and durable bans."""

from tabwright.proxy.ban_store import BanStore
from tabwright.proxy.manager import ProxyPool
from tabwright.proxy.types import BanRecord, ProxyEndpoint

__all__ = ["BanRecord", "BanStore", "ProxyEndpoint", "ProxyPool"]
