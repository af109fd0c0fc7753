"""Browser-side collaborators: launcher, facades, snapshot and action resolution."""

from tabwright.browser.facade import SessionFacade
from tabwright.browser.launcher import BrowserLauncher
from tabwright.browser.snapshot import ElementIndex, ElementRecord, create_snapshot
from tabwright.browser.stealth import StealthSession

__all__ = [
    "BrowserLauncher",
    "ElementIndex",
    "ElementRecord",
    "SessionFacade",
    "StealthSession",
    "create_snapshot",
]
