"""Public models for the agent."""

from tabwright.models.actions import (
    ActionName,
    AdblockAction,
    DialogAction,
    ProxyAction,
    ScrollDirection,
)
from tabwright.models.responses import ActionResult

__all__ = [
    "ActionName",
    "ActionResult",
    "AdblockAction",
    "DialogAction",
    "ProxyAction",
    "ScrollDirection",
]
