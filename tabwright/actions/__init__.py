"""CLI actions: registry, handlers and the single-action executor."""

from tabwright.actions.executor import ActionExecutor
from tabwright.actions.handlers import default_registry
from tabwright.actions.registry import ActionRegistry, ActionSpec

__all__ = ["ActionExecutor", "ActionRegistry", "ActionSpec", "default_registry"]
