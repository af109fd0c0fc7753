"""Action registry.

Maps ``ActionName`` → ``ActionSpec`` (handler, parameter model, whether the
browser must be running). Adding an action requires only a handler and a
``register()`` call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from pydantic import BaseModel

from tabwright.models.actions import ActionName

if TYPE_CHECKING:
    from tabwright.session.session import AgentSession

logger = logging.getLogger(__name__)

Handler = Callable[["AgentSession", Any], Awaitable[dict]]
BrowserRequirement = Union[bool, Callable[[Any], bool]]


@dataclass(frozen=True)
class ActionSpec:
    """Everything the executor needs to run one action."""

    name: ActionName
    handler: Handler
    params_model: type[BaseModel]
    needs_browser: BrowserRequirement = True
    description: str = ""

    def requires_browser(self, params: BaseModel) -> bool:
        if callable(self.needs_browser):
            return bool(self.needs_browser(params))
        return self.needs_browser


class ActionRegistry:
    """Registry that maps action names to their specs."""

    def __init__(self) -> None:
        self._actions: dict[ActionName, ActionSpec] = {}

    def register(self, spec: ActionSpec) -> None:
        """Register *spec* under its name.

        Raises
        ------
        ValueError
            If an action with the same name is already registered.
        """
        if spec.name in self._actions:
            raise ValueError(f"Action '{spec.name.value}' is already registered")
        self._actions[spec.name] = spec
        logger.debug("Registered action '%s'", spec.name.value)

    def get(self, name: ActionName | str) -> ActionSpec:
        """Return the spec for *name*.

        Raises
        ------
        KeyError
            If no action is registered under the given name.
        """
        try:
            return self._actions[ActionName(name)]
        except (KeyError, ValueError):
            raise KeyError(f"Unknown action '{getattr(name, 'value', name)}'") from None

    def list_names(self) -> list[ActionName]:
        return list(self._actions.keys())

    def __contains__(self, name: object) -> bool:
        try:
            return ActionName(name) in self._actions
        except ValueError:
            return False
