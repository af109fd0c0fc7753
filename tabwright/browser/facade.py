"""Explicit interface for objects a session attaches to its pages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import Page


class SessionFacade(ABC):
    """A collaborator the session installs on every page it opens.

    The session holds typed references to its facades (request filter,
    stealth) and drives them through these calls only. A facade may serve
    several sessions at once, so a session releases only its own pages with
    ``detach``; ``teardown`` belongs to whoever owns the facade.
    """

    name: str = "facade"

    @abstractmethod
    async def attach(self, page: "Page") -> None:
        """Install on *page* (and its context). Must be idempotent."""

    @abstractmethod
    async def configure(self, **options: Any) -> dict:
        """Apply runtime options; returns the resulting status."""

    @abstractmethod
    def status(self) -> dict:
        """Serializable status for the ``status`` action."""

    @abstractmethod
    async def detach(self, page: "Page") -> None:
        """Remove from *page* (and its context) only; never raises."""

    @abstractmethod
    async def teardown(self) -> None:
        """Detach from every page and context; never raises."""
