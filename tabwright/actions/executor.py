"""Action executor: runs one CLI action to completion.

Pipeline: resolve action → validate parameters → build session → init the
browser when the action needs it → run the handler under the action timeout
→ build the result envelope → always close the session.

The process never crashes on an action failure: every exception becomes a
failed :class:`ActionResult`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from tabwright.actions.handlers import default_registry
from tabwright.actions.registry import ActionRegistry
from tabwright.config.settings import AgentSettings
from tabwright.errors import ActionTimeoutError, InvalidParamsError, error_envelope
from tabwright.models.responses import ActionResult
from tabwright.session.factory import build_session
from tabwright.session.session import AgentSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[AgentSettings], AgentSession]


class ActionExecutor:
    """Executes single actions against a fresh session.

    Dependencies are injected via the constructor so the executor is
    testable without real browsers.
    """

    def __init__(
        self,
        settings: AgentSettings,
        *,
        registry: ActionRegistry | None = None,
        session_factory: SessionFactory = build_session,
    ) -> None:
        self._settings = settings
        self._registry = registry or default_registry()
        self._session_factory = session_factory

    @property
    def registry(self) -> ActionRegistry:
        return self._registry

    async def execute(self, action: str, params: dict[str, Any] | None = None) -> ActionResult:
        started = time.monotonic()
        session: AgentSession | None = None

        try:
            try:
                spec = self._registry.get(action)
            except KeyError:
                raise InvalidParamsError(f"Unknown action: {action}", action=action) from None
            validated = spec.params_model.model_validate(params or {})

            session = self._session_factory(self._settings)
            timeout = self._settings.action_timeout_seconds
            try:
                data = await asyncio.wait_for(
                    self._run(spec, session, validated), timeout=timeout
                )
            except asyncio.TimeoutError:
                raise ActionTimeoutError(
                    f"Action {action} timed out after {timeout}s", timeout_seconds=timeout
                ) from None

            result = ActionResult(
                success=True,
                action=action,
                data=data,
                meta={"duration_ms": self._elapsed_ms(started)},
            )
        except Exception as exc:
            if session is not None:
                session.last_error = str(exc)
            result = error_envelope(action, exc, {"duration_ms": self._elapsed_ms(started)})
        finally:
            if session is not None:
                await self._close(session)

        log = logger.info if result.success else logger.warning
        log(
            "Action %s %s",
            action,
            "succeeded" if result.success else f"failed: {result.error}",
            extra={
                "action": action,
                "duration_ms": result.meta.get("duration_ms") if result.meta else None,
                "error_reason": result.error,
            },
        )
        return result

    async def _run(self, spec, session: AgentSession, params) -> dict:
        if spec.requires_browser(params) and not session.is_active:
            await session.init()
        return await spec.handler(session, params)

    @staticmethod
    async def _close(session: AgentSession) -> None:
        try:
            await session.close()
            for facade in (session.request_filter, session.stealth):
                if facade is not None:
                    await facade.teardown()
        except Exception:
            logger.warning("Failed to close session cleanly", exc_info=True)

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.monotonic() - started) * 1000, 2)
