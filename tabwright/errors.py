"""Error hierarchy and result-envelope serialization.

All agent-specific errors extend AgentError. The action executor catches
these errors (plus pydantic's ValidationError and unhandled exceptions) and
turns them into a consistent JSON envelope: { success, action, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from pydantic import ValidationError

from tabwright.models.responses import ActionResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class AgentError(Exception):
    """Base error for all agent-specific errors."""

    code: str = "internal_error"
    message: str = "Internal error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class InvalidParamsError(AgentError):
    """Action parameters failed validation; includes field-level details."""

    code = "invalid_params"
    message = "Invalid action parameters"


class ElementNotFoundError(AgentError):
    """Element identifier absent from the current element index."""

    code = "not_found"
    message = "Element not found in snapshot"


class ResolutionExhaustedError(AgentError):
    """Every resolution strategy failed against a known element."""

    code = "resolution_exhausted"
    message = "All click strategies failed"


class NavigationError(AgentError):
    """Engine-level navigation failure."""

    code = "navigation_failure"
    message = "Navigation failed"


class ProxyUnavailableError(AgentError):
    """Proxy pool exhausted or proxy support disabled."""

    code = "proxy_unavailable"
    message = "No proxy endpoint available"


class FilterMisconfiguredError(AgentError):
    """Request filter action attempted before installation."""

    code = "filter_misconfigured"
    message = "Adblock not initialized"


class ActionTimeoutError(AgentError):
    """Bounded wait exceeded at the action boundary."""

    code = "timeout"
    message = "Action timed out"


class SessionClosedError(AgentError):
    """Action attempted on a closed or uninitialized session."""

    code = "session_closed"
    message = "Session is not active"


class TabNotFoundError(AgentError):
    """No open tab matched the requested index or URL fragment."""

    code = "tab_not_found"
    message = "Tab not found"


class ResultNotFoundError(AgentError):
    """Saved result file does not exist."""

    code = "result_not_found"
    message = "Result file not found"


# ---------------------------------------------------------------------------
# Envelope serialization
# ---------------------------------------------------------------------------


def _validation_details(exc: ValidationError) -> list[dict]:
    return [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


def error_envelope(
    action: str,
    exc: BaseException,
    meta: dict | None = None,
) -> ActionResult:
    """Build a failed ActionResult for *exc*.

    Agent errors keep their message and details. Validation errors are
    reported field by field. Anything else is logged with its traceback and
    reported as a generic internal error.
    """
    meta = dict(meta or {})

    if isinstance(exc, AgentError):
        meta["code"] = exc.code
        if exc.details:
            meta["details"] = exc.details
        return ActionResult(success=False, action=action, error=exc.message, meta=meta)

    if isinstance(exc, ValidationError):
        meta["code"] = InvalidParamsError.code
        meta["fields"] = _validation_details(exc)
        return ActionResult(
            success=False,
            action=action,
            error=InvalidParamsError.message,
            meta=meta,
        )

    logger.error(
        "Unhandled exception in action %s: %s\n%s",
        action,
        exc,
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    meta["code"] = AgentError.code
    return ActionResult(success=False, action=action, error=f"Internal error: {exc}", meta=meta)
