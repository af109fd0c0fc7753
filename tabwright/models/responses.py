"""Action result envelope model.

Every CLI action prints one envelope to stdout:
{ success: bool, action: str, data: dict | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ActionResult(BaseModel):
    """JSON envelope for all action results."""

    success: bool
    action: str
    data: dict[str, Any] | None = None
    error: str | None = None
    meta: dict[str, Any] | None = None
