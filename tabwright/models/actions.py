"""Pydantic parameter models for every CLI action."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ActionName(str, Enum):
    """Supported actions, one per CLI sub-command."""

    INIT = "init"
    CLOSE = "close"
    STATUS = "status"
    NAVIGATE = "navigate"
    SNAPSHOT = "snapshot"
    CLICK = "click"
    FILL = "fill"
    OPEN_LINK = "open-link"
    SCROLL = "scroll"
    TAB = "tab"
    PROXY = "proxy"
    ADBLOCK = "adblock"
    COOKIES = "cookies"
    FINGERPRINT = "fingerprint"
    STEALTH = "stealth"
    BEHAVIOR = "behavior"
    WAIT = "wait"
    EXTRACT = "extract"
    SOURCE = "source"
    EVAL = "eval"
    KEY = "key"
    DIALOG = "dialog"
    SAVE = "save"
    READ = "read"
    DONE = "done"


class ScrollDirection(str, Enum):
    DOWN = "down"
    UP = "up"
    BOTTOM = "bottom"


class ProxyAction(str, Enum):
    STATUS = "status"
    ROTATE = "rotate"
    CHECK = "check"
    RESET = "reset"


class AdblockAction(str, Enum):
    STATUS = "status"
    ENABLE = "enable"
    DISABLE = "disable"
    SET_MODE = "set-mode"
    UPDATE_CONFIG = "update-config"
    RESET_STATS = "reset-stats"


class DialogAction(str, Enum):
    ACCEPT = "accept"
    DISMISS = "dismiss"


class EmptyParams(BaseModel):
    """Parameters for actions that take none."""


class NavigateParams(BaseModel):
    url: str = Field(..., min_length=1)


class SnapshotParams(BaseModel):
    verbose: bool = False


class ElementParams(BaseModel):
    uid: str = Field(..., min_length=1)


class FillParams(ElementParams):
    text: str = ""


class ScrollParams(BaseModel):
    direction: ScrollDirection = ScrollDirection.DOWN
    distance: int = Field(default=500, ge=1, le=100_000)


class TabParams(BaseModel):
    target: str = "0"


class ProxyParams(BaseModel):
    action: ProxyAction = ProxyAction.STATUS
    reason: str = ""
    endpoint: str | None = None


class AdblockParams(BaseModel):
    action: AdblockAction = AdblockAction.STATUS
    mode: str | None = None
    patch: dict[str, Any] = Field(default_factory=dict)

    @field_validator("patch")
    @classmethod
    def _drop_unset(cls, value: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in value.items() if v is not None}


class CookiesParams(BaseModel):
    force: bool = False


class FingerprintParams(BaseModel):
    config: dict[str, Any] = Field(default_factory=dict)


class WaitParams(BaseModel):
    ms: int = Field(default=0, ge=0, le=600_000)


class ExtractParams(BaseModel):
    selector: str = ""


class SourceParams(BaseModel):
    include_doctype: bool = True


class EvalParams(BaseModel):
    script: str = Field(..., min_length=1)

    @field_validator("script")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("script is required")
        return value.strip()


class KeyParams(BaseModel):
    key: str = Field(..., min_length=1)


class DialogParams(BaseModel):
    action: DialogAction = DialogAction.ACCEPT
    prompt_text: str = ""


class SaveParams(BaseModel):
    filename: str = Field(default="result.md", min_length=1)
    content: str = ""
    append: bool = False


class ReadParams(BaseModel):
    filename: str = Field(..., min_length=1)


class DoneParams(BaseModel):
    reason: str = ""
