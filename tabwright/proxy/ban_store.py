"""Durable ban/failure store shared across CLI invocations.

The whole state is one JSON document::

    {
      "banned":   {"<raw url>": {"bannedAt": ..., "expiresAt": ..., "failureCountAtBan": 3}},
      "failures": {"<raw url>": [ts, ts]},
      "lastRotation": ts
    }

Writes go to a temporary file in the target directory and are moved into
place with ``os.replace`` so a reader never observes a torn document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from tabwright.proxy.types import BanRecord

logger = logging.getLogger(__name__)

STORE_FILENAME = "proxies.json"


@dataclass
class PoolState:
    banned: dict[str, BanRecord] = field(default_factory=dict)
    failures: dict[str, list[float]] = field(default_factory=dict)
    last_rotation: float = 0.0


class BanStore:
    """Reads and atomically writes :class:`PoolState`.

    ``path=None`` keeps the state in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None

    @classmethod
    def in_dir(cls, state_dir: str | Path) -> "BanStore":
        return cls(Path(state_dir) / STORE_FILENAME)

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> PoolState:
        """Return the persisted state; missing or corrupt files read as empty."""
        if self._path is None or not self._path.exists():
            return PoolState()

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable proxy state at %s: %s", self._path, exc)
            return PoolState()

        if not isinstance(raw, dict):
            return PoolState()

        state = PoolState()
        try:
            state.last_rotation = float(raw.get("lastRotation") or 0)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed lastRotation in %s", self._path)

        banned = raw.get("banned")
        for url, ban in (banned.items() if isinstance(banned, dict) else ()):
            try:
                state.banned[url] = BanRecord.from_dict(ban)
            except (AttributeError, TypeError, ValueError):
                logger.warning("Ignoring malformed ban record for %s in %s", url, self._path)

        failures = raw.get("failures")
        for url, stamps in (failures.items() if isinstance(failures, dict) else ()):
            try:
                if not isinstance(stamps, list):
                    raise TypeError(type(stamps).__name__)
                state.failures[url] = [float(ts) for ts in stamps]
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed failure window for %s in %s", url, self._path)
        return state

    def save(self, state: PoolState) -> None:
        """Persist *state* all-or-nothing."""
        if self._path is None:
            return

        document = {
            "banned": {url: ban.to_dict() for url, ban in state.banned.items()},
            "failures": {url: stamps for url, stamps in state.failures.items() if stamps},
            "lastRotation": state.last_rotation,
        }

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
