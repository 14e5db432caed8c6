from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
import os
from pathlib import Path
import time
from typing import Any


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AccessToken:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: str = ""
    scope: str = ""
    expires_at: float | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AccessToken:
        expires_at = raw.get("expires_at")
        return cls(
            access_token=str(raw.get("access_token", "")),
            token_type=str(raw.get("token_type", "Bearer")),
            expires_in=int(raw.get("expires_in", 3600) or 0),
            refresh_token=str(raw.get("refresh_token", "") or ""),
            scope=str(raw.get("scope", "") or ""),
            expires_at=float(expires_at) if expires_at is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def is_expired(self, now: float | None = None, skew_seconds: float = 0.0) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current + skew_seconds >= self.expires_at


def calculate_expiry(token: AccessToken, now: float | None = None) -> float:
    current = time.time() if now is None else now
    return current + token.expires_in


class CredentialStore:
    """Small JSON file of `{key: {"value": ..., "expires": ...}}` entries."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._entries: dict[str, dict[str, Any]] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Any | None:
        entry = self._load().get(key)
        if not isinstance(entry, dict):
            return None
        return entry.get("value")

    def expires(self, key: str) -> float | None:
        entry = self._load().get(key)
        if not isinstance(entry, dict) or entry.get("expires") is None:
            return None
        return float(entry["expires"])

    def set(self, key: str, value: Any, expires: float | None = None) -> None:
        entries = self._load()
        entries[key] = {"value": value, "expires": expires}
        self._save(entries)

    def remove(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._save(entries)

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._entries is not None:
            return self._entries
        entries: dict[str, dict[str, Any]] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                LOGGER.warning("Ignoring unreadable credential store %s: %s", self._path, exc)
                raw = {}
            if isinstance(raw, dict):
                entries = {key: value for key, value in raw.items() if isinstance(value, dict)}
        self._entries = entries
        return entries

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        self._entries = entries
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        # Tokens live here: the file must never exist with wider permissions.
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        tmp_path.unlink(missing_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(entries, indent=2))
            os.replace(tmp_path, self._path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
