"""Durable caller identity backed by a small JSON key-value file."""
from __future__ import annotations

import json
import random
import string
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from config import IDENTITY_STORAGE_KEY, TEXTIFY_STATE_PATH
from observability.logger import get_logger

LOGGER = get_logger("textify.jobs.identity")

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_RANDOM_LENGTH = 7


class IdentityUnavailable(RuntimeError):
    """Raised when the durable store cannot be read or written."""


class IdentityStore:
    """JSON object on disk mapping keys to string values."""

    def __init__(self, path: str | Path = TEXTIFY_STATE_PATH) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
        if isinstance(value, str) and value.strip():
            return value
        return None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(
                    json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True),
                    encoding="utf-8",
                )
            except OSError as exc:
                raise IdentityUnavailable(f"cannot write {self._path}: {exc}") from exc

    def _read(self) -> Dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            LOGGER.warning("Corrupted client state file %s: %s", self._path, exc)
            return {}
        except OSError as exc:
            raise IdentityUnavailable(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            LOGGER.warning("Client state file %s is not a JSON object", self._path)
            return {}
        return raw


def generate_identity() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(_ID_RANDOM_LENGTH))
    return f"user-{int(time.time() * 1000)}-{suffix}"


class IdentityProvider:
    """Returns the same caller identity for the whole client lifetime."""

    def __init__(self, store: IdentityStore, *, key: str = IDENTITY_STORAGE_KEY) -> None:
        self._store = store
        self._key = key
        self._identity: Optional[str] = None
        self._lock = threading.Lock()

    def get_or_create_identity(self) -> str:
        with self._lock:
            if self._identity is None:
                self._identity = self._load_or_create()
            return self._identity

    def _load_or_create(self) -> str:
        try:
            stored = self._store.get(self._key)
        except IdentityUnavailable as exc:
            LOGGER.warning("identity_read_failed", extra={"error": str(exc)})
            stored = None
        if stored:
            return stored

        identity = generate_identity()
        try:
            self._store.set(self._key, identity)
        except IdentityUnavailable as exc:
            # Not fatal: the identity lives on in memory for this lifetime.
            LOGGER.warning("identity_persist_failed", extra={"error": str(exc)})
        else:
            LOGGER.info("identity_created", extra={"user_id": identity})
        return identity


__all__ = ["IdentityProvider", "IdentityStore", "IdentityUnavailable", "generate_identity"]
