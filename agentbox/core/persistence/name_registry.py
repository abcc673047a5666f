"""
Obfuscated name registry — stable random file names for artifacts.

Binaries and config files are never stored under their logical names.
Each ``(artifact_type, logical_name)`` pair is mapped once to a random
12-character ``[a-z0-9]`` name and the mapping is kept in an encrypted
blob (``filemap.dat``) so the same tool finds its files again after a
restart.

    registry = NameRegistry(data_dir / "filemap.dat")
    registry.resolve("bin", "cloudflared")   # → "q3k9x0m2ab7c" (stable)
    registry.clear("bin", "cloudflared")     # next resolve picks a new name

Every mutation is persisted before the call returns.  A single
re-entrant lock serializes all access, so two threads resolving the
same unassigned key always observe one name.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import threading
from pathlib import Path

from agentbox.core.persistence.state_store import read_encrypted, write_encrypted

logger = logging.getLogger(__name__)

NAME_ALPHABET = string.ascii_lowercase + string.digits
NAME_LENGTH = 12


def generate_name(length: int = NAME_LENGTH) -> str:
    """Draw a uniformly random file-system-safe name."""
    return "".join(secrets.choice(NAME_ALPHABET) for _ in range(length))


def _key(artifact_type: str, logical_name: str) -> str:
    return f"{artifact_type}:{logical_name}"


class NameRegistry:
    """Persistent ``(type, name) → random name`` mapping.

    The backing file is loaded lazily on first access.  An unreadable
    or corrupt file is treated as an empty registry.
    """

    def __init__(self, path: Path):
        self._path = path
        self._entries: dict[str, str] | None = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    # ── Public API ──────────────────────────────────────────────

    def resolve(self, artifact_type: str, logical_name: str) -> str:
        """Return the name for a key, assigning and persisting one if new."""
        key = _key(artifact_type, logical_name)
        with self._lock:
            entries = self._load()
            name = entries.get(key)
            if name:
                return name

            taken = set(entries.values())
            name = generate_name()
            while name in taken:
                name = generate_name()

            entries[key] = name
            try:
                self._save()
            except Exception:
                del entries[key]
                raise
            logger.debug("Assigned artifact name for %s", key)
            return name

    def lookup(self, artifact_type: str, logical_name: str) -> str | None:
        """Return the assigned name without creating one."""
        with self._lock:
            return self._load().get(_key(artifact_type, logical_name))

    def clear(self, artifact_type: str, logical_name: str) -> bool:
        """Forget the mapping for a key.  Returns True if one existed."""
        key = _key(artifact_type, logical_name)
        with self._lock:
            entries = self._load()
            if key not in entries:
                return False
            previous = entries.pop(key)
            try:
                self._save()
            except Exception:
                entries[key] = previous
                raise
            logger.debug("Cleared artifact name for %s", key)
            return True

    def entries(self) -> dict[str, str]:
        """Snapshot of all mappings (``"type:name" → random name``)."""
        with self._lock:
            return dict(self._load())

    # ── Persistence ─────────────────────────────────────────────

    def _load(self) -> dict[str, str]:
        if self._entries is not None:
            return self._entries

        self._entries = {}
        text = read_encrypted(self._path)
        if text is None:
            return self._entries

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt name registry %s: %s — starting empty", self._path, e)
            return self._entries

        if not isinstance(data, dict):
            logger.warning("Unexpected name registry shape in %s — starting empty", self._path)
            return self._entries

        self._entries = {
            str(k): v for k, v in data.items() if isinstance(v, str) and v
        }
        return self._entries

    def _save(self) -> None:
        write_encrypted(self._path, self._entries or {})
