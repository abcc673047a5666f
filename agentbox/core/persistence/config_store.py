"""
Configuration store — load/save the encrypted tool configuration.

The whole configuration tree lives in ``<data_dir>/config.json`` as an
encrypted JSON blob (see ``state_store``).  The store is the single
owner of the in-memory ``AgentboxConfig``; lifecycle controllers read
through ``get`` and write through ``update`` / ``set_discovered`` /
``reset``, each of which persists immediately.

Load recovery rules:
  - missing file            → defaults
  - encrypted JSON          → validated per tool; a tool that fails
                              validation is reset to its defaults
  - plain JSON (legacy)     → accepted, re-encrypted on next save
  - anything else           → defaults (logged)

The module also carries the config-utility operations
(``view_config`` / ``export_config`` / ``import_config`` /
``reset_config``) that work on the blob without a running store.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agentbox.core.models.config import (
    CONFIG_MODELS,
    AgentboxConfig,
    ToolConfig,
    ToolId,
)
from agentbox.core.persistence.state_store import decode, write_encrypted

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"


class ConfigStore:
    """Owner of the persisted tool configuration tree."""

    def __init__(self, path: Path):
        self._path = path
        self._lock = threading.RLock()
        self._config = AgentboxConfig()
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config(self) -> AgentboxConfig:
        self._ensure_loaded()
        return self._config

    # ── Load / save ─────────────────────────────────────────────

    def load(self) -> AgentboxConfig:
        """(Re)load the configuration from disk."""
        with self._lock:
            self._config = _parse_config(_read_blob_json(self._path), source=self._path)
            self._loaded = True
            return self._config

    def save(self) -> None:
        """Persist the current configuration (encrypted, atomic)."""
        with self._lock:
            self._ensure_loaded()
            write_encrypted(self._path, self._config.to_json_dict())
            logger.debug("Configuration saved to %s", self._path)

    # ── Accessors ───────────────────────────────────────────────

    def get(self, tool_id: ToolId) -> ToolConfig:
        """Return the live config record for ``tool_id``."""
        with self._lock:
            self._ensure_loaded()
            return self._config.tool(tool_id)

    def update(self, tool_id: ToolId, **fields: Any) -> ToolConfig:
        """Validate and apply field changes, then persist.

        Field names may be given in snake_case or camelCase.

        Raises:
            ValueError: If a field is unknown or a value is invalid
                (``pydantic.ValidationError`` is a ``ValueError``);
                nothing is changed in that case.
        """
        with self._lock:
            self._ensure_loaded()
            current = self._config.tool(tool_id)
            model = CONFIG_MODELS[ToolId(tool_id)]
            merged = current.model_dump(by_alias=True)
            merged.update(_to_aliases(model, fields))
            updated = model.model_validate(merged)
            self._config.replace_tool(tool_id, updated)
            self.save()
            return updated

    def set_discovered(self, tool_id: ToolId, field: str, value: Any) -> bool:
        """Record a runtime-discovered value.  Persists only on change.

        Returns:
            True if the value changed (and was saved).
        """
        with self._lock:
            self._ensure_loaded()
            record = self._config.tool(tool_id)
            if getattr(record, field) == value:
                return False
            setattr(record, field, value)
            self.save()
            return True

    def reset(self, tool_id: ToolId) -> ToolConfig:
        """Restore a tool's factory defaults and persist."""
        with self._lock:
            self._ensure_loaded()
            fresh = CONFIG_MODELS[ToolId(tool_id)]()
            self._config.replace_tool(tool_id, fresh)
            self.save()
            logger.info("[%s] configuration reset to defaults", tool_id)
            return fresh

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()


# ── Parsing helpers ──────────────────────────────────────────────


def _read_blob_json(path: Path) -> dict[str, Any] | None:
    """Read ``path`` as an encrypted JSON blob, or as legacy plain JSON."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No configuration at %s — using defaults", path)
        return None
    except (OSError, UnicodeError) as e:
        logger.warning("Cannot read configuration %s: %s — using defaults", path, e)
        return None

    result = decode(raw)
    candidates = [result.text] if result.ok else []
    candidates.append(raw)

    for text in candidates:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            if text is raw:
                logger.info("Configuration %s is plain JSON — will re-encrypt on save", path)
            return data

    logger.warning("Configuration %s is corrupt — using defaults", path)
    return None


def _parse_config(data: dict[str, Any] | None, source: Path | str = "") -> AgentboxConfig:
    """Build an ``AgentboxConfig``, resetting tools that fail validation."""
    if not data:
        return AgentboxConfig()

    tools_raw = data.get("tools")
    if not isinstance(tools_raw, dict):
        tools_raw = {}

    tools: dict[str, Any] = dict(tools_raw)
    for tool_id, model in CONFIG_MODELS.items():
        entry = tools_raw.get(tool_id.value)
        if entry is None:
            tools[tool_id.value] = model()
            continue
        try:
            tools[tool_id.value] = model.model_validate(entry)
        except ValidationError as e:
            logger.warning(
                "Invalid %s configuration in %s — resetting to defaults: %s",
                tool_id, source, e.error_count(),
            )
            tools[tool_id.value] = model()

    extra = {k: v for k, v in data.items() if k != "tools"}
    return AgentboxConfig.model_validate({"tools": tools, **extra})


def _to_aliases(model: type, fields: dict[str, Any]) -> dict[str, Any]:
    """Map snake_case field names to their on-disk aliases."""
    aliases = {info.alias or name: name for name, info in model.model_fields.items()}
    out: dict[str, Any] = {}
    for name, value in fields.items():
        info = model.model_fields.get(name)
        if info is not None:
            out[info.alias or name] = value
        elif name in aliases:
            out[name] = value
        else:
            raise ValueError(f"Unknown field '{name}' for {model.__name__}")
    return out


# ═══════════════════════════════════════════════════════════════════
#  Config utility operations (offline: no running controller needed)
# ═══════════════════════════════════════════════════════════════════


def view_config(path: Path) -> dict[str, Any] | None:
    """Return the decrypted configuration as a dict, or None if absent."""
    if not path.is_file():
        return None
    return _parse_config(_read_blob_json(path), source=path).to_json_dict()


def export_config(path: Path, dest: Path) -> Path:
    """Write the decrypted configuration to ``dest`` as pretty JSON.

    Raises:
        FileNotFoundError: If there is no configuration to export.
    """
    data = view_config(path)
    if data is None:
        raise FileNotFoundError(f"No configuration at {path}")
    dest.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info("Configuration exported to %s", dest)
    return dest


def import_config(path: Path, src: Path) -> AgentboxConfig:
    """Validate a plain JSON file and store it encrypted at ``path``.

    Raises:
        FileNotFoundError: If ``src`` does not exist.
        ValueError: If ``src`` is not a JSON object or fails validation.
    """
    text = src.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"{src} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{src} must contain a JSON object")

    try:
        config = AgentboxConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"{src} is not a valid configuration: {e}") from e

    write_encrypted(path, config.to_json_dict())
    logger.info("Configuration imported from %s", src)
    return config


def reset_config(path: Path) -> bool:
    """Delete the configuration blob.  Returns True if one existed."""
    if not path.exists():
        return False
    path.unlink()
    logger.info("Configuration %s deleted", path)
    return True
