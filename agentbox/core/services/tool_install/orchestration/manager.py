"""
L5 Orchestration — Tool manager.

The entry point external callers use.  Owns the shared state (config
store, name registry, supervisor, deferred tasks) and one lifecycle
controller per ``ToolId``.

    manager = ToolManager(resolve_data_dir())
    manager.get("cloudflared").start()
    manager.status_all()
    manager.shutdown()
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, Mapping

from agentbox.core.errors import AgentboxError
from agentbox.core.models.config import ToolId
from agentbox.core.persistence.config_store import CONFIG_FILE, ConfigStore
from agentbox.core.persistence.name_registry import NameRegistry
from agentbox.core.services.tool_install.data.definitions import (
    TOOL_DEFINITIONS,
    ToolDefinition,
)
from agentbox.core.services.tool_install.execution.deferred import DeferredTasks
from agentbox.core.services.tool_install.execution.supervisor import ProcessSupervisor
from agentbox.core.services.tool_install.orchestration.lifecycle import (
    CONTROLLER_TYPES,
    TimingPolicy,
    ToolContext,
    ToolController,
)

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "AGENTBOX_DATA_DIR"
NAME_REGISTRY_FILE = "filemap.dat"


def resolve_data_dir(explicit: Path | str | None = None) -> Path:
    """``--data-dir``  >  AGENTBOX_DATA_DIR  >  ./data"""
    if explicit:
        return Path(explicit).resolve()
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env).resolve()
    return (Path.cwd() / "data").resolve()


class ToolManager:
    """Registry of lifecycle controllers over one data directory."""

    def __init__(
        self,
        data_dir: Path,
        *,
        definitions: Mapping[ToolId, ToolDefinition] | None = None,
        timing: TimingPolicy | None = None,
    ):
        data_dir.mkdir(parents=True, exist_ok=True)
        (data_dir / "bin").mkdir(exist_ok=True)

        self.ctx = ToolContext(
            data_dir=data_dir,
            config=ConfigStore(data_dir / CONFIG_FILE),
            names=NameRegistry(data_dir / NAME_REGISTRY_FILE),
            supervisor=ProcessSupervisor(),
            deferred=DeferredTasks(),
            timing=timing or TimingPolicy(),
        )
        self.ctx.config.load()

        defs = definitions or TOOL_DEFINITIONS
        self._controllers: dict[ToolId, ToolController] = {
            tool_id: CONTROLLER_TYPES[tool_id](defs[tool_id], self.ctx)
            for tool_id in ToolId
        }

    @property
    def config(self) -> ConfigStore:
        return self.ctx.config

    def get(self, tool_id: ToolId | str) -> ToolController:
        """Return the controller for ``tool_id``.

        Raises:
            KeyError: Unknown tool id.
        """
        try:
            return self._controllers[ToolId(tool_id)]
        except ValueError:
            raise KeyError(f"Unknown tool '{tool_id}'") from None

    def __iter__(self) -> Iterator[ToolController]:
        return iter(self._controllers.values())

    def status_all(self) -> dict[str, dict[str, bool]]:
        return {c.tool_id.value: c.status() for c in self}

    def autostart(self) -> dict[str, str | None]:
        """Start every tool flagged ``enabled`` and ``auto_start``.

        A failing tool does not prevent the others from starting.

        Returns:
            ``{tool_id: None}`` on success or ``{tool_id: error}``.
        """
        results: dict[str, str | None] = {}
        for controller in self:
            cfg = controller.cfg
            if not (cfg.enabled and cfg.auto_start):
                continue
            try:
                controller.start()
                results[controller.tool_id.value] = None
            except (AgentboxError, OSError) as e:
                logger.error("[%s] auto-start failed: %s", controller.tool_id, e)
                results[controller.tool_id.value] = str(e)
        return results

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop every running tool and let post-stop cleanup finish."""
        for tool_id in self.ctx.supervisor.running_ids():
            self.get(tool_id).stop()
        if not self.ctx.deferred.join(timeout):
            logger.warning("Deferred cleanup still pending after %.1fs", timeout)
            self.ctx.deferred.cancel_all()
