"""
L5 Orchestration — Per-tool lifecycle controllers.

One controller per managed tool, all sharing a ``ToolContext`` (config
store, name registry, supervisor, deferred tasks).  The lifecycle::

    uninstalled ──install──▶ installed-idle ──start──▶ running
         ▲                        ▲                      │
         │                        └──────── stop ────────┘
         └── uninstall / delete (and the post-stop cleanup)

``start`` installs transparently when the binary is missing.  ``stop``
terminates the process at once and removes the binary and runtime
configs after a grace delay.  Every on-disk artifact lives under a
random name from the ``NameRegistry``.

Subclasses only supply what differs per tool: which fields are
required, which release channel to fetch, and how to launch.
"""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agentbox.core.errors import MissingConfiguration
from agentbox.core.models.config import (
    KomariConfig,
    NezhaConfig,
    ToolConfig,
    ToolId,
    TunnelConfig,
)
from agentbox.core.persistence.config_store import ConfigStore
from agentbox.core.persistence.name_registry import NameRegistry
from agentbox.core.persistence.state_store import read_encrypted, write_encrypted
from agentbox.core.services.tool_install.data.definitions import (
    DEFAULT_CHANNEL,
    ArchiveKind,
    ToolDefinition,
)
from agentbox.core.services.tool_install.detection.platform import require_linux
from agentbox.core.services.tool_install.execution import render
from agentbox.core.services.tool_install.execution.deferred import DeferredTasks
from agentbox.core.services.tool_install.execution.download import download
from agentbox.core.services.tool_install.execution.supervisor import ProcessSupervisor
from agentbox.core.services.tool_install.execution.unpack import (
    unpack_gzip,
    unpack_zip_member,
)

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIX = {ArchiveKind.GZIP: ".gz", ArchiveKind.ZIP: ".zip"}


@dataclass(frozen=True)
class TimingPolicy:
    """Fixed delays used by the lifecycle, in seconds."""

    cleanup_grace: float = 1.0   # stop → delete binary/configs
    plaintext_ttl: float = 2.0   # plaintext companion lifetime
    restart_pause: float = 0.5   # restart: stop → start


@dataclass
class ToolContext:
    """State shared by every controller.  Owned by ``ToolManager``."""

    data_dir: Path
    config: ConfigStore
    names: NameRegistry
    supervisor: ProcessSupervisor
    deferred: DeferredTasks
    timing: TimingPolicy = field(default_factory=TimingPolicy)

    @property
    def bin_dir(self) -> Path:
        return self.data_dir / "bin"


class ToolController(ABC):
    """Lifecycle operations for one tool."""

    def __init__(self, definition: ToolDefinition, ctx: ToolContext):
        self.definition = definition
        self.ctx = ctx

    @property
    def tool_id(self) -> ToolId:
        return self.definition.tool_id

    @property
    def cfg(self) -> ToolConfig:
        return self.ctx.config.get(self.tool_id)

    # ── Hooks ───────────────────────────────────────────────────

    def required_fields(self, cfg: Any) -> list[str]:
        return []

    def channel(self) -> str:
        return DEFAULT_CHANNEL

    @abstractmethod
    def _launch(self, cfg: Any, binary: Path) -> bool:
        """Spawn the agent with its rendered config."""

    # ── Artifact paths ──────────────────────────────────────────

    def bin_path(self) -> Path:
        return self.ctx.bin_dir / self.ctx.names.resolve("bin", self.definition.binary)

    def cfg_path(self) -> Path:
        name = self.ctx.names.resolve("cfg", self.definition.config_name)
        return self.ctx.data_dir / f"{name}{self.definition.config_ext}"

    def plaintext_path(self) -> Path:
        name = self.ctx.names.resolve("cfg", self.definition.plaintext_name)
        return self.ctx.data_dir / f"{name}{self.definition.plaintext_ext}"

    def _archive_path(self, kind: ArchiveKind) -> Path:
        name = self.ctx.names.resolve(kind.value, self.definition.install_name)
        return self.ctx.bin_dir / f"{name}{_ARCHIVE_SUFFIX[kind]}"

    def _existing_paths(self) -> list[Path]:
        """Paths of the binary and configs, without assigning new names."""
        d = self.definition
        lookup = self.ctx.names.lookup
        paths = []
        if name := lookup("bin", d.binary):
            paths.append(self.ctx.bin_dir / name)
        if name := lookup("cfg", d.config_name):
            paths.append(self.ctx.data_dir / f"{name}{d.config_ext}")
        if d.plaintext_ext and (name := lookup("cfg", d.plaintext_name)):
            paths.append(self.ctx.data_dir / f"{name}{d.plaintext_ext}")
        return paths

    # ── Lifecycle ───────────────────────────────────────────────

    def install(self) -> Path:
        """Download and unpack the binary for this host.

        Raises:
            UnsupportedPlatform: Not running on Linux.
            FetchError / ArchiveError: Download or extraction failed.
        """
        info = require_linux()
        source = self.definition.source(self.channel())
        url = source.url_for(info.arch)
        binary = self.bin_path()

        logger.info("[%s] installing (%s, %s)", self.tool_id, info.arch, source.archive)
        if source.archive is ArchiveKind.RAW:
            download(url, binary)
        else:
            archive = self._archive_path(source.archive)
            try:
                download(url, archive)
                if source.archive is ArchiveKind.GZIP:
                    unpack_gzip(archive, binary)
                else:
                    unpack_zip_member(archive, source.member or self.definition.binary, binary)
            finally:
                archive.unlink(missing_ok=True)

        binary.chmod(0o755)
        logger.info("[%s] installed", self.tool_id)
        return binary

    def start(self) -> bool:
        """Validate config, install if needed, render config, spawn.

        Returns:
            True if a process was launched, False if already running.

        Raises:
            MissingConfiguration: A required field is empty.
            UnsupportedPlatform / FetchError / ArchiveError: Install failed.
            ProcessSpawnError: The binary could not be launched.
        """
        cfg = self.cfg
        missing = [f for f in self.required_fields(cfg) if not getattr(cfg, f)]
        if missing:
            raise MissingConfiguration(self.tool_id.value, missing)

        self.ctx.deferred.cancel(f"{self.tool_id}:cleanup")

        binary = self.bin_path()
        if not binary.is_file():
            logger.info("[%s] binary missing — downloading", self.tool_id)
            self.install()

        return self._launch(cfg, binary)

    def stop(self) -> bool:
        """Terminate the process and schedule artifact cleanup."""
        return self._stop("cleanup")

    def restart(self) -> bool:
        self.stop()
        time.sleep(self.ctx.timing.restart_pause)
        return self.start()

    def uninstall(self) -> None:
        """Stop and remove the binary (and runtime config) right away."""
        paths = self._existing_paths()
        self.stop()
        for path in paths:
            path.unlink(missing_ok=True)
        logger.info("[%s] uninstalled", self.tool_id)

    def delete(self) -> None:
        """Stop, forget every artifact name, reset config to defaults."""
        self._stop("purge")
        for kind, name in self.definition.artifact_keys():
            self.ctx.names.clear(kind, name)
        self.ctx.config.reset(self.tool_id)
        logger.info("[%s] deleted", self.tool_id)

    def status(self) -> dict[str, bool]:
        """``{"installed": …, "running": …}`` — no side effects."""
        name = self.ctx.names.lookup("bin", self.definition.binary)
        return {
            "installed": bool(name) and (self.ctx.bin_dir / name).is_file(),
            "running": self.ctx.supervisor.is_running(self.tool_id),
        }

    # ── Helpers ─────────────────────────────────────────────────

    def _stop(self, task: str) -> bool:
        stopped = self.ctx.supervisor.stop(self.tool_id)
        paths = self._existing_paths()

        def _cleanup() -> None:
            for path in paths:
                path.unlink(missing_ok=True)
            logger.info("[%s] removed binary and runtime config", self.tool_id)

        self.ctx.deferred.schedule(f"{self.tool_id}:{task}", self.ctx.timing.cleanup_grace, _cleanup)
        return stopped

    def _write_runtime_config(self, content: str) -> str:
        """Store ``content`` encrypted, then return it as read back."""
        path = self.cfg_path()
        write_encrypted(path, content)
        text = read_encrypted(path)
        if text is None:
            raise OSError(f"Runtime config {path} could not be read back")
        return text

    def _spawn_with_plaintext(self, args_before: list[str], content: str, binary: Path) -> bool:
        """Write a short-lived plaintext config the agent reads at launch."""
        plain = self.plaintext_path()
        plain.touch(mode=0o600)
        plain.write_text(content, encoding="utf-8")
        try:
            started = self.ctx.supervisor.spawn(
                self.tool_id, binary, [*args_before, str(plain)],
            )
        except Exception:
            plain.unlink(missing_ok=True)
            raise
        self.ctx.deferred.schedule(
            f"{self.tool_id}:plaintext",
            self.ctx.timing.plaintext_ttl,
            lambda: plain.unlink(missing_ok=True),
        )
        return started


class TunnelController(ToolController):
    """Reverse tunnel client (fixed token or auto quick-tunnel)."""

    def required_fields(self, cfg: TunnelConfig) -> list[str]:
        return ["token"] if cfg.mode == "fixed" else ["local_port"]

    def _launch(self, cfg: TunnelConfig, binary: Path) -> bool:
        logger.info("[%s] tunnel target port: %s", self.tool_id, cfg.local_port)
        env: dict[str, str] = {}
        if cfg.mode == "fixed":
            env["TUNNEL_TOKEN"] = self._write_runtime_config(cfg.token)
        return self.ctx.supervisor.spawn(
            self.tool_id, binary, render.tunnel_args(cfg), env, self.on_output,
        )

    def on_output(self, line: str) -> None:
        """Record the public hostname the first time it is announced."""
        host = render.match_tunnel_host(line)
        if host and self.ctx.config.set_discovered(self.tool_id, "tunnel_url", host):
            logger.info("[%s] tunnel hostname: %s", self.tool_id, host)


class MonitoringAgentController(ToolController):
    """Shared behavior of the telemetry agents."""

    def required_fields(self, cfg: Any) -> list[str]:
        return ["server", "key"]


class NezhaController(MonitoringAgentController):
    def channel(self) -> str:
        return "v0" if self.cfg.version == "v0" else DEFAULT_CHANNEL

    def client_id(self) -> str:
        """Stable client identifier, generated once and persisted."""
        cfg = self.cfg
        if not cfg.uuid:
            self.ctx.config.set_discovered(self.tool_id, "uuid", str(uuid.uuid4()))
            logger.info("[%s] generated client id", self.tool_id)
        return self.cfg.uuid

    def _launch(self, cfg: NezhaConfig, binary: Path) -> bool:
        if cfg.version == "v0":
            return self.ctx.supervisor.spawn(self.tool_id, binary, render.nezha_v0_args(cfg))

        self.client_id()
        content = self._write_runtime_config(render.render_nezha_v1(self.cfg))
        return self._spawn_with_plaintext(["-c"], content, binary)


class KomariController(MonitoringAgentController):
    def _launch(self, cfg: KomariConfig, binary: Path) -> bool:
        content = self._write_runtime_config(render.render_komari(cfg))
        return self._spawn_with_plaintext(["--config"], content, binary)


CONTROLLER_TYPES: dict[ToolId, type[ToolController]] = {
    ToolId.CLOUDFLARED: TunnelController,
    ToolId.NEZHA: NezhaController,
    ToolId.KOMARI: KomariController,
}
