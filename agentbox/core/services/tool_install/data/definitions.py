"""
L0 Data — Static tool definitions.

Pure data.  One ``ToolDefinition`` per supported agent: where its
binary comes from (per release channel, ``{arch}`` substituted at
install time), how the download is packed, and which extension its
rendered config file carries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

from agentbox.core.models.config import ToolId


class ArchiveKind(StrEnum):
    """How a downloaded artifact is packed."""

    RAW = "raw"
    GZIP = "gzip"
    ZIP = "zip"


DEFAULT_CHANNEL = "default"


@dataclass(frozen=True)
class BinarySource:
    """Where one release channel of a tool is downloaded from."""

    url_template: str
    archive: ArchiveKind = ArchiveKind.RAW
    member: str = ""  # ZIP member holding the binary

    def url_for(self, arch: str) -> str:
        return self.url_template.format(arch=arch)


@dataclass(frozen=True)
class ToolDefinition:
    """Immutable description of one managed tool."""

    tool_id: ToolId
    binary: str  # logical artifact name of the binary
    sources: Mapping[str, BinarySource]
    config_ext: str = ""
    plaintext_ext: str = ""  # non-empty: the agent reads a plaintext companion

    def source(self, channel: str = DEFAULT_CHANNEL) -> BinarySource:
        if channel in self.sources:
            return self.sources[channel]
        return self.sources[DEFAULT_CHANNEL]

    @property
    def config_name(self) -> str:
        return self.tool_id.value

    @property
    def plaintext_name(self) -> str:
        return f"{self.tool_id.value}-plain"

    @property
    def install_name(self) -> str:
        return f"{self.tool_id.value}-install"

    def artifact_keys(self) -> list[tuple[str, str]]:
        """Every ``(type, logical name)`` the tool may own in the registry."""
        keys = [("bin", self.binary), ("cfg", self.config_name)]
        if self.plaintext_ext:
            keys.append(("cfg", self.plaintext_name))
        for src in self.sources.values():
            if src.archive is not ArchiveKind.RAW:
                keys.append((src.archive.value, self.install_name))
        return keys


_GH = "https://github.com"

TOOL_DEFINITIONS: Mapping[ToolId, ToolDefinition] = MappingProxyType({
    ToolId.CLOUDFLARED: ToolDefinition(
        tool_id=ToolId.CLOUDFLARED,
        binary="cloudflared",
        sources={
            DEFAULT_CHANNEL: BinarySource(
                f"{_GH}/cloudflare/cloudflared/releases/latest/download/cloudflared-linux-{{arch}}",
            ),
        },
    ),
    ToolId.NEZHA: ToolDefinition(
        tool_id=ToolId.NEZHA,
        binary="nezha-agent",
        sources={
            "v0": BinarySource(
                f"{_GH}/naiba/nezha/releases/latest/download/nezha-agent_linux_{{arch}}.gz",
                archive=ArchiveKind.GZIP,
            ),
            DEFAULT_CHANNEL: BinarySource(
                f"{_GH}/nezhahq/agent/releases/latest/download/nezha-agent_linux_{{arch}}.zip",
                archive=ArchiveKind.ZIP,
                member="nezha-agent",
            ),
        },
        config_ext=".yml",
        plaintext_ext=".yml",
    ),
    ToolId.KOMARI: ToolDefinition(
        tool_id=ToolId.KOMARI,
        binary="komari-agent",
        sources={
            DEFAULT_CHANNEL: BinarySource(
                f"{_GH}/komari-monitor/komari-agent/releases/latest/download/komari-agent-linux-{{arch}}",
            ),
        },
        config_ext=".json",
        plaintext_ext=".json",
    ),
})
