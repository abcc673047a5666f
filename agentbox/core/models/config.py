"""
Tool configuration models — the tree persisted in ``config.json``.

One typed record per supported tool, keyed by the closed ``ToolId``
enumeration.  Field names are snake_case in Python and camelCase on
disk (``localPort``, ``autoStart``, ``useIPv6``) so the encrypted blob
keeps the layout the config utility reads and writes.

Defaults here ARE the factory defaults: ``delete`` resets a tool by
instantiating its model with no arguments.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ToolId(StrEnum):
    """Logical ids of the supported tools."""

    CLOUDFLARED = "cloudflared"
    NEZHA = "nezha"
    KOMARI = "komari"


class _ToolModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    enabled: bool = False
    auto_start: bool = False


class TunnelConfig(_ToolModel):
    """Reverse tunnel client.

    ``fixed`` mode runs a pre-provisioned tunnel from ``token``;
    ``auto`` mode opens a quick tunnel to ``localhost:local_port`` and
    records the public hostname it gets in ``tunnel_url``.
    """

    mode: Literal["fixed", "auto"] = "fixed"
    token: str = ""
    protocol: Literal["http", "https"] = "http"
    local_port: int = Field(default=8001, ge=0, le=65535)
    tunnel_url: str = ""


class NezhaConfig(_ToolModel):
    """Monitoring agent with two release channels (v0 gzip, v1 zip)."""

    version: Literal["v0", "v1"] = "v1"
    server: str = ""
    key: str = ""
    tls: bool = True
    insecure: bool = False
    gpu: bool = False
    temperature: bool = False
    use_ipv6: bool = Field(default=False, alias="useIPv6")
    disable_auto_update: bool = True
    disable_command_execute: bool = False
    uuid: str = ""


class KomariConfig(_ToolModel):
    """Monitoring agent configured through a JSON file."""

    server: str = ""
    key: str = ""
    insecure: bool = False
    gpu: bool = False
    disable_auto_update: bool = True


ToolConfig = TunnelConfig | NezhaConfig | KomariConfig

CONFIG_MODELS: dict[ToolId, type[_ToolModel]] = {
    ToolId.CLOUDFLARED: TunnelConfig,
    ToolId.NEZHA: NezhaConfig,
    ToolId.KOMARI: KomariConfig,
}


class ToolsSection(BaseModel):
    """The ``tools`` mapping.  Unknown tool entries are carried through."""

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    cloudflared: TunnelConfig = Field(default_factory=TunnelConfig)
    nezha: NezhaConfig = Field(default_factory=NezhaConfig)
    komari: KomariConfig = Field(default_factory=KomariConfig)


class AgentboxConfig(BaseModel):
    """Root of the persisted configuration blob."""

    model_config = ConfigDict(extra="allow")

    tools: ToolsSection = Field(default_factory=ToolsSection)

    def tool(self, tool_id: ToolId) -> ToolConfig:
        return getattr(self.tools, ToolId(tool_id).value)

    def replace_tool(self, tool_id: ToolId, value: ToolConfig) -> None:
        setattr(self.tools, ToolId(tool_id).value, value)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
