"""
Tests for agentbox.core.services.tool_install.execution.render.
"""

from __future__ import annotations

import json

import yaml

from agentbox.core.models.config import KomariConfig, NezhaConfig, TunnelConfig
from agentbox.core.services.tool_install.execution import render


class TestTunnel:
    def test_fixed_mode_args(self) -> None:
        assert render.tunnel_args(TunnelConfig(mode="fixed", token="t")) == [
            "tunnel", "--no-autoupdate", "run",
        ]

    def test_auto_mode_args(self) -> None:
        cfg = TunnelConfig(mode="auto", protocol="https", local_port=8443)
        assert render.tunnel_args(cfg) == [
            "tunnel", "--no-autoupdate", "--url", "https://localhost:8443",
        ]

    def test_match_host(self) -> None:
        line = "2024-01-01 INF |  https://brave-lion-42.trycloudflare.com  |"
        assert render.match_tunnel_host(line) == "brave-lion-42.trycloudflare.com"
        assert render.match_tunnel_host("INF Registered tunnel connection") is None


class TestNezha:
    def test_server_address(self) -> None:
        assert render.nezha_server_address("https://dash.example.com/") == ("dash.example.com:443", True)
        assert render.nezha_server_address("http://dash.example.com") == ("dash.example.com:80", False)
        assert render.nezha_server_address("dash.example.com:8008") == ("dash.example.com:8008", True)

    def test_v0_args(self) -> None:
        cfg = NezhaConfig(version="v0", server="dash:5555", key="k", tls=False)
        assert render.nezha_v0_args(cfg) == ["-s", "dash:5555", "-p", "k"]
        cfg.tls = True
        assert render.nezha_v0_args(cfg)[-1] == "--tls"

    def test_v1_yaml(self) -> None:
        cfg = NezhaConfig(
            server="http://dash.example.com:8008", key="secret", uuid="u-1",
            gpu=True, use_ipv6=True, disable_command_execute=True,
        )
        data = yaml.safe_load(render.render_nezha_v1(cfg))
        assert data["server"] == "dash.example.com:8008"
        assert data["tls"] is False
        assert data["client_secret"] == "secret"
        assert data["uuid"] == "u-1"
        assert data["gpu"] is True
        assert data["use_ipv6_country_code"] is True
        assert data["disable_command_execute"] is True
        assert data["disable_auto_update"] is True


class TestKomari:
    def test_json(self) -> None:
        cfg = KomariConfig(server="https://mon.example", key="tok", insecure=True)
        assert json.loads(render.render_komari(cfg)) == {
            "endpoint": "https://mon.example",
            "token": "tok",
            "ignore_unsafe_cert": True,
            "gpu": False,
            "disable_auto_update": True,
        }
