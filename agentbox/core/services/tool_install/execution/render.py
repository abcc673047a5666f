"""
L4 Execution — Agent config rendering.

Translates the tool-neutral configuration records into the exact
schema each agent binary expects.  Pure functions: no I/O.
"""

from __future__ import annotations

import json
import re

import yaml

from agentbox.core.models.config import KomariConfig, NezhaConfig, TunnelConfig

# Quick-tunnel hostnames announced by the tunnel client on its log output.
TUNNEL_HOST_RE = re.compile(r"https://([a-z0-9-]+\.trycloudflare\.com)")

_TUNNEL_BASE_ARGS = ["tunnel", "--no-autoupdate"]


# ── Tunnel ───────────────────────────────────────────────────────


def tunnel_args(cfg: TunnelConfig) -> list[str]:
    """Argument vector for either tunnel mode."""
    if cfg.mode == "fixed":
        return [*_TUNNEL_BASE_ARGS, "run"]
    return [*_TUNNEL_BASE_ARGS, "--url", f"{cfg.protocol or 'http'}://localhost:{cfg.local_port}"]


def match_tunnel_host(line: str) -> str | None:
    """Return the quick-tunnel hostname in ``line``, if any."""
    m = TUNNEL_HOST_RE.search(line)
    return m.group(1) if m else None


# ── Nezha ────────────────────────────────────────────────────────


def nezha_server_address(server: str) -> tuple[str, bool]:
    """Normalize the dashboard address to ``host:port`` plus a TLS flag.

    ``https://`` implies TLS, ``http://`` implies plaintext; a bare host
    is TLS.  A missing port defaults to 443 (TLS) or 80.
    """
    addr = server.strip()
    use_tls = True
    if addr.startswith("https://"):
        addr = addr[len("https://"):]
    elif addr.startswith("http://"):
        addr = addr[len("http://"):]
        use_tls = False
    addr = addr.rstrip("/")
    if ":" not in addr:
        addr += ":443" if use_tls else ":80"
    return addr, use_tls


def nezha_v0_args(cfg: NezhaConfig) -> list[str]:
    args = ["-s", cfg.server, "-p", cfg.key]
    if cfg.tls:
        args.append("--tls")
    return args


def nezha_v1_settings(cfg: NezhaConfig) -> dict:
    """Native v1 agent settings (written as YAML)."""
    server, use_tls = nezha_server_address(cfg.server)
    return {
        "client_secret": cfg.key,
        "debug": True,
        "disable_auto_update": cfg.disable_auto_update,
        "disable_command_execute": cfg.disable_command_execute,
        "disable_force_update": True,
        "disable_nat": False,
        "disable_send_query": False,
        "gpu": cfg.gpu,
        "insecure_tls": cfg.insecure,
        "ip_report_period": 1800,
        "report_delay": 1,
        "self_update_period": 0,
        "server": server,
        "skip_connection_count": False,
        "skip_procs_count": False,
        "temperature": cfg.temperature,
        "tls": use_tls,
        "use_gitee_to_upgrade": False,
        "use_ipv6_country_code": cfg.use_ipv6,
        "uuid": cfg.uuid,
    }


def render_nezha_v1(cfg: NezhaConfig) -> str:
    return yaml.safe_dump(nezha_v1_settings(cfg), sort_keys=False, default_flow_style=False)


# ── Komari ───────────────────────────────────────────────────────


def komari_settings(cfg: KomariConfig) -> dict:
    return {
        "endpoint": cfg.server,
        "token": cfg.key,
        "ignore_unsafe_cert": cfg.insecure,
        "gpu": cfg.gpu,
        "disable_auto_update": cfg.disable_auto_update,
    }


def render_komari(cfg: KomariConfig) -> str:
    return json.dumps(komari_settings(cfg), indent=2)
