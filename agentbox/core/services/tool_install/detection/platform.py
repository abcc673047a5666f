"""
L3 Detection — OS and CPU architecture.

All managed agent binaries are Linux-only release assets named with
Go-style architecture suffixes (``amd64``, ``arm64``, ``arm``).
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass

from agentbox.core.errors import UnsupportedPlatform

logger = logging.getLogger(__name__)

# ``platform.machine()`` → vendor asset suffix.
_ARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",      # Windows / BSD spelling
    "aarch64": "arm64",
    "arm64": "arm64",      # macOS spelling
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
}

DEFAULT_ARCH = "amd64"


@dataclass(frozen=True)
class PlatformInfo:
    arch: str
    system: str

    @property
    def is_linux(self) -> bool:
        return self.system == "linux"


def normalize_arch(machine: str) -> str:
    """Map a machine name to the vendor naming convention.

    Unknown machines fall back to ``amd64``.
    """
    arch = _ARCH_MAP.get(machine.lower())
    if arch is None:
        logger.warning("Unknown CPU architecture %r — assuming %s", machine, DEFAULT_ARCH)
        return DEFAULT_ARCH
    return arch


def detect_platform() -> PlatformInfo:
    """Probe the running interpreter's OS and architecture."""
    return PlatformInfo(
        arch=normalize_arch(platform.machine()),
        system=platform.system().lower(),
    )


def require_linux() -> PlatformInfo:
    """Return the platform info, or raise on anything but Linux.

    Raises:
        UnsupportedPlatform: If the host OS is not Linux.
    """
    info = detect_platform()
    if not info.is_linux:
        raise UnsupportedPlatform(
            f"Agent binaries are Linux-only (running on {info.system or 'unknown'})"
        )
    return info
