"""
Error taxonomy for the tool orchestration engine.

Lifecycle operations (install / start / restart) raise these to the
caller.  Decoding failures are NOT exceptions: see
``agentbox.core.persistence.state_store.DecodeResult``.
"""

from __future__ import annotations


class AgentboxError(Exception):
    """Base class for every error raised by agentbox."""


class UnsupportedPlatform(AgentboxError):
    """The running OS/architecture cannot run the agent binaries."""


class MissingConfiguration(AgentboxError):
    """A required configuration field is empty."""

    def __init__(self, tool: str, fields: list[str]):
        self.tool = tool
        self.fields = fields
        super().__init__(f"[{tool}] missing required configuration: {', '.join(fields)}")


class FetchError(AgentboxError):
    """Download failed (network error, non-2xx status, redirect loop)."""


class ArchiveError(AgentboxError):
    """Archive could not be unpacked."""


class MemberNotFound(ArchiveError):
    """The requested member is not present (or not extractable) in a ZIP."""


class CorruptArchive(ArchiveError):
    """Archive bytes could not be decoded."""


class ProcessSpawnError(AgentboxError):
    """The agent binary could not be launched."""
