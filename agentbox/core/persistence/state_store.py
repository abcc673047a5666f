"""
Encrypted state store — at-rest obfuscation for config blobs.

Every file agentbox persists (the tool configuration, the artifact
name registry, rendered runtime configs) goes through ``encode`` /
``decode``:

    plaintext ──XOR(repeating key)──▶ text ──UTF-8──▶ bytes ──base64──▶ blob

This is an obfuscation layer, NOT a security boundary.  The key is a
constant compiled into the program; anyone with local read access and
a copy of agentbox can recover the plaintext.  Confidentiality against
a determined local attacker is explicitly out of scope.

The base64 payload is framed: a 4-byte magic, the plaintext length
and a CRC32 of the plaintext precede the XOR'd bytes.  ``decode`` never
raises; a malformed, truncated or tampered blob returns a
``DecodeResult`` with ``ok=False``.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import struct
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_XOR_KEY = "agentbox-toolbox-xor-key-2024"

# magic, plaintext length (code points), CRC32 of the plaintext's UTF-8
_MAGIC = b"ABX1"
_HEADER = struct.Struct(">4sII")


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of ``decode``: either ``ok`` with ``text`` or a failure."""

    ok: bool
    text: str = ""
    error: str = ""

    def __bool__(self) -> bool:
        return self.ok


def _xor(text: str) -> str:
    key = _XOR_KEY
    klen = len(key)
    return "".join(chr(ord(ch) ^ ord(key[i % klen])) for i, ch in enumerate(text))


def _checksum(text: str) -> int:
    return zlib.crc32(text.encode("utf-8", "surrogatepass"))


def encode(plaintext: str) -> str:
    """Obfuscate ``plaintext`` into an ASCII-safe blob."""
    body = _xor(plaintext).encode("utf-8", "surrogatepass")
    header = _HEADER.pack(_MAGIC, len(plaintext), _checksum(plaintext))
    return base64.b64encode(header + body).decode("ascii")


def decode(opaque: str | bytes) -> DecodeResult:
    """Reverse ``encode``.  Never raises."""
    try:
        if isinstance(opaque, bytes):
            opaque = opaque.decode("ascii")
        raw = base64.b64decode(opaque.strip(), validate=True)
        if len(raw) < _HEADER.size:
            return DecodeResult(ok=False, error="blob shorter than its header")
        magic, length, crc = _HEADER.unpack_from(raw)
        if magic != _MAGIC:
            return DecodeResult(ok=False, error="not an agentbox blob")
        text = _xor(raw[_HEADER.size:].decode("utf-8", "surrogatepass"))
    except (binascii.Error, ValueError, UnicodeError, struct.error) as e:
        return DecodeResult(ok=False, error=f"{type(e).__name__}: {e}")
    except Exception as e:
        return DecodeResult(ok=False, error=f"unexpected decode error: {e}")

    if len(text) != length:
        return DecodeResult(ok=False, error=f"truncated blob ({len(text)} of {length} chars)")
    if _checksum(text) != crc:
        return DecodeResult(ok=False, error="checksum mismatch")
    return DecodeResult(ok=True, text=text)


# ── File helpers ─────────────────────────────────────────────────


def write_encrypted(path: Path, content: str | dict[str, Any] | list[Any]) -> None:
    """Encode ``content`` and write it to ``path`` atomically.

    Dicts and lists are serialized as JSON first.  Uses
    write-to-temp-then-rename so a crash never leaves a half-written
    blob behind.
    """
    if not isinstance(content, str):
        content = json.dumps(content, indent=2, ensure_ascii=False)

    path.parent.mkdir(parents=True, exist_ok=True)
    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".blob_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="ascii") as f:
            f.write(encode(content))
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Encrypted blob written to %s", path)


def read_encrypted(path: Path) -> str | None:
    """Read and decode a blob.  Missing or undecodable files give None."""
    try:
        blob = path.read_text(encoding="ascii")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeError) as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None

    result = decode(blob)
    if not result.ok:
        logger.warning("Cannot decode %s: %s", path, result.error)
        return None
    return result.text
