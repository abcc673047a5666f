"""
L4 Execution — Archive extraction.

Two formats are needed by the managed agents:

  gzip  A single compressed file.  Streamed through ``gzip``.
  zip   A release archive holding the binary.  Parsed by hand from the
        local file headers; the central directory is never consulted,
        so archives with a damaged or missing tail still extract.

Local file header layout (all little-endian)::

    offset  size  field
         0     4  signature  0x04034b50 ("PK\\x03\\x04")
         4     2  version needed
         6     2  general purpose flags   (bit 3: sizes in data descriptor)
         8     2  compression method      (0 stored, 8 deflate)
        10     4  mod time / date
        14     4  crc-32
        18     4  compressed size
        22     4  uncompressed size
        26     2  file name length
        28     2  extra field length
        30     …  file name, extra field, data

Both extractors write to a temp file beside the destination and rename
it into place, and delete the source archive only after a successful
extraction.  A failed extraction leaves an existing destination alone.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import struct
import tempfile
import zlib
from pathlib import Path

from agentbox.core.errors import CorruptArchive, MemberNotFound

logger = logging.getLogger(__name__)

_LOCAL_HEADER_SIG = b"PK\x03\x04"
_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")  # 30 bytes

METHOD_STORED = 0
METHOD_DEFLATE = 8
_FLAG_DATA_DESCRIPTOR = 0x08


def unpack_gzip(source: Path, dest: Path) -> Path:
    """Inflate a ``.gz`` file into ``dest`` and remove ``source``.

    Raises:
        CorruptArchive: If the stream is not valid gzip.  ``dest`` is
            left as it was and ``source`` kept.
    """
    tmp = _temp_beside(dest)
    try:
        with gzip.open(source, "rb") as src, open(tmp, "wb") as out:
            shutil.copyfileobj(src, out)
        tmp.replace(dest)
    except (gzip.BadGzipFile, EOFError, zlib.error) as e:
        tmp.unlink(missing_ok=True)
        raise CorruptArchive(f"Invalid gzip stream in {source.name}: {e}") from e
    except OSError:
        tmp.unlink(missing_ok=True)
        raise

    source.unlink(missing_ok=True)
    logger.debug("Unpacked %s → %s", source.name, dest.name)
    return dest


def unpack_zip_member(archive: Path, member: str, dest: Path) -> Path:
    """Extract the first entry named ``member`` (or ``…/member``).

    Raises:
        MemberNotFound: No matching entry with a supported method.
        CorruptArchive: The archive is unreadable, or the matched
            entry's data is truncated or fails to inflate.
    """
    try:
        data = archive.read_bytes()
    except OSError as e:
        raise CorruptArchive(f"Cannot read {archive}: {e}") from e

    payload = _find_member(data, member, archive.name)

    tmp = _temp_beside(dest)
    try:
        tmp.write_bytes(payload)
        tmp.replace(dest)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    archive.unlink(missing_ok=True)
    logger.debug("Extracted %s from %s → %s", member, archive.name, dest.name)
    return dest


def _matches(name: str, member: str) -> bool:
    return name == member or name.endswith("/" + member)


def _find_member(data: bytes, member: str, label: str) -> bytes:
    size = len(data)
    offset = data.find(_LOCAL_HEADER_SIG)

    while offset != -1:
        header_end = offset + _LOCAL_HEADER.size
        if header_end > size:
            break

        (_sig, _ver, flags, method, _mtime, _mdate, _crc,
         comp_size, _raw_size, name_len, extra_len) = _LOCAL_HEADER.unpack_from(data, offset)

        data_start = header_end + name_len + extra_len
        streamed = bool(flags & _FLAG_DATA_DESCRIPTOR) and comp_size == 0
        if data_start > size or (not streamed and data_start + comp_size > size):
            # Unreadable header (false-positive signature or truncation):
            # slide one byte and rescan.
            offset = data.find(_LOCAL_HEADER_SIG, offset + 1)
            continue

        name = data[header_end:header_end + name_len].decode("utf-8", "replace")

        if _matches(name, member):
            if method == METHOD_STORED and not streamed:
                return data[data_start:data_start + comp_size]
            if method == METHOD_DEFLATE:
                return _inflate(data, data_start, comp_size, streamed, name, label)
            logger.warning(
                "Entry %s in %s uses unsupported compression method %d — skipping",
                name, label, method,
            )

        next_offset = data_start if streamed else data_start + comp_size
        offset = data.find(_LOCAL_HEADER_SIG, max(next_offset, offset + 1))

    raise MemberNotFound(f"'{member}' not found in {label}")


def _inflate(
    data: bytes, start: int, comp_size: int, streamed: bool, name: str, label: str,
) -> bytes:
    inflater = zlib.decompressobj(-zlib.MAX_WBITS)
    chunk = data[start:] if streamed else data[start:start + comp_size]
    try:
        out = inflater.decompress(chunk) + inflater.flush()
    except zlib.error as e:
        raise CorruptArchive(f"Cannot inflate {name} in {label}: {e}") from e
    if not inflater.eof:
        raise CorruptArchive(f"Truncated deflate stream for {name} in {label}")
    return out


def _temp_beside(dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dest.parent, prefix=".unpack_", suffix=".part")
    os.close(fd)
    return Path(tmp_path)
