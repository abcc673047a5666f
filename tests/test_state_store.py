"""
Tests for agentbox.core.persistence.state_store — blob obfuscation.

Covers:
  - encode/decode inverse, including non-ASCII text
  - decode never raises on garbage, truncated or tampered blobs
  - atomic write leaves no temp files behind
  - read_encrypted on missing / corrupt files
"""

from __future__ import annotations

import base64
import json
from pathlib import Path

from agentbox.core.persistence.state_store import (
    DecodeResult,
    decode,
    encode,
    read_encrypted,
    write_encrypted,
)


class TestEncodeDecode:
    def test_inverse(self) -> None:
        for text in ["", "a", '{"tools": {"nezha": {"key": "s3cr3t"}}}', "héllo wörld ✓"]:
            result = decode(encode(text))
            assert result.ok
            assert result.text == text

    def test_output_is_ascii_and_not_plaintext(self) -> None:
        blob = encode("token-value")
        blob.encode("ascii")
        assert "token-value" not in blob

    def test_accepts_bytes(self) -> None:
        assert decode(encode("x").encode("ascii")).text == "x"

    def test_garbage_is_failure_not_exception(self) -> None:
        for junk in ["not base64!!", "@@@", "abc", b"\xff\xfe"]:
            result = decode(junk)
            assert isinstance(result, DecodeResult)
            assert not result.ok
            assert result.error

    def test_truncated_blob_is_failure(self) -> None:
        blob = encode('{"token": "abcdefghijk"}')
        for cut in range(0, len(blob), 4):
            result = decode(blob[:cut])
            assert not result.ok, cut
            assert result.text == ""

    def test_tampered_blob_is_failure(self) -> None:
        raw = bytearray(base64.b64decode(encode("tunnel-token")))
        raw[-1] ^= 0x01
        result = decode(base64.b64encode(bytes(raw)).decode("ascii"))
        assert not result.ok
        assert "checksum" in result.error

    def test_plain_base64_is_not_a_blob(self) -> None:
        assert not decode(base64.b64encode(b"hello world!").decode("ascii")).ok

    def test_result_truthiness(self) -> None:
        assert decode(encode("x"))
        assert not decode("%%%")


class TestFileHelpers:
    def test_write_then_read(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.dat"
        write_encrypted(path, "plain text")
        assert "plain text" not in path.read_text()
        assert read_encrypted(path) == "plain text"

    def test_dict_is_serialized_as_json(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.dat"
        write_encrypted(path, {"a": 1, "b": [True, None]})
        assert json.loads(read_encrypted(path)) == {"a": 1, "b": [True, None]}

    def test_creates_parent_and_leaves_no_temp(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "blob.dat"
        write_encrypted(path, "x")
        write_encrypted(path, "y")
        assert read_encrypted(path) == "y"
        assert [p.name for p in path.parent.iterdir()] == ["blob.dat"]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_encrypted(tmp_path / "nope") is None

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.dat"
        path.write_text("this is not a blob")
        assert read_encrypted(path) is None
