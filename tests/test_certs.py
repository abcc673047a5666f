"""
Tests for self-signed certificate generation.

``subprocess.run`` is patched so the tests never depend on a local
``openssl``; the in-process fallback is exercised instead.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest
from cryptography import x509

from agentbox.core.services.tool_install.execution import certs


@pytest.fixture
def no_openssl(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls


class TestEnsureCert:
    def test_falls_back_to_in_process(self, data_dir: Path, no_openssl: list[list[str]]) -> None:
        cert, key = certs.ensure_cert(data_dir)

        assert [c[0] for c in no_openssl] == ["openssl", "wsl"]
        assert no_openssl[1][1] == "openssl"
        parsed = x509.load_pem_x509_certificate(cert.read_bytes())
        cn = parsed.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)[0].value
        assert cn == certs.COMMON_NAME
        assert b"PRIVATE KEY" in key.read_bytes()
        assert key.stat().st_mode & 0o077 == 0

    def test_existing_pair_is_kept(self, data_dir: Path, no_openssl: list[list[str]]) -> None:
        cert, key = certs.cert_paths(data_dir)
        cert.write_text("existing cert")
        key.write_text("existing key")

        assert certs.ensure_cert(data_dir) == (cert, key)
        assert cert.read_text() == "existing cert"
        assert no_openssl == []

    def test_failed_command_tries_next(self, data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def failing_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, "", "boom")

        monkeypatch.setattr(subprocess, "run", failing_run)
        cert, key = certs.ensure_cert(data_dir)
        assert cert.is_file() and key.is_file()
