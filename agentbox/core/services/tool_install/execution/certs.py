"""
L4 Execution — Self-signed TLS certificate.

Generates ``cert.pem`` / ``key.pem`` in the data directory on demand.
Tries, in order:

  1. ``openssl req -x509 …``
  2. ``wsl openssl req -x509 …`` (Windows hosts with a WSL distro)
  3. in-process generation with ``cryptography``

An existing pair is never regenerated.
"""

from __future__ import annotations

import datetime
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"
COMMON_NAME = "agentbox"
VALID_DAYS = 3650


def cert_paths(data_dir: Path) -> tuple[Path, Path]:
    return data_dir / CERT_FILE, data_dir / KEY_FILE


def ensure_cert(data_dir: Path) -> tuple[Path, Path]:
    """Make sure a certificate/key pair exists.  Returns their paths."""
    cert, key = cert_paths(data_dir)
    if cert.is_file() and key.is_file():
        return cert, key

    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Generating self-signed certificate…")

    cmd = [
        "openssl", "req", "-x509", "-newkey", "rsa:2048",
        "-keyout", str(key), "-out", str(cert),
        "-sha256", "-days", str(VALID_DAYS), "-nodes",
        "-subj", f"/CN={COMMON_NAME}",
    ]
    for attempt in (cmd, ["wsl", *cmd]):
        if _run(attempt) and cert.is_file() and key.is_file():
            logger.info("Self-signed certificate generated with %s", attempt[0])
            return cert, key

    _generate_in_process(cert, key)
    logger.info("Self-signed certificate generated in-process")
    return cert, key


def _run(cmd: list[str]) -> bool:
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, timeout=60)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("%s unavailable: %s", cmd[0], e)
        return False
    if r.returncode != 0:
        logger.debug("%s failed (exit %d): %s", cmd[0], r.returncode, r.stderr.strip()[-500:])
        return False
    return True


def _generate_in_process(cert_path: Path, key_path: Path) -> None:
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.x509.oid import NameOID

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, COMMON_NAME)])
    now = datetime.datetime.now(datetime.UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=VALID_DAYS))
        .sign(key, hashes.SHA256())
    )

    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    key_path.chmod(0o600)
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
