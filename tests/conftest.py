"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import stat
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return an empty agentbox data directory."""
    d = tmp_path / "data"
    d.mkdir()
    return d


def _write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def write_script():
    """Return a helper that writes an executable ``/bin/sh`` script."""
    return _write_script


# ── Local HTTP server ───────────────────────────────────────────


class _Handler(BaseHTTPRequestHandler):
    """Serves ``server.routes`` plus redirect chains.

    ``/r/<n>/<path>`` answers 302 with a relative Location pointing at
    ``/r/<n-1>/<path>``, and finally at ``/<path>``.
    """

    def do_GET(self) -> None:  # noqa: N802
        self.server.hits.append(self.path)

        if self.path.startswith("/r/"):
            _, _, hops, rest = self.path.split("/", 3)
            n = int(hops)
            target = f"/r/{n - 1}/{rest}" if n > 1 else f"/{rest}"
            self.send_response(302)
            self.send_header("Location", target)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        body = self.server.routes.get(self.path)
        if body is None:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args) -> None:  # noqa: A002
        pass


@pytest.fixture
def http_server(monkeypatch: pytest.MonkeyPatch):
    """A threaded HTTP server on 127.0.0.1 with mutable ``routes``."""
    for var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("no_proxy", "*")

    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.routes = {}
    server.hits = []
    server.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
