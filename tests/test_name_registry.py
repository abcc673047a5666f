"""
Tests for agentbox.core.persistence.name_registry — randomized artifact names.
"""

from __future__ import annotations

import re
import threading
from pathlib import Path

import pytest

from agentbox.core.persistence.name_registry import NAME_LENGTH, NameRegistry, generate_name
from agentbox.core.persistence.state_store import read_encrypted, write_encrypted

_NAME_RE = re.compile(rf"^[a-z0-9]{{{NAME_LENGTH}}}$")


@pytest.fixture
def registry(tmp_path: Path) -> NameRegistry:
    return NameRegistry(tmp_path / "filemap.dat")


class TestGenerateName:
    def test_shape(self) -> None:
        for _ in range(50):
            assert _NAME_RE.match(generate_name())


class TestResolve:
    def test_stable(self, registry: NameRegistry) -> None:
        first = registry.resolve("bin", "cloudflared")
        assert _NAME_RE.match(first)
        assert registry.resolve("bin", "cloudflared") == first

    def test_type_is_part_of_key(self, registry: NameRegistry) -> None:
        assert registry.resolve("bin", "nezha") != registry.resolve("cfg", "nezha")

    def test_persisted_before_return(self, registry: NameRegistry) -> None:
        name = registry.resolve("bin", "komari-agent")
        reloaded = NameRegistry(registry.path)
        assert reloaded.lookup("bin", "komari-agent") == name

    def test_file_is_encrypted_map(self, registry: NameRegistry) -> None:
        name = registry.resolve("cfg", "komari")
        assert "komari" not in registry.path.read_text()
        assert read_encrypted(registry.path) is not None
        assert registry.entries() == {"cfg:komari": name}

    def test_concurrent_resolution_yields_one_name(self, registry: NameRegistry) -> None:
        results: list[str] = []

        def worker() -> None:
            results.append(registry.resolve("bin", "shared"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(results)) == 1


class TestLookupAndClear:
    def test_lookup_does_not_create(self, registry: NameRegistry) -> None:
        assert registry.lookup("bin", "cloudflared") is None
        assert not registry.path.exists()

    def test_clear_then_resolve_gives_new_persisted_name(self, registry: NameRegistry) -> None:
        old = registry.resolve("bin", "cloudflared")
        assert registry.clear("bin", "cloudflared") is True
        assert NameRegistry(registry.path).lookup("bin", "cloudflared") is None

        new = registry.resolve("bin", "cloudflared")
        assert new != old
        assert NameRegistry(registry.path).lookup("bin", "cloudflared") == new

    def test_clear_unknown(self, registry: NameRegistry) -> None:
        assert registry.clear("bin", "ghost") is False


class TestCorruptFile:
    def test_garbage_loads_empty(self, registry: NameRegistry) -> None:
        registry.path.write_text("garbage")
        assert registry.entries() == {}
        registry.resolve("bin", "x")
        assert NameRegistry(registry.path).lookup("bin", "x")

    def test_non_dict_loads_empty(self, registry: NameRegistry) -> None:
        write_encrypted(registry.path, ["not", "a", "map"])
        assert registry.entries() == {}
