"""
Tests for persistence — the state store and the behavioral sidecar.
"""

import json
from pathlib import Path

import pytest

from agent_rig.core.errors import PersistenceFailure
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.sidecar import (
    InstallSidecar,
    PointerEntry,
    load_sidecar,
    save_sidecar,
    sidecar_path,
)
from agent_rig.core.persistence.state_store import StateStore


def _record(name: str = "demo", version: str = "1.0.0", **kwargs) -> RigRecord:
    return RigRecord(name=name, version=version, **kwargs)


class TestStateStoreReads:
    def test_missing_file_is_empty(self, tmp_path: Path):
        assert StateStore(tmp_path / "state.json").load() == {}

    def test_corrupt_file_is_empty(self, tmp_path: Path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert StateStore(path).load() == {}

    def test_wrong_shape_is_empty(self, tmp_path: Path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"rigs": {"x": {"version": 3}}}))
        assert StateStore(path).load() == {}

    def test_get_unknown(self, tmp_path: Path):
        assert StateStore(tmp_path / "state.json").get("nope") is None


class TestStateStoreWrites:
    def test_put_then_get(self, tmp_path: Path):
        store = StateStore(tmp_path / "nested" / "state.json")
        store.put(_record(components=["a@m"]))
        got = store.get("demo")
        assert got is not None
        assert got.components == ["a@m"]

    def test_put_preserves_other_rigs(self, tmp_path: Path):
        store = StateStore(tmp_path / "state.json")
        store.put(_record("one"))
        store.put(_record("two"))
        store.put(_record("one", "2.0.0"))
        rigs = store.load()
        assert set(rigs) == {"one", "two"}
        assert rigs["one"].version == "2.0.0"

    def test_remove(self, tmp_path: Path):
        store = StateStore(tmp_path / "state.json")
        store.put(_record("one"))
        store.put(_record("two"))
        store.remove("one")
        assert set(store.load()) == {"two"}

    def test_remove_unknown_is_quiet(self, tmp_path: Path):
        store = StateStore(tmp_path / "state.json")
        store.remove("ghost")
        assert store.load() == {}

    def test_document_shape(self, tmp_path: Path):
        path = tmp_path / "state.json"
        StateStore(path).put(_record(components=["a@m"]))
        data = json.loads(path.read_text())
        assert list(data) == ["rigs"]
        assert data["rigs"]["demo"]["plugins"] == ["a@m"]

    def test_no_temp_files_left(self, tmp_path: Path):
        store = StateStore(tmp_path / "state.json")
        store.put(_record())
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_overwrites_corrupt_file(self, tmp_path: Path):
        path = tmp_path / "state.json"
        path.write_text("garbage")
        StateStore(path).put(_record())
        assert StateStore(path).get("demo") is not None

    def test_unwritable_location_raises(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = StateStore(blocker / "state.json")
        with pytest.raises(PersistenceFailure) as exc:
            store.put(_record())
        assert exc.value.path == blocker / "state.json"


class TestSidecar:
    def test_missing_returns_empty(self, tmp_path: Path):
        sidecar = load_sidecar(tmp_path, "demo")
        assert sidecar.rig == "demo"
        assert sidecar.files == []

    def test_roundtrip(self, tmp_path: Path):
        sidecar = InstallSidecar(
            rig="demo",
            version="1.0.0",
            files=[".claude/rigs/demo/CLAUDE.md"],
            pointers=[PointerEntry(file="CLAUDE.md", line="<!-- t --> read")],
            file_hashes={"/p/CLAUDE.md": "abc"},
        )
        save_sidecar(tmp_path / "rig", sidecar)
        loaded = load_sidecar(tmp_path / "rig", "demo")
        assert loaded.file_hashes == {"/p/CLAUDE.md": "abc"}
        assert loaded.pointers[0].file == "CLAUDE.md"
        assert "fileHashes" in json.loads(sidecar_path(tmp_path / "rig").read_text())

    def test_unreadable_returns_empty(self, tmp_path: Path):
        sidecar_path(tmp_path).write_text("{")
        assert load_sidecar(tmp_path, "demo").files == []
