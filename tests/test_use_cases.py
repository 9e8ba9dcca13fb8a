"""
Tests for use cases — the flows the CLI commands call.

A local rig directory and the mock adapter stand in for GitHub and the
agent CLIs.
"""

import json
from pathlib import Path

import pytest

from agent_rig.adapters.registry import AdapterRegistry
from agent_rig.core.engine.gate import Decision
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.state_store import StateStore
from agent_rig.core.use_cases.init import init_manifest
from agent_rig.core.use_cases.inspect import inspect_rig_async, validate_manifest
from agent_rig.core.use_cases.install import NO_PLATFORMS, install_rig, install_rig_async
from agent_rig.core.use_cases.status import get_status
from agent_rig.core.use_cases.uninstall import uninstall_rig_async
from agent_rig.core.use_cases.update import check_outdated_async, update_rig_async
from agent_rig.core.use_cases.upstream import check_upstream_async, scan_marketplace


@pytest.fixture
def registry(mock_adapter) -> AdapterRegistry:
    reg = AdapterRegistry()
    reg.set_mock_mode(True, mock_adapter)
    return reg


def _bump(rig_dir: Path, version: str, **changes) -> None:
    """Rewrite the rig's manifest with a new version."""
    path = rig_dir / "agent-rig.json"
    data = json.loads(path.read_text())
    data["version"] = version
    data.update(changes)
    path.write_text(json.dumps(data))


async def _installed(rig_dir, settings, registry):
    result = await install_rig_async(str(rig_dir), settings, registry=registry)
    assert result.error is None
    return result


# ── Install ──────────────────────────────────────────────────────


class TestInstallRig:
    @pytest.mark.asyncio
    async def test_install_records_rig(self, rig_dir, settings, registry):
        result = await install_rig_async(str(rig_dir), settings, registry=registry)

        assert result.error is None
        assert result.decision is Decision.PROCEED_FRESH
        assert result.report.status == "ok"
        record = StateStore(settings.state_path).get("demo")
        assert record.version == "1.0.0"
        assert record.source == str(rig_dir.resolve())
        assert [b.pointer_file for b in record.behavioral] == ["CLAUDE.md"]

    @pytest.mark.asyncio
    async def test_same_version_is_noop(self, rig_dir, settings, registry, mock_adapter):
        await _installed(rig_dir, settings, registry)
        mock_adapter.reset()

        result = await install_rig_async(str(rig_dir), settings, registry=registry)

        assert result.decision is Decision.NOOP_SAME_VERSION
        assert result.report is None
        assert result.existing.version == "1.0.0"
        assert mock_adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_newer_version_suggests_update(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)
        _bump(rig_dir, "1.1.0")

        result = await install_rig_async(str(rig_dir), settings, registry=registry)

        assert result.decision is Decision.SUGGEST_UPDATE
        assert StateStore(settings.state_path).get("demo").version == "1.0.0"

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, rig_dir, settings, registry, mock_adapter):
        result = await install_rig_async(str(rig_dir), settings, registry=registry, dry_run=True)

        assert result.dry_run
        assert result.plan is not None
        assert [c.id for c in result.plan.components] == ["core@market", "a@market", "b@market"]
        assert result.plan.behavioral_files == ["CLAUDE.md"]
        assert result.report is None
        assert mock_adapter.call_count == 0
        assert not settings.state_path.exists()

    @pytest.mark.asyncio
    async def test_declined_confirmation_aborts(self, rig_dir, settings, registry):
        seen = []

        def decline(plan):
            seen.append(plan.manifest.name)
            return False

        result = await install_rig_async(str(rig_dir), settings, registry=registry, confirm=decline)

        assert result.aborted
        assert seen == ["demo"]
        assert StateStore(settings.state_path).get("demo") is None

    @pytest.mark.asyncio
    async def test_minimal(self, rig_dir, settings, registry):
        await install_rig_async(str(rig_dir), settings, registry=registry, minimal=True)
        record = StateStore(settings.state_path).get("demo")
        assert record.components == ["core@market", "a@market"]

    @pytest.mark.asyncio
    async def test_infrastructure_selection(self, rig_dir, settings, registry, manifest_data):
        manifest_data["plugins"]["infrastructure"] = [
            {"source": "lsp-py@market"},
            {"source": "lsp-go@market"},
        ]
        (rig_dir / "agent-rig.json").write_text(json.dumps(manifest_data))
        offered = []

        def pick_first(refs):
            offered.extend(r.id for r in refs)
            return refs[:1]

        await install_rig_async(
            str(rig_dir), settings, registry=registry, select_infrastructure=pick_first
        )

        assert offered == ["lsp-py@market", "lsp-go@market"]
        record = StateStore(settings.state_path).get("demo")
        assert "lsp-py@market" in record.components
        assert "lsp-go@market" not in record.components

    @pytest.mark.asyncio
    async def test_conflict_warnings_in_plan(self, rig_dir, settings, registry):
        result = await install_rig_async(str(rig_dir), settings, registry=registry, dry_run=True)
        # the mock adapter sees nothing installed
        assert result.plan.warnings == []

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path, settings, registry):
        result = await install_rig_async(str(tmp_path / "nope"), settings, registry=registry)
        assert "Rig directory not found" in result.error
        assert result.to_dict() == {"error": result.error}

    @pytest.mark.asyncio
    async def test_invalid_manifest(self, rig_dir, settings, registry):
        (rig_dir / "agent-rig.json").write_text("{broken")
        result = await install_rig_async(str(rig_dir), settings, registry=registry)
        assert "Invalid JSON" in result.error

    @pytest.mark.asyncio
    async def test_no_platforms(self, rig_dir, settings):
        result = await install_rig_async(str(rig_dir), settings, registry=AdapterRegistry())
        assert result.error == NO_PLATFORMS

    def test_sync_wrapper_with_mock_mode(self, rig_dir, settings):
        result = install_rig(str(rig_dir), settings, mock_mode=True)
        assert result.error is None
        assert result.to_dict()["report"]["status"] == "ok"


# ── Update ───────────────────────────────────────────────────────


class TestUpdateRig:
    @pytest.mark.asyncio
    async def test_not_installed(self, settings, registry):
        result = await update_rig_async("demo", settings, registry=registry)
        assert 'Rig "demo" is not installed' in result.error

    @pytest.mark.asyncio
    async def test_up_to_date(self, rig_dir, settings, registry, mock_adapter):
        await _installed(rig_dir, settings, registry)
        mock_adapter.reset()

        result = await update_rig_async("demo", settings, registry=registry)

        assert result.up_to_date
        assert result.report is None
        assert mock_adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_applies_new_version(self, rig_dir, settings, registry, mock_adapter, manifest_data):
        await _installed(rig_dir, settings, registry)
        mock_adapter.reset()
        plugins = manifest_data["plugins"]
        plugins["recommended"].append({"source": "c@market"})
        _bump(rig_dir, "1.1.0", plugins=plugins)

        result = await update_rig_async("demo", settings, registry=registry)

        assert result.error is None
        assert result.diff.components_added == ("c@market",)
        assert mock_adapter.calls("install_components") == [("c@market",)]
        record = StateStore(settings.state_path).get("demo")
        assert record.version == "1.1.0"
        assert record.components[-1] == "c@market"

    @pytest.mark.asyncio
    async def test_dry_run(self, rig_dir, settings, registry, mock_adapter):
        await _installed(rig_dir, settings, registry)
        _bump(rig_dir, "1.1.0")
        mock_adapter.reset()

        result = await update_rig_async("demo", settings, registry=registry, dry_run=True)

        assert result.diff.version_change.from_version == "1.0.0"
        assert result.report is None
        assert mock_adapter.call_count == 0
        assert StateStore(settings.state_path).get("demo").version == "1.0.0"

    @pytest.mark.asyncio
    async def test_declined(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)
        _bump(rig_dir, "1.1.0")

        result = await update_rig_async("demo", settings, registry=registry, confirm=lambda d: False)

        assert result.aborted
        assert StateStore(settings.state_path).get("demo").version == "1.0.0"

    @pytest.mark.asyncio
    async def test_source_gone(self, settings, registry, tmp_path):
        StateStore(settings.state_path).put(
            RigRecord(name="demo", version="1.0.0", source=str(tmp_path / "gone"))
        )
        result = await update_rig_async("demo", settings, registry=registry)
        assert "Rig directory not found" in result.error


# ── Uninstall ────────────────────────────────────────────────────


class TestUninstallRig:
    @pytest.mark.asyncio
    async def test_uninstall(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)

        result = await uninstall_rig_async("demo", settings, registry=registry)

        assert result.complete
        assert result.to_dict()["complete"] is True
        assert StateStore(settings.state_path).get("demo") is None

    @pytest.mark.asyncio
    async def test_partial(self, rig_dir, settings, registry, mock_adapter):
        await _installed(rig_dir, settings, registry)
        mock_adapter.set_failure("a@market")

        result = await uninstall_rig_async("demo", settings, registry=registry)

        assert not result.complete
        assert StateStore(settings.state_path).get("demo").components == ["a@market"]

    @pytest.mark.asyncio
    async def test_not_installed(self, settings, registry):
        result = await uninstall_rig_async("demo", settings, registry=registry)
        assert "is not installed" in result.error

    @pytest.mark.asyncio
    async def test_declined(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)
        result = await uninstall_rig_async("demo", settings, registry=registry, confirm=lambda r: False)
        assert result.aborted
        assert StateStore(settings.state_path).get("demo") is not None


# ── Status / inspect / validate / init ──────────────────────────


class TestStatus:
    def test_empty(self, settings):
        result = get_status(settings)
        assert result.rigs == []
        assert result.state_path == settings.state_path

    @pytest.mark.asyncio
    async def test_lists_installed(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)
        result = get_status(settings)
        assert [r.name for r in result.rigs] == ["demo"]
        assert result.to_dict()["rigs"][0]["disabledConflicts"] == ["old@market"]


class TestInspect:
    @pytest.mark.asyncio
    async def test_local(self, rig_dir, settings):
        result = await inspect_rig_async(str(rig_dir), settings)
        assert result.valid
        data = result.to_dict()
        assert data["name"] == "demo"
        assert "mcpServers" in data

    @pytest.mark.asyncio
    async def test_invalid(self, tmp_path, settings):
        result = await inspect_rig_async(str(tmp_path), settings)
        assert not result.valid
        assert result.to_dict()["valid"] is False


class TestValidate:
    def test_valid(self, rig_dir):
        result = validate_manifest(rig_dir)
        assert result.valid
        assert result.manifest_path == rig_dir / "agent-rig.json"

    def test_missing(self, tmp_path):
        result = validate_manifest(tmp_path)
        assert not result.valid
        assert result.manifest_path is None


class TestInit:
    def test_creates_valid_manifest(self, tmp_path):
        result = init_manifest(tmp_path, name="new-rig", author="me")
        assert result.error is None
        assert result.path == tmp_path / "agent-rig.json"
        assert validate_manifest(tmp_path).manifest.name == "new-rig"

    def test_refuses_to_overwrite(self, tmp_path):
        init_manifest(tmp_path)
        result = init_manifest(tmp_path, name="other")
        assert "already exists" in result.error
        assert json.loads((tmp_path / "agent-rig.json").read_text())["name"] == "my-rig"

    def test_overwrite(self, tmp_path):
        init_manifest(tmp_path)
        assert init_manifest(tmp_path, name="other", overwrite=True).error is None
        assert json.loads((tmp_path / "agent-rig.json").read_text())["name"] == "other"

    def test_invalid_values_write_nothing(self, tmp_path):
        result = init_manifest(tmp_path, name="Bad Name")
        assert result.error is not None
        assert not (tmp_path / "agent-rig.json").exists()


# ── Outdated ─────────────────────────────────────────────────────


class TestCheckOutdated:
    @pytest.mark.asyncio
    async def test_nothing_installed(self, settings):
        result = await check_outdated_async(settings)
        assert result.entries == []

    @pytest.mark.asyncio
    async def test_reports_each_rig(self, rig_dir, settings, registry, tmp_path):
        await _installed(rig_dir, settings, registry)
        StateStore(settings.state_path).put(
            RigRecord(name="broken", version="0.1.0", source=str(tmp_path / "gone"))
        )
        _bump(rig_dir, "2.0.0")

        result = await check_outdated_async(settings)

        entries = {e.name: e for e in result.entries}
        assert entries["demo"].outdated
        assert entries["demo"].latest_version == "2.0.0"
        assert entries["broken"].error is not None
        assert not entries["broken"].outdated

    @pytest.mark.asyncio
    async def test_single_rig(self, rig_dir, settings, registry):
        await _installed(rig_dir, settings, registry)
        result = await check_outdated_async(settings, "demo")
        assert [e.name for e in result.entries] == ["demo"]
        assert not result.entries[0].outdated

    @pytest.mark.asyncio
    async def test_unknown_rig(self, settings):
        result = await check_outdated_async(settings, "ghost")
        assert "is not installed" in result.error


# ── Upstream ─────────────────────────────────────────────────────


class TestCheckUpstream:
    @pytest.mark.asyncio
    async def test_compares_with_marketplace(self, marketplace_rig, settings):
        result = await check_upstream_async(str(marketplace_rig), settings)

        assert result.error is None
        assert result.published["core@market"].version == "2.0.0"
        assert [p.id for p in result.new_upstream] == ["shiny@market"]
        assert result.removed_upstream == ["b@market"]
        assert result.has_changes

    @pytest.mark.asyncio
    async def test_unreachable_marketplace_is_reported(self, marketplace_rig, settings):
        result = await check_upstream_async(str(marketplace_rig), settings)
        assert list(result.unreachable) == ["gone"]

    @pytest.mark.asyncio
    async def test_tools(self, marketplace_rig, settings):
        result = await check_upstream_async(str(marketplace_rig), settings)
        assert [(t.name, t.installed, t.optional) for t in result.tools] == [
            ("sh", True, False),
            ("nope", False, True),
        ]

    @pytest.mark.asyncio
    async def test_bad_source(self, tmp_path, settings):
        result = await check_upstream_async(str(tmp_path / "nope"), settings)
        assert result.to_dict() == {"error": result.error}

    def test_plugin_manifests(self, tmp_path):
        plugin_dir = tmp_path / "tidy" / ".claude-plugin"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / "plugin.json").write_text(json.dumps({"name": "tidy", "version": "1.0.0"}))
        (tmp_path / "marketplace.json").write_text("{not json")

        found = scan_marketplace(tmp_path, "m")

        assert list(found) == ["tidy@m"]
