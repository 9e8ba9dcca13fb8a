"""
Tests for install services — behavioral assets, environment blocks, tools.
"""

import subprocess
from pathlib import Path

import pytest

from agent_rig.core.config.settings import Settings
from agent_rig.core.models.manifest import ToolSpec
from agent_rig.core.models.result import OperationStatus, UnitKind
from agent_rig.core.models.state import BehavioralRecord
from agent_rig.core.persistence.sidecar import load_sidecar
from agent_rig.core.services.behavioral import BehavioralInstaller
from agent_rig.core.services.environment import (
    EnvironmentWriter,
    detect_shell,
    format_env_lines,
)
from agent_rig.core.services.tools import ToolInstaller

# ── Behavioral ───────────────────────────────────────────────────


@pytest.fixture
def behavioral_manifest(make_manifest):
    return make_manifest(
        behavioral={
            "claude-md": {"source": "config/CLAUDE.md", "dependedOnBy": ["a@market"]},
            "agents-md": {"source": "config/AGENTS.md"},
        }
    )


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    (src / "config").mkdir(parents=True)
    (src / "config" / "CLAUDE.md").write_text("# Claude rules\n")
    (src / "config" / "AGENTS.md").write_text("# Agent rules\n")
    return src


def _entries(results) -> list[BehavioralRecord]:
    return [
        BehavioralRecord(
            file=r.metadata["file"],
            pointer_file=r.metadata["pointer_file"],
            pointer_tag=r.metadata["pointer_tag"],
        )
        for r in results
        if r.status == OperationStatus.APPLIED
    ]


class TestBehavioralInstall:
    def test_copies_and_points(self, settings: Settings, behavioral_manifest, source_dir):
        project = settings.project_root
        (project / "CLAUDE.md").write_text("# My project\n")

        results = BehavioralInstaller(project).install(behavioral_manifest, source_dir)

        assert [r.status for r in results] == [OperationStatus.APPLIED] * 2
        copy = project / ".claude" / "rigs" / "demo" / "CLAUDE.md"
        assert copy.read_text() == "# Claude rules\n"
        claude_md = (project / "CLAUDE.md").read_text()
        assert claude_md.startswith(
            "<!-- agent-rig:demo --> Also read and follow: .claude/rigs/demo/CLAUDE.md\n\n"
        )
        assert claude_md.endswith("# My project\n")
        assert (project / "AGENTS.md").read_text().startswith(
            "<!-- agent-rig:demo --> Also read: .claude/rigs/demo/AGENTS.md"
        )
        assert results[0].metadata == {
            "file": ".claude/rigs/demo/CLAUDE.md",
            "pointer_file": "CLAUDE.md",
            "pointer_tag": "<!-- agent-rig:demo -->",
        }
        assert "depended on by: a@market" in results[0].message

    def test_writes_sidecar(self, settings: Settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        installer.install(behavioral_manifest, source_dir)
        sidecar = load_sidecar(installer.rig_dir("demo"), "demo")
        assert sidecar.version == "1.0.0"
        assert sorted(sidecar.files) == [
            ".claude/rigs/demo/AGENTS.md",
            ".claude/rigs/demo/CLAUDE.md",
        ]
        assert len(sidecar.file_hashes) == 2

    def test_reinstall_does_not_duplicate_pointer(self, settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        installer.install(behavioral_manifest, source_dir)
        results = installer.install(behavioral_manifest, source_dir)
        assert "pointer already in CLAUDE.md" in results[0].message
        content = (settings.project_root / "CLAUDE.md").read_text()
        assert content.count("<!-- agent-rig:demo -->") == 1

    def test_user_edit_skipped(self, settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        installer.install(behavioral_manifest, source_dir)
        copy = installer.rig_dir("demo") / "CLAUDE.md"
        copy.write_text("my own tweaks\n")
        (source_dir / "config" / "CLAUDE.md").write_text("# Claude rules v2\n")

        results = installer.install(behavioral_manifest, source_dir)

        assert results[0].status == OperationStatus.SKIPPED
        assert "locally modified" in results[0].message
        assert copy.read_text() == "my own tweaks\n"

        # the recorded hash survived the skip, so the edit stays protected
        again = installer.install(behavioral_manifest, source_dir)
        assert again[0].status == OperationStatus.SKIPPED

    def test_force_overwrites_edit(self, settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        installer.install(behavioral_manifest, source_dir)
        copy = installer.rig_dir("demo") / "CLAUDE.md"
        copy.write_text("my own tweaks\n")

        results = installer.install(behavioral_manifest, source_dir, force=True)

        assert results[0].status == OperationStatus.APPLIED
        assert copy.read_text() == "# Claude rules\n"

    def test_missing_source(self, settings, behavioral_manifest, tmp_path):
        results = BehavioralInstaller(settings.project_root).install(
            behavioral_manifest, tmp_path / "empty"
        )
        assert all(r.failed for r in results)
        assert results[0].message == "Source not found: config/CLAUDE.md"

    def test_no_behavioral_config(self, settings, make_manifest, source_dir):
        assert BehavioralInstaller(settings.project_root).install(make_manifest(), source_dir) == []


class TestBehavioralUninstall:
    def test_removes_files_and_pointers(self, settings, behavioral_manifest, source_dir):
        project = settings.project_root
        (project / "CLAUDE.md").write_text("# My project\n")
        installer = BehavioralInstaller(project)
        entries = _entries(installer.install(behavioral_manifest, source_dir))

        results = installer.uninstall("demo", entries)

        assert [r.status for r in results] == [OperationStatus.APPLIED] * 2
        assert (project / "CLAUDE.md").read_text() == "# My project\n"
        assert not installer.rig_dir("demo").exists()

    def test_keeps_user_edited_file(self, settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        entries = _entries(installer.install(behavioral_manifest, source_dir))
        copy = installer.rig_dir("demo") / "CLAUDE.md"
        copy.write_text("edited\n")

        results = installer.uninstall("demo", entries)

        by_file = {r.component_id: r for r in results}
        kept = by_file[".claude/rigs/demo/CLAUDE.md"]
        assert kept.status == OperationStatus.SKIPPED
        assert kept.metadata == {"kept": True}
        assert copy.exists()
        # pointer is removed even though the copy stays
        assert "agent-rig:demo" not in (settings.project_root / "CLAUDE.md").read_text()

    def test_force_removes_edited(self, settings, behavioral_manifest, source_dir):
        installer = BehavioralInstaller(settings.project_root)
        entries = _entries(installer.install(behavioral_manifest, source_dir))
        (installer.rig_dir("demo") / "CLAUDE.md").write_text("edited\n")

        results = installer.uninstall("demo", entries, force=True)

        assert all(r.status == OperationStatus.APPLIED for r in results)
        assert not installer.rig_dir("demo").exists()

    def test_already_removed(self, settings):
        entry = BehavioralRecord(
            file=".claude/rigs/demo/CLAUDE.md",
            pointer_file="CLAUDE.md",
            pointer_tag="<!-- agent-rig:demo -->",
        )
        results = BehavioralInstaller(settings.project_root).uninstall("demo", [entry])
        assert results[0].status == OperationStatus.SKIPPED
        assert results[0].message == "already removed"


# ── Environment ──────────────────────────────────────────────────


class TestDetectShell:
    @pytest.mark.parametrize(
        "shell, name, profile",
        [
            ("/usr/bin/fish", "fish", ".config/fish/config.fish"),
            ("/bin/bash", "bash", ".bashrc"),
            ("/bin/zsh", "zsh", ".zshrc"),
            ("", "zsh", ".zshrc"),
        ],
    )
    def test_profiles(self, settings: Settings, shell, name, profile):
        info = detect_shell(settings.model_copy(update={"shell": shell}))
        assert info.name == name
        assert info.profile_path == settings.user_home / profile


class TestFormatEnvLines:
    def test_posix(self):
        assert format_env_lines({"A": "1", "B": "x y"}, "bash") == ['export A="1"', 'export B="x y"']

    def test_fish(self):
        assert format_env_lines({"A": "1"}, "fish") == ['set -gx A "1"']

    def test_quoting(self):
        (line,) = format_env_lines({"A": 'say "hi" \\'}, "zsh")
        assert line == 'export A="say \\"hi\\" \\\\"'

    def test_variable_references_expand(self):
        (line,) = format_env_lines({"A": "$HOME/bin:$PATH"}, "bash")
        assert line == 'export A="$HOME/bin:$PATH"'
        out = subprocess.run(
            ["/bin/sh", "-c", f'{line}; printf %s "$A"'],
            env={"HOME": "/h", "PATH": "/usr/bin:/bin"},
            capture_output=True,
            text=True,
            check=True,
        ).stdout
        assert out == "/h/bin:/usr/bin:/bin"


class TestEnvironmentWriter:
    def test_write_creates_block(self, settings: Settings):
        result = EnvironmentWriter(settings).write("demo", {"A": "1"})
        profile = settings.user_home / ".bashrc"
        assert result.status == OperationStatus.APPLIED
        assert result.kind == UnitKind.ENVIRONMENT
        assert result.metadata == {"profile_path": str(profile)}
        assert profile.read_text() == (
            '# --- agent-rig: demo ---\nexport A="1"\n# --- end agent-rig: demo ---\n'
        )

    def test_rewrite_replaces_block(self, settings: Settings):
        profile = settings.user_home / ".bashrc"
        profile.write_text("alias ll='ls -l'\n")
        writer = EnvironmentWriter(settings)
        writer.write("demo", {"A": "1"})
        result = writer.write("demo", {"A": "2"})
        content = profile.read_text()
        assert result.message.startswith("updated")
        assert content.count("# --- agent-rig: demo ---") == 1
        assert 'export A="2"' in content
        assert 'export A="1"' not in content
        assert content.startswith("alias ll='ls -l'\n")

    def test_remove_restores_profile(self, settings: Settings):
        profile = settings.user_home / ".bashrc"
        profile.write_text("alias ll='ls -l'\n")
        writer = EnvironmentWriter(settings)
        writer.write("demo", {"A": "1"})
        result = writer.remove("demo", profile)
        assert result.status == OperationStatus.APPLIED
        assert profile.read_text() == "alias ll='ls -l'\n"

    def test_remove_without_block(self, settings: Settings):
        profile = settings.user_home / ".bashrc"
        profile.write_text("nothing\n")
        result = EnvironmentWriter(settings).remove("demo", profile)
        assert result.status == OperationStatus.SKIPPED

    def test_remove_missing_profile(self, settings: Settings):
        result = EnvironmentWriter(settings).remove("demo", settings.user_home / ".nope")
        assert result.status == OperationStatus.SKIPPED

    def test_unwritable_profile_fails(self, settings: Settings):
        blocker = settings.user_home / ".config"
        blocker.write_text("not a directory")
        fish = settings.model_copy(update={"shell": "/usr/bin/fish"})
        result = EnvironmentWriter(fish).write("demo", {"A": "1"})
        assert result.failed


# ── Tools ────────────────────────────────────────────────────────


class TestToolInstaller:
    @pytest.mark.asyncio
    async def test_present_tool_skipped(self, settings: Settings):
        tool = ToolSpec(name="t", check="true", install="false")
        result = await ToolInstaller(settings.timeouts).ensure(tool)
        assert result.status == OperationStatus.SKIPPED
        assert result.message == "already installed"

    @pytest.mark.asyncio
    async def test_optional_not_requested(self, settings: Settings):
        tool = ToolSpec(name="t", check="false", install="echo install-me", optional=True)
        result = await ToolInstaller(settings.timeouts).ensure(tool)
        assert result.status == OperationStatus.SKIPPED
        assert "install manually: echo install-me" in result.message

    @pytest.mark.asyncio
    async def test_installs_then_rechecks(self, settings: Settings, tmp_path: Path):
        marker = tmp_path / "installed"
        tool = ToolSpec(name="t", check=f"test -f {marker}", install=f"touch {marker}")
        result = await ToolInstaller(settings.timeouts).ensure(tool)
        assert result.status == OperationStatus.APPLIED
        assert marker.exists()

    @pytest.mark.asyncio
    async def test_optional_requested(self, settings: Settings, tmp_path: Path):
        marker = tmp_path / "installed"
        tool = ToolSpec(name="t", check=f"test -f {marker}", install=f"touch {marker}", optional=True)
        result = await ToolInstaller(settings.timeouts).ensure(tool, include_optional=True)
        assert result.status == OperationStatus.APPLIED

    @pytest.mark.asyncio
    async def test_install_failure(self, settings: Settings):
        tool = ToolSpec(name="t", check="false", install="exit 3")
        result = await ToolInstaller(settings.timeouts).ensure(tool)
        assert result.failed
        assert result.message == "install command exited with code 3"

    @pytest.mark.asyncio
    async def test_still_missing_after_install(self, settings: Settings):
        tool = ToolSpec(name="t", check="false", install="true")
        result = await ToolInstaller(settings.timeouts).ensure(tool)
        assert result.failed
        assert "not found on PATH" in result.message

    @pytest.mark.asyncio
    async def test_ensure_all_keeps_order(self, settings: Settings):
        tools = [ToolSpec(name=n, check="true", install="true") for n in ("x", "y", "z")]
        results = await ToolInstaller(settings.timeouts).ensure_all(tools)
        assert [r.component_id for r in results] == ["x", "y", "z"]
