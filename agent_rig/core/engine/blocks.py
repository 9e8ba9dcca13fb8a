"""
Tagged blocks — rig-owned regions inside shared text files.

A block is delimited by a begin/end marker pair that embeds the rig name,
so several rigs (and the user) can share one shell profile:

    # --- agent-rig: demo ---
    export X="1"
    # --- end agent-rig: demo ---

There is at most one block per (rig, file). Writing replaces it in
place or appends it; removing deletes it and tidies blank lines.

Markdown root files (CLAUDE.md, AGENTS.md) get a single pointer line
instead, tagged with an HTML comment.
"""

from __future__ import annotations

import re

_BLANK_RUNS = re.compile(r"\n{3,}")


class TaggedBlockPatcher:
    """Pure string operations on tagged blocks. No file I/O."""

    def __init__(self, label: str = "agent-rig", comment: str = "#"):
        self.label = label
        self.comment = comment

    def begin_marker(self, rig_name: str) -> str:
        return f"{self.comment} --- {self.label}: {rig_name} ---"

    def end_marker(self, rig_name: str) -> str:
        return f"{self.comment} --- end {self.label}: {rig_name} ---"

    def _span(self, rig_name: str, *, with_newlines: bool = False) -> re.Pattern[str]:
        begin = re.escape(self.begin_marker(rig_name))
        end = re.escape(self.end_marker(rig_name))
        if with_newlines:
            return re.compile(r"\n?" + begin + r"[\s\S]*?" + end + r"\n?")
        return re.compile(begin + r"[\s\S]*?" + end)

    def format(self, rig_name: str, body_lines: list[str]) -> str:
        """Block text, markers included, without a trailing newline."""
        return "\n".join([self.begin_marker(rig_name), *body_lines, self.end_marker(rig_name)])

    def has(self, rig_name: str, host_content: str | None) -> bool:
        return bool(host_content) and self.begin_marker(rig_name) in host_content

    def upsert(self, rig_name: str, host_content: str | None, new_block: str) -> str:
        """Replace the rig's block in place, or append it."""
        if not host_content:
            return new_block + "\n"
        if self.has(rig_name, host_content):
            # a callable replacement keeps backslashes in the block literal
            return self._span(rig_name).sub(lambda _m: new_block, host_content, count=1)
        return host_content.rstrip() + "\n\n" + new_block + "\n"

    def remove(self, rig_name: str, host_content: str | None) -> tuple[str, bool]:
        """Delete the rig's block. Returns (new content, removed?)."""
        if not host_content or not self.has(rig_name, host_content):
            return host_content or "", False
        content = self._span(rig_name, with_newlines=True).sub("\n", host_content, count=1)
        content = _BLANK_RUNS.sub("\n\n", content).rstrip()
        return (content + "\n" if content else ""), True


# ── Markdown pointers ───────────────────────────────────────────


def pointer_tag(rig_name: str) -> str:
    return f"<!-- agent-rig:{rig_name} -->"


def insert_pointer(content: str, tag: str, line: str) -> tuple[str, bool]:
    """Prepend ``line`` unless a line carrying ``tag`` is already present."""
    if tag in content:
        return content, False
    return line + "\n\n" + content, True


def remove_pointer(content: str, tag: str) -> tuple[str, bool]:
    """Drop every line carrying ``tag`` plus the blank lines it leaves on top."""
    if tag not in content:
        return content, False
    kept = [line for line in content.split("\n") if tag not in line]
    return "\n".join(kept).lstrip("\n"), True
