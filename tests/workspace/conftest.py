"""Fixtures for the workspace pipeline: manifests, skill roots, fake tmux."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
import yaml

from panekit.workspace.errors import ExternalToolError
from panekit.workspace.models.execution import ExecutionSpec
from panekit.workspace.models.geometry import GeometryLeaf, GeometryTree, iter_leaves
from panekit.workspace.multiplexer.base import MANIFEST_KEY, SessionHandle, SessionInfo

# ---------------------------------------------------------------------------
# In-memory multiplexer
# ---------------------------------------------------------------------------


@dataclass
class FakeSession:
    tree: GeometryTree
    start_directory: str
    env: dict[str, str] = field(default_factory=dict)
    started: list[ExecutionSpec] = field(default_factory=list)


class FakeMultiplexer:
    """``Multiplexer`` that keeps sessions in a dict.

    Knobs:
      - ``fail_on_pane``: ``start_pane`` raises for this pane name
      - ``fail_create``: ``create_session`` raises without creating anything
      - ``race_on_create``: another invocation "wins": the session appears,
        then ``create_session`` raises as tmux would for a duplicate name
      - ``fail_kill``: ``kill_session`` raises without killing anything
    """

    def __init__(self) -> None:
        self.sessions: dict[str, FakeSession] = {}
        self.calls: list[tuple[str, str]] = []
        self.attached: list[tuple[str, bool]] = []
        self.fail_on_pane: str | None = None
        self.fail_create = False
        self.race_on_create = False
        self.fail_kill = False
        self.current: str | None = None

    def list_sessions(self) -> set[str]:
        return set(self.sessions)

    def describe_sessions(self) -> list[SessionInfo]:
        return [
            SessionInfo(
                name=name,
                panes=len(list(iter_leaves(session.tree))),
                manifest=session.env.get(MANIFEST_KEY),
            )
            for name, session in sorted(self.sessions.items())
        ]

    def create_session(
        self,
        name: str,
        tree: GeometryTree,
        *,
        start_directory: str,
        window_name: str | None = None,
    ) -> SessionHandle:
        self.calls.append(("create_session", name))
        if self.race_on_create:
            self.sessions[name] = FakeSession(tree=tree, start_directory=start_directory)
            raise ExternalToolError(["tmux", "new-session", "-s", name], "duplicate session")
        if self.fail_create or name in self.sessions:
            raise ExternalToolError(["tmux", "new-session", "-s", name], "server exited")
        self.sessions[name] = FakeSession(tree=tree, start_directory=start_directory)
        return SessionHandle(name=name, panes={leaf.pane: leaf.pane for leaf in iter_leaves(tree)})

    def start_pane(self, handle: SessionHandle, leaf: GeometryLeaf, spec: ExecutionSpec) -> None:
        self.calls.append(("start_pane", leaf.pane))
        if leaf.pane == self.fail_on_pane:
            raise ExternalToolError(spec.argv or spec.command_line(), "not found on PATH", pane=leaf.pane)
        self.sessions[handle.name].started.append(spec)

    def kill_session(self, name: str) -> bool:
        self.calls.append(("kill_session", name))
        if self.fail_kill:
            raise ExternalToolError(["tmux", "kill-session", "-t", name], "server not responding")
        return self.sessions.pop(name, None) is not None

    def attach(self, name: str, *, control_mode: bool = False) -> bool:
        if name not in self.sessions:
            return False
        self.attached.append((name, control_mode))
        return True

    def set_metadata(self, name: str, key: str, value: str) -> None:
        self.sessions[name].env[key] = value

    def get_metadata(self, name: str, key: str) -> str | None:
        session = self.sessions.get(name)
        return session.env.get(key) if session is not None else None

    def current_session(self) -> str | None:
        return self.current

    def call_names(self) -> list[str]:
        return [call for call, _ in self.calls]


@pytest.fixture
def fake_mux() -> FakeMultiplexer:
    return FakeMultiplexer()


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def write_skill(root: Path, name: str, body: str = "", *, flat: bool = False, description: str | None = None) -> Path:
    """Create a skill in ``root`` (directory form unless ``flat``)."""
    path = root / f"{name}.md" if flat else root / name / "SKILL.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    front = f"---\nname: {name}\ndescription: {description}\n---\n" if description else ""
    path.write_text(front + (body or f"# {name}\n\nDoes {name} things.\n"), encoding="utf-8")
    return path


@pytest.fixture
def make_skill() -> Callable[..., Path]:
    return write_skill


@pytest.fixture
def make_manifest(tmp_path: Path) -> Callable[..., Path]:
    """Write ``PANEKIT.md`` with the given frontmatter mapping and body."""

    def _make(data: dict[str, Any], body: str = "", *, directory: Path | None = None) -> Path:
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "PANEKIT.md"
        path.write_text(f"---\n{yaml.safe_dump(data, sort_keys=False)}---\n{body}", encoding="utf-8")
        return path

    return _make


def basic_manifest(**overrides: Any) -> dict[str, Any]:
    """A two-column workspace: claude (all skills) beside a shell pane."""
    data: dict[str, Any] = {
        "workspace": "demo",
        "skills": [{"path": "./skills"}, {"path": "./global"}],
        "layouts": {
            "panes": [
                {"type": "claude", "skills": ["*"]},
                {"type": "shell"},
            ],
            "grids": {
                "default": {
                    "type": "tmux",
                    "claude": {"col": 0, "row": 0},
                    "shell": {"col": 1, "row": 0},
                },
            },
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    return basic_manifest()
