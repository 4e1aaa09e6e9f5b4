"""Multiplexer interface -- the control boundary to tmux.

The orchestrator never talks to tmux directly; it goes through this
protocol so that tests can substitute an in-memory implementation.
Every query reflects live state at call time; implementations must not
cache session lists between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from panekit.workspace.models.execution import ExecutionSpec
from panekit.workspace.models.geometry import GeometryLeaf, GeometryTree

# Session metadata keys (stored in the tmux session environment).
MANIFEST_KEY = "PANEKIT_MANIFEST"
GRID_KEY = "PANEKIT_GRID"
LINKS_KEY = "PANEKIT_LINKS"


class SessionInfo(BaseModel):
    """A live session as reported by ``describe_sessions``."""

    name: str
    windows: int = 1
    panes: int = 0
    attached: bool = False
    manifest: str | None = None
    """Manifest path the session was launched from, if panekit created it."""


@dataclass
class SessionHandle:
    """A session created by ``create_session``.

    ``panes`` maps each leaf's pane name to the backend's pane object.
    """

    name: str
    panes: dict[str, Any] = field(default_factory=dict)
    native: Any = None


@runtime_checkable
class Multiplexer(Protocol):
    """Session-level operations panekit needs from a terminal multiplexer."""

    def list_sessions(self) -> set[str]:
        """Names of all live sessions."""
        ...

    def describe_sessions(self) -> list[SessionInfo]:
        ...

    def create_session(
        self,
        name: str,
        tree: GeometryTree,
        *,
        start_directory: str,
        window_name: str | None = None,
    ) -> SessionHandle:
        """Create a detached session with the whole split tree in one window.

        Raises ``ExternalToolError`` on failure, including when ``name`` is
        already taken.
        """
        ...

    def start_pane(self, handle: SessionHandle, leaf: GeometryLeaf, spec: ExecutionSpec) -> None:
        """Title, colour and launch ``spec`` in the pane for ``leaf``.

        Raises ``ExternalToolError`` when the program is missing or tmux fails.
        """
        ...

    def kill_session(self, name: str) -> bool:
        """Kill ``name``.  Returns False if it did not exist."""
        ...

    def attach(self, name: str, *, control_mode: bool = False) -> bool:
        """Attach the current terminal.  Returns False if ``name`` is not live."""
        ...

    def set_metadata(self, name: str, key: str, value: str) -> None:
        ...

    def get_metadata(self, name: str, key: str) -> str | None:
        ...

    def current_session(self) -> str | None:
        """Session the calling process runs inside, if any."""
        ...
