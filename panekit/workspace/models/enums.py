"""Shared enumerations used across the workspace pipeline."""

from __future__ import annotations

from enum import StrEnum

# -- Panes -------------------------------------------------------------------


class PaneKind(StrEnum):
    """Closed set of pane kinds a manifest may declare."""

    CLAUDE = "claude"
    CODEX = "codex"
    OPENCODE = "opencode"
    ANTIGRAVITY = "antigravity"
    CUSTOM = "custom"

    @property
    def is_assistant(self) -> bool:
        return self is not PaneKind.CUSTOM


# -- Grids -------------------------------------------------------------------


class GridKind(StrEnum):
    """How a grid is rendered."""

    TMUX = "tmux"
    TMUX_CC = "tmux_cc"
    """iTerm2 tmux integration (``tmux -CC``)."""
    SHELL = "shell"
    """No multiplexer: exec the first cell directly."""


class Orientation(StrEnum):
    HORIZONTAL = "horizontal"
    """Children laid out left to right (columns)."""
    VERTICAL = "vertical"
    """Children laid out top to bottom (rows)."""


# -- Sessions ----------------------------------------------------------------


class SessionState(StrEnum):
    """Lifecycle of one session name, as seen by the orchestrator."""

    ABSENT = "absent"
    CREATING = "creating"
    LIVE = "live"
    KILLING = "killing"


class LaunchOutcome(StrEnum):
    CREATED = "created"
    ATTACHED = "attached"
    EXECUTED = "executed"
