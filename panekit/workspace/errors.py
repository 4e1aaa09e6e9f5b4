"""Error taxonomy for workspace materialization.

Every failure the CLI reports derives from ``WorkspaceError``.  The CLI
translates these into ``click.ClickException`` (exit code 1); nothing
below the CLI layer prints or exits.

Launching a workspace whose session is already live is an attach, so
there is no error for a session name collision.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence


class WorkspaceError(Exception):
    """Base class for all panekit failures surfaced to the user."""


class ConfigError(WorkspaceError, ValueError):
    """Malformed manifest: missing field, duplicate pane, unknown reference."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


class ResolutionError(WorkspaceError, LookupError):
    """A named skill was not found in any search root."""

    def __init__(self, skill: str, roots: Sequence[object] = ()) -> None:
        self.skill = skill
        searched = ", ".join(str(r) for r in roots) or "no skill roots configured"
        super().__init__(f"Skill '{skill}' not found (searched: {searched})")


class GeometryError(WorkspaceError, ValueError):
    """A grid cannot be compiled into a split geometry."""

    def __init__(self, grid: str, message: str) -> None:
        self.grid = grid
        super().__init__(f"grid '{grid}': {message}")


class ExternalToolError(WorkspaceError, RuntimeError):
    """tmux, git or an assistant binary is missing or failed."""

    def __init__(
        self,
        command: Sequence[str] | str,
        message: str = "",
        *,
        returncode: int | None = None,
        pane: str | None = None,
    ) -> None:
        self.command = command if isinstance(command, str) else shlex.join(command)
        self.returncode = returncode
        self.pane = pane

        parts = []
        if pane is not None:
            parts.append(f"pane '{pane}':")
        parts.append(f"`{self.command}` failed")
        if returncode is not None:
            parts.append(f"(exit status {returncode})")
        if message:
            parts.append(f"- {message}")
        super().__init__(" ".join(parts))
