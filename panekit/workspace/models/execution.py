"""Resolved, ready-to-run artifacts produced by the execution pipeline."""

from __future__ import annotations

import shlex
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ResolvedSkill(BaseModel):
    """Outcome of resolving one skill name for one pane kind."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: Path
    """Skill file that won resolution."""
    root: Path
    """Search root the source was found in."""
    link: Path
    """Where the symlink goes, relative to the pane working directory."""


class ExecutionSpec(BaseModel):
    """Concrete invocation for one pane.

    Assistant panes carry ``program`` + ``args``.  Custom panes carry the
    user's command line verbatim in ``raw_command``.  When both are empty
    the pane is left at an interactive shell.
    """

    pane: str
    program: str | None = None
    args: list[str] = Field(default_factory=list)
    raw_command: str | None = None
    cwd: Path
    env: dict[str, str] = Field(default_factory=dict)
    title: str
    color: str | None = None
    notes: list[str] = Field(default_factory=list)
    """Lines shown in the pane before the command starts."""

    @property
    def argv(self) -> list[str]:
        if self.program is None:
            return []
        return [self.program, *self.args]

    @property
    def is_interactive_shell(self) -> bool:
        return self.program is None and not self.raw_command

    def command_line(self) -> str:
        """Shell-ready command line (without ``cd`` or env prefix)."""
        if self.raw_command:
            return self.raw_command
        return shlex.join(self.argv)
