"""Workspace definition models.

These are pure Pydantic models for the validated manifest.  Parsing raw
YAML into them (and turning validation failures into ``ConfigError``)
lives in ``panekit.workspace.config``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from panekit.workspace.errors import ConfigError
from panekit.workspace.models.enums import GridKind, PaneKind

WILDCARD = "*"

# -- Skills ------------------------------------------------------------------


class SkillSelector(BaseModel):
    """Which skills a pane loads: every skill, or an explicit ordered list."""

    model_config = ConfigDict(frozen=True)

    wildcard: bool = False
    names: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.wildcard and not self.names

    def __str__(self) -> str:
        return WILDCARD if self.wildcard else ", ".join(self.names)


class SkillSourceRoot(BaseModel):
    """A directory searched for skill files.  Lower priority value wins."""

    model_config = ConfigDict(frozen=True)

    path: Path
    priority: int


# -- Panes -------------------------------------------------------------------


class PaneDefinition(BaseModel):
    """One logical pane, referenced from grids by ``name``."""

    name: str
    kind: PaneKind
    skills: SkillSelector = Field(default_factory=SkillSelector)
    command: str | None = Field(
        default=None,
        description="Custom panes: shell command run verbatim.  Assistant panes: replacement binary name",
    )
    args: list[str] = Field(default_factory=list)
    path: Path | None = Field(default=None, description="Working directory (absolute, already expanded)")
    model: str | None = None
    prompt: str | None = None
    allowed_tools: list[str] = Field(default_factory=list)
    disallowed_tools: list[str] = Field(default_factory=list)
    color: str | None = None
    notes: list[str] = Field(default_factory=list)


# -- Grids -------------------------------------------------------------------


class CellPlacement(BaseModel):
    """Position of one pane within a grid."""

    model_config = ConfigDict(extra="forbid")

    col: int = Field(default=0, ge=0)
    row: int = Field(default=0, ge=0)
    width: int | None = Field(default=None, gt=0, le=100, description="Column width percentage")
    height: int | None = Field(default=None, gt=0, le=100, description="Row height percentage")
    color: str | None = Field(default=None, description="Overrides the pane's color in this grid")


class GridSpec(BaseModel):
    """A named layout: grid kind plus ordered pane placements."""

    name: str
    kind: GridKind = GridKind.TMUX
    cells: dict[str, CellPlacement] = Field(default_factory=dict)


# -- Top-level ---------------------------------------------------------------


class WorkspaceConfig(BaseModel):
    """Validated workspace definition."""

    workspace: str
    panes: list[PaneDefinition]
    skill_roots: list[SkillSourceRoot] = Field(default_factory=list)
    grids: dict[str, GridSpec] = Field(default_factory=dict)
    manifest_path: Path | None = None
    index: str | None = Field(default=None, description="Markdown body after the manifest frontmatter")

    @property
    def workspace_dir(self) -> Path:
        """Directory holding the manifest; the default pane working directory."""
        if self.manifest_path is not None:
            return self.manifest_path.parent
        return Path.cwd()

    @property
    def pane_names(self) -> list[str]:
        return [p.name for p in self.panes]

    def pane(self, name: str) -> PaneDefinition:
        for pane in self.panes:
            if pane.name == name:
                return pane
        raise ConfigError(f"layouts.panes.{name}", "pane is not declared")

    def grid(self, name: str) -> GridSpec:
        """Look up a grid by name.  Raises ``ConfigError`` listing the alternatives."""
        grid = self.grids.get(name)
        if grid is None:
            available = ", ".join(self.grids) or "none"
            raise ConfigError(f"layouts.grids.{name}", f"grid not found (available: {available})")
        return grid
