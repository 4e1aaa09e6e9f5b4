"""Data models for the workspace pipeline."""

from panekit.workspace.models.config import (
    CellPlacement,
    GridSpec,
    PaneDefinition,
    SkillSelector,
    SkillSourceRoot,
    WorkspaceConfig,
)
from panekit.workspace.models.enums import (
    GridKind,
    LaunchOutcome,
    Orientation,
    PaneKind,
    SessionState,
)
from panekit.workspace.models.execution import ExecutionSpec, ResolvedSkill
from panekit.workspace.models.geometry import GeometryLeaf, GeometrySplit, GeometryTree, iter_leaves

__all__ = [
    "CellPlacement",
    "ExecutionSpec",
    "GeometryLeaf",
    "GeometrySplit",
    "GeometryTree",
    "GridKind",
    "GridSpec",
    "LaunchOutcome",
    "Orientation",
    "PaneDefinition",
    "PaneKind",
    "ResolvedSkill",
    "SessionState",
    "SkillSelector",
    "SkillSourceRoot",
    "WorkspaceConfig",
    "iter_leaves",
]
