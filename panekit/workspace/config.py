"""Manifest loading and validation.

A manifest is a markdown file whose YAML frontmatter holds the workspace
definition::

    ---
    workspace: demo
    skills:
      - path: ./skills
      - path: ~/.config/panekit/skills
    layouts:
      panes:
        - type: claude
          skills: ["*"]
        - type: custom
          name: logs
          command: tail -f app.log
      grids:
        default:
          type: tmux
          claude: { col: 0, row: 0, width: 60 }
          logs: { col: 1, row: 0 }
    ---
    # Project notes (the "index")

``parse`` is pure: it turns an already-loaded mapping into a
``WorkspaceConfig`` or raises ``ConfigError`` naming the offending field.
Pydantic ``ValidationError`` never escapes this module.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from panekit.workspace.errors import ConfigError
from panekit.workspace.models.config import (
    WILDCARD,
    CellPlacement,
    GridSpec,
    PaneDefinition,
    SkillSelector,
    SkillSourceRoot,
    WorkspaceConfig,
)
from panekit.workspace.models.enums import GridKind, PaneKind

FRONTMATTER_DELIMITER = "---"

# Legacy pane type: a custom pane that defaults to the name "shell".
_SHELL_TYPE = "shell"

# ---------------------------------------------------------------------------
# Raw entry models
# ---------------------------------------------------------------------------


class _PaneEntry(BaseModel):
    """A pane exactly as written in the manifest, before kind dispatch."""

    model_config = ConfigDict(extra="forbid")

    type: str
    name: str | None = None
    skills: list[str] | str = Field(default_factory=list)
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    path: str | None = None
    model: str | None = None
    prompt: str | None = None
    allowed_tools: list[str] = Field(default_factory=list)
    disallowed_tools: list[str] = Field(default_factory=list)
    color: str | None = None
    notes: list[str] = Field(default_factory=list)


class _SkillRootEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str


# ---------------------------------------------------------------------------
# Frontmatter
# ---------------------------------------------------------------------------


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split ``text`` into (frontmatter, body).

    Frontmatter is the block between a leading ``---`` line and the next
    ``---`` line.  Returns ``(None, text)`` when there is none.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None, text
    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONTMATTER_DELIMITER:
            return "".join(lines[1:idx]), "".join(lines[idx + 1 :])
    return None, text


def load_config(path: Path) -> WorkspaceConfig:
    """Read a manifest file and validate it."""
    # absolute(), not resolve(): a manifest symlinked into a worktree must
    # keep the worktree as its workspace directory.
    path = path.expanduser().absolute()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError("manifest", f"{path} does not exist") from None

    frontmatter, body = split_frontmatter(text)
    if frontmatter is None:
        # Plain YAML files are accepted as-is, with no index body.
        frontmatter, body = text, ""
    try:
        raw = yaml.safe_load(frontmatter)
    except yaml.YAMLError as exc:
        raise ConfigError("manifest", f"invalid YAML in {path}: {exc}") from exc

    config = parse(raw, manifest_path=path)
    index = body.strip()
    if index:
        config = config.model_copy(update={"index": index})
    logger.debug("Loaded workspace '{}' from {}", config.workspace, path)
    return config


def find_manifest(start: Path, name: str) -> Path | None:
    """Walk up from ``start`` looking for a file called ``name``."""
    current = start.expanduser().resolve()
    for directory in (current, *current.parents):
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse(raw: Any, *, manifest_path: Path | None = None) -> WorkspaceConfig:
    """Validate a raw manifest mapping into a ``WorkspaceConfig``.

    Relative paths resolve against the manifest's directory (or the current
    directory when ``manifest_path`` is None).  Raises ``ConfigError``.
    """
    if not isinstance(raw, Mapping):
        raise ConfigError("manifest", "expected a mapping at the top level")

    base_dir = manifest_path.parent if manifest_path is not None else Path.cwd()

    workspace = raw.get("workspace", raw.get("name"))
    if not isinstance(workspace, str) or not workspace.strip():
        raise ConfigError("workspace", "a non-empty workspace id is required")

    roots = _parse_skill_roots(raw.get("skills") or [], base_dir)

    layouts = raw.get("layouts") or {}
    if not isinstance(layouts, Mapping):
        raise ConfigError("layouts", "expected a mapping")
    panes = _parse_panes(layouts.get("panes") or [], base_dir)
    grids = _parse_grids(layouts.get("grids") or {}, {p.name for p in panes})

    return WorkspaceConfig(
        workspace=workspace.strip(),
        panes=panes,
        skill_roots=roots,
        grids=grids,
        manifest_path=manifest_path,
    )


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _parse_skill_roots(entries: Any, base_dir: Path) -> list[SkillSourceRoot]:
    if not isinstance(entries, list):
        raise ConfigError("skills", "expected a list of {path: ...} entries")

    roots: list[SkillSourceRoot] = []
    seen: set[Path] = set()
    for idx, entry in enumerate(entries):
        field = f"skills[{idx}]"
        if isinstance(entry, str):
            entry = {"path": entry}
        item = _validate(_SkillRootEntry, entry, field)
        path = _resolve_path(item.path, base_dir)
        if path in seen:
            logger.debug("Skill root {} listed twice; keeping first position", path)
            continue
        seen.add(path)
        roots.append(SkillSourceRoot(path=path, priority=len(roots)))
    return roots


def _parse_panes(entries: Any, base_dir: Path) -> list[PaneDefinition]:
    if not isinstance(entries, list):
        raise ConfigError("layouts.panes", "expected a list of panes")
    if not entries:
        raise ConfigError("layouts.panes", "at least one pane is required")

    panes: list[PaneDefinition] = []
    names: set[str] = set()
    for idx, entry in enumerate(entries):
        field = f"layouts.panes[{idx}]"
        item = _validate(_PaneEntry, entry, field)
        pane = _build_pane(item, field, base_dir)
        if pane.name in names:
            raise ConfigError(f"{field}.name", f"duplicate pane name '{pane.name}'")
        names.add(pane.name)
        panes.append(pane)
    return panes


def _build_pane(item: _PaneEntry, field: str, base_dir: Path) -> PaneDefinition:
    type_name = item.type.strip().lower()
    if type_name == _SHELL_TYPE:
        kind = PaneKind.CUSTOM
        name = item.name or _SHELL_TYPE
    else:
        try:
            kind = PaneKind(type_name)
        except ValueError:
            allowed = ", ".join([*PaneKind, _SHELL_TYPE])
            message = f"unknown pane type '{item.type}' (expected one of: {allowed})"
            raise ConfigError(f"{field}.type", message) from None
        name = item.name or (type_name if kind.is_assistant else None)

    if not name:
        raise ConfigError(f"{field}.name", "custom panes require a name")

    selector = _parse_selector(item.skills, f"{field}.skills")
    if not kind.is_assistant and not selector.is_empty:
        raise ConfigError(f"{field}.skills", f"custom pane '{name}' cannot load skills")

    return PaneDefinition(
        name=name,
        kind=kind,
        skills=selector,
        command=item.command,
        args=item.args,
        path=_resolve_path(item.path, base_dir) if item.path else None,
        model=item.model,
        prompt=item.prompt,
        allowed_tools=item.allowed_tools,
        disallowed_tools=item.disallowed_tools,
        color=item.color,
        notes=item.notes,
    )


def _parse_selector(names: list[str] | str, field: str) -> SkillSelector:
    if isinstance(names, str):
        names = [names]
    if WILDCARD in names:
        if len(names) > 1:
            raise ConfigError(field, f"'{WILDCARD}' cannot be combined with explicit skill names")
        return SkillSelector(wildcard=True)
    for name in names:
        if not name.strip():
            raise ConfigError(field, "skill names must be non-empty")
    # Repeated names collapse; order of first mention is kept.
    return SkillSelector(names=tuple(dict.fromkeys(n.strip() for n in names)))


def _parse_grids(entries: Any, pane_names: set[str]) -> dict[str, GridSpec]:
    if not isinstance(entries, Mapping):
        raise ConfigError("layouts.grids", "expected a mapping of grid name to cells")

    grids: dict[str, GridSpec] = {}
    for grid_name, body in entries.items():
        field = f"layouts.grids.{grid_name}"
        if not isinstance(body, Mapping):
            raise ConfigError(field, "expected a mapping of pane name to placement")

        cells_raw = dict(body)
        type_value = cells_raw.pop("type", GridKind.TMUX.value)
        try:
            kind = GridKind(str(type_value).lower())
        except ValueError:
            allowed = ", ".join(GridKind)
            message = f"unknown grid type '{type_value}' (expected one of: {allowed})"
            raise ConfigError(f"{field}.type", message) from None

        cells: dict[str, CellPlacement] = {}
        for pane_name, placement in cells_raw.items():
            cell_field = f"{field}.{pane_name}"
            if pane_name not in pane_names:
                raise ConfigError(cell_field, f"references undeclared pane '{pane_name}'")
            cells[str(pane_name)] = _validate(CellPlacement, placement or {}, cell_field)

        if not cells:
            raise ConfigError(field, "grid has no cells")
        grids[str(grid_name)] = GridSpec(name=str(grid_name), kind=kind, cells=cells)
    return grids


def _validate[M: BaseModel](model: type[M], value: Any, field: str) -> M:
    """Validate ``value`` against ``model``, rewriting failures as ``ConfigError``."""
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        error = exc.errors()[0]
        loc = ".".join(str(part) for part in error["loc"])
        path = f"{field}.{loc}" if loc else field
        raise ConfigError(path, error["msg"]) from None
