"""Session orchestrator -- launch, kill, list and join workspaces.

Per session name the lifecycle is::

    ABSENT -> CREATING -> LIVE -> KILLING -> ABSENT
    LIVE -> LIVE            (re-launch attaches)
    CREATING -> ABSENT      (rollback after a partial failure)

Every state-dependent step re-queries the multiplexer right before it
acts; nothing about tmux state is cached between calls.  Everything that
can be rejected up front (manifest, skills, geometry) is computed by
``plan_launch`` before the first symlink or tmux call.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ValidationError

from panekit.workspace.errors import ExternalToolError, WorkspaceError
from panekit.workspace.execution import drivers
from panekit.workspace.execution.layout import compile_grid
from panekit.workspace.execution.links import LinkLedger, LinkRecord, remove_links
from panekit.workspace.execution.skills import INDEX_LINKS, find_index, resolve
from panekit.workspace.models.config import CellPlacement, GridSpec, PaneDefinition, WorkspaceConfig
from panekit.workspace.models.enums import GridKind, LaunchOutcome, SessionState
from panekit.workspace.models.execution import ExecutionSpec
from panekit.workspace.models.geometry import GeometryLeaf, GeometryTree, iter_leaves
from panekit.workspace.multiplexer.base import GRID_KEY, LINKS_KEY, MANIFEST_KEY, Multiplexer, SessionInfo

ExecHook = Callable[[ExecutionSpec], None]

_UNSAFE_NAME_CHARS = re.compile(r"[.:/\\\s]+")


def session_name(workspace: str, worktree: str | None = None) -> str:
    """tmux-safe session name for a workspace (and optional worktree branch)."""
    name = workspace if worktree is None else f"{workspace}-{worktree}"
    return _UNSAFE_NAME_CHARS.sub("-", name).strip("-") or "panekit"


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


@dataclass
class LaunchPlan:
    """Everything a launch will do, computed without side effects."""

    grid: GridSpec
    tree: GeometryTree
    specs: dict[str, ExecutionSpec]
    links: list[tuple[Path, Path]] = field(default_factory=list)
    """(link path, target) pairs, in materialization order."""

    @property
    def leaves(self) -> list[GeometryLeaf]:
        return list(iter_leaves(self.tree))


def plan_launch(config: WorkspaceConfig, grid_name: str) -> LaunchPlan:
    """Resolve skills, compile the grid and build every pane's spec.

    Raises ``ConfigError``, ``ResolutionError`` or ``GeometryError``; touches
    neither tmux nor the filesystem beyond reading skill roots.
    """
    grid = config.grid(grid_name)
    return _plan(config, grid, compile_grid(grid, config.pane_names))


def plan_pane(config: WorkspaceConfig, pane_name: str, *, prompt: str | None = None) -> LaunchPlan:
    """Plan a single declared pane to run in place, outside any grid.

    ``prompt`` replaces the pane's own opening prompt.
    """
    pane = config.pane(pane_name)
    if prompt is not None:
        pane = pane.model_copy(update={"prompt": prompt})
    grid = GridSpec(name=pane.name, kind=GridKind.SHELL, cells={pane.name: CellPlacement()})
    return _plan(config, grid, GeometryLeaf(pane=pane.name), {pane.name: pane})


def _plan(
    config: WorkspaceConfig,
    grid: GridSpec,
    tree: GeometryTree,
    overrides: dict[str, PaneDefinition] | None = None,
) -> LaunchPlan:
    overrides = overrides or {}
    index = find_index(config.skill_roots)
    context = drivers.initial_prompt(config.workspace, config.index) if config.index else None

    specs: dict[str, ExecutionSpec] = {}
    links: list[tuple[Path, Path]] = []
    for leaf in iter_leaves(tree):
        pane = overrides.get(leaf.pane) or config.pane(leaf.pane)
        skills = resolve(pane.skills, config.skill_roots, pane.kind) if pane.kind.is_assistant else []
        spec = drivers.build(
            pane,
            skills,
            workspace_dir=config.workspace_dir,
            color=leaf.color,
            context=context,
        )
        specs[pane.name] = spec
        links.extend((spec.cwd / skill.link, skill.source) for skill in skills)
        if index is not None and pane.kind in INDEX_LINKS:
            links.append((spec.cwd / INDEX_LINKS[pane.kind], index))

    # Panes sharing a working directory and kind want identical links.
    return LaunchPlan(grid=grid, tree=tree, specs=specs, links=list(dict.fromkeys(links)))


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class LaunchResult(BaseModel):
    session: str
    outcome: LaunchOutcome
    links: int = 0
    """Symlinks created or replaced by this invocation."""


def exec_spec(spec: ExecutionSpec) -> None:
    """Replace the current process with ``spec`` (shell grids and single-pane runs)."""
    os.chdir(spec.cwd)
    env = {**os.environ, **spec.env}
    if spec.program is not None:
        os.execvpe(spec.program, spec.argv, env)  # noqa: S606
    elif spec.raw_command:
        os.execvpe("/bin/sh", ["/bin/sh", "-c", spec.raw_command], env)  # noqa: S606
    else:
        shell = os.environ.get("SHELL", "/bin/sh")
        os.execvpe(shell, [shell], env)  # noqa: S606


class SessionOrchestrator:
    """Drives sessions through their lifecycle via a ``Multiplexer``."""

    def __init__(self, multiplexer: Multiplexer, *, exec_hook: ExecHook = exec_spec) -> None:
        self.multiplexer = multiplexer
        self.exec_hook = exec_hook

    def state(self, name: str) -> SessionState:
        return SessionState.LIVE if name in self.multiplexer.list_sessions() else SessionState.ABSENT

    # -- Launch ----------------------------------------------------------------

    def launch(
        self,
        config: WorkspaceConfig,
        grid_name: str,
        name: str,
        *,
        attach: bool = True,
    ) -> LaunchResult:
        """Bring session ``name`` to LIVE.

        A live session is attached as-is.  An absent one is created from
        ``grid_name``; if any step after the first symlink fails, the
        session and this invocation's symlinks are rolled back and the
        error is re-raised.
        """
        grid = config.grid(grid_name)
        if grid.kind is GridKind.SHELL:
            return self._exec_plan(plan_launch(config, grid_name))

        if self.state(name) is SessionState.LIVE:
            return self._attach_existing(config, name, grid, attach)

        plan = plan_launch(config, grid_name)
        logger.debug("Session '{}': {} -> {}", name, SessionState.ABSENT, SessionState.CREATING)

        ledger = LinkLedger()
        created = False
        try:
            for path, target in plan.links:
                ledger.materialize(path, target)

            try:
                handle = self.multiplexer.create_session(
                    name,
                    plan.tree,
                    start_directory=str(config.workspace_dir),
                    window_name=config.workspace,
                )
            except ExternalToolError:
                if self.state(name) is SessionState.LIVE:
                    # Another invocation created it first; its kill must also undo our links.
                    logger.info("Session '{}' was created concurrently; attaching", name)
                    self._merge_record(name, ledger.record)
                    return self._attach_existing(config, name, grid, attach)
                raise
            created = True

            self._store_metadata(config, grid_name, name, ledger.record)
            for leaf in plan.leaves:
                self.multiplexer.start_pane(handle, leaf, plan.specs[leaf.pane])
        except WorkspaceError:
            logger.debug("Session '{}': rolling back ({} -> {})", name, SessionState.CREATING, SessionState.ABSENT)
            try:
                if created:
                    self.multiplexer.kill_session(name)
            except WorkspaceError as kill_error:
                logger.warning("Could not kill half-built session '{}': {}", name, kill_error)
            finally:
                ledger.rollback()
            raise

        changed = len(ledger.record.created) + len(ledger.record.replaced)
        logger.debug("Session '{}': {} -> {}", name, SessionState.CREATING, SessionState.LIVE)
        if attach:
            self.multiplexer.attach(name, control_mode=grid.kind is GridKind.TMUX_CC)
        return LaunchResult(session=name, outcome=LaunchOutcome.CREATED, links=changed)

    def _store_metadata(self, config: WorkspaceConfig, grid_name: str, name: str, record: LinkRecord) -> None:
        if config.manifest_path is not None:
            self.multiplexer.set_metadata(name, MANIFEST_KEY, str(config.manifest_path))
        self.multiplexer.set_metadata(name, GRID_KEY, grid_name)
        self.multiplexer.set_metadata(name, LINKS_KEY, record.model_dump_json())

    def _merge_record(self, name: str, record: LinkRecord) -> None:
        if record.is_empty:
            return
        merged = self._read_record(name).merge(record)
        self.multiplexer.set_metadata(name, LINKS_KEY, merged.model_dump_json())

    def _attach_existing(self, config: WorkspaceConfig, name: str, grid: GridSpec, attach: bool) -> LaunchResult:
        manifest = self.multiplexer.get_metadata(name, MANIFEST_KEY)
        if manifest is not None and config.manifest_path is not None and manifest != str(config.manifest_path):
            logger.warning("Session '{}' was launched from {}, not {}", name, manifest, config.manifest_path)
        if attach:
            self.multiplexer.attach(name, control_mode=grid.kind is GridKind.TMUX_CC)
        return LaunchResult(session=name, outcome=LaunchOutcome.ATTACHED)

    def launch_pane(self, config: WorkspaceConfig, pane_name: str, *, prompt: str | None = None) -> LaunchResult:
        """Run one declared pane in place of this process, outside tmux."""
        return self._exec_plan(plan_pane(config, pane_name, prompt=prompt))

    def _exec_plan(self, plan: LaunchPlan) -> LaunchResult:
        leaf = plan.leaves[0]
        spec = plan.specs[leaf.pane]
        if spec.program is not None and shutil.which(spec.program) is None:
            raise ExternalToolError(spec.argv, f"'{spec.program}' not found on PATH", pane=spec.pane)

        ledger = LinkLedger()
        try:
            for path, target in plan.links:
                ledger.materialize(path, target)
            logger.debug("Executing pane '{}' in place: {}", spec.pane, spec.command_line())
            self.exec_hook(spec)
        except OSError as exc:
            ledger.rollback()
            raise ExternalToolError(spec.command_line() or "exec", str(exc), pane=spec.pane) from exc
        except WorkspaceError:
            ledger.rollback()
            raise
        return LaunchResult(
            session=spec.pane,
            outcome=LaunchOutcome.EXECUTED,
            links=len(ledger.record.created) + len(ledger.record.replaced),
        )

    # -- Kill ------------------------------------------------------------------

    def kill(self, name: str, *, keep_skills: bool = False) -> bool:
        """Tear down ``name``.  Returns False if there was nothing to kill."""
        if self.state(name) is SessionState.ABSENT:
            logger.debug("Session '{}' is not running; nothing to kill", name)
            return False

        logger.debug("Session '{}': {} -> {}", name, SessionState.LIVE, SessionState.KILLING)
        record = self._read_record(name)
        if not self.multiplexer.kill_session(name):
            # Killed concurrently; whoever did it owns the cleanup.
            return False

        if keep_skills:
            logger.debug("Keeping {} skill links for '{}'", len(record.links()), name)
        else:
            removed = remove_links(record)
            logger.debug("Removed or restored {} skill links for '{}'", len(removed), name)
        logger.debug("Session '{}': {} -> {}", name, SessionState.KILLING, SessionState.ABSENT)
        return True

    def _read_record(self, name: str) -> LinkRecord:
        raw = self.multiplexer.get_metadata(name, LINKS_KEY)
        if not raw:
            return LinkRecord()
        try:
            return LinkRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Session '{}' has an unreadable link record; leaving links in place", name)
            return LinkRecord()

    # -- Passthrough -----------------------------------------------------------

    def list_sessions(self) -> list[SessionInfo]:
        return self.multiplexer.describe_sessions()

    def join(self, name: str, *, control_mode: bool = False) -> bool:
        return self.multiplexer.attach(name, control_mode=control_mode)
