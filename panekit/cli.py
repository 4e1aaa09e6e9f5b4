from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from panekit.workspace.errors import ConfigError, WorkspaceError
from panekit.workspace.managers.skills import DuplicateSkillError, SkillNotFoundError


class _WorkspaceGroup(click.Group):
    """Click group that reports domain errors as ``Error: ...`` with exit code 1.

    An unknown command name is taken as a pane: ``panekit claude`` runs
    ``panekit run claude``.
    """

    def resolve_command(self, ctx: click.Context, args: list[str]):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            return "run", self.get_command(ctx, "run"), args
        return super().resolve_command(ctx, args)

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (WorkspaceError, SkillNotFoundError, DuplicateSkillError) as exc:
            raise click.ClickException(str(exc)) from exc


@dataclass
class _State:
    manifest: Path | None

    @property
    def settings(self):
        from panekit.workspace.settings import get_settings

        return get_settings()

    def manifest_path(self, *, required: bool = True) -> Path | None:
        """Explicit ``-m`` path, else the nearest manifest above the cwd."""
        from panekit.workspace.config import find_manifest

        if self.manifest is not None:
            return self.manifest
        found = find_manifest(Path.cwd(), self.settings.manifest_name)
        if found is None and required:
            raise ConfigError(
                "manifest",
                f"no {self.settings.manifest_name} found in {Path.cwd()} or its parents (run 'panekit init')",
            )
        return found

    def load_config(self):
        from panekit.workspace.config import load_config

        return load_config(self.manifest_path())

    def orchestrator(self):
        from panekit.workspace.execution.orchestrator import SessionOrchestrator
        from panekit.workspace.multiplexer.tmux import TmuxMultiplexer

        return SessionOrchestrator(TmuxMultiplexer(self.settings.tmux_socket_name))


def _ok(verb: str, what: str) -> None:
    click.echo(f"{click.style('✔', fg='green')} {click.style(verb, dim=True)} {what}")


# ---------------------------------------------------------------------------
# Launch / kill
# ---------------------------------------------------------------------------


@click.group(cls=_WorkspaceGroup, invoke_without_command=True)
@click.option(
    "-m",
    "--manifest",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Workspace manifest (default: nearest PANEKIT.md).",
)
@click.option(
    "-p",
    "--profile",
    "--grid",
    "grid_name",
    default=None,
    metavar="GRID",
    help="Grid to launch (default: PANEKIT_DEFAULT_GRID, else 'default').",
)
@click.option("-w", "--worktree", default=None, metavar="BRANCH", help="Launch from a git worktree for BRANCH.")
@click.option(
    "-k",
    "--kill",
    "kill_name",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[NAME]",
    help="Kill a workspace session (default: this workspace, or the current tmux session).",
)
@click.option("--keep-skills", is_flag=True, default=False, help="With -k: leave skill symlinks in place.")
@click.option("--prune", is_flag=True, default=False, help="With -k -w: also remove the git worktree.")
@click.option("--no-attach", is_flag=True, default=False, help="Create the session without attaching.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging on stderr.")
@click.version_option(package_name="panekit")
@click.pass_context
def main(
    ctx: click.Context,
    manifest: Path | None,
    grid_name: str | None,
    worktree: str | None,
    kill_name: str | None,
    keep_skills: bool,
    prune: bool,
    no_attach: bool,
    verbose: bool,
) -> None:
    """panekit - reproducible tmux workspaces for AI coding assistants."""
    from panekit.workspace.log import setup_logging

    state = _State(manifest=manifest)
    setup_logging("DEBUG" if verbose else state.settings.log_level)
    ctx.obj = state

    if ctx.invoked_subcommand is not None:
        if kill_name is not None or worktree is not None:
            raise click.UsageError("-k/--kill and -w/--worktree cannot be combined with a subcommand")
        return
    if kill_name is not None:
        _kill(state, kill_name or None, worktree, keep_skills=keep_skills, prune=prune)
        return
    if keep_skills or prune:
        raise click.UsageError("--keep-skills and --prune require -k/--kill")
    _launch(state, grid_name, worktree, attach=not no_attach)


def _launch(state: _State, grid_name: str | None, worktree: str | None, *, attach: bool) -> None:
    from panekit.workspace import git
    from panekit.workspace.config import load_config
    from panekit.workspace.execution.orchestrator import session_name
    from panekit.workspace.models.enums import GridKind, LaunchOutcome

    config = state.load_config()
    name = session_name(config.workspace)
    if worktree is not None:
        info = git.ensure_worktree(config.workspace_dir, worktree)
        if info.created:
            _ok("Created worktree", str(info.path))
        config = load_config(git.worktree_manifest(config.manifest_path, info))
        name = session_name(config.workspace, git.branch_dirname(worktree))

    grid = grid_name or state.settings.default_grid
    orchestrator = state.orchestrator()
    result = orchestrator.launch(config, grid, name, attach=False)
    if result.outcome is LaunchOutcome.EXECUTED:
        return
    if result.outcome is LaunchOutcome.CREATED:
        _ok("Created session", name)
    else:
        click.echo(f"Session '{name}' is already running; attaching")
    if attach:
        orchestrator.join(name, control_mode=config.grid(grid).kind is GridKind.TMUX_CC)


def _kill(state: _State, name: str | None, worktree: str | None, *, keep_skills: bool, prune: bool) -> None:
    from panekit.workspace import git
    from panekit.workspace.execution.orchestrator import session_name

    if prune and worktree is None:
        raise click.UsageError("--prune requires -w/--worktree")

    orchestrator = state.orchestrator()
    config = None
    if name is None:
        if worktree is None:
            name = orchestrator.multiplexer.current_session()
        if name is None:
            config = state.load_config()
            name = session_name(config.workspace, git.branch_dirname(worktree) if worktree else None)

    if orchestrator.kill(name, keep_skills=keep_skills):
        _ok("Killed session", name)
    else:
        click.echo(f"No session named '{name}'")

    if prune:
        config = config or state.load_config()
        if git.remove_worktree(config.workspace_dir, worktree):
            _ok("Removed worktree for", worktree)


def _run_pane(state: _State, pane: str, prompt: str | None) -> None:
    state.orchestrator().launch_pane(state.load_config(), pane, prompt=prompt)


@main.command(name="run")
@click.argument("pane")
@click.option("--prompt", default=None, metavar="TEXT", help="Replace the pane's opening prompt.")
@click.pass_obj
def run(state: _State, pane: str, prompt: str | None) -> None:
    """Run one pane from the manifest in this terminal, outside tmux."""
    _run_pane(state, pane, prompt)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@main.command()
@click.option("--name", default=None, help="Workspace id (default: current directory name).")
@click.pass_obj
def init(state: _State, name: str | None) -> None:
    """Create a starter manifest in the current directory."""
    from panekit.workspace.templates import render_manifest

    cwd = Path.cwd()
    target = cwd / state.settings.manifest_name
    if target.exists():
        raise click.ClickException(f"{target.name} already exists in this directory")

    workspace = name or cwd.name or "workspace"
    global_dir = state.settings.global_skills_dir
    try:
        shown = f"~/{global_dir.relative_to(Path.home())}"
    except ValueError:
        shown = str(global_dir)
    target.write_text(render_manifest(workspace, shown), encoding="utf-8")
    _ok("Created", target.name)
    click.echo(f"\nLaunch with: {click.style('panekit', fg='blue')}")


# ---------------------------------------------------------------------------
# session
# ---------------------------------------------------------------------------


@main.group()
def session() -> None:
    """List, join and kill running sessions."""


@session.command(name="list")
@click.option("-a", "--all", "show_all", is_flag=True, help="Include tmux sessions not created by panekit.")
@click.pass_obj
def session_list(state: _State, show_all: bool) -> None:
    """List running sessions."""
    infos = state.orchestrator().list_sessions()
    if not show_all:
        infos = [i for i in infos if i.manifest is not None]
    if not infos:
        click.echo("No running sessions")
        return

    table = Table(show_header=True)
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Panes", justify="right")
    table.add_column("Attached", style="green")
    table.add_column("Manifest", style="dim")
    for info in infos:
        table.add_row(info.name, str(info.panes), "yes" if info.attached else "", info.manifest or "")
    Console().print(table)


session.add_command(session_list, name="ls")


@session.command(name="new")
@click.argument("pane", required=False)
@click.option("-p", "--profile", "grid_name", default=None, metavar="GRID", help="Grid to launch.")
@click.option("--no-attach", is_flag=True, default=False, help="Create the session without attaching.")
@click.pass_obj
def session_new(state: _State, pane: str | None, grid_name: str | None, no_attach: bool) -> None:
    """Launch the workspace, or a single PANE in this terminal."""
    if pane is not None:
        _run_pane(state, pane, None)
        return
    _launch(state, grid_name, None, attach=not no_attach)


@session.command(name="join")
@click.argument("name")
@click.pass_obj
def session_join(state: _State, name: str) -> None:
    """Attach to (or switch to) a running session."""
    if not state.orchestrator().join(name):
        raise click.ClickException(f"No session named '{name}'")


@session.command(name="kill")
@click.argument("name", required=False)
@click.option("--keep-skills", is_flag=True, default=False, help="Leave skill symlinks in place.")
@click.pass_obj
def session_kill(state: _State, name: str | None, keep_skills: bool) -> None:
    """Kill a session and remove the skill links it created."""
    _kill(state, name, None, keep_skills=keep_skills, prune=False)


# ---------------------------------------------------------------------------
# skill
# ---------------------------------------------------------------------------


def _local_skills_dir(state: _State) -> Path:
    from panekit.workspace.managers.skills import LOCAL_SKILLS_DIR

    manifest = state.manifest_path(required=False)
    base = manifest.parent if manifest is not None else Path.cwd()
    return base / LOCAL_SKILLS_DIR


@main.group()
def skill() -> None:
    """Manage skills (local ./skills and the global skills directory)."""


@skill.command(name="list")
@click.pass_obj
def skill_list(state: _State) -> None:
    """List skills visible to this workspace."""
    from panekit.workspace.managers.skills import list_skills
    from panekit.workspace.models.config import SkillSourceRoot

    if state.manifest_path(required=False) is not None:
        roots = state.load_config().skill_roots
    else:
        roots = [
            SkillSourceRoot(path=_local_skills_dir(state), priority=0),
            SkillSourceRoot(path=state.settings.global_skills_dir, priority=1),
        ]

    infos = list_skills(roots)
    if not infos:
        click.echo("No skills found")
        return

    table = Table(show_header=True)
    table.add_column("Skill", style="cyan", no_wrap=True)
    table.add_column("Location", style="dim")
    table.add_column("Description")
    for info in infos:
        location = f"{info.location} (linked)" if info.linked else str(info.location)
        table.add_row(info.name, location, info.description)
    Console().print(table)


skill.add_command(skill_list, name="ls")


@skill.command(name="import")
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_obj
def skill_import(state: _State, path: Path) -> None:
    """Copy a skill file, or a directory of them, into the global skills directory."""
    from panekit.workspace.managers.skills import import_skills

    try:
        imported, skipped = import_skills(path, state.settings.global_skills_dir)
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    for name in imported:
        _ok("Imported", f"{name}/SKILL.md")
    for name in skipped:
        click.echo(f"- {click.style('Skipped', dim=True)} {name}/SKILL.md (already exists)")


@skill.command(name="new")
@click.argument("name", required=False)
@click.option("--global", "use_global", is_flag=True, default=False, help="Create in the global skills directory.")
@click.option("--replace", is_flag=True, default=False, help="Overwrite an existing skill of the same name.")
@click.option("--no-edit", is_flag=True, default=False, help="Do not open $EDITOR.")
@click.pass_obj
def skill_new(state: _State, name: str | None, use_global: bool, replace: bool, no_edit: bool) -> None:
    """Create a skill from a template and open it in $EDITOR."""
    from panekit.workspace.managers.skills import new_skill

    if name is None:
        name = click.prompt("Skill name")
    skills_dir = state.settings.global_skills_dir if use_global else _local_skills_dir(state)
    skill_file = new_skill(name, skills_dir, replace=replace)
    _ok("Created", str(skill_file))
    if not no_edit:
        click.edit(filename=str(skill_file))


@skill.command(name="fork")
@click.argument("name")
@click.pass_obj
def skill_fork(state: _State, name: str) -> None:
    """Copy a global skill into this workspace."""
    from panekit.workspace.managers.skills import fork_skill

    path = fork_skill(name, state.settings.global_skills_dir, _local_skills_dir(state))
    _ok("Forked", str(path))


@skill.command(name="link")
@click.argument("name")
@click.pass_obj
def skill_link(state: _State, name: str) -> None:
    """Symlink a global skill into this workspace."""
    from panekit.workspace.managers.skills import link_skill

    path = link_skill(name, state.settings.global_skills_dir, _local_skills_dir(state))
    _ok("Linked", str(path))


@skill.command(name="rm")
@click.argument("name")
@click.option("--global", "use_global", is_flag=True, default=False, help="Remove from the global skills directory.")
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
@click.pass_obj
def skill_rm(state: _State, name: str, use_global: bool, yes: bool) -> None:
    """Remove a skill."""
    from panekit.workspace.managers.skills import SkillNotFoundError, find_skill, remove_skill

    skills_dir = state.settings.global_skills_dir if use_global else _local_skills_dir(state)
    target = find_skill(name, skills_dir)
    if target is None:
        raise SkillNotFoundError(name, skills_dir)
    if not yes and not click.confirm(f"Remove {target}?", default=False):
        click.echo("Cancelled")
        return
    remove_skill(name, skills_dir)
    _ok("Removed", str(target))


# ---------------------------------------------------------------------------
# layout
# ---------------------------------------------------------------------------


@main.group()
def layout() -> None:
    """Inspect the manifest's panes and grids."""


@layout.command(name="ls")
@click.pass_obj
def layout_ls(state: _State) -> None:
    """Print panes and grids as JSON."""
    config = state.load_config()
    payload = {
        "workspace": config.workspace,
        "panes": [pane.model_dump(mode="json", exclude_defaults=True) for pane in config.panes],
        "grids": {name: grid.model_dump(mode="json", exclude_none=True) for name, grid in config.grids.items()},
    }
    click.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
