"""Driver adapters -- one command builder per pane kind.

Each builder maps a ``PaneDefinition`` (plus its resolved skills) to an
``ExecutionSpec``.  Dispatch is closed over ``PaneKind``; unknown kinds
never reach this module because the manifest parser rejects them.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

from panekit.workspace.execution.skills import skill_dir
from panekit.workspace.models.config import PaneDefinition
from panekit.workspace.models.enums import PaneKind
from panekit.workspace.models.execution import ExecutionSpec, ResolvedSkill

ENV_PANE = "PANEKIT_PANE"
ENV_SKILLS_DIR = "PANEKIT_SKILLS_DIR"
ENV_SKILLS = "PANEKIT_SKILLS"

CODEX_DOC_FALLBACK = 'project_doc_fallback_filenames=["AGENTS.md"]'

_ArgBuilder = Callable[[PaneDefinition, str | None], list[str]]


# ---------------------------------------------------------------------------
# Per-kind argument builders
# ---------------------------------------------------------------------------


def _claude_args(pane: PaneDefinition, context: str | None) -> list[str]:
    args: list[str] = []
    if pane.allowed_tools:
        args += ["--allowedTools", ",".join(pane.allowed_tools)]
    if pane.disallowed_tools:
        args += ["--disallowedTools", ",".join(pane.disallowed_tools)]
    if pane.model:
        args += ["--model", pane.model]
    args += pane.args
    if pane.prompt:
        args.append(pane.prompt)
    return args


def _codex_args(pane: PaneDefinition, context: str | None) -> list[str]:
    # Without an explicit prompt the workspace context opens the session.
    args = ["-c", CODEX_DOC_FALLBACK]
    if pane.model:
        args += ["-m", pane.model]
    args += pane.args
    if pane.prompt or context:
        args.append(pane.prompt or context)
    return args


def _opencode_args(pane: PaneDefinition, context: str | None) -> list[str]:
    args: list[str] = []
    if pane.model:
        args += ["--model", pane.model]
    args += pane.args
    if pane.prompt:
        args += ["--prompt", pane.prompt]
    return args


def _antigravity_args(pane: PaneDefinition, context: str | None) -> list[str]:
    args: list[str] = []
    if pane.model:
        args += ["--model", pane.model]
    return args + pane.args


_BUILDERS: dict[PaneKind, _ArgBuilder] = {
    PaneKind.CLAUDE: _claude_args,
    PaneKind.CODEX: _codex_args,
    PaneKind.OPENCODE: _opencode_args,
    PaneKind.ANTIGRAVITY: _antigravity_args,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def initial_prompt(workspace: str, index: str) -> str:
    """Opening prompt built from the manifest body."""
    return (
        f"Context: You're working on a project called {workspace}. "
        f"Here's the project documentation:\n\n{index}\n\n---\nAwaiting your instructions."
    )


def working_dir(pane: PaneDefinition, workspace_dir: Path) -> Path:
    """The pane's own path, else the workspace directory."""
    return pane.path or workspace_dir


def build(
    pane: PaneDefinition,
    skills: Sequence[ResolvedSkill],
    *,
    workspace_dir: Path,
    color: str | None = None,
    context: str | None = None,
) -> ExecutionSpec:
    """Build the ``ExecutionSpec`` for one pane.

    ``color`` is a grid-level override; it wins over the pane's own color.
    ``context`` is the workspace index prompt (see ``initial_prompt``), used
    by kinds that cannot pick it up from a context file.
    """
    cwd = working_dir(pane, workspace_dir)
    env = {ENV_PANE: pane.name}
    common = {
        "pane": pane.name,
        "cwd": cwd,
        "title": pane.name,
        "color": color or pane.color,
        "notes": pane.notes,
    }

    if pane.kind is PaneKind.CUSTOM:
        if pane.command:
            # Extra args are appended to the user's command line untouched.
            raw = " ".join([pane.command, *pane.args])
            return ExecutionSpec(raw_command=raw, env=env, **common)
        return ExecutionSpec(env=env, **common)

    env[ENV_SKILLS_DIR] = str(cwd / skill_dir(pane.kind))
    if skills:
        env[ENV_SKILLS] = ",".join(s.name for s in skills)
    return ExecutionSpec(
        program=pane.command or pane.kind.value,
        args=_BUILDERS[pane.kind](pane, context),
        env=env,
        **common,
    )
