"""Git worktree handling for ``--worktree`` launches.

Worktrees live next to the main checkout::

    ~/code/app/             # main repository
    ~/code/app-feat-auth/   # worktree for feat/auth

A missing branch is created from the repository's default branch (or
tracks the remote branch when one exists).
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import BaseModel

from panekit.workspace.errors import ExternalToolError


class WorktreeInfo(BaseModel):
    path: Path
    repo_root: Path
    """Main checkout the worktree belongs to."""
    branch: str
    created: bool = False
    branch_created: bool = False


def branch_dirname(branch: str) -> str:
    """Directory-safe form of a branch name (``feat/auth`` -> ``feat-auth``)."""
    return branch.replace("/", "-").replace("\\", "-")


def _git(args: Sequence[str], cwd: Path, *, check: bool = True) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    try:
        result = subprocess.run(command, cwd=cwd, capture_output=True, text=True, check=False)  # noqa: S603
    except FileNotFoundError as exc:
        raise ExternalToolError(command, "git is not installed") from exc
    if check and result.returncode != 0:
        raise ExternalToolError(command, result.stderr.strip(), returncode=result.returncode)
    return result


def repo_root(path: Path) -> Path:
    return Path(_git(["rev-parse", "--show-toplevel"], path).stdout.strip())


def branch_exists(path: Path, branch: str) -> bool:
    result = _git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], path, check=False)
    return result.returncode == 0


def remote_branch(path: Path, branch: str) -> str | None:
    """First remote-tracking ref for ``branch`` (e.g. ``origin/feat``), if any."""
    result = _git(["branch", "-r", "--list", f"*/{branch}"], path, check=False)
    for line in result.stdout.splitlines():
        ref = line.strip()
        if ref and "->" not in ref:
            return ref
    return None


def default_branch(path: Path) -> str:
    result = _git(["symbolic-ref", "refs/remotes/origin/HEAD", "--short"], path, check=False)
    ref = result.stdout.strip()
    if result.returncode == 0 and ref.startswith("origin/"):
        return ref.removeprefix("origin/")
    for candidate in ("main", "master"):
        if branch_exists(path, candidate):
            return candidate
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], path).stdout.strip()


def list_worktrees(path: Path) -> list[tuple[Path, str]]:
    """``(path, branch)`` for every worktree with a checked-out branch."""
    worktrees: list[tuple[Path, str]] = []
    current: Path | None = None
    for line in _git(["worktree", "list", "--porcelain"], path).stdout.splitlines():
        if line.startswith("worktree "):
            current = Path(line.removeprefix("worktree "))
        elif line.startswith("branch refs/heads/") and current is not None:
            worktrees.append((current, line.removeprefix("branch refs/heads/")))
            current = None
    return worktrees


def find_worktree(path: Path, branch: str) -> Path | None:
    for worktree, name in list_worktrees(path):
        if name == branch:
            return worktree
    return None


def ensure_worktree(cwd: Path, branch: str) -> WorktreeInfo:
    """Return the worktree for ``branch``, creating it (and the branch) if needed."""
    root = repo_root(cwd)
    existing = find_worktree(root, branch)
    if existing is not None:
        if existing.exists():
            return WorktreeInfo(path=existing, repo_root=root, branch=branch)
        logger.debug("Worktree {} is registered but missing; pruning", existing)
        _git(["worktree", "prune"], root)

    target = root.parent / f"{root.name}-{branch_dirname(branch)}"
    branch_created = False
    if branch_exists(root, branch):
        _git(["worktree", "add", str(target), branch], root)
    elif (remote := remote_branch(root, branch)) is not None:
        _git(["worktree", "add", "--track", "-b", branch, str(target), remote], root)
    else:
        base = default_branch(root)
        _git(["worktree", "add", "-b", branch, str(target), base], root)
        branch_created = True

    logger.info("Created worktree {} for branch '{}'", target, branch)
    return WorktreeInfo(path=target, repo_root=root, branch=branch, created=True, branch_created=branch_created)


def remove_worktree(cwd: Path, branch: str, *, force: bool = False) -> bool:
    """Remove the worktree for ``branch``.  Returns False if there is none."""
    worktree = find_worktree(cwd, branch)
    if worktree is None:
        return False
    args = ["worktree", "remove"]
    if force:
        args.append("--force")
    _git([*args, str(worktree)], cwd)
    return True


def worktree_manifest(manifest: Path, worktree: WorktreeInfo) -> Path:
    """The manifest to launch from inside ``worktree``.

    Uses the worktree's own copy when the manifest is tracked; otherwise
    symlinks the main checkout's manifest into the same relative place.
    """
    try:
        # git reports the repository by its real path.
        relative = manifest.resolve().relative_to(worktree.repo_root.resolve())
    except ValueError:
        # Manifest lives outside the repository; nothing to mirror.
        return manifest
    candidate = worktree.path / relative
    if not candidate.exists():
        candidate.parent.mkdir(parents=True, exist_ok=True)
        candidate.symlink_to(manifest)
        logger.debug("Linked manifest {} -> {}", candidate, manifest)
    return candidate
