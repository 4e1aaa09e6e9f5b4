"""Symlink materialization with an undo record.

``LinkLedger`` writes skill and index symlinks idempotently:

- link already points at the wanted target: nothing to do
- link points somewhere else: replace it, remembering the old target
- nothing there: create it (and any missing parent directories)
- a regular file or directory is in the way: warn and leave it alone

What a launch wrote is kept as a ``LinkRecord`` so that the same
invocation can roll back on failure, and a later ``kill`` can undo
exactly those links.  The record is stored as JSON in the tmux session
environment, so it lives and dies with the session.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field

from panekit.workspace.errors import WorkspaceError


class LinkRecord(BaseModel):
    """Symlinks written by one launch."""

    created: list[Path] = Field(default_factory=list)
    replaced: dict[str, Path] = Field(default_factory=dict)
    """Link path -> target it had before this launch replaced it."""
    created_dirs: list[Path] = Field(default_factory=list)
    """Directories created to hold links, shallowest first."""

    @property
    def is_empty(self) -> bool:
        return not (self.created or self.replaced or self.created_dirs)

    def links(self) -> list[Path]:
        return [*self.created, *(Path(p) for p in self.replaced)]

    def merge(self, other: LinkRecord) -> LinkRecord:
        """Union of both records; entries already in ``self`` win."""
        return LinkRecord(
            created=list(dict.fromkeys([*self.created, *other.created])),
            replaced={**other.replaced, **self.replaced},
            created_dirs=sorted({*self.created_dirs, *other.created_dirs}, key=lambda p: len(p.parts)),
        )


class LinkLedger:
    """Writes symlinks and remembers how to undo them."""

    def __init__(self) -> None:
        self.record = LinkRecord()

    def materialize(self, path: Path, target: Path) -> bool:
        """Point ``path`` at ``target``.  Returns True if anything changed."""
        if path.is_symlink():
            current = path.readlink()
            if current == target:
                return False
            if path not in self.record.created and str(path) not in self.record.replaced:
                self.record.replaced[str(path)] = current
            logger.debug("Replacing stale link {} -> {} (was {})", path, target, current)
            path.unlink()
            self._symlink(path, target)
            return True

        if path.exists():
            logger.warning("Not linking {}: a regular file or directory is in the way", path)
            return False

        missing: list[Path] = []
        parent = path.parent
        while not parent.exists():
            missing.append(parent)
            parent = parent.parent
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"Cannot create {path.parent}: {exc}") from exc
        self.record.created_dirs.extend(reversed(missing))

        self._symlink(path, target)
        self.record.created.append(path)
        logger.debug("Linked {} -> {}", path, target)
        return True

    @staticmethod
    def _symlink(path: Path, target: Path) -> None:
        try:
            path.symlink_to(target)
        except OSError as exc:
            raise WorkspaceError(f"Cannot link {path} -> {target}: {exc}") from exc

    def rollback(self) -> None:
        """Undo everything this ledger wrote, then forget it."""
        remove_links(self.record)
        self.record = LinkRecord()


def remove_links(record: LinkRecord) -> list[Path]:
    """Undo ``record``: remove the links it created, restore the ones it replaced.

    Links already gone are tolerated, and a path that is no longer a
    symlink is left alone.  Returns the paths actually removed or restored.
    """
    touched = [path for path in reversed(record.created) if _unlink(path)]
    for raw_path, previous in record.replaced.items():
        path = Path(raw_path)
        if _restore(path, previous):
            touched.append(path)
    _prune_dirs(record.created_dirs)
    return touched


def _unlink(path: Path) -> bool:
    # Only ever remove symlinks; anything else was not written by us.
    if not path.is_symlink():
        return False
    path.unlink()
    return True


def _restore(path: Path, previous: Path) -> bool:
    if path.exists() and not path.is_symlink():
        return False
    if not path.parent.is_dir():
        logger.warning("Cannot restore {} -> {}: {} is gone", path, previous, path.parent)
        return False
    _unlink(path)
    path.symlink_to(previous)
    logger.debug("Restored {} -> {}", path, previous)
    return True


def _prune_dirs(dirs: list[Path]) -> None:
    for directory in reversed(dirs):
        if directory.is_dir() and not directory.is_symlink() and not any(directory.iterdir()):
            directory.rmdir()
