"""Skill management -- list, import, create, fork, link and remove skills.

Skills live in two kinds of places:

- **local**: ``<workspace>/skills/<name>/SKILL.md`` (or a flat ``<name>.md``)
- **global**: ``~/.config/panekit/skills/<name>/SKILL.md``, shared by all
  workspaces

Every function takes explicit directories; the CLI decides which ones.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import BaseModel

from panekit.workspace.execution.skills import (
    INDEX_FILE,
    INDEX_NAME,
    SKILL_FILE,
    find_in_root,
    iter_root,
    read_skill,
    skill_name_for,
)
from panekit.workspace.models.config import SkillSourceRoot
from panekit.workspace.templates import render_skill

LOCAL_SKILLS_DIR = "skills"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SkillNotFoundError(LookupError):
    """Requested skill does not exist where it was looked for."""

    def __init__(self, name: str, where: Path | None = None) -> None:
        self.name = name
        if where is not None:
            super().__init__(f"Skill '{name}' not found in {where}")
        else:
            super().__init__(f"Skill '{name}' not found")


class DuplicateSkillError(ValueError):
    """A skill with the same name already exists at the destination."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        super().__init__(f"Skill '{name}' already exists at {path}")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class SkillInfo(BaseModel):
    name: str
    location: Path
    """Root the skill was found in."""
    path: Path
    description: str
    linked: bool = False
    """True when the skill directory is a symlink (``skill link``)."""


def list_skills(roots: Sequence[SkillSourceRoot]) -> list[SkillInfo]:
    """Every visible skill across ``roots``, shadowed duplicates hidden."""
    seen: set[str] = set()
    infos: list[SkillInfo] = []
    for root in sorted(roots, key=lambda r: r.priority):
        for name, path in iter_root(root.path):
            if name in seen:
                continue
            seen.add(name)
            infos.append(
                SkillInfo(
                    name=name,
                    location=root.path,
                    path=path,
                    description=read_skill(path).description,
                    linked=(root.path / name).is_symlink(),
                )
            )
    return infos


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def import_skills(source: Path, global_dir: Path) -> tuple[list[str], list[str]]:
    """Copy a skill file, or every ``.md`` in a directory, into ``global_dir``.

    Returns ``(imported, skipped)`` skill names.  Existing names, ``index.md``
    and symlinks are skipped.  Raises ``FileNotFoundError`` for a missing
    source and ``ValueError`` when there is nothing importable.
    """
    source = source.expanduser()
    if not source.exists() and not source.is_symlink():
        raise FileNotFoundError(f"Path not found: {source}")
    if source.is_symlink():
        raise ValueError(f"Cannot import a symlink: {source}")

    if source.is_dir():
        candidates = sorted(p for p in source.iterdir() if p.suffix == ".md" and p.is_file())
        candidates += sorted(p / SKILL_FILE for p in source.iterdir() if (p / SKILL_FILE).is_file())
        if not candidates:
            raise ValueError(f"No .md files found in {source}")
    else:
        candidates = [source]

    imported: list[str] = []
    skipped: list[str] = []
    for path in candidates:
        name = skill_name_for(path)
        if name == INDEX_NAME or path.name == INDEX_FILE or path.is_symlink():
            continue
        target_dir = global_dir / name
        if target_dir.exists():
            skipped.append(name)
            continue
        target_dir.mkdir(parents=True)
        shutil.copyfile(path, target_dir / SKILL_FILE)
        imported.append(name)
        logger.debug("Imported skill '{}' from {}", name, path)
    return imported, skipped


def new_skill(name: str, skills_dir: Path, *, replace: bool = False) -> Path:
    """Write a templated ``<skills_dir>/<name>/SKILL.md`` and return its path."""
    target_dir = skills_dir / name
    if target_dir.exists() or target_dir.is_symlink():
        if not replace:
            raise DuplicateSkillError(name, target_dir)
        _remove(target_dir)
    target_dir.mkdir(parents=True)
    skill_file = target_dir / SKILL_FILE
    skill_file.write_text(render_skill(name), encoding="utf-8")
    return skill_file


def _global_source(name: str, global_dir: Path) -> Path:
    if (global_dir / name / SKILL_FILE).is_file():
        return global_dir / name
    raise SkillNotFoundError(name, global_dir)


def fork_skill(name: str, global_dir: Path, local_dir: Path) -> Path:
    """Copy a global skill into ``local_dir`` as an independent skill."""
    source = _global_source(name, global_dir)
    target = local_dir / name
    if target.exists() or target.is_symlink():
        raise DuplicateSkillError(name, target)
    shutil.copytree(source, target, symlinks=True)
    return target / SKILL_FILE


def link_skill(name: str, global_dir: Path, local_dir: Path) -> Path:
    """Symlink a global skill directory into ``local_dir``."""
    source = _global_source(name, global_dir)
    target = local_dir / name
    if target.exists() or target.is_symlink():
        raise DuplicateSkillError(name, target)
    local_dir.mkdir(parents=True, exist_ok=True)
    target.symlink_to(source.resolve(), target_is_directory=True)
    return target


def find_skill(name: str, skills_dir: Path) -> Path | None:
    """Directory (or flat file) holding skill ``name`` in ``skills_dir``."""
    if (skills_dir / name).is_symlink():
        return skills_dir / name
    found = find_in_root(skills_dir, name)
    if found is None:
        return None
    return found.parent if found.name == SKILL_FILE else found


def remove_skill(name: str, skills_dir: Path) -> Path:
    """Delete skill ``name`` from ``skills_dir``.  Linked skills lose only the link."""
    target = find_skill(name, skills_dir)
    if target is None:
        raise SkillNotFoundError(name, skills_dir)
    _remove(target)
    return target


def _remove(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)
