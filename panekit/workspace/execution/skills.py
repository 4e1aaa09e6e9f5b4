"""Skill resolution -- maps a pane's skill selector onto skill files.

Search roots are consulted in priority order (list position in the
manifest).  Inside a root a skill is either a directory holding
``SKILL.md`` (checked first) or a flat ``<name>.md`` file.  The first root
that provides a name wins; later copies are shadowed, never merged.

Resolution is deterministic: given the same roots and the same files on
disk, the same ``ResolvedSkill`` list comes back in the same order.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path

import yaml
from loguru import logger
from pydantic import BaseModel, Field

from panekit.workspace.config import split_frontmatter
from panekit.workspace.errors import ResolutionError
from panekit.workspace.models.config import SkillSelector, SkillSourceRoot
from panekit.workspace.models.enums import PaneKind
from panekit.workspace.models.execution import ResolvedSkill

SKILL_FILE = "SKILL.md"
INDEX_FILE = "index.md"
INDEX_NAME = "index"

# Per-kind skill directory, relative to the pane working directory.
SKILL_DIRS: dict[PaneKind, Path] = {
    PaneKind.CLAUDE: Path(".claude/skills"),
    PaneKind.CODEX: Path(".codex/skills"),
    PaneKind.OPENCODE: Path(".opencode/skill"),
    PaneKind.ANTIGRAVITY: Path(".agent/skills"),
}

# Per-kind project context file that the index is linked to.
INDEX_LINKS: dict[PaneKind, Path] = {
    PaneKind.CLAUDE: Path("CLAUDE.md"),
    PaneKind.CODEX: Path("AGENTS.md"),
    PaneKind.OPENCODE: Path("AGENTS.md"),
}


# ---------------------------------------------------------------------------
# Link targets
# ---------------------------------------------------------------------------


def skill_dir(kind: PaneKind) -> Path:
    """Directory (relative to the pane cwd) the kind reads skills from."""
    try:
        return SKILL_DIRS[kind]
    except KeyError:
        raise ValueError(f"pane kind '{kind}' does not load skills") from None


def link_target(kind: PaneKind, name: str) -> Path:
    """Relative link path for skill ``name``.  Pure function of its inputs."""
    return skill_dir(kind) / name / SKILL_FILE


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def _ordered(roots: Sequence[SkillSourceRoot]) -> list[SkillSourceRoot]:
    return sorted(roots, key=lambda r: r.priority)


def find_in_root(root: Path, name: str) -> Path | None:
    """Locate skill ``name`` inside a single root, or None."""
    if name == INDEX_NAME:
        return None
    dir_form = root / name / SKILL_FILE
    if dir_form.is_file():
        return dir_form
    flat_form = root / f"{name}.md"
    if flat_form.is_file():
        return flat_form
    return None


def iter_root(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield ``(name, skill_file)`` for every skill in ``root``, sorted by name."""
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            skill_file = entry / SKILL_FILE
            if skill_file.is_file():
                yield entry.name, skill_file
        elif entry.is_file() and entry.suffix == ".md" and entry.name != INDEX_FILE:
            yield entry.stem, entry


def _resolved(name: str, source: Path, root: Path, kind: PaneKind) -> ResolvedSkill:
    return ResolvedSkill(name=name, source=source, root=root, link=link_target(kind, name))


def resolve(
    selector: SkillSelector,
    roots: Sequence[SkillSourceRoot],
    kind: PaneKind,
) -> list[ResolvedSkill]:
    """Resolve ``selector`` against ``roots`` for a pane of ``kind``.

    Wildcard selectors yield every skill visible across all roots in
    priority order; explicit selectors yield the named skills in the order
    given.  Raises ``ResolutionError`` for an explicit name found nowhere.
    """
    if selector.is_empty:
        return []

    ordered = _ordered(roots)
    live = [r for r in ordered if r.path.is_dir()]
    for root in ordered:
        if root not in live:
            logger.debug("Skill root {} does not exist; skipping", root.path)

    if selector.wildcard:
        winners: dict[str, ResolvedSkill] = {}
        for root in live:
            for name, source in iter_root(root.path):
                if name in winners:
                    logger.debug("Skill '{}' in {} shadowed by {}", name, root.path, winners[name].root)
                    continue
                winners[name] = _resolved(name, source, root.path, kind)
        return list(winners.values())

    resolved: list[ResolvedSkill] = []
    for name in selector.names:
        hit: ResolvedSkill | None = None
        for root in live:
            source = find_in_root(root.path, name)
            if source is None:
                continue
            if hit is None:
                hit = _resolved(name, source, root.path, kind)
            else:
                logger.debug("Skill '{}' in {} shadowed by {}", name, root.path, hit.root)
        if hit is None:
            raise ResolutionError(name, [r.path for r in ordered])
        resolved.append(hit)
    return resolved


def find_index(roots: Sequence[SkillSourceRoot]) -> Path | None:
    """First ``index.md`` across roots in priority order."""
    for root in _ordered(roots):
        candidate = root.path / INDEX_FILE
        if candidate.is_file():
            return candidate
    return None


# ---------------------------------------------------------------------------
# Skill documents
# ---------------------------------------------------------------------------


class SkillDocument(BaseModel):
    """A parsed skill file, used for listings."""

    name: str
    description: str
    prompt: str
    tools: list[str] | None = None
    model: str | None = None
    path: Path = Field(description="File the document was read from")


def skill_name_for(path: Path) -> str:
    """Skill name implied by a file path (``foo/SKILL.md`` or ``foo.md`` -> ``foo``)."""
    if path.name == SKILL_FILE:
        return path.parent.name
    return path.stem


def read_skill(path: Path) -> SkillDocument:
    """Parse a skill file with optional YAML frontmatter.

    Malformed frontmatter is logged and ignored; the description then falls
    back to the first prose line of the body.
    """
    text = path.read_text(encoding="utf-8")
    frontmatter, body = split_frontmatter(text)
    meta: dict = {}
    if frontmatter is not None:
        try:
            loaded = yaml.safe_load(frontmatter)
        except yaml.YAMLError:
            logger.warning("Ignoring malformed frontmatter in {}", path)
            loaded = None
        if isinstance(loaded, dict):
            meta = loaded

    prompt = body.strip()
    name = str(meta.get("name") or skill_name_for(path))
    description = meta.get("description") or _first_line(prompt) or f"{name} skill"

    tools = meta.get("tools")
    if isinstance(tools, str):
        tools = [t.strip() for t in tools.split(",") if t.strip()]

    return SkillDocument(
        name=name,
        description=str(description),
        prompt=prompt,
        tools=tools,
        model=meta.get("model"),
        path=path,
    )


def _first_line(text: str) -> str | None:
    lines = [line for line in text.splitlines() if line.strip()]
    for line in lines:
        if not line.startswith("#"):
            return line.strip()
    if lines:
        return lines[0].lstrip("#").strip()
    return None
