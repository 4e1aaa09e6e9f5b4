from __future__ import annotations

from pathlib import Path

import pytest

from panekit.workspace.errors import ResolutionError
from panekit.workspace.execution.skills import (
    find_index,
    find_in_root,
    iter_root,
    link_target,
    read_skill,
    resolve,
    skill_dir,
    skill_name_for,
)
from panekit.workspace.models.config import SkillSelector, SkillSourceRoot
from panekit.workspace.models.enums import PaneKind


@pytest.fixture
def roots(tmp_path: Path) -> list[SkillSourceRoot]:
    local = tmp_path / "local"
    shared = tmp_path / "shared"
    local.mkdir()
    shared.mkdir()
    return [SkillSourceRoot(path=local, priority=0), SkillSourceRoot(path=shared, priority=1)]


# ---------------------------------------------------------------------------
# Link targets
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (PaneKind.CLAUDE, Path(".claude/skills/review/SKILL.md")),
        (PaneKind.CODEX, Path(".codex/skills/review/SKILL.md")),
        (PaneKind.OPENCODE, Path(".opencode/skill/review/SKILL.md")),
        (PaneKind.ANTIGRAVITY, Path(".agent/skills/review/SKILL.md")),
    ],
)
def test_link_target_per_kind(kind: PaneKind, expected: Path) -> None:
    assert link_target(kind, "review") == expected


def test_custom_kind_has_no_skill_dir() -> None:
    with pytest.raises(ValueError, match="does not load skills"):
        skill_dir(PaneKind.CUSTOM)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def test_directory_form_beats_flat_form(make_skill, tmp_path: Path) -> None:
    dir_form = make_skill(tmp_path, "review")
    make_skill(tmp_path, "review", flat=True)
    assert find_in_root(tmp_path, "review") == dir_form


def test_flat_form_is_found(make_skill, tmp_path: Path) -> None:
    flat = make_skill(tmp_path, "lint", flat=True)
    assert find_in_root(tmp_path, "lint") == flat
    assert find_in_root(tmp_path, "missing") is None


def test_index_is_never_a_skill(tmp_path: Path) -> None:
    (tmp_path / "index.md").write_text("# Index\n", encoding="utf-8")
    assert find_in_root(tmp_path, "index") is None
    assert list(iter_root(tmp_path)) == []


def test_iter_root_is_sorted_and_skips_noise(make_skill, tmp_path: Path) -> None:
    make_skill(tmp_path, "zeta")
    make_skill(tmp_path, "alpha", flat=True)
    (tmp_path / "empty-dir").mkdir()
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    assert [name for name, _ in iter_root(tmp_path)] == ["alpha", "zeta"]
    assert list(iter_root(tmp_path / "missing")) == []


def test_find_index_uses_priority(roots: list[SkillSourceRoot]) -> None:
    assert find_index(roots) is None
    (roots[1].path / "index.md").write_text("shared", encoding="utf-8")
    assert find_index(roots) == roots[1].path / "index.md"
    (roots[0].path / "index.md").write_text("local", encoding="utf-8")
    assert find_index(list(reversed(roots))) == roots[0].path / "index.md"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def test_empty_selector_resolves_nothing(roots: list[SkillSourceRoot]) -> None:
    assert resolve(SkillSelector(), roots, PaneKind.CLAUDE) == []


def test_wildcard_takes_first_root_and_shadows_later(make_skill, roots: list[SkillSourceRoot]) -> None:
    local, shared = roots[0].path, roots[1].path
    local_review = make_skill(local, "review")
    make_skill(shared, "review")
    make_skill(shared, "deploy", flat=True)

    resolved = resolve(SkillSelector(wildcard=True), roots, PaneKind.CLAUDE)

    assert [s.name for s in resolved] == ["review", "deploy"]
    assert resolved[0].source == local_review
    assert resolved[0].root == local
    assert resolved[1].root == shared
    assert resolved[1].link == Path(".claude/skills/deploy/SKILL.md")


def test_wildcard_follows_priority_not_list_order(make_skill, roots: list[SkillSourceRoot]) -> None:
    make_skill(roots[0].path, "review")
    make_skill(roots[1].path, "review")

    resolved = resolve(SkillSelector(wildcard=True), list(reversed(roots)), PaneKind.CODEX)
    assert resolved[0].root == roots[0].path


def test_explicit_names_keep_requested_order(make_skill, roots: list[SkillSourceRoot]) -> None:
    make_skill(roots[0].path, "alpha")
    make_skill(roots[1].path, "beta")

    resolved = resolve(SkillSelector(names=("beta", "alpha")), roots, PaneKind.OPENCODE)
    assert [s.name for s in resolved] == ["beta", "alpha"]
    assert resolved[0].link == Path(".opencode/skill/beta/SKILL.md")


def test_missing_root_is_skipped(make_skill, tmp_path: Path) -> None:
    present = tmp_path / "present"
    make_skill(present, "alpha")
    roots = [SkillSourceRoot(path=tmp_path / "gone", priority=0), SkillSourceRoot(path=present, priority=1)]

    assert [s.name for s in resolve(SkillSelector(wildcard=True), roots, PaneKind.CLAUDE)] == ["alpha"]


def test_unknown_name_raises_with_searched_roots(roots: list[SkillSourceRoot]) -> None:
    with pytest.raises(ResolutionError) as exc_info:
        resolve(SkillSelector(names=("ghost",)), roots, PaneKind.CLAUDE)

    assert exc_info.value.skill == "ghost"
    assert str(roots[0].path) in str(exc_info.value)
    assert str(roots[1].path) in str(exc_info.value)


def test_resolution_is_deterministic(make_skill, roots: list[SkillSourceRoot]) -> None:
    for name in ("c", "a", "b"):
        make_skill(roots[1].path, name)
    first = resolve(SkillSelector(wildcard=True), roots, PaneKind.CLAUDE)
    second = resolve(SkillSelector(wildcard=True), roots, PaneKind.CLAUDE)
    assert first == second
    assert [s.name for s in first] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# Skill documents
# ---------------------------------------------------------------------------


def test_skill_name_for() -> None:
    assert skill_name_for(Path("/x/review/SKILL.md")) == "review"
    assert skill_name_for(Path("/x/lint.md")) == "lint"


def test_read_skill_uses_frontmatter(tmp_path: Path) -> None:
    path = tmp_path / "review.md"
    path.write_text(
        "---\nname: reviewer\ndescription: Reviews diffs\ntools: Read, Grep\nmodel: opus\n---\nBe strict.\n",
        encoding="utf-8",
    )
    doc = read_skill(path)

    assert doc.name == "reviewer"
    assert doc.description == "Reviews diffs"
    assert doc.tools == ["Read", "Grep"]
    assert doc.model == "opus"
    assert doc.prompt == "Be strict."


def test_read_skill_falls_back_to_first_prose_line(make_skill, tmp_path: Path) -> None:
    doc = read_skill(make_skill(tmp_path, "lint"))
    assert doc.name == "lint"
    assert doc.description == "Does lint things."
    assert doc.tools is None


def test_read_skill_ignores_malformed_frontmatter(tmp_path: Path) -> None:
    path = tmp_path / "broken.md"
    path.write_text("---\nname: [oops\n---\n# Heading only\n", encoding="utf-8")
    doc = read_skill(path)
    assert doc.name == "broken"
    assert doc.description == "Heading only"
