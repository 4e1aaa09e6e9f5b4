"""Tests for manifest parsing and validation."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import pytest

from panekit.workspace.config import find_manifest, load_config, parse, split_frontmatter
from panekit.workspace.errors import ConfigError
from panekit.workspace.models.config import SkillSelector
from panekit.workspace.models.enums import GridKind, PaneKind


def _with_panes(data: dict[str, Any], panes: list[dict[str, Any]], grids: dict | None = None) -> dict[str, Any]:
    data = copy.deepcopy(data)
    data["layouts"]["panes"] = panes
    data["layouts"]["grids"] = grids if grids is not None else {}
    return data


# ---------------------------------------------------------------------------
# Valid manifests
# ---------------------------------------------------------------------------


def test_parse_basic_manifest(manifest_data: dict, tmp_path: Path) -> None:
    config = parse(manifest_data, manifest_path=tmp_path / "PANEKIT.md")

    assert config.workspace == "demo"
    assert config.pane_names == ["claude", "shell"]
    assert config.pane("claude").kind is PaneKind.CLAUDE
    assert config.pane("claude").skills == SkillSelector(wildcard=True)
    assert config.workspace_dir == tmp_path

    grid = config.grid("default")
    assert grid.kind is GridKind.TMUX
    assert list(grid.cells) == ["claude", "shell"]
    assert grid.cells["shell"].col == 1


def test_skill_roots_resolve_against_manifest_dir(manifest_data: dict, tmp_path: Path) -> None:
    config = parse(manifest_data, manifest_path=tmp_path / "PANEKIT.md")

    assert [r.path for r in config.skill_roots] == [(tmp_path / "skills").resolve(), (tmp_path / "global").resolve()]
    assert [r.priority for r in config.skill_roots] == [0, 1]


def test_duplicate_skill_roots_collapse_to_first_position(manifest_data: dict, tmp_path: Path) -> None:
    manifest_data["skills"] = [{"path": "./a"}, {"path": "./b"}, {"path": "a"}]
    config = parse(manifest_data, manifest_path=tmp_path / "PANEKIT.md")

    assert [r.path.name for r in config.skill_roots] == ["a", "b"]
    assert [r.priority for r in config.skill_roots] == [0, 1]


def test_skill_root_accepts_plain_string(manifest_data: dict, tmp_path: Path) -> None:
    manifest_data["skills"] = ["./skills"]
    config = parse(manifest_data, manifest_path=tmp_path / "PANEKIT.md")
    assert config.skill_roots[0].path == (tmp_path / "skills").resolve()


def test_tilde_paths_expand_to_home(manifest_data: dict, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    manifest_data["skills"] = [{"path": "~/shared"}]
    config = parse(manifest_data, manifest_path=tmp_path / "PANEKIT.md")
    assert config.skill_roots[0].path == (tmp_path / "home" / "shared").resolve()


def test_name_key_is_accepted_for_workspace(manifest_data: dict) -> None:
    del manifest_data["workspace"]
    manifest_data["name"] = "legacy"
    assert parse(manifest_data).workspace == "legacy"


def test_legacy_shell_type_becomes_custom_named_shell(manifest_data: dict) -> None:
    config = parse(manifest_data)
    shell = config.pane("shell")
    assert shell.kind is PaneKind.CUSTOM
    assert shell.command is None


def test_assistant_name_defaults_to_kind_and_can_be_overridden(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "codex"}, {"type": "codex", "name": "reviewer", "model": "o3"}])
    config = parse(data)
    assert config.pane_names == ["codex", "reviewer"]
    assert config.pane("reviewer").model == "o3"


def test_explicit_skill_names_keep_order(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "claude", "skills": ["tests", "review", "tests"]}])
    config = parse(data)
    assert config.pane("claude").skills == SkillSelector(names=("tests", "review"))


def test_pane_path_is_absolute(manifest_data: dict, tmp_path: Path) -> None:
    data = _with_panes(manifest_data, [{"type": "claude", "path": "sub/dir"}])
    config = parse(data, manifest_path=tmp_path / "PANEKIT.md")
    assert config.pane("claude").path == (tmp_path / "sub" / "dir").resolve()


def test_cell_without_placement_defaults_to_origin(manifest_data: dict) -> None:
    manifest_data["layouts"]["grids"] = {"solo": {"type": "shell", "claude": None}}
    cell = parse(manifest_data).grid("solo").cells["claude"]
    assert (cell.col, cell.row, cell.width, cell.height) == (0, 0, None, None)


def test_grid_type_defaults_to_tmux(manifest_data: dict) -> None:
    del manifest_data["layouts"]["grids"]["default"]["type"]
    assert parse(manifest_data).grid("default").kind is GridKind.TMUX


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


def test_missing_workspace_is_rejected(manifest_data: dict) -> None:
    del manifest_data["workspace"]
    with pytest.raises(ConfigError, match="workspace"):
        parse(manifest_data)


def test_non_mapping_is_rejected() -> None:
    with pytest.raises(ConfigError, match="mapping"):
        parse(["not", "a", "mapping"])


def test_no_panes_is_rejected(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [])
    with pytest.raises(ConfigError, match="at least one pane"):
        parse(data)


def test_duplicate_pane_names_are_rejected(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "claude"}, {"type": "claude"}])
    with pytest.raises(ConfigError, match="duplicate pane name 'claude'") as exc_info:
        parse(data)
    assert exc_info.value.field == "layouts.panes[1].name"


def test_unknown_pane_type_is_rejected(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "vim"}])
    with pytest.raises(ConfigError, match="unknown pane type 'vim'"):
        parse(data)


def test_custom_pane_requires_name(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "custom", "command": "htop"}])
    with pytest.raises(ConfigError, match="require a name"):
        parse(data)


def test_custom_pane_cannot_load_skills(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "custom", "name": "logs", "skills": ["*"]}])
    with pytest.raises(ConfigError, match="cannot load skills"):
        parse(data)


def test_wildcard_cannot_mix_with_names(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "claude", "skills": ["*", "review"]}])
    with pytest.raises(ConfigError, match="cannot be combined") as exc_info:
        parse(data)
    assert exc_info.value.field == "layouts.panes[0].skills"


def test_unknown_pane_field_is_rejected(manifest_data: dict) -> None:
    data = _with_panes(manifest_data, [{"type": "claude", "colour": "red"}])
    with pytest.raises(ConfigError) as exc_info:
        parse(data)
    assert exc_info.value.field == "layouts.panes[0].colour"


def test_grid_referencing_undeclared_pane_is_rejected(manifest_data: dict) -> None:
    manifest_data["layouts"]["grids"]["default"]["ghost"] = {"col": 2}
    with pytest.raises(ConfigError, match="undeclared pane 'ghost'") as exc_info:
        parse(manifest_data)
    assert exc_info.value.field == "layouts.grids.default.ghost"


@pytest.mark.parametrize("width", [0, 101, -5])
def test_width_out_of_range_is_rejected(manifest_data: dict, width: int) -> None:
    manifest_data["layouts"]["grids"]["default"]["claude"]["width"] = width
    with pytest.raises(ConfigError) as exc_info:
        parse(manifest_data)
    assert exc_info.value.field == "layouts.grids.default.claude.width"


def test_unknown_grid_type_is_rejected(manifest_data: dict) -> None:
    manifest_data["layouts"]["grids"]["default"]["type"] = "screen"
    with pytest.raises(ConfigError, match="unknown grid type 'screen'"):
        parse(manifest_data)


def test_unknown_grid_lookup_lists_available(manifest_data: dict) -> None:
    config = parse(manifest_data)
    with pytest.raises(ConfigError, match=r"available: default"):
        config.grid("wide")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def test_split_frontmatter() -> None:
    front, body = split_frontmatter("---\na: 1\n---\n# Title\n")
    assert front == "a: 1\n"
    assert body == "# Title\n"


def test_split_frontmatter_without_block() -> None:
    assert split_frontmatter("# Just markdown\n") == (None, "# Just markdown\n")
    assert split_frontmatter("---\nunterminated\n") == (None, "---\nunterminated\n")


def test_load_config_reads_frontmatter_and_index(make_manifest, manifest_data: dict) -> None:
    path = make_manifest(manifest_data, "\n# Demo\n\nProject notes.\n")
    config = load_config(path)

    assert config.manifest_path == path
    assert config.index == "# Demo\n\nProject notes."


def test_load_config_without_body_has_no_index(make_manifest, manifest_data: dict) -> None:
    config = load_config(make_manifest(manifest_data))
    assert config.index is None


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "nope.md")


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "PANEKIT.md"
    path.write_text("---\nworkspace: [unclosed\n---\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(path)


def test_find_manifest_walks_up(make_manifest, manifest_data: dict, tmp_path: Path) -> None:
    path = make_manifest(manifest_data)
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_manifest(nested, "PANEKIT.md") == path.resolve()
    assert find_manifest(nested, "OTHER.md") is None
