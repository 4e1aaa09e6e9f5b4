"""Jinja2 templates for files panekit writes: the manifest and SKILL.md.

Template variables:

- manifest: ``workspace`` (id), ``global_skills_dir`` (display path)
- skill: ``name``
"""

from __future__ import annotations

import jinja2

MANIFEST_TEMPLATE = """\
---
workspace: {{ workspace }}

# Skill search roots, first match wins for duplicate names.
# Relative paths resolve against this file; ~ expands to your home.
skills:
  - path: ./skills
  - path: {{ global_skills_dir }}

layouts:
  # Pane kinds: claude, codex, opencode, antigravity, custom (needs a name).
  # "shell" is a custom pane named shell.
  panes:
    - type: claude
      color: gray
      skills:
        - "*"                    # every skill, or list names: [review, tests]
      # model: sonnet
      # prompt: "Your task..."
      # allowed_tools: []
      # disallowed_tools: []
      # args: []

    - type: codex
      color: green
      skills:
        - "*"
      # model: o3

    # - type: opencode
    #   color: blue
    #   skills: ["*"]

    # - type: antigravity
    #   skills: ["*"]

    - type: shell
      notes:
        - "$ panekit -k {{ workspace }}"

    # - type: custom
    #   name: logs
    #   command: tail -f /var/log/app.log
    #   color: red

  # Grid kinds: tmux (default), tmux_cc (iTerm2 integration), shell (no tmux,
  # runs the first cell in place of panekit).
  # Cells: col/row position, width (per column) and height (per row) in
  # percent.  Unsized columns or rows share what is left.
  # Colors: purple, yellow, red, green, blue, gray, orange or any tmux colour.
  grids:
    default:
      type: tmux
      claude:
        col: 0
        row: 0
      shell:
        col: 1
        row: 0
        color: yellow

    # solo:
    #   type: shell
    #   claude: {}

    # wide:
    #   claude: { col: 0, width: 40 }
    #   codex: { col: 1, width: 40 }
    #   shell: { col: 2, width: 20 }
---

# {{ workspace }}

<!-- Project context for AI assistants.  Panes that cannot read a context
     file receive this text as their opening prompt. -->

## Overview

<!-- What this project does -->
"""

SKILL_TEMPLATE = """\
---
name: {{ name }}
description: Describe when this skill should be used
---

# {{ name }}

You are a {{ name }} skill.

## Guidelines

- Add your guidelines here
"""

_env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)  # noqa: S701


def render_manifest(workspace: str, global_skills_dir: str) -> str:
    return _env.from_string(MANIFEST_TEMPLATE).render(workspace=workspace, global_skills_dir=global_skills_dir)


def render_skill(name: str) -> str:
    return _env.from_string(SKILL_TEMPLATE).render(name=name)
