"""Resolved split geometry.

A grid compiles into a tree of splits: the root is a horizontal split
holding one vertical split per column, each column holding its row
leaves.  ``sizes`` are relative shares in child order; they are
percentages summing to 100 unless every sibling was sized explicitly.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from panekit.workspace.models.enums import Orientation


@dataclass(frozen=True)
class GeometryLeaf:
    pane: str
    color: str | None = None
    """Cell-level color override, if the grid sets one."""


@dataclass(frozen=True)
class GeometrySplit:
    orientation: Orientation
    children: tuple[GeometryTree, ...]
    sizes: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.children) != len(self.sizes):
            raise ValueError("split needs exactly one size per child")


GeometryTree = GeometryLeaf | GeometrySplit


def iter_leaves(tree: GeometryTree) -> Iterator[GeometryLeaf]:
    """Yield leaves left to right, top to bottom."""
    if isinstance(tree, GeometryLeaf):
        yield tree
        return
    for child in tree.children:
        yield from iter_leaves(child)
