"""Grid compilation -- turns declared cells into a nested split tree.

Cells are grouped by column (ordered by ``col``) and, inside a column,
ordered by ``row``.  The root is a horizontal split with one vertical
split per column.  Widths belong to columns, heights to rows; siblings
without an explicit percentage share whatever is left evenly.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence

from panekit.workspace.errors import ConfigError, GeometryError
from panekit.workspace.models.config import CellPlacement, GridSpec
from panekit.workspace.models.enums import GridKind, Orientation
from panekit.workspace.models.geometry import GeometryLeaf, GeometrySplit, GeometryTree


def distribute(grid: str, given: Sequence[float | None], what: str = "siblings") -> tuple[float, ...]:
    """Fill in missing percentages for a sibling group.

    ``given`` holds one entry per sibling, None where unspecified.  The
    remainder of 100 is split evenly among the unspecified entries.
    """
    specified = sum(v for v in given if v is not None)
    missing = sum(1 for v in given if v is None)
    if specified > 100:
        raise GeometryError(grid, f"{what} percentages add up to {specified:g} (more than 100)")
    if missing == 0:
        return tuple(float(v) for v in given if v is not None)

    remaining = 100 - specified
    if remaining <= 0:
        raise GeometryError(grid, f"{what} without a size have no space left")
    share = remaining / missing
    return tuple(float(v) if v is not None else share for v in given)


def _column_width(grid: str, col: int, cells: Sequence[tuple[str, CellPlacement]]) -> int | None:
    widths = {c.width for _, c in cells if c.width is not None}
    if len(widths) > 1:
        listed = ", ".join(str(w) for w in sorted(widths))
        raise GeometryError(grid, f"column {col} has conflicting widths ({listed})")
    return widths.pop() if widths else None


def compile_grid(grid: GridSpec, pane_names: Collection[str]) -> GeometryTree:
    """Compile ``grid`` into a ``GeometryTree``.

    Raises ``ConfigError`` for a cell naming an undeclared pane and
    ``GeometryError`` for overlapping cells or impossible percentages.
    """
    for name in grid.cells:
        if name not in pane_names:
            raise ConfigError(f"layouts.grids.{grid.name}.{name}", f"references undeclared pane '{name}'")
    if not grid.cells:
        raise GeometryError(grid.name, "grid has no cells")

    if grid.kind is GridKind.SHELL:
        name, cell = next(iter(grid.cells.items()))
        return GeometryLeaf(pane=name, color=cell.color)

    seen: dict[tuple[int, int], str] = {}
    columns: dict[int, list[tuple[str, CellPlacement]]] = {}
    for name, cell in grid.cells.items():
        key = (cell.col, cell.row)
        if key in seen:
            raise GeometryError(grid.name, f"'{name}' and '{seen[key]}' both occupy col {cell.col}, row {cell.row}")
        seen[key] = name
        columns.setdefault(cell.col, []).append((name, cell))

    col_indices = sorted(columns)
    column_trees: list[GeometryTree] = []
    widths: list[int | None] = []
    for col in col_indices:
        cells = sorted(columns[col], key=lambda item: item[1].row)
        widths.append(_column_width(grid.name, col, cells))
        heights = distribute(grid.name, [c.height for _, c in cells], f"rows of column {col}")
        leaves = tuple(GeometryLeaf(pane=name, color=cell.color) for name, cell in cells)
        column_trees.append(GeometrySplit(Orientation.VERTICAL, leaves, heights))

    return GeometrySplit(
        Orientation.HORIZONTAL,
        tuple(column_trees),
        distribute(grid.name, widths, "columns"),
    )
