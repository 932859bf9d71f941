"""
Address Space Module
====================
Coordinate vocabulary shared by every other module, plus the per-sheet
structures derived from a template: the used range, a blank-preserving
grid of cell values, and the merged-region map.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from openpyxl.utils import get_column_letter
from openpyxl.utils.cell import coordinate_from_string, column_index_from_string, range_boundaries
from openpyxl.utils.exceptions import CellCoordinatesException

from .errors import MalformedRangeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    """A bindable cell: sheet name plus an A1-style reference."""
    sheet_name: str
    cell_ref: str

    def __str__(self):
        return f"{self.sheet_name}!{self.cell_ref}"

    def to_dict(self):
        return {"sheetName": self.sheet_name, "addr": self.cell_ref}

    @classmethod
    def from_dict(cls, data):
        return cls(str(data.get("sheetName", "")), str(data.get("addr", "")))


@dataclass(frozen=True)
class UsedRange:
    """Inclusive rectangular extent a sheet declares as containing data."""
    rows: int
    cols: int
    min_row: int = 1
    min_col: int = 1

    @property
    def max_row(self):
        return self.min_row + self.rows - 1

    @property
    def max_col(self):
        return self.min_col + self.cols - 1


@dataclass
class MergeMap:
    """Merged regions keyed by their top-left (row, col) origin."""
    origins: dict = field(default_factory=dict)   # (row, col) -> (row_span, col_span)
    covered: set = field(default_factory=set)     # (row, col) inside a region, not the origin

    def span(self, row, col):
        return self.origins.get((row, col), (1, 1))

    def is_covered(self, row, col):
        return (row, col) in self.covered


@dataclass
class SheetPreview:
    """Everything needed to show one template sheet and pick cells from it."""
    sheet_name: str
    used_range: UsedRange
    grid: list
    merges: MergeMap
    column_widths: dict = field(default_factory=dict)
    row_heights: dict = field(default_factory=dict)


# ------------------------------------------------------------------
# A1 helpers
# ------------------------------------------------------------------

def to_a1(row: int, col: int) -> str:
    """Return the A1 reference for 1-indexed *row* / *col*."""
    return f"{get_column_letter(col)}{row}"


def from_a1(ref: str):
    """Return ``(row, col)`` for an A1 reference such as ``"B3"``.

    Raises ValueError for anything that is not a single cell reference.
    """
    try:
        col_letters, row = coordinate_from_string(ref.replace("$", ""))
    except CellCoordinatesException as exc:
        raise ValueError(f"Invalid cell reference: {ref!r}") from exc
    return row, column_index_from_string(col_letters)


def is_valid_cell_ref(ref: str) -> bool:
    try:
        from_a1(ref)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


# ------------------------------------------------------------------
# Used range / grid / merges
# ------------------------------------------------------------------

def decode_used_range(descriptor: Optional[str], sheet_name: Optional[str] = None) -> UsedRange:
    """Decode a used-range descriptor such as ``"A1:D12"`` (or ``"B2"``).

    Raises:
        MalformedRangeError: if *descriptor* is absent or unparsable.
    """
    if not descriptor or not str(descriptor).strip():
        raise MalformedRangeError(descriptor, sheet_name)

    text = str(descriptor).strip().replace("$", "")
    if ":" not in text:
        text = f"{text}:{text}"

    try:
        min_col, min_row, max_col, max_row = range_boundaries(text)
    except (ValueError, TypeError) as exc:
        raise MalformedRangeError(descriptor, sheet_name) from exc

    if None in (min_col, min_row, max_col, max_row):
        # whole-row / whole-column ranges have no rectangular extent
        raise MalformedRangeError(descriptor, sheet_name)

    return UsedRange(
        rows=max_row - min_row + 1,
        cols=max_col - min_col + 1,
        min_row=min_row,
        min_col=min_col,
    )


def build_grid(ws, used_range: UsedRange) -> list:
    """Read the cell values of *ws* inside *used_range* into a 2D list.

    Every coordinate yields an entry, so the grid is always
    ``used_range.rows x used_range.cols`` even when trailing rows or columns
    are blank.  Missing values become ``""``.
    """
    grid = []
    for r in range(used_range.min_row, used_range.max_row + 1):
        row_vals = []
        for c in range(used_range.min_col, used_range.max_col + 1):
            value = ws.cell(row=r, column=c).value
            row_vals.append("" if value is None else value)
        grid.append(row_vals)
    return grid


def merge_map(merged_regions) -> MergeMap:
    """Build a :class:`MergeMap` from merged-region descriptors.

    *merged_regions* may hold strings (``"A1:B2"``) or openpyxl
    ``CellRange`` objects (``ws.merged_cells.ranges``).
    """
    result = MergeMap()
    for region in merged_regions or []:
        try:
            min_col, min_row, max_col, max_row = range_boundaries(str(region))
        except (ValueError, TypeError):
            logger.warning(f"Skipping unparsable merged region: {region!r}")
            continue
        if None in (min_col, min_row, max_col, max_row):
            continue

        result.origins[(min_row, min_col)] = (
            max_row - min_row + 1,
            max_col - min_col + 1,
        )
        for r in range(min_row, max_row + 1):
            for c in range(min_col, max_col + 1):
                if (r, c) != (min_row, min_col):
                    result.covered.add((r, c))
    return result


def load_sheet_preview(wb, sheet_name: str) -> SheetPreview:
    """Collect grid, used range, merges and dimensions for one sheet.

    Raises:
        KeyError: if the sheet does not exist.
        MalformedRangeError: if the sheet's used range cannot be decoded.
    """
    ws = wb[sheet_name]
    used_range = decode_used_range(ws.calculate_dimension(), sheet_name)

    preview = SheetPreview(
        sheet_name=sheet_name,
        used_range=used_range,
        grid=build_grid(ws, used_range),
        merges=merge_map(ws.merged_cells.ranges),
    )

    for col_letter, dim in ws.column_dimensions.items():
        if dim.width:
            preview.column_widths[col_letter] = dim.width
    for row_num, dim in ws.row_dimensions.items():
        if dim.height:
            preview.row_heights[row_num] = dim.height

    logger.debug(
        f"Loaded sheet '{sheet_name}': {used_range.rows}x{used_range.cols}, "
        f"{len(preview.merges.origins)} merged regions"
    )
    return preview


def bindable_cells(preview: SheetPreview):
    """Yield ``(Address, value)`` for each cell not covered by a merge."""
    ur = preview.used_range
    for rr, row_vals in enumerate(preview.grid):
        for cc, value in enumerate(row_vals):
            r, c = ur.min_row + rr, ur.min_col + cc
            if preview.merges.is_covered(r, c):
                continue
            yield Address(preview.sheet_name, to_a1(r, c)), value


def is_bindable(preview: SheetPreview, cell_ref: str) -> bool:
    """True if *cell_ref* lies in the used range and is not merge-covered."""
    try:
        r, c = from_a1(cell_ref)
    except (ValueError, TypeError, AttributeError):
        return False
    ur = preview.used_range
    if not (ur.min_row <= r <= ur.max_row and ur.min_col <= c <= ur.max_col):
        return False
    return not preview.merges.is_covered(r, c)


def _cell_text(value: Any, width: int) -> str:
    text = str(value).replace("\n", " ")
    if len(text) > width:
        text = text[: width - 1] + "…"
    return text.ljust(width)


def render_preview(preview: SheetPreview, workspace, cell_width: int = 12) -> str:
    """Render a text grid of *preview*, clipped to the workspace display limits.

    Bound cells are tagged ``[G]`` (GLOBAL) or ``[V:key]`` (VARIABLE) using
    the binding store's lookup precedence.  Merge-covered cells print as
    blanks.
    """
    from .bindings import BindingKind

    ur = preview.used_range
    max_r = min(workspace.preview_max_rows, ur.rows)
    max_c = min(workspace.preview_max_cols, ur.cols)

    header = " " * 6 + "".join(
        get_column_letter(ur.min_col + cc).ljust(cell_width) for cc in range(max_c)
    )
    lines = [header.rstrip()]

    for rr in range(max_r):
        r = ur.min_row + rr
        parts = [str(r).rjust(5) + " "]
        for cc in range(max_c):
            c = ur.min_col + cc
            if preview.merges.is_covered(r, c):
                parts.append(" " * cell_width)
                continue
            text = str(preview.grid[rr][cc])
            hit = workspace.bindings.lookup(Address(preview.sheet_name, to_a1(r, c)))
            if hit.kind is BindingKind.GLOBAL:
                text = f"[G]{text}"
            elif hit.kind is BindingKind.VARIABLE:
                text = f"[V:{hit.key}]{text}"
            parts.append(_cell_text(text, cell_width))
        lines.append("".join(parts).rstrip())

    if max_r < ur.rows or max_c < ur.cols:
        lines.append(
            f"(showing {max_r}x{max_c} of used range {ur.rows}x{ur.cols})"
        )
    return "\n".join(lines)
