"""Rebuild tables from TABLE/CELL/WORD blocks and render them as fixed-width text."""

from __future__ import annotations

from typing import Iterable

from .schema import BlockType, RecognizedBlock

MAX_COLUMN_WIDTH = 30
COLUMN_PADDING = 2
TABLES_SEPARATOR = "\n\n--- Tables ---\n\n"


class TableGrid:
    """Dense rows x columns grid of cell strings, 1-based indexing.

    Every row always has exactly ``columns`` entries; unseen cells are "".
    """

    def __init__(self, rows: int, columns: int) -> None:
        if rows < 0 or columns < 0:
            raise ValueError("Table dimensions must be non-negative.")
        self.rows = rows
        self.columns = columns
        self._cells: list[list[str]] = [[""] * columns for _ in range(rows)]

    @classmethod
    def from_cells(cls, cells: dict[tuple[int, int], str]) -> "TableGrid":
        """Size the grid from the largest observed row and column indices."""
        max_row = max((row for row, _ in cells), default=0)
        max_column = max((column for _, column in cells), default=0)
        grid = cls(max_row, max_column)
        for (row, column), text in cells.items():
            grid[row, column] = text
        return grid

    def _check(self, row: int, column: int) -> None:
        if not (1 <= row <= self.rows and 1 <= column <= self.columns):
            raise IndexError(f"Cell ({row}, {column}) outside {self.rows}x{self.columns} grid.")

    def __getitem__(self, key: tuple[int, int]) -> str:
        row, column = key
        self._check(row, column)
        return self._cells[row - 1][column - 1]

    def __setitem__(self, key: tuple[int, int], text: str) -> None:
        row, column = key
        self._check(row, column)
        self._cells[row - 1][column - 1] = text

    def row(self, row: int) -> list[str]:
        if not 1 <= row <= self.rows:
            raise IndexError(f"Row {row} outside {self.rows}-row grid.")
        return list(self._cells[row - 1])

    def to_rows(self) -> list[list[str]]:
        return [list(r) for r in self._cells]

    def column_widths(self) -> list[int]:
        """Longest text per column plus padding, capped at ``MAX_COLUMN_WIDTH``."""
        widths: list[int] = []
        for index in range(self.columns):
            longest = max((len(r[index]) for r in self._cells), default=0)
            widths.append(min(longest + COLUMN_PADDING, MAX_COLUMN_WIDTH))
        return widths

    def __repr__(self) -> str:
        return f"TableGrid(rows={self.rows}, columns={self.columns})"


def _cell_text(cell: RecognizedBlock, blocks_by_id: dict[str, RecognizedBlock]) -> str:
    words = [
        blocks_by_id[child_id]
        for child_id in cell.child_ids
        if child_id in blocks_by_id and blocks_by_id[child_id].block_type is BlockType.WORD
    ]
    return " ".join(word.text or "" for word in words)


def build_grid(table: RecognizedBlock, blocks_by_id: dict[str, RecognizedBlock]) -> TableGrid:
    """Collect the CELL children of *table* into a grid."""

    cells: dict[tuple[int, int], str] = {}
    for child_id in table.child_ids:
        cell = blocks_by_id.get(child_id)
        if cell is None or cell.block_type is not BlockType.CELL:
            continue
        key = (cell.row_index or 1, cell.column_index or 1)
        cells[key] = _cell_text(cell, blocks_by_id)
    return TableGrid.from_cells(cells)


def render_table(grid: TableGrid, number: int) -> str:
    """Render a pipe-delimited table with a rule under the header row."""

    widths = grid.column_widths()
    lines = [f"Table {number}:"]
    for row_number, row in enumerate(grid.to_rows(), start=1):
        cells = [text[:MAX_COLUMN_WIDTH].ljust(width) for text, width in zip(row, widths)]
        lines.append("| " + " | ".join(cells) + " |")
        if row_number == 1:
            lines.append("|" + "|".join("-" * (width + 2) for width in widths) + "|")
    return "\n".join(lines) + "\n"


def extract_tables(blocks: Iterable[RecognizedBlock]) -> list[str]:
    """Render every TABLE block that has at least one cell, in block order."""

    block_list = list(blocks)
    blocks_by_id = {block.id: block for block in block_list}
    rendered: list[str] = []
    for block in block_list:
        if block.block_type is not BlockType.TABLE:
            continue
        grid = build_grid(block, blocks_by_id)
        if grid.rows == 0:
            continue
        rendered.append(render_table(grid, len(rendered) + 1))
    return rendered
