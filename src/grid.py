# grid.py
# This file holds the board storage for a 2048 game and the perspective
# remapping that lets a single column sweep serve every tilt direction.

from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple


class DIRECTION(Enum):
    """Represents the possible tilt directions. UP is the canonical view."""
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class GridIndexError(IndexError):
    """Raised when a (column, row) pair falls outside the board."""


class InvalidPlacementError(ValueError):
    """Raised when a tile would overwrite or illegally merge with another tile."""


# --- Coordinate Transforms ---

def logical_to_physical(direction: DIRECTION, size: int, column: int, row: int) -> Tuple[int, int]:
    """
    Translates a logical (column, row) seen from DIRECTION into physical coordinates.
    Under every direction, logical row size - 1 is the edge tiles slide toward.
    Args:
        direction (DIRECTION): The viewing perspective.
        size (int): The dimension of the board.
        column (int): Logical column.
        row (int): Logical row.
    Returns:
        Tuple[int, int]: The physical (column, row).
    """
    last = size - 1
    if direction == DIRECTION.UP:
        return column, row
    if direction == DIRECTION.RIGHT:
        return row, last - column
    if direction == DIRECTION.DOWN:
        return last - column, last - row
    if direction == DIRECTION.LEFT:
        return last - row, column
    raise ValueError(f"Invalid direction: {direction!r}")


# --- Tiles ---

@dataclass(frozen=True)
class Tile:
    """A numbered tile. Position is in physical coordinates, row 0 at the bottom."""
    value: int
    column: int
    row: int

    def __post_init__(self):
        if not isinstance(self.value, int) or self.value <= 0 or self.value & (self.value - 1):
            raise ValueError(f"Tile value must be a positive power of two, got {self.value!r}.")
        if self.column < 0 or self.row < 0:
            raise ValueError("Tile coordinates must be non-negative.")

    def moved_to(self, column: int, row: int) -> "Tile":
        return replace(self, column=column, row=row)

    def merged_at(self, column: int, row: int) -> "Tile":
        return Tile(self.value * 2, column, row)


# --- Grid ---

class Grid:
    """
    An N x N board of optional tiles plus a viewing perspective.

    Cells are stored physically as cells[row][col] with row 0 at the bottom.
    The perspective only changes how tile_at and move translate their
    coordinates; it never rearranges stored tiles.
    """

    def __init__(self, size: int):
        if not isinstance(size, int) or size <= 0:
            raise ValueError("Board size must be a positive integer.")
        self._size = size
        self._cells: List[List[Optional[Tile]]] = [[None] * size for _ in range(size)]
        self._perspective = DIRECTION.UP

    @classmethod
    def from_values(cls, raw_values: List[List[int]]) -> "Grid":
        """
        Builds a grid from a value matrix listed top row first (0 means empty).
        Args:
            raw_values (List[List[int]]): Square matrix of tile values.
        Returns:
            Grid: A grid holding one tile per non-zero value.
        Raises:
            ValueError: If the matrix is not square and non-empty, or a value is invalid.
        """
        if not raw_values or not all(len(values) == len(raw_values) for values in raw_values):
            raise ValueError("Board must be a non-empty square matrix.")
        grid = cls(len(raw_values))
        last = grid.size - 1
        for display_row, values in enumerate(raw_values):
            for col, value in enumerate(values):
                if value:
                    grid.add_tile(Tile(value, col, last - display_row))
        return grid

    @property
    def size(self) -> int:
        return self._size

    @property
    def perspective(self) -> DIRECTION:
        return self._perspective

    def set_perspective(self, direction: DIRECTION):
        self._perspective = DIRECTION(direction)

    @contextmanager
    def viewed_from(self, direction: DIRECTION) -> Iterator["Grid"]:
        """Views the grid from DIRECTION for one block, then returns to UP."""
        self.set_perspective(direction)
        try:
            yield self
        finally:
            self._perspective = DIRECTION.UP

    def _check_bounds(self, column: int, row: int):
        if not (0 <= column < self._size and 0 <= row < self._size):
            raise GridIndexError(
                f"({column}, {row}) is outside a {self._size}x{self._size} board."
            )

    def _physical(self, column: int, row: int) -> Tuple[int, int]:
        self._check_bounds(column, row)
        return logical_to_physical(self._perspective, self._size, column, row)

    def tile_at(self, column: int, row: int) -> Optional[Tile]:
        """Returns the tile at (column, row) under the current perspective, or None."""
        pcol, prow = self._physical(column, row)
        return self._cells[prow][pcol]

    def add_tile(self, tile: Tile):
        """
        Places TILE at its own physical coordinates.
        Raises:
            GridIndexError: If the tile lies outside the board.
            InvalidPlacementError: If the cell is already occupied.
        """
        self._check_bounds(tile.column, tile.row)
        occupant = self._cells[tile.row][tile.column]
        if occupant is not None:
            raise InvalidPlacementError(
                f"Cell ({tile.column}, {tile.row}) already holds a {occupant.value} tile."
            )
        self._cells[tile.row][tile.column] = tile

    def move(self, column: int, row: int, tile: Tile) -> bool:
        """
        Moves TILE to the perspective-relative cell (column, row).
        Args:
            column (int): Logical target column.
            row (int): Logical target row.
            tile (Tile): A tile currently stored on this grid.
        Returns:
            bool: True if the tile merged into an occupant, False if it only slid.
        Raises:
            InvalidPlacementError: If the tile is not on the grid, or the occupant
                                   holds a different value.
        """
        pcol, prow = self._physical(column, row)
        if (tile.column, tile.row) == (pcol, prow):
            return False
        self._check_bounds(tile.column, tile.row)
        if self._cells[tile.row][tile.column] != tile:
            raise InvalidPlacementError(f"{tile} is not on the board.")

        occupant = self._cells[prow][pcol]
        self._cells[tile.row][tile.column] = None
        if occupant is None:
            self._cells[prow][pcol] = tile.moved_to(pcol, prow)
            return False
        if occupant.value != tile.value:
            raise InvalidPlacementError(
                f"Cannot merge a {tile.value} tile into a {occupant.value} tile."
            )
        self._cells[prow][pcol] = occupant.merged_at(pcol, prow)
        return True

    def clear(self):
        for cells in self._cells:
            for col in range(self._size):
                cells[col] = None

    def tiles(self) -> Iterator[Tile]:
        """Yields every stored tile, bottom row first."""
        for cells in self._cells:
            for tile in cells:
                if tile is not None:
                    yield tile

    def values(self) -> List[List[int]]:
        """Returns the canonical board as a value matrix, top row first (0 = empty)."""
        return [
            [tile.value if tile is not None else 0 for tile in cells]
            for cells in reversed(self._cells)
        ]

    def __eq__(self, other):
        if not isinstance(other, Grid):
            return NotImplemented
        return self._size == other._size and self.values() == other.values()

    def __repr__(self):
        return f"Grid({self.values()!r})"
