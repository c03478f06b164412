# core.py
# This file is intended to be the core rules engine for a 2048 game:
# board ownership, score, tilting and game over detection.

import logging
from enum import Enum
from typing import List, Optional

from grid import DIRECTION, Grid, Tile

logger = logging.getLogger(__name__)

# Largest piece value. A tile of this value ends the game.
MAX_PIECE = 2048


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    IN_PROGRESS = 1
    GAME_OVER = 2  # Lost
    GAME_WON = 3


# --- Game State Checks ---
# These read the grid through its current perspective, so callers pass a grid
# in the canonical (UP) orientation.

def empty_space_exists(grid: Grid) -> bool:
    """
    Check whether any cell of the grid is empty.
    Args:
        grid (Grid): The board to check.
    Returns:
        bool: True if at least one cell holds no tile.
    """
    for row in range(grid.size):
        for col in range(grid.size):
            if grid.tile_at(col, row) is None:
                return True
    return False


def max_tile_exists(grid: Grid) -> bool:
    """
    Check if any tile has reached MAX_PIECE.
    Args:
        grid (Grid): The board to check.
    Returns:
        bool: True if a tile with value MAX_PIECE is on the board.
    """
    return any(tile.value == MAX_PIECE for tile in grid.tiles())


def at_least_one_move_exists(grid: Grid) -> bool:
    """
    Check if any tilt could change the board: either a cell is empty, or two
    neighbouring tiles share a value. Only the north and east neighbours are
    compared, which covers every adjacent pair once the whole grid is scanned.
    Args:
        grid (Grid): The board to check.
    Returns:
        bool: True if at least one move exists.
    """
    size = grid.size
    for row in range(size):
        for col in range(size):
            tile = grid.tile_at(col, row)
            if tile is None:
                return True
            north = grid.tile_at(col, row + 1) if row + 1 < size else None
            east = grid.tile_at(col + 1, row) if col + 1 < size else None
            if north is not None and north.value == tile.value:
                return True
            if east is not None and east.value == tile.value:
                return True
    return False


# --- Engine ---

class GameEngine:
    """
    The state of a game of 2048: a grid, the current score and the best score
    recorded at a game over.

    Coordinates are (column, row) with (0, 0) in the lower-left corner.
    """

    def __init__(self, size: int = 4):
        self._grid = Grid(size)
        self._score = 0
        self._max_score = 0

    @classmethod
    def from_values(cls, raw_values: List[List[int]], score: int = 0, max_score: int = 0) -> "GameEngine":
        """
        Builds a game in a given position, bypassing normal play.
        Args:
            raw_values (List[List[int]]): Tile values listed top row first, 0 for empty.
            score (int): Current score.
            max_score (int): Best score so far.
        Returns:
            GameEngine: The prepared game.
        Raises:
            ValueError: If the matrix or the scores are invalid.
        """
        if score < 0 or max_score < 0:
            raise ValueError("Scores must be non-negative.")
        grid = Grid.from_values(raw_values)
        engine = cls(grid.size)
        engine._grid = grid
        engine._score = score
        engine._max_score = max_score
        return engine

    @property
    def grid(self) -> Grid:
        return self._grid

    @property
    def size(self) -> int:
        return self._grid.size

    @property
    def score(self) -> int:
        return self._score

    @property
    def max_score(self) -> int:
        """The maximum score so far, updated when the game ends."""
        return self._max_score

    def tile_at(self, column: int, row: int) -> Optional[Tile]:
        return self._grid.tile_at(column, row)

    def clear(self):
        """Empties the board and resets the score. The max score is kept."""
        self._score = 0
        self._grid.clear()

    def add_tile(self, tile: Tile):
        """
        Places TILE on the board. Its cell must be empty.
        Raises:
            GridIndexError: If the tile lies outside the board.
            InvalidPlacementError: If the cell is already occupied.
        """
        self._grid.add_tile(tile)
        self._check_game_over()

    def game_over(self) -> bool:
        """True iff a MAX_PIECE tile exists or no move is left."""
        return max_tile_exists(self._grid) or not at_least_one_move_exists(self._grid)

    def progress(self) -> GameProgressState:
        if max_tile_exists(self._grid):
            return GameProgressState.GAME_WON
        if not at_least_one_move_exists(self._grid):
            return GameProgressState.GAME_OVER
        return GameProgressState.IN_PROGRESS

    def _check_game_over(self):
        if self.game_over():
            self._max_score = max(self._score, self._max_score)
            logger.debug("Game over with score %d (max %d)", self._score, self._max_score)

    def tilt(self, direction: DIRECTION) -> bool:
        """
        Tilts the board toward DIRECTION.

        1. Two tiles that meet in the direction of motion with the same value
           merge into one tile of twice the value, which is added to the score.
        2. A tile produced by a merge does not merge again in the same tilt.
        3. Of three equal tiles in a line, the leading two merge and the
           trailing one does not.

        Args:
            direction (DIRECTION): The direction to tilt toward.
        Returns:
            bool: True if the board changed.
        """
        direction = DIRECTION(direction)
        before = self._grid.values()
        gained = 0
        with self._grid.viewed_from(direction):
            for col in range(self._grid.size):
                gained += self._rearrange_column(col)
        self._score += gained
        changed = self._grid.values() != before
        logger.debug("Tilted %s: changed=%s, gained %d", direction.name, changed, gained)
        self._check_game_over()
        return changed

    def _rearrange_column(self, col: int) -> int:
        """
        Slides and merges one logical column toward its top row.
        Variable blank is the row the next tile will settle on.
        Returns:
            int: Score gained from merges in this column.
        """
        gained = 0
        blank = self._grid.size - 1
        for row in range(self._grid.size - 1, -1, -1):
            tile = self._grid.tile_at(col, row)
            if tile is None:
                continue
            self._grid.move(col, blank, tile)
            below = self._next_occupied_row(col, row - 1)
            if below is None:
                break
            neighbour = self._grid.tile_at(col, below)
            if neighbour.value == tile.value:
                self._grid.move(col, blank, neighbour)
                gained += 2 * tile.value
                logger.debug("Merged two %d tiles in column %d", tile.value, col)
            blank -= 1
        return gained

    def _next_occupied_row(self, col: int, row: int) -> Optional[int]:
        """Returns the first occupied row at or below ROW in column COL, or None."""
        while row >= 0 and self._grid.tile_at(col, row) is None:
            row -= 1
        return row if row >= 0 else None

    def __eq__(self, other):
        if not isinstance(other, GameEngine):
            return NotImplemented
        return (self._grid == other._grid
                and self._score == other._score
                and self._max_score == other._max_score)

    def __str__(self):
        lines = ["", "["]
        for row in range(self.size - 1, -1, -1):
            cells = []
            for col in range(self.size):
                tile = self.tile_at(col, row)
                cells.append("|    " if tile is None else f"|{tile.value:4d}")
            lines.append("".join(cells) + "|")
        over = "over" if self.game_over() else "not over"
        lines.append(f"] {self._score} (max: {self._max_score}) (game is {over}) ")
        return "\n".join(lines) + "\n"
