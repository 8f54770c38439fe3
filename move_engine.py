import logging
import random
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple


GRID_SIZE = 4
WIN_VALUE = 2048
FOUR_PROBABILITY = 0.1

logger = logging.getLogger(__name__)


class InvalidBoardError(ValueError):
    """Raised when a board breaks the one-tile-per-cell contract."""


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, value: "str | Direction") -> "Direction":
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid direction: {value!r}. Must be 'left', 'right', 'up', or 'down'"
            ) from None


@dataclass(frozen=True)
class Tile:
    id: int
    value: int
    row: int
    col: int
    is_new: bool = False
    is_merged: bool = False

    @property
    def position(self) -> Tuple[int, int]:
        return self.row, self.col


Board = Tuple[Tile, ...]


@dataclass(frozen=True)
class MoveResult:
    board: Board
    moved: bool
    score_gained: int


class TileIdSequence:
    """Monotonic tile ids for one engine. Safe to share between threads."""

    def __init__(self, start: int = 0) -> None:
        self._lock = threading.Lock()
        self._next = start

    def next_id(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        with self._lock:
            return self._next

    def reset(self, start: int = 0) -> None:
        with self._lock:
            self._next = start


@dataclass(frozen=True)
class _LineGeometry:
    # Rows for horizontal moves, columns for vertical ones.
    horizontal: bool
    # True when tiles travel toward index size - 1 (right, down).
    toward_end: bool

    def line_of(self, tile: Tile) -> int:
        return tile.row if self.horizontal else tile.col

    def distance_to_wall(self, tile: Tile, size: int) -> int:
        along = tile.col if self.horizontal else tile.row
        return size - 1 - along if self.toward_end else along

    def cell(self, line: int, target: int, size: int) -> Tuple[int, int]:
        along = size - 1 - target if self.toward_end else target
        return (line, along) if self.horizontal else (along, line)


_GEOMETRY: Dict[Direction, _LineGeometry] = {
    Direction.LEFT: _LineGeometry(horizontal=True, toward_end=False),
    Direction.RIGHT: _LineGeometry(horizontal=True, toward_end=True),
    Direction.UP: _LineGeometry(horizontal=False, toward_end=False),
    Direction.DOWN: _LineGeometry(horizontal=False, toward_end=True),
}


def validate_board(board: Iterable[Tile], size: int = GRID_SIZE) -> None:
    occupied: Set[Tuple[int, int]] = set()
    for tile in board:
        if not (0 <= tile.row < size and 0 <= tile.col < size):
            raise InvalidBoardError(f"Tile {tile.id} is off the grid at {tile.position}")
        if tile.value < 2 or tile.value & (tile.value - 1):
            raise InvalidBoardError(f"Tile {tile.id} has invalid value {tile.value}")
        if tile.position in occupied:
            raise InvalidBoardError(f"Two tiles share cell {tile.position}")
        occupied.add(tile.position)


def to_grid(board: Iterable[Tile], size: int = GRID_SIZE) -> List[List[int]]:
    grid = [[0 for _ in range(size)] for _ in range(size)]
    for tile in board:
        grid[tile.row][tile.col] = tile.value
    return grid


def format_board(board: Iterable[Tile], size: int = GRID_SIZE) -> str:
    rows = to_grid(board, size)
    return "\n".join(
        "| " + " | ".join(f"{value if value else '':^4}" for value in row) + " |" for row in rows
    )


def is_lost(board: Board, size: int = GRID_SIZE) -> bool:
    if len(board) < size * size:
        return False

    grid = to_grid(board, size)
    for r in range(size):
        for c in range(size):
            current = grid[r][c]
            if c < size - 1 and current == grid[r][c + 1]:
                return False
            if r < size - 1 and current == grid[r + 1][c]:
                return False
    return True


def has_won(board: Board, win_value: int = WIN_VALUE) -> bool:
    return any(tile.value == win_value for tile in board)


class MoveEngine:
    """Pure board transitions for one game.

    The engine owns its random source and its tile id sequence; boards passed in
    are never modified.
    """

    def __init__(
        self,
        size: int = GRID_SIZE,
        win_value: int = WIN_VALUE,
        seed: Optional[int] = None,
        ids: Optional[TileIdSequence] = None,
    ) -> None:
        if size < 2:
            raise ValueError(f"Grid size must be at least 2, got {size}")
        self.size = size
        self.win_value = win_value
        self.rng = random.Random(seed)
        self.ids = ids if ids is not None else TileIdSequence()

    def _random_value(self) -> int:
        return 4 if self.rng.random() < FOUR_PROBABILITY else 2

    def _new_tile(self, row: int, col: int) -> Tile:
        return Tile(id=self.ids.next_id(), value=self._random_value(), row=row, col=col, is_new=True)

    def initialize_board(self) -> Board:
        first = (self.rng.randrange(self.size), self.rng.randrange(self.size))
        while True:
            second = (self.rng.randrange(self.size), self.rng.randrange(self.size))
            if second != first:
                break
        return (self._new_tile(*first), self._new_tile(*second))

    def empty_cells(self, board: Board) -> List[Tuple[int, int]]:
        occupied = {tile.position for tile in board}
        return [
            (r, c) for r in range(self.size) for c in range(self.size) if (r, c) not in occupied
        ]

    def spawn_tile(self, board: Board) -> Board:
        empty = self.empty_cells(board)
        if not empty:
            return board
        tile = self._new_tile(*self.rng.choice(empty))
        logger.debug("Spawned %d at %s (id=%d)", tile.value, tile.position, tile.id)
        return tuple(board) + (tile,)

    def resolve_move(self, board: Board, direction: "str | Direction") -> MoveResult:
        direction = Direction.parse(direction)
        if __debug__:
            validate_board(board, self.size)

        geometry = _GEOMETRY[direction]
        lines: Dict[int, List[Tile]] = {}
        for tile in board:
            cleared = replace(tile, is_new=False, is_merged=False)
            lines.setdefault(geometry.line_of(cleared), []).append(cleared)

        new_tiles: List[Tile] = []
        moved = False
        score_gained = 0

        for line in sorted(lines):
            ordered = sorted(lines[line], key=lambda t: geometry.distance_to_wall(t, self.size))
            target = 0
            idx = 0
            while idx < len(ordered):
                current = ordered[idx]
                row, col = geometry.cell(line, target, self.size)
                if idx + 1 < len(ordered) and ordered[idx + 1].value == current.value:
                    partner = ordered[idx + 1]
                    merged_value = current.value * 2
                    new_tiles.append(
                        Tile(
                            id=self.ids.next_id(),
                            value=merged_value,
                            row=row,
                            col=col,
                            is_merged=True,
                        )
                    )
                    score_gained += merged_value
                    if current.position != (row, col) or partner.position != (row, col):
                        moved = True
                    idx += 2
                else:
                    if current.position != (row, col):
                        moved = True
                    new_tiles.append(replace(current, row=row, col=col))
                    idx += 1
                target += 1

        logger.debug(
            "Resolved %s: moved=%s score_gained=%d tiles %d -> %d",
            direction.value,
            moved,
            score_gained,
            len(board),
            len(new_tiles),
        )
        return MoveResult(board=tuple(new_tiles), moved=moved, score_gained=score_gained)

    def is_lost(self, board: Board) -> bool:
        return is_lost(board, self.size)

    def has_won(self, board: Board) -> bool:
        return has_won(board, self.win_value)
