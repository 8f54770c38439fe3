from __future__ import annotations

import threading
from collections import Counter

import pytest

from move_engine import (
    GRID_SIZE,
    Direction,
    InvalidBoardError,
    MoveEngine,
    Tile,
    TileIdSequence,
    format_board,
    has_won,
    is_lost,
    to_grid,
    validate_board,
)


def board_from_rows(rows):
    tiles = []
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if value:
                tiles.append(Tile(id=len(tiles), value=value, row=r, col=c))
    return tuple(tiles)


def padded(*rows):
    rows = [list(row) for row in rows]
    while len(rows) < GRID_SIZE:
        rows.append([0] * GRID_SIZE)
    return rows


@pytest.fixture
def engine():
    # Ids start well above the ones board_from_rows hands out.
    return MoveEngine(seed=1234, ids=TileIdSequence(start=1000))


def test_row_of_four_twos_left(engine):
    board = board_from_rows(padded([2, 2, 2, 2]))
    result = engine.resolve_move(board, Direction.LEFT)

    assert result.moved is True
    assert result.score_gained == 8
    assert to_grid(result.board)[0] == [4, 4, 0, 0]
    assert all(tile.is_merged for tile in result.board)


def test_gap_between_equal_tiles_left(engine):
    board = board_from_rows(padded([2, 0, 0, 2]))
    result = engine.resolve_move(board, "left")

    assert result.moved is True
    assert result.score_gained == 4
    assert len(result.board) == 1
    (tile,) = result.board
    assert (tile.value, tile.row, tile.col) == (4, 0, 0)


def test_checkerboard_full_board_is_lost():
    rows = [[2 if (r + c) % 2 == 0 else 4 for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]
    board = board_from_rows(rows)

    assert len(board) == GRID_SIZE * GRID_SIZE
    assert is_lost(board) is True


def test_2048_tile_wins_regardless_of_others():
    board = board_from_rows(padded([2048, 2, 4, 0], [8, 0, 0, 16]))
    assert has_won(board) is True
    assert has_won(board_from_rows(padded([1024, 1024]))) is False


@pytest.mark.parametrize(
    "position, direction",
    [
        ((0, 0), Direction.LEFT),
        ((0, 0), Direction.UP),
        ((3, 3), Direction.RIGHT),
        ((3, 3), Direction.DOWN),
        ((2, 0), Direction.LEFT),
        ((0, 2), Direction.UP),
    ],
)
def test_single_tile_against_wall_does_not_move(engine, position, direction):
    board = (Tile(id=0, value=2, row=position[0], col=position[1]),)
    result = engine.resolve_move(board, direction)

    assert result.moved is False
    assert result.score_gained == 0
    assert result.board[0].position == position


def test_three_equal_tiles_merge_only_once(engine):
    board = board_from_rows(padded([2, 2, 2, 0]))

    left = engine.resolve_move(board, Direction.LEFT)
    assert to_grid(left.board)[0] == [4, 2, 0, 0]
    assert left.score_gained == 4

    right = engine.resolve_move(board, Direction.RIGHT)
    assert to_grid(right.board)[0] == [0, 0, 2, 4]
    assert right.score_gained == 4


def test_merged_tile_does_not_merge_again(engine):
    board = board_from_rows(padded([4, 4, 8, 0]))
    result = engine.resolve_move(board, Direction.LEFT)

    assert to_grid(result.board)[0] == [8, 8, 0, 0]
    assert result.score_gained == 8


def test_tiles_do_not_see_past_a_different_value(engine):
    board = board_from_rows(padded([2, 4, 2, 0]))
    result = engine.resolve_move(board, Direction.LEFT)

    assert result.moved is False
    assert result.score_gained == 0
    assert to_grid(result.board) == to_grid(board)


def test_vertical_moves_work_on_columns(engine):
    board = board_from_rows([[2, 0, 0, 0], [0, 0, 0, 0], [2, 0, 8, 0], [4, 0, 8, 0]])

    up = engine.resolve_move(board, Direction.UP)
    assert to_grid(up.board) == [[4, 0, 16, 0], [4, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]]
    assert up.score_gained == 20

    down = engine.resolve_move(board, Direction.DOWN)
    assert to_grid(down.board) == [[0, 0, 0, 0], [0, 0, 0, 0], [4, 0, 0, 0], [4, 0, 16, 0]]
    assert down.score_gained == 20


def test_relocated_tiles_keep_ids_and_merges_get_fresh_ones(engine):
    board = board_from_rows(padded([0, 8, 0, 0], [2, 2, 0, 0]))
    original_ids = {tile.id for tile in board}

    result = engine.resolve_move(board, Direction.RIGHT)
    by_position = {tile.position: tile for tile in result.board}

    eight = by_position[(0, 3)]
    assert eight.id == board[0].id
    assert not eight.is_merged

    four = by_position[(1, 3)]
    assert four.value == 4
    assert four.is_merged
    assert four.id not in original_ids


def test_hints_are_cleared_at_start_of_move(engine):
    board = (
        Tile(id=0, value=2, row=0, col=3, is_new=True),
        Tile(id=1, value=8, row=1, col=0, is_merged=True),
    )
    result = engine.resolve_move(board, Direction.LEFT)

    assert result.moved is True
    assert not any(tile.is_new or tile.is_merged for tile in result.board)
    # The input board is left as it was.
    assert board[0].is_new and board[1].is_merged


def test_noop_move_is_repeatable_and_consumes_no_ids(engine):
    board = board_from_rows(padded([2, 4, 8, 16]))
    before = engine.ids.peek()

    first = engine.resolve_move(board, Direction.LEFT)
    second = engine.resolve_move(board, Direction.LEFT)

    assert first == second
    assert first.moved is False
    assert first.board == board
    assert engine.ids.peek() == before


def test_merge_in_place_still_counts_as_moved(engine):
    board = board_from_rows(padded([2, 2, 0, 0]))
    result = engine.resolve_move(board, Direction.LEFT)

    assert result.board[0].position == (0, 0)
    assert result.moved is True


def test_random_play_conserves_values_and_positions():
    engine = MoveEngine(seed=7)
    board = engine.initialize_board()
    directions = list(Direction)

    for step in range(300):
        direction = directions[step % len(directions)]
        result = engine.resolve_move(board, direction)
        validate_board(result.board)
        before_sum = sum(tile.value for tile in board)
        after_sum = sum(tile.value for tile in result.board)
        merges = sum(1 for tile in result.board if tile.is_merged)

        assert after_sum == before_sum
        assert len(result.board) == len(board) - merges
        assert result.score_gained == sum(tile.value for tile in result.board if tile.is_merged)

        if result.moved:
            board = engine.spawn_tile(result.board)
            validate_board(board)
        if is_lost(board):
            break

    ids = Counter(tile.id for tile in board)
    assert max(ids.values()) == 1, format_board(board)


def test_initialize_board_places_two_new_tiles():
    for seed in range(50):
        engine = MoveEngine(seed=seed)
        board = engine.initialize_board()

        assert len(board) == 2
        assert board[0].position != board[1].position
        assert all(tile.is_new for tile in board)
        assert all(tile.value in (2, 4) for tile in board)
        assert [tile.id for tile in board] == [0, 1]


def test_spawn_tile_uses_an_empty_cell(engine):
    board = board_from_rows(padded([2, 4, 8, 16], [32, 64, 0, 128]))
    spawned = engine.spawn_tile(board)

    assert len(spawned) == len(board) + 1
    new_tile = spawned[-1]
    assert new_tile.position == (1, 2) or new_tile.row >= 2
    assert new_tile.is_new
    assert new_tile.value in (2, 4)
    validate_board(spawned)


def test_spawn_tile_on_full_board_returns_it_unchanged(engine):
    rows = [[2 if (r + c) % 2 == 0 else 4 for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]
    board = board_from_rows(rows)
    before = engine.ids.peek()

    assert engine.spawn_tile(board) is board
    assert engine.ids.peek() == before


def test_spawn_values_are_mostly_twos():
    engine = MoveEngine(seed=99)
    values = Counter(engine.spawn_tile(())[0].value for _ in range(2000))

    assert set(values) == {2, 4}
    assert 0.85 < values[2] / 2000 < 0.95


def test_won_board_need_not_be_full():
    board = board_from_rows(padded([2048, 0, 0, 0]))
    assert has_won(board) is True
    assert is_lost(board) is False


def test_won_and_lost_can_both_hold():
    rows = [
        [2048, 2, 4, 8],
        [2, 4, 8, 16],
        [4, 8, 16, 32],
        [8, 16, 32, 64],
    ]
    board = board_from_rows(rows)
    assert has_won(board) is True
    assert is_lost(board) is True


def test_full_board_with_vertical_pair_is_not_lost():
    rows = [[2 if (r + c) % 2 == 0 else 4 for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]
    rows[3][0] = rows[2][0]
    assert is_lost(board_from_rows(rows)) is False


def test_engine_delegates_terminal_checks():
    engine = MoveEngine(win_value=64)
    board = board_from_rows(padded([64]))
    assert engine.has_won(board) is True
    assert engine.is_lost(board) is False


def test_direction_parse():
    assert Direction.parse("LEFT") is Direction.LEFT
    assert Direction.parse(" up ") is Direction.UP
    assert Direction.parse(Direction.DOWN) is Direction.DOWN
    with pytest.raises(ValueError, match="Invalid direction"):
        Direction.parse("diagonal")


def test_resolve_move_rejects_unknown_direction(engine):
    with pytest.raises(ValueError):
        engine.resolve_move((), "sideways")


def test_malformed_boards_are_rejected(engine):
    duplicate = (Tile(id=0, value=2, row=1, col=1), Tile(id=1, value=4, row=1, col=1))
    with pytest.raises(InvalidBoardError, match="share cell"):
        engine.resolve_move(duplicate, Direction.UP)

    with pytest.raises(InvalidBoardError, match="off the grid"):
        validate_board((Tile(id=0, value=2, row=4, col=0),))

    with pytest.raises(InvalidBoardError, match="invalid value"):
        validate_board((Tile(id=0, value=6, row=0, col=0),))


def test_engines_have_independent_id_sequences():
    first = MoveEngine(seed=1)
    second = MoveEngine(seed=1)

    assert [t.id for t in first.initialize_board()] == [0, 1]
    assert [t.id for t in second.initialize_board()] == [0, 1]
    assert first.ids.peek() == 2


def test_id_sequence_is_unique_across_threads():
    ids = TileIdSequence()
    seen = []
    lock = threading.Lock()

    def take():
        taken = [ids.next_id() for _ in range(500)]
        with lock:
            seen.extend(taken)

    threads = [threading.Thread(target=take) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seen) == len(set(seen)) == 4000
    assert ids.peek() == 4000


def test_id_sequence_reset():
    ids = TileIdSequence(start=5)
    assert ids.next_id() == 5
    ids.reset()
    assert ids.next_id() == 0


def test_format_board_renders_rows():
    text = format_board(board_from_rows(padded([2, 0, 0, 2048])))
    lines = text.splitlines()
    assert len(lines) == GRID_SIZE
    assert "2048" in lines[0]
    assert lines[1].count("|") == GRID_SIZE + 1


def test_grid_size_must_be_sensible():
    with pytest.raises(ValueError):
        MoveEngine(size=1)
