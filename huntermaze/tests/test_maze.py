import logging
import random

import pytest

from huntermaze.common.types import Cell
from huntermaze.engine.maze import GridConnectivityError, Maze


def _maze(seed=1, size=15):
    return Maze(size, rng=random.Random(seed))


def test_initial_size_and_cell_size():
    maze = _maze()
    assert maze.size == 15
    assert maze.cell_size == 40
    assert len(maze.cells) == 15
    assert all(len(row) == 15 for row in maze.cells)
    assert maze.width == maze.size * maze.cell_size
    assert maze.height == maze.size * maze.cell_size


def test_generated_grid_has_walls_paths_and_solid_border():
    maze = _maze()
    flat = [cell for row in maze.cells for cell in row]
    assert Cell.WALL in flat
    assert Cell.PATH in flat
    last = maze.size - 1
    for i in range(maze.size):
        assert maze.cells[0][i] == Cell.WALL
        assert maze.cells[last][i] == Cell.WALL
        assert maze.cells[i][0] == Cell.WALL
        assert maze.cells[i][last] == Cell.WALL


def test_generation_is_deterministic_for_a_seed():
    assert _maze(seed=9).render_rows() == _maze(seed=9).render_rows()


def test_generated_grids_are_connected():
    for seed in range(40):
        maze = _maze(seed=seed)
        assert maze.is_fully_connected(), seed


def test_isolated_pocket_is_joined():
    rows = [
        "#########",
        "#...#...#",
        "#.#.#.#.#",
        "#.#...#.#",
        "#.#####.#",
        "#.#.#...#",
        "#.###.#.#",
        "#.....#.#",
        "#########",
    ]
    maze = Maze.from_rows(rows)
    assert not maze.is_fully_connected()
    maze._join_isolated((1, 1), interior_only=True)
    assert maze.is_fully_connected()
    assert maze.cells[0] == [Cell.WALL] * 9


def test_shrink_reduces_size_by_two():
    maze = _maze()
    assert maze.shrink() is True
    assert maze.size == 13
    assert len(maze.cells) == 13
    assert all(len(row) == 13 for row in maze.cells)


def test_shrink_stops_below_minimum():
    maze = _maze()
    results = [maze.shrink() for _ in range(5)]
    assert results == [True, True, True, True, False]
    assert maze.size == 7
    before = maze.render_rows()
    assert maze.shrink() is False
    assert maze.size == 7
    assert maze.render_rows() == before


def test_shrink_keeps_grid_connected():
    for seed in range(25):
        maze = _maze(seed=seed)
        while maze.shrink():
            assert maze.is_fully_connected(), (seed, maze.size)


def test_shrink_clears_center_cross():
    maze = _maze(seed=3)
    maze.shrink()
    center = maze.size // 2
    for i in range(1, maze.size - 1):
        for offset in (-1, 0, 1):
            assert maze.cells[center + offset][i] == Cell.PATH
            assert maze.cells[i][center + offset] == Cell.PATH


def test_shrink_recomputes_cell_size():
    maze = Maze(15, rng=random.Random(2), base_cell_size=40, world_span=400)
    assert maze.cell_size == pytest.approx(400 / 15)
    maze.shrink()
    assert maze.cell_size == pytest.approx(400 / 13)
    maze.shrink()
    assert maze.cell_size == pytest.approx(400 / 11)
    maze.shrink()
    assert maze.cell_size == 40


def test_out_of_bounds_is_wall():
    maze = _maze()
    assert maze.is_wall(-10, -10) is True
    assert maze.is_wall(10000, 10000) is True
    assert maze.is_wall(-0.5, 100) is True


def test_is_wall_maps_cells():
    maze = _maze()
    maze.cells[5][5] = Cell.WALL
    assert maze.is_wall(5 * 40 + 20, 5 * 40 + 20) is True
    maze.cells[5][5] = Cell.PATH
    assert maze.is_wall(5 * 40 + 20, 5 * 40 + 20) is False


def test_nearest_open_cell_returns_own_center_when_open():
    maze = Maze.from_rows(["######", "#....#", "#....#", "#....#", "#....#", "######"])
    assert maze.find_nearest_open_cell(50, 90) == (60, 100)


def test_nearest_open_cell_uses_fewest_hops():
    maze = Maze.from_rows(["######", "######", "######", "###..#", "######", "######"])
    # (1, 3) is a wall; (3, 3) is two hops to the right.
    assert maze.find_nearest_open_cell(60, 140) == (140, 140)


def test_nearest_open_cell_clamps_out_of_bounds_queries():
    maze = Maze.from_rows(["######", "#....#", "#....#", "#....#", "#....#", "######"])
    x, y = maze.find_nearest_open_cell(-500, -500)
    assert not maze.is_wall(x, y)
    assert (x, y) == (60, 60)


def test_nearest_open_cell_falls_back_to_center(caplog):
    maze = Maze.from_rows(["######"] * 6)
    with caplog.at_level(logging.ERROR, logger="huntermaze.engine.maze"):
        assert maze.find_nearest_open_cell(10, 10) == (120, 120)
    assert "No open cell" in caplog.text


def test_nearest_open_cell_raises_in_strict_mode():
    maze = Maze.from_rows(["######"] * 6, strict=True)
    with pytest.raises(GridConnectivityError):
        maze.find_nearest_open_cell(10, 10)


def test_rejects_tiny_or_ragged_grids():
    with pytest.raises(ValueError):
        Maze(5)
    with pytest.raises(ValueError):
        Maze.from_rows(["######"] * 5 + ["#####"])
