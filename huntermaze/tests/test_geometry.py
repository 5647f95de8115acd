from huntermaze.common.types import Cell
from huntermaze.engine.geometry import (
    carve_route,
    in_interior,
    is_fully_connected,
    path_tiles,
    reachable_component,
)


def grid(rows):
    return [[Cell.WALL if ch == "#" else Cell.PATH for ch in row] for row in rows]


def test_reachable_component_stays_on_paths():
    cells = grid(["#####", "#..##", "##.##", "#####", "#####"])
    assert reachable_component(cells, (1, 1)) == {(1, 1), (2, 1), (2, 2)}
    assert reachable_component(cells, (0, 0)) == set()


def test_split_grid_is_not_connected():
    cells = grid(["#####", "#.#.#", "#####", "#####", "#####"])
    assert not is_fully_connected(cells)
    cells[1][2] = Cell.PATH
    assert is_fully_connected(cells)


def test_all_wall_grid_counts_as_connected():
    assert is_fully_connected(grid(["###", "###", "###"]))


def test_path_tiles_are_col_row_pairs():
    cells = grid(["###", "#.#", "##."])
    assert path_tiles(cells) == [(1, 1), (2, 2)]


def test_carve_route_runs_from_start_to_target():
    cells = grid(["######", "#....#", "######", "######", "#..###", "######"])
    route = carve_route(cells, (1, 4), {(1, 1), (2, 1)})
    assert route[0] == (1, 4)
    assert route[-1] in {(1, 1), (2, 1)}
    assert len(route) == 4


def test_carve_route_respects_interior_only():
    cells = grid(["######"] * 6)
    route = carve_route(cells, (1, 1), {(4, 4)}, interior_only=True)
    assert all(in_interior(t, 6) for t in route)
    assert len(route) == 7
    assert carve_route(cells, (0, 0), {(4, 4)}, interior_only=True) == []
