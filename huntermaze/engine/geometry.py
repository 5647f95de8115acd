from __future__ import annotations

from collections import deque
from typing import Sequence

from huntermaze.common.types import Cell, Tile

Grid = Sequence[Sequence[Cell]]


def in_bounds(tile: Tile, size: int) -> bool:
    x, y = tile
    return 0 <= x < size and 0 <= y < size


def in_interior(tile: Tile, size: int) -> bool:
    """Return True if the tile lies strictly inside the border ring."""
    x, y = tile
    return 0 < x < size - 1 and 0 < y < size - 1


def orthogonal_neighbors(tile: Tile) -> list[Tile]:
    x, y = tile
    return [(x, y - 1), (x + 1, y), (x, y + 1), (x - 1, y)]


def is_path(cells: Grid, tile: Tile) -> bool:
    x, y = tile
    return cells[y][x] == Cell.PATH


def path_tiles(cells: Grid) -> list[Tile]:
    return [
        (x, y)
        for y, row in enumerate(cells)
        for x, cell in enumerate(row)
        if cell == Cell.PATH
    ]


def open_neighbors(cells: Grid, tile: Tile) -> list[Tile]:
    size = len(cells)
    return [n for n in orthogonal_neighbors(tile) if in_bounds(n, size) and is_path(cells, n)]


def reachable_component(cells: Grid, start: Tile) -> set[Tile]:
    """Flood fill over 4-connected path cells starting at ``start``."""
    if not is_path(cells, start):
        return set()
    visited: set[Tile] = set()
    stack = [start]
    while stack:
        cur = stack.pop()
        if cur in visited:
            continue
        visited.add(cur)
        for n in open_neighbors(cells, cur):
            if n not in visited:
                stack.append(n)
    return visited


def is_fully_connected(cells: Grid) -> bool:
    tiles = path_tiles(cells)
    if not tiles:
        return True
    comp = reachable_component(cells, tiles[0])
    return len(comp) == len(tiles)


def carve_route(
    cells: Grid, start: Tile, targets: set[Tile], interior_only: bool = False
) -> list[Tile]:
    """Shortest 4-connected route from ``start`` to any tile in ``targets``.

    Walls are crossed freely; the returned list runs from ``start`` to the
    first target reached (both included) or is empty if no target is
    reachable under the bounds restriction.
    """
    size = len(cells)
    queue = deque([start])
    came_from: dict[Tile, Tile | None] = {start: None}
    goal: Tile | None = None
    while queue:
        cur = queue.popleft()
        if cur in targets:
            goal = cur
            break
        for n in orthogonal_neighbors(cur):
            if n in came_from or not in_bounds(n, size):
                continue
            if interior_only and not in_interior(n, size):
                continue
            came_from[n] = cur
            queue.append(n)
    if goal is None:
        return []
    route = [goal]
    while route[-1] != start:
        route.append(came_from[route[-1]])
    route.reverse()
    return route
