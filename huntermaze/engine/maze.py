from __future__ import annotations

import logging
import math
import random
from collections import deque
from typing import Iterable

from huntermaze.common.constants import (
    BASE_CELL_SIZE,
    INITIAL_GRID_SIZE,
    MIN_SHRINK_SIZE,
    WORLD_SPAN,
)
from huntermaze.common.types import Cell, Point, Tile
from huntermaze.engine.geometry import (
    carve_route,
    in_bounds,
    in_interior,
    is_fully_connected,
    orthogonal_neighbors,
    path_tiles,
    reachable_component,
)

logger = logging.getLogger(__name__)

MIN_GRID_SIZE = 6
DFS_START: Tile = (1, 1)
CARVE_STEPS = ((0, -2), (2, 0), (0, 2), (-2, 0))


class GridConnectivityError(RuntimeError):
    """Raised in strict mode when a nearest-open-cell search finds no path cell."""


class Maze:
    """Square wall/path grid in continuous world coordinates.

    Cells are addressed ``cells[row][col]``; a world point ``(x, y)`` maps to
    column ``floor(x / cell_size)`` and row ``floor(y / cell_size)``.
    Every path cell is reachable from every other one after generation and
    after each successful shrink.
    """

    def __init__(
        self,
        size: int = INITIAL_GRID_SIZE,
        rng: random.Random | None = None,
        base_cell_size: float = BASE_CELL_SIZE,
        world_span: float = WORLD_SPAN,
        strict: bool = False,
        cells: list[list[Cell]] | None = None,
    ) -> None:
        if size < MIN_GRID_SIZE:
            raise ValueError(f"Grid size must be at least {MIN_GRID_SIZE}, got {size}")
        self.size = size
        self.rng = rng or random.Random()
        self.base_cell_size = base_cell_size
        self.world_span = world_span
        self.strict = strict
        self.cell_size = min(base_cell_size, world_span / size)
        if cells is None:
            self.cells: list[list[Cell]] = []
            self.generate()
        else:
            if len(cells) != size or any(len(row) != size for row in cells):
                raise ValueError("Cell rows must form a size x size square")
            self.cells = cells

    @classmethod
    def from_rows(cls, rows: Iterable[str], **kwargs) -> Maze:
        """Build a maze from ``#`` (wall) / ``.`` (path) strings, skipping generation."""
        cells = [[Cell.WALL if ch == "#" else Cell.PATH for ch in row] for row in rows]
        return cls(size=len(cells), cells=cells, **kwargs)

    @property
    def width(self) -> float:
        return self.size * self.cell_size

    @property
    def height(self) -> float:
        return self.size * self.cell_size

    def generate(self) -> None:
        """Carve a randomized depth-first maze, then open a few pockets."""
        size = self.size
        self.cells = [[Cell.WALL] * size for _ in range(size)]
        start_x, start_y = DFS_START
        self.cells[start_y][start_x] = Cell.PATH
        stack = [DFS_START]
        while stack:
            x, y = stack[-1]
            options = []
            for dx, dy in CARVE_STEPS:
                nx, ny = x + dx, y + dy
                if in_interior((nx, ny), size) and self.cells[ny][nx] == Cell.WALL:
                    options.append((nx, ny, x + dx // 2, y + dy // 2))
            if options:
                nx, ny, wx, wy = self.rng.choice(options)
                self.cells[ny][nx] = Cell.PATH
                self.cells[wy][wx] = Cell.PATH
                stack.append((nx, ny))
            else:
                stack.pop()
        for _ in range(size // 3):
            x = 1 + self.rng.randrange(size - 2)
            y = 1 + self.rng.randrange(size - 2)
            self.cells[y][x] = Cell.PATH
        self._join_isolated(DFS_START, interior_only=True)

    def shrink(self) -> bool:
        """Strip the outer ring. Returns False (no change) below the minimum size."""
        if self.size < MIN_SHRINK_SIZE:
            return False
        self.cells = [row[1:-1] for row in self.cells[1:-1]]
        self.size -= 2
        self._clear_center_cross()
        center = self.size // 2
        self._join_isolated((center, center))
        self.cell_size = min(self.base_cell_size, self.world_span / self.size)
        return True

    def _clear_center_cross(self) -> None:
        # Three-wide bands through the center row and column.
        center = self.size // 2
        for i in range(1, self.size - 1):
            for offset in (-1, 0, 1):
                self.cells[center + offset][i] = Cell.PATH
                self.cells[i][center + offset] = Cell.PATH

    def _join_isolated(self, anchor: Tile, interior_only: bool = False) -> None:
        """Carve the shortest wall run from each cut-off path cell to the anchor's component."""
        ax, ay = anchor
        if self.cells[ay][ax] != Cell.PATH:
            return
        while True:
            component = reachable_component(self.cells, anchor)
            stray = next((t for t in path_tiles(self.cells) if t not in component), None)
            if stray is None:
                return
            route = carve_route(self.cells, stray, component, interior_only=interior_only)
            if not route:
                route = carve_route(self.cells, stray, component)
            for x, y in route:
                self.cells[y][x] = Cell.PATH

    def cell_at(self, x: float, y: float) -> Tile:
        return (math.floor(x / self.cell_size), math.floor(y / self.cell_size))

    def cell_center(self, col: int, row: int) -> Point:
        return ((col + 0.5) * self.cell_size, (row + 0.5) * self.cell_size)

    def is_wall(self, x: float, y: float) -> bool:
        col, row = self.cell_at(x, y)
        if not in_bounds((col, row), self.size):
            return True
        return self.cells[row][col] == Cell.WALL

    def find_nearest_open_cell(self, x: float, y: float) -> Point:
        """Center of the fewest-hops path cell from the (clamped) cell under ``(x, y)``."""
        col, row = self.cell_at(x, y)
        col = max(0, min(self.size - 1, col))
        row = max(0, min(self.size - 1, row))
        if self.cells[row][col] == Cell.PATH:
            return self.cell_center(col, row)
        queue = deque([(col, row)])
        visited = {(col, row)}
        while queue:
            cur = queue.popleft()
            for n in orthogonal_neighbors(cur):
                if n in visited or not in_bounds(n, self.size):
                    continue
                visited.add(n)
                nx, ny = n
                if self.cells[ny][nx] == Cell.PATH:
                    return self.cell_center(nx, ny)
                queue.append(n)
        if self.strict:
            raise GridConnectivityError(f"No open cell in a {self.size}x{self.size} grid")
        logger.error(
            "No open cell reachable from (%s, %s) in a %sx%s grid; using grid center",
            col,
            row,
            self.size,
            self.size,
        )
        half = self.size / 2 * self.cell_size
        return (half, half)

    def is_fully_connected(self) -> bool:
        return is_fully_connected(self.cells)

    def render_rows(self) -> list[str]:
        return ["".join("#" if cell == Cell.WALL else "." for cell in row) for row in self.cells]
