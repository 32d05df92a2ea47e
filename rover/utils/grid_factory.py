"""Grid factory for creating, cloning and populating rover grids."""

from typing import Optional, Tuple, List, Set, Iterable
from ..domain.types import (
    Grid, TileState, TileType, Coord, RLConfig, LevelConfig, PlacementReport
)
from .rng import RandomSource


def tile_value_for(tile_type: TileType, config: Optional[RLConfig] = None) -> float:
    """Static reward magnitude of a tile type."""
    if config is None:
        config = RLConfig()

    if tile_type == "reward":
        return config.reward_value
    if tile_type == "punishment":
        return config.punishment_value
    if tile_type == "goal":
        return config.goal_reward
    if tile_type == "obstacle":
        return config.obstacle_penalty
    return 0.0


def make_tile(tile_type: TileType, config: Optional[RLConfig] = None) -> TileState:
    """Create a fresh tile of the given type with its static value."""
    return TileState(type=tile_type, value=tile_value_for(tile_type, config))


def create_empty_grid(size: int) -> Grid:
    """
    Create a new empty grid.

    Args:
        size: Side length; callers guarantee size >= 1

    Returns:
        New Grid with every tile empty and zeroed
    """
    tiles = [[TileState() for _ in range(size)] for _ in range(size)]
    return Grid(size=size, tiles=tiles)


def clone_grid(grid: Grid) -> Grid:
    """Deep copy a grid; no tile objects are shared with the original."""
    tiles = [
        [TileState(type=t.type, value=t.value, learned_value=t.learned_value, visits=t.visits)
         for t in row]
        for row in grid.tiles
    ]
    return Grid(size=grid.size, tiles=tiles)


def manhattan_distance(a: Coord, b: Coord) -> int:
    """Manhattan distance between two positions."""
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def calculate_item_count(grid_size: int, density: float, minimum: int = 1) -> int:
    """Number of items to place for a density over a square grid."""
    # round half up
    return max(minimum, int(grid_size * grid_size * density + 0.5))


def select_goal_positions(grid: Grid, count: int, start: Coord, forbidden: Set[Coord],
                          min_distance: int, rng: RandomSource) -> List[Coord]:
    """
    Select goal cells on empty tiles, preferring those far from the start.

    Args:
        grid: Grid to scan
        count: Number of goals wanted
        start: Rover spawn
        forbidden: Cells that must not be used
        min_distance: Preferred minimum Manhattan distance from start
        rng: Random source for sampling

    Returns:
        Up to ``count`` positions; empty when nothing qualifies
    """
    qualifying: List[Coord] = []
    candidates: List[Tuple[Coord, int]] = []

    for coord in grid.coords():
        if grid.get_tile(coord).type != "empty" or coord in forbidden:
            continue
        distance = manhattan_distance(start, coord)
        candidates.append((coord, distance))
        if distance >= min_distance:
            qualifying.append(coord)

    if len(qualifying) >= count:
        pool = qualifying
    else:
        candidates.sort(key=lambda c: c[1], reverse=True)
        limit = max(count, count * 3)
        pool = [coord for coord, _ in candidates[:limit]]

    if not pool:
        return []

    return rng.sample(pool, count)


def place_random_tiles(grid: Grid, count: int, tile_type: TileType, forbidden: Set[Coord],
                       rng: RandomSource, config: Optional[RLConfig] = None,
                       max_attempts: int = 5000) -> List[Coord]:
    """
    Place tiles of a type on random empty, non-forbidden cells.

    Placed cells are added to ``forbidden``.

    Returns:
        Coordinates actually placed; fewer than ``count`` when the grid is full
    """
    placed: List[Coord] = []
    attempts = 0

    while len(placed) < count and attempts < max_attempts:
        attempts += 1
        coord = (rng.randrange(grid.size), rng.randrange(grid.size))
        if coord in forbidden or grid.get_tile(coord).type != "empty":
            continue

        grid.set_tile(coord, make_tile(tile_type, config))
        forbidden.add(coord)
        placed.append(coord)

    return placed


def generate_maze(grid: Grid, forbidden: Set[Coord], rng: RandomSource,
                  config: Optional[RLConfig] = None) -> None:
    """
    Turn a grid into a maze using iterative recursive backtracking.

    Every non-forbidden cell becomes an obstacle, then passages are carved
    from the bottom-left interior cell. A few extra random openings are
    added afterwards without any connectivity check.
    """
    size = grid.size

    for coord in grid.coords():
        if coord not in forbidden:
            grid.set_tile(coord, make_tile("obstacle", config))

    def open_cell(coord: Coord):
        if coord not in forbidden:
            grid.set_tile(coord, make_tile("empty", config))

    directions = [(0, -2), (0, 2), (-2, 0), (2, 0)]

    start = (min(1, size - 1), max(size - 2, 0))
    visited = {start}
    open_cell(start)

    # Each frame holds a cell and its remaining shuffled directions
    first = list(directions)
    rng.shuffle(first)
    stack = [(start, first)]

    while stack:
        (x, y), pending = stack[-1]
        if not pending:
            stack.pop()
            continue

        dx, dy = pending.pop(0)
        nx, ny = x + dx, y + dy
        if not (0 <= nx < size and 0 <= ny < size) or (nx, ny) in visited:
            continue

        # Carve wall between current and next cell
        open_cell((x + dx // 2, y + dy // 2))

        visited.add((nx, ny))
        open_cell((nx, ny))
        shuffled = list(directions)
        rng.shuffle(shuffled)
        stack.append(((nx, ny), shuffled))

    extra_paths = int(size * 0.03)
    for _ in range(extra_paths):
        coord = (rng.randrange(size), rng.randrange(size))
        if coord not in forbidden and grid.get_tile(coord).type == "obstacle":
            grid.set_tile(coord, make_tile("empty", config))


def random_free_cell(grid: Grid, forbidden: Iterable[Coord], rng: RandomSource) -> Optional[Coord]:
    """Pick a random empty cell outside ``forbidden``, or None if there is none."""
    blocked = set(forbidden)
    free = [c for c in grid.coords() if c not in blocked and grid.get_tile(c).type == "empty"]
    if not free:
        return None
    return rng.choice(free)


def generate_random_level(size: int, level: LevelConfig, rng: RandomSource,
                          config: Optional[RLConfig] = None,
                          use_maze: bool = False) -> Tuple[Grid, Coord, List[Coord], PlacementReport]:
    """
    Generate a random-mode grid for a level configuration.

    Args:
        size: Grid side length
        level: Densities and goal count
        rng: Interactive random source
        config: Reward table and minimum goal distance
        use_maze: Carve a maze instead of scattering obstacles

    Returns:
        Tuple of (grid, spawn, goals, placement_report)
    """
    if config is None:
        config = RLConfig()

    grid = create_empty_grid(size)
    report = PlacementReport()

    if use_maze:
        # Spawn on the carve start so the rover begins inside the maze
        spawn = (min(1, size - 1), max(size - 2, 0))
        generate_maze(grid, {spawn}, rng, config)
    else:
        spawn = (rng.randrange(size), rng.randrange(size))

    forbidden: Set[Coord] = {spawn}
    goals = select_goal_positions(grid, level.goals, spawn, forbidden, config.min_goal_distance, rng)
    report.record("goal", level.goals, len(goals))
    for goal in goals:
        grid.set_tile(goal, make_tile("goal", config))
        forbidden.add(goal)

    placements = [
        ("reward", calculate_item_count(size, level.reward_density)),
        ("punishment", calculate_item_count(size, level.punishment_density)),
        ("portal", 2),
    ]
    if not use_maze:
        placements.insert(0, ("obstacle", calculate_item_count(size, level.obstacle_density)))

    for tile_type, count in placements:
        placed = place_random_tiles(grid, count, tile_type, forbidden, rng, config)
        report.record(tile_type, count, len(placed))

    return grid, spawn, goals, report
