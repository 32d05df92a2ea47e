"""Core type definitions for the Reward Rover simulation."""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Literal, Dict, List

# Coordinate type for grid positions, (x, y)
Coord = Tuple[int, int]

# Tile types a grid cell can hold
TileType = Literal["empty", "obstacle", "reward", "punishment", "goal", "portal"]

TILE_TYPES: Tuple[TileType, ...] = ("empty", "obstacle", "reward", "punishment", "goal", "portal")

# Direction tokens the rover can take
Action = Literal["up", "down", "left", "right"]

# Run modes
Mode = Literal["playground", "random", "comparison", "daily"]

# Bonus drops in random mode
BonusType = Literal["reward", "punishment", "obstacle", "portal", "teleport"]


@dataclass
class RLConfig:
    """Configuration for the learner and the reward table."""
    learning_rate: float = 0.1
    discount_factor: float = 0.85
    exploration_rate: float = 0.2
    step_penalty: float = -1.0
    reward_value: float = 12.0
    punishment_value: float = -15.0
    obstacle_penalty: float = -20.0
    portal_cooldown_steps: int = 4
    min_goal_distance: int = 5
    max_steps_per_episode: int = 200
    bonus_interval: int = 10

    @property
    def goal_reward(self) -> float:
        """Goal tiles are worth twice a reward tile."""
        return self.reward_value * 2


@dataclass
class LevelConfig:
    """Densities and goal count for a random-mode level."""
    key: str
    name: str
    size_offset: int = 0
    reward_density: float = 0.08
    punishment_density: float = 0.05
    obstacle_density: float = 0.12
    goals: int = 1


@dataclass
class TileState:
    """A single cell of the grid.

    ``learned_value`` belongs to the cell itself: it is the value of moving
    into this cell, shared by every neighbour the cell can be entered from.
    """
    type: TileType = "empty"
    value: float = 0.0
    learned_value: float = 0.0
    visits: int = 0

    def reset_rl_data(self):
        """Reset learning-related data."""
        self.learned_value = 0.0
        self.visits = 0

    def is_passable(self) -> bool:
        """Check if the rover can step onto this tile."""
        return self.type != "obstacle"


@dataclass
class Grid:
    """Square grid of tiles, addressed as ``tiles[y][x]``."""
    size: int
    tiles: List[List[TileState]]

    def get_tile(self, coord: Coord) -> TileState:
        """Get the tile at coordinate. Callers keep coordinates in bounds."""
        x, y = coord
        return self.tiles[y][x]

    def set_tile(self, coord: Coord, tile: TileState):
        """Replace the tile at coordinate."""
        x, y = coord
        self.tiles[y][x] = tile

    def is_valid_coord(self, coord: Coord) -> bool:
        """Check if coordinate is within grid bounds."""
        x, y = coord
        return 0 <= x < self.size and 0 <= y < self.size

    def coords(self):
        """Iterate all coordinates in row-major order."""
        for y in range(self.size):
            for x in range(self.size):
                yield (x, y)

    def reset_learned_values(self):
        """Reset learned values and visit counts of every tile."""
        for row in self.tiles:
            for tile in row:
                tile.reset_rl_data()


@dataclass(frozen=True)
class EpisodeStats:
    """Record of a single completed episode."""
    episode: int
    steps: int
    reward: float
    success: bool
    mode: Mode


@dataclass
class MoveStats:
    """Step counts of the current run."""
    current: int
    total_completed: int
    episodes: int
    average: Optional[float]
    best: Optional[int]


@dataclass
class EpisodeSummary:
    """Aggregates over completed episodes."""
    count: int
    avg_steps: Optional[float]
    avg_reward: Optional[float]
    best_reward: Optional[float]
    best_steps: Optional[int]


@dataclass
class PlacementReport:
    """How many items of each type could not be placed during generation."""
    requested: Dict[str, int] = field(default_factory=dict)
    placed: Dict[str, int] = field(default_factory=dict)

    def record(self, item: str, requested: int, placed: int):
        self.requested[item] = self.requested.get(item, 0) + requested
        self.placed[item] = self.placed.get(item, 0) + placed

    @property
    def shortfall(self) -> Dict[str, int]:
        """Items that could not be placed, by type."""
        return {
            item: self.requested[item] - self.placed.get(item, 0)
            for item in self.requested
            if self.requested[item] > self.placed.get(item, 0)
        }

    @property
    def complete(self) -> bool:
        return not self.shortfall

    def describe(self) -> str:
        """Human-readable summary of missing items."""
        if self.complete:
            return "All items placed"
        parts = [f"could not place {count} {item}" for item, count in sorted(self.shortfall.items())]
        return ", ".join(parts)


@dataclass
class RunState:
    """State of one rover run. The grid is owned exclusively by this run."""
    grid: Grid
    agent: Coord
    spawn: Coord
    goals: List[Coord]
    mode: Mode = "playground"
    name: str = "Rover"
    alpha: float = 0.1
    gamma: float = 0.85
    exploration_rate: float = 0.2
    is_running: bool = False
    episode: int = 0
    total_reward: float = 0.0
    current_steps: int = 0
    episode_history: List[EpisodeStats] = field(default_factory=list)
    portal_cooldowns: Dict[int, int] = field(default_factory=dict)

    def reset_episode(self):
        """Put the rover back on its spawn for a new episode."""
        self.agent = self.spawn
        self.total_reward = 0.0
        self.current_steps = 0
        self.portal_cooldowns = {}


@dataclass
class ReplayResult:
    """Outcome of re-running a recorded action list."""
    steps: int
    reward: float
    reached_goal: bool
    final_position: Coord


# Direction mappings, in enumeration order up, down, left, right
ACTIONS: Tuple[Action, ...] = ("up", "down", "left", "right")

ACTION_DELTAS: Dict[Action, Coord] = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0)
}

DELTA_TO_ACTION: Dict[Coord, Action] = {delta: action for action, delta in ACTION_DELTAS.items()}
