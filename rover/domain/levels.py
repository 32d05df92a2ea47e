"""Level configurations, preset playground layouts and random-mode bonuses."""

from typing import Dict, List, Tuple
from .types import LevelConfig, BonusType
from ..utils.rng import RandomSource

LEVELS: Dict[str, LevelConfig] = {
    "level1": LevelConfig(
        key="level1",
        name="Level 1 - Training Meadow",
        size_offset=0,
        reward_density=0.08,
        punishment_density=0.05,
        obstacle_density=0.12,
        goals=1
    ),
    "level2": LevelConfig(
        key="level2",
        name="Level 2 - Path Finder",
        size_offset=0,
        reward_density=0.1,
        punishment_density=0.08,
        obstacle_density=0.18,
        goals=2
    ),
    "level3": LevelConfig(
        key="level3",
        name="Level 3 - Labyrinth",
        size_offset=0,
        reward_density=0.12,
        punishment_density=0.1,
        obstacle_density=0.24,
        goals=1
    ),
}

BONUS_TYPES: Tuple[BonusType, ...] = ("reward", "punishment", "obstacle", "portal", "teleport")

BONUS_WEIGHTS: Dict[BonusType, int] = {
    "reward": 3,
    "punishment": 3,
    "obstacle": 3,
    "portal": 1,
    "teleport": 2,
}


def pick_weighted_bonus(rng: RandomSource) -> BonusType:
    """Draw a bonus type proportionally to ``BONUS_WEIGHTS``."""
    total = sum(BONUS_WEIGHTS[bonus] for bonus in BONUS_TYPES)
    roll = rng.random() * total
    for bonus in BONUS_TYPES:
        roll -= BONUS_WEIGHTS[bonus]
        if roll <= 0:
            return bonus
    return BONUS_TYPES[0]


def _tiles(tile_type: str, coords: List[Tuple[int, int]]) -> List[dict]:
    return [{"x": x, "y": y, "type": tile_type} for x, y in coords]


# Preset playground layouts, in the layout record shape
PRESET_LAYOUTS: Dict[str, dict] = {
    "trap": {
        "name": "The Trap",
        "size": 9,
        "tiles": (
            _tiles("obstacle", [(2, 1), (2, 2), (2, 3), (3, 3), (5, 3), (5, 4), (5, 5), (6, 5),
                                (1, 6), (2, 6), (2, 7), (4, 4), (4, 5), (3, 6), (5, 7)])
            + _tiles("reward", [(3, 1), (3, 2), (6, 3), (6, 4), (1, 7), (1, 4), (3, 5), (4, 7), (6, 7)])
            + _tiles("punishment", [(4, 2), (7, 4), (2, 5), (5, 6)])
            + _tiles("portal", [(1, 8), (7, 1)])
        ),
        "agent": {"x": 0, "y": 0},
        "goal": {"x": 8, "y": 8},
    },
    "spiral": {
        "name": "Spiral of Chaos",
        "size": 9,
        "tiles": (
            _tiles("obstacle", [(x, 1) for x in range(1, 8)]
                   + [(7, y) for y in range(2, 8)]
                   + [(x, 7) for x in range(6, 0, -1)]
                   + [(1, y) for y in range(6, 1, -1)]
                   + [(3, 3), (4, 3), (5, 3), (5, 4), (5, 5), (4, 5), (3, 5), (3, 4)])
            + _tiles("portal", [(4, 4), (6, 6)])
            + _tiles("reward", [(2, 3), (6, 3), (2, 5), (6, 5)])
            + _tiles("punishment", [(2, 2), (6, 2), (2, 6)])
        ),
        "agent": {"x": 0, "y": 0},
        "goal": {"x": 8, "y": 8},
    },
    "crossroads": {
        "name": "Crossroads of Decisions",
        "size": 11,
        "tiles": (
            _tiles("obstacle", [(5, 3), (5, 4), (5, 6), (5, 7), (3, 5), (4, 5), (6, 5), (7, 5),
                                (4, 1), (6, 1), (4, 9), (6, 9), (9, 4), (9, 6), (1, 4), (1, 6),
                                (3, 3), (7, 3), (3, 7), (7, 7)])
            + _tiles("reward", [(5, 0), (5, 1), (5, 8), (5, 9), (9, 5), (0, 5), (2, 2), (8, 2), (2, 8)])
            + _tiles("punishment", [(5, 2), (2, 5), (1, 5), (8, 8)])
            + _tiles("portal", [(8, 5), (10, 5)])
        ),
        "agent": {"x": 5, "y": 5},
        "goal": {"x": 10, "y": 0},
    },
}
