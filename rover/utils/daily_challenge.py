"""Seeded daily challenge generation and replay verification.

Everything here draws from ``Mulberry32`` only, so a date string always
yields the same layout and a recorded replay always plays out the same
way on the regenerated grid.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from ..domain.types import Action, ACTIONS, Coord, RLConfig, RunState, ReplayResult
from ..domain.qlearning import QLearningEnvironment
from .layout_serialization import layout_to_grid
from .rng import Mulberry32, UINT32_MASK

DAILY_GRID_SIZE = 8
MAX_ACTIONS = 10000
MAX_PICK_ATTEMPTS = 500


def hash_date_to_seed(date_key: str) -> int:
    """Fold a ``YYYY-MM-DD`` string into a 32-bit seed."""
    seed = 0
    for char in date_key:
        seed = (seed * 31 + ord(char)) & UINT32_MASK
    return seed


def today_key() -> str:
    """Current UTC date as ``YYYY-MM-DD``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def build_daily_config(seed: int) -> Dict[str, Any]:
    """
    Build the daily layout record for a seed.

    Agent and goal are drawn first, then obstacles, rewards, punishments
    and portals, each count capped by the cells still free.
    """
    rng = Mulberry32(seed)
    size = DAILY_GRID_SIZE
    total = size * size
    tiles: List[Dict[str, Any]] = []
    used: Set[Coord] = set()

    def pick_position() -> Coord:
        for _ in range(MAX_PICK_ATTEMPTS):
            x = rng.randrange(size)
            y = rng.randrange(size)
            if (x, y) not in used:
                used.add((x, y))
                return (x, y)
        for y in range(size):
            for x in range(size):
                if (x, y) not in used:
                    used.add((x, y))
                    return (x, y)
        return (0, 0)

    def place_tiles(count: int, tile_type: str):
        for _ in range(count):
            x, y = pick_position()
            tiles.append({"x": x, "y": y, "type": tile_type})

    agent = pick_position()
    goal = pick_position()

    remaining = total - 2
    obstacle_count = min(max(8, int(total * 0.18)), remaining)
    remaining -= obstacle_count
    reward_count = min(max(5, int(total * 0.1)), remaining)
    remaining -= reward_count
    punishment_count = min(max(4, int(total * 0.07)), remaining)
    remaining -= punishment_count
    portal_count = min(2, remaining)

    place_tiles(obstacle_count, "obstacle")
    place_tiles(reward_count, "reward")
    place_tiles(punishment_count, "punishment")
    place_tiles(portal_count, "portal")

    return {
        "size": size,
        "tiles": tiles,
        "agent": {"x": agent[0], "y": agent[1]},
        "goal": {"x": goal[0], "y": goal[1]},
    }


def daily_challenge_for(date_key: Optional[str] = None) -> Dict[str, Any]:
    """Challenge record for a date (today in UTC by default)."""
    if date_key is None:
        date_key = today_key()
    seed = hash_date_to_seed(date_key)
    return {
        "date": date_key,
        "seed": seed,
        "config": build_daily_config(seed),
    }


@dataclass
class ReplayData:
    """Recorded daily run: direction tokens and the seed for portal exits."""
    actions: List[Action]
    initial_seed: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReplayData':
        """
        Parse a replay payload.

        Raises:
            ValueError: If the payload is malformed
        """
        actions = data.get("actions")
        if not isinstance(actions, list) or not actions:
            raise ValueError("replay actions must be a non-empty list")
        if len(actions) > MAX_ACTIONS:
            raise ValueError(f"replay has {len(actions)} actions, limit is {MAX_ACTIONS}")
        unknown = [a for a in actions if a not in ACTIONS]
        if unknown:
            raise ValueError(f"Unknown direction tokens: {sorted(set(map(str, unknown)))}")

        seed = data.get("initial_seed")
        if isinstance(seed, bool) or not isinstance(seed, (int, float)):
            raise ValueError("replay initial_seed must be a number")

        return cls(actions=list(actions), initial_seed=int(seed))

    def to_dict(self) -> Dict[str, Any]:
        return {"actions": list(self.actions), "initial_seed": self.initial_seed}


def replay_actions(layout: Dict[str, Any], replay: ReplayData,
                   config: Optional[RLConfig] = None) -> ReplayResult:
    """
    Re-run recorded directions on a layout.

    Portal exits are drawn from ``Mulberry32(initial_seed)``. The replay
    stops at the first goal; later actions are ignored.
    """
    if config is None:
        config = RLConfig()
    # A replay is bounded by its own length, not by the training step cap
    replay_config = replace(config, max_steps_per_episode=len(replay.actions) + 1)

    grid, agent, goals = layout_to_grid(layout, replay_config)
    run = RunState(grid=grid, agent=agent, spawn=agent, goals=goals, mode="daily")
    env = QLearningEnvironment(run, replay_config, Mulberry32(replay.initial_seed))

    steps = 0
    reward = 0.0
    position = agent
    reached_goal = False
    for action in replay.actions:
        result = env.step_direction(action)
        steps += 1
        reward += result.reward
        position = result.position
        if result.reached_goal:
            reached_goal = True
            break

    return ReplayResult(steps=steps, reward=reward, reached_goal=reached_goal, final_position=position)


def verify_replay(date_key: str, replay: ReplayData, claimed_steps: int, claimed_score: float,
                  config: Optional[RLConfig] = None, tolerance: float = 1e-6) -> bool:
    """Check a submitted daily result against the regenerated challenge."""
    challenge = daily_challenge_for(date_key)
    result = replay_actions(challenge["config"], replay, config)
    return (
        result.reached_goal
        and result.steps == claimed_steps
        and abs(result.reward - claimed_score) <= tolerance
    )
