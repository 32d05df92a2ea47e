"""
Layout and progress serialization for saving and loading rover grids.

Layout record: ``{size, tiles: [{x, y, type}], agent: {x, y}, goal: {x, y}}``
or ``goals: [{x, y}, ...]`` instead of ``goal``.
"""

import json
import os
from typing import Dict, List, Optional, Tuple, Any

from ..domain.types import Grid, Coord, RLConfig, RunState, EpisodeStats, TILE_TYPES
from ..domain.portals import cooldown_key, key_to_coord
from .grid_factory import create_empty_grid, make_tile


def _point(coord: Coord) -> Dict[str, int]:
    return {"x": coord[0], "y": coord[1]}


def _coord(data: Any, field_name: str) -> Coord:
    try:
        return (int(data["x"]), int(data["y"]))
    except (TypeError, KeyError, ValueError):
        raise ValueError(f"'{field_name}' must be an object with integer x and y, got {data!r}")


def grid_to_layout(grid: Grid, agent: Coord, goals: List[Coord]) -> Dict[str, Any]:
    """Extract a layout record from a grid; goal tiles are listed as goals only."""
    tiles = []
    for coord in grid.coords():
        tile_type = grid.get_tile(coord).type
        if tile_type in ("empty", "goal"):
            continue
        tiles.append({"x": coord[0], "y": coord[1], "type": tile_type})

    layout: Dict[str, Any] = {
        "size": grid.size,
        "tiles": tiles,
        "agent": _point(agent),
    }
    if len(goals) == 1:
        layout["goal"] = _point(goals[0])
    else:
        layout["goals"] = [_point(goal) for goal in goals]
    return layout


def layout_to_grid(layout: Dict[str, Any],
                   config: Optional[RLConfig] = None) -> Tuple[Grid, Coord, List[Coord]]:
    """
    Build a grid from a layout record.

    Returns:
        Tuple of (grid, agent, goals)

    Raises:
        ValueError: If the record is malformed
    """
    size = layout.get("size")
    if not isinstance(size, int) or size <= 0:
        raise ValueError(f"Layout size must be a positive integer, got {size!r}")

    grid = create_empty_grid(size)
    for tile in layout.get("tiles", []):
        coord = _coord(tile, "tiles[]")
        tile_type = tile.get("type")
        if tile_type not in TILE_TYPES:
            raise ValueError(f"Unknown tile type {tile_type!r} at {coord}")
        if not grid.is_valid_coord(coord):
            raise ValueError(f"Tile {coord} is out of bounds for size {size}")
        grid.set_tile(coord, make_tile(tile_type, config))

    if "agent" in layout:
        agent = _coord(layout["agent"], "agent")
    else:
        agent = (0, 0)

    if "goals" in layout:
        goals = [_coord(goal, "goals[]") for goal in layout["goals"]]
    elif "goal" in layout:
        goals = [_coord(layout["goal"], "goal")]
    else:
        goals = []

    for coord in [agent] + goals:
        if not grid.is_valid_coord(coord):
            raise ValueError(f"Position {coord} is out of bounds for size {size}")

    for goal in goals:
        if grid.get_tile(goal).type == "empty":
            grid.set_tile(goal, make_tile("goal", config))

    return grid, agent, goals


def progress_snapshot(run: RunState) -> Dict[str, Any]:
    """Serializable snapshot of a run: layout, learned values and history."""
    learned = []
    for coord in run.grid.coords():
        tile = run.grid.get_tile(coord)
        if tile.learned_value != 0.0 or tile.visits:
            learned.append({
                "x": coord[0],
                "y": coord[1],
                "value": tile.learned_value,
                "visits": tile.visits
            })

    return {
        "layout": grid_to_layout(run.grid, run.spawn, run.goals),
        "mode": run.mode,
        "name": run.name,
        "agent": _point(run.agent),
        "alpha": run.alpha,
        "gamma": run.gamma,
        "exploration_rate": run.exploration_rate,
        "episode": run.episode,
        "total_reward": run.total_reward,
        "current_steps": run.current_steps,
        "learned": learned,
        "episode_history": [
            {
                "episode": ep.episode,
                "steps": ep.steps,
                "reward": ep.reward,
                "success": ep.success,
                "mode": ep.mode
            } for ep in run.episode_history
        ],
        "portal_cooldowns": [
            {"x": key_to_coord(key)[0], "y": key_to_coord(key)[1], "steps": steps}
            for key, steps in run.portal_cooldowns.items()
        ],
    }


def restore_progress(snapshot: Dict[str, Any], config: Optional[RLConfig] = None) -> RunState:
    """Rebuild a run from ``progress_snapshot`` output.

    Raises:
        ValueError: If the snapshot is malformed
    """
    try:
        grid, spawn, goals = layout_to_grid(snapshot["layout"], config)
        for entry in snapshot.get("learned", []):
            tile = grid.get_tile(_coord(entry, "learned[]"))
            tile.learned_value = float(entry["value"])
            tile.visits = int(entry["visits"])

        history = [
            EpisodeStats(
                episode=int(ep["episode"]),
                steps=int(ep["steps"]),
                reward=float(ep["reward"]),
                success=bool(ep["success"]),
                mode=ep["mode"]
            ) for ep in snapshot.get("episode_history", [])
        ]

        cooldowns = {
            cooldown_key(_coord(entry, "portal_cooldowns[]")): int(entry["steps"])
            for entry in snapshot.get("portal_cooldowns", [])
            if int(entry["steps"]) > 0
        }

        return RunState(
            grid=grid,
            agent=_coord(snapshot.get("agent", snapshot["layout"].get("agent", {"x": 0, "y": 0})), "agent"),
            spawn=spawn,
            goals=goals,
            mode=snapshot.get("mode", "playground"),
            name=snapshot.get("name", "Rover"),
            alpha=float(snapshot.get("alpha", 0.1)),
            gamma=float(snapshot.get("gamma", 0.85)),
            exploration_rate=float(snapshot.get("exploration_rate", 0.2)),
            episode=int(snapshot.get("episode", len(history))),
            total_reward=float(snapshot.get("total_reward", 0.0)),
            current_steps=int(snapshot.get("current_steps", 0)),
            episode_history=history,
            portal_cooldowns=cooldowns
        )
    except KeyError as e:
        raise ValueError(f"Progress snapshot is missing {e}")


def save_layout(layout: Dict[str, Any], filepath: str) -> bool:
    """Save a layout record to a JSON file."""
    try:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(layout, f, indent=2)
        return True
    except OSError as e:
        print(f"Error saving layout: {e}")
        return False


def load_layout(filepath: str) -> Optional[Dict[str, Any]]:
    """Load a layout record from a JSON file."""
    try:
        with open(filepath, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error loading layout: {e}")
        return None
