"""Tests for layout records, progress snapshots and layout files."""

import json

import pytest

from rover.domain.levels import PRESET_LAYOUTS
from rover.domain.portals import cooldown_key
from rover.domain.types import EpisodeStats, RunState
from rover.utils.grid_factory import create_empty_grid, make_tile
from rover.utils.layout_serialization import (
    grid_to_layout, layout_to_grid, load_layout, progress_snapshot, restore_progress, save_layout
)


def test_layout_to_grid_builds_tiles_and_goal():
    layout = {
        "size": 4,
        "tiles": [{"x": 1, "y": 2, "type": "obstacle"}, {"x": 3, "y": 0, "type": "portal"}],
        "agent": {"x": 0, "y": 0},
        "goal": {"x": 3, "y": 3},
    }
    grid, agent, goals = layout_to_grid(layout)
    assert grid.size == 4
    assert agent == (0, 0)
    assert goals == [(3, 3)]
    assert grid.get_tile((1, 2)).type == "obstacle"
    assert grid.get_tile((1, 2)).value == -20.0
    assert grid.get_tile((3, 0)).type == "portal"
    assert grid.get_tile((3, 3)).type == "goal"


def test_layout_to_grid_accepts_goal_list():
    grid, agent, goals = layout_to_grid({"size": 3, "agent": {"x": 1, "y": 1},
                                         "goals": [{"x": 0, "y": 0}, {"x": 2, "y": 2}]})
    assert goals == [(0, 0), (2, 2)]
    assert grid.get_tile((2, 2)).type == "goal"


@pytest.mark.parametrize("layout", [
    {"size": 0},
    {"size": "4"},
    {"size": 3, "tiles": [{"x": 0, "y": 0, "type": "lava"}]},
    {"size": 3, "tiles": [{"x": 5, "y": 0, "type": "reward"}]},
    {"size": 3, "tiles": [{"x": 0, "type": "reward"}]},
    {"size": 3, "agent": {"x": 3, "y": 0}},
    {"size": 3, "goal": {"x": 0, "y": -1}},
])
def test_layout_to_grid_rejects_malformed_records(layout):
    with pytest.raises(ValueError):
        layout_to_grid(layout)


def test_grid_to_layout_lists_goals_separately():
    grid, agent, goals = layout_to_grid(PRESET_LAYOUTS["trap"])
    layout = grid_to_layout(grid, agent, goals)

    assert layout["size"] == 9
    assert layout["agent"] == {"x": 0, "y": 0}
    assert layout["goal"] == {"x": 8, "y": 8}
    assert all(tile["type"] != "goal" for tile in layout["tiles"])
    assert len(layout["tiles"]) == len(PRESET_LAYOUTS["trap"]["tiles"])

    rebuilt, _, _ = layout_to_grid(layout)
    assert [t.type for row in rebuilt.tiles for t in row] == [t.type for row in grid.tiles for t in row]


def test_grid_to_layout_multiple_goals():
    layout = grid_to_layout(create_empty_grid(3), (0, 0), [(1, 1), (2, 2)])
    assert "goal" not in layout
    assert layout["goals"] == [{"x": 1, "y": 1}, {"x": 2, "y": 2}]


def test_progress_snapshot_and_restore():
    grid = create_empty_grid(3)
    grid.set_tile((1, 1), make_tile("portal"))
    grid.set_tile((2, 2), make_tile("goal"))
    grid.get_tile((1, 0)).learned_value = 1.5
    grid.get_tile((1, 0)).visits = 3

    run = RunState(grid=grid, agent=(1, 0), spawn=(0, 0), goals=[(2, 2)], mode="random",
                   name="Scout", alpha=0.3, episode=1, total_reward=-2.0, current_steps=2,
                   episode_history=[EpisodeStats(1, 7, 10.0, True, "random")],
                   portal_cooldowns={cooldown_key((1, 1)): 2})

    snapshot = json.loads(json.dumps(progress_snapshot(run)))
    restored = restore_progress(snapshot)

    assert restored.agent == (1, 0)
    assert restored.spawn == (0, 0)
    assert restored.goals == [(2, 2)]
    assert restored.mode == "random"
    assert restored.name == "Scout"
    assert restored.alpha == 0.3
    assert restored.episode == 1
    assert restored.current_steps == 2
    assert restored.total_reward == -2.0
    assert restored.grid.get_tile((1, 0)).learned_value == 1.5
    assert restored.grid.get_tile((1, 0)).visits == 3
    assert restored.grid.get_tile((1, 1)).type == "portal"
    assert restored.episode_history == run.episode_history
    assert restored.portal_cooldowns == {cooldown_key((1, 1)): 2}


def test_restore_progress_requires_layout():
    with pytest.raises(ValueError):
        restore_progress({"episode": 3})


def test_save_and_load_layout(tmp_path):
    path = tmp_path / "layouts" / "trap.json"
    assert save_layout(PRESET_LAYOUTS["trap"], str(path))
    assert load_layout(str(path)) == json.loads(json.dumps(PRESET_LAYOUTS["trap"]))


def test_load_layout_missing_file(tmp_path, capsys):
    assert load_layout(str(tmp_path / "missing.json")) is None
    assert "Error loading layout" in capsys.readouterr().out
