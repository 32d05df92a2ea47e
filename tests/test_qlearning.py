"""Tests for action selection, value updates and episode ticks."""

import pytest

from rover.domain.qlearning import (
    QLearningEnvironment, best_action_direction, choose_action,
    get_tile_reward, max_value, possible_actions, update_value
)
from rover.domain.portals import cooldown_key
from rover.domain.types import RLConfig, RunState
from rover.utils.grid_factory import create_empty_grid, make_tile
from rover.utils.rng import InteractiveRNG


def _env(grid, agent, goals, config=None, exploration_rate=0.0, seed=0):
    run = RunState(grid=grid, agent=agent, spawn=agent, goals=goals, exploration_rate=exploration_rate)
    return QLearningEnvironment(run, config or RLConfig(), InteractiveRNG(seed))


def test_update_value_worked_example():
    assert update_value(10, 5, 15, 0.1, 0.9) == pytest.approx(10.85)


def test_update_value_converges_to_reward():
    values = [0.0]
    for _ in range(300):
        values.append(update_value(values[-1], 10, 0, 0.1, 0.9))

    assert all(a < b <= 10.0 for a, b in zip(values, values[1:]))
    assert values[-1] == pytest.approx(10.0)


def test_possible_actions_order_and_bounds():
    grid = create_empty_grid(3)
    assert possible_actions(grid, (1, 1)) == [(1, 0), (1, 2), (0, 1), (2, 1)]
    assert possible_actions(grid, (0, 0)) == [(0, 1), (1, 0)]


def test_possible_actions_boxed_in_stays():
    grid = create_empty_grid(2)
    grid.set_tile((1, 0), make_tile("obstacle"))
    grid.set_tile((0, 1), make_tile("obstacle"))
    assert possible_actions(grid, (0, 0)) == [(0, 0)]


def test_portals_are_traversable():
    grid = create_empty_grid(2)
    grid.set_tile((1, 0), make_tile("portal"))
    assert (1, 0) in possible_actions(grid, (0, 0))


def test_greedy_choice_picks_highest_value():
    grid = create_empty_grid(3)
    grid.get_tile((2, 1)).learned_value = 5.0
    assert choose_action(grid, (1, 1), 0.0, InteractiveRNG(0)) == (2, 1)


def test_greedy_ties_go_to_first_direction():
    grid = create_empty_grid(3)
    assert choose_action(grid, (1, 1), 0.0, InteractiveRNG(0)) == (1, 0)


def test_bias_bonus_breaks_ties_only():
    grid = create_empty_grid(3)
    rng = InteractiveRNG(0)
    assert choose_action(grid, (1, 1), 0.0, rng, bias_direction=(1, 0)) == (2, 1)

    grid.get_tile((0, 1)).learned_value = 0.1
    assert choose_action(grid, (1, 1), 0.0, rng, bias_direction=(1, 0)) == (0, 1)
    # the bonus is never stored
    assert grid.get_tile((2, 1)).learned_value == 0.0


def test_full_exploration_reaches_every_neighbour():
    grid = create_empty_grid(3)
    grid.get_tile((1, 0)).learned_value = 100.0
    rng = InteractiveRNG(4)
    seen = {choose_action(grid, (1, 1), 1.0, rng) for _ in range(200)}
    assert seen == {(1, 0), (1, 2), (0, 1), (2, 1)}


def test_best_action_direction():
    grid = create_empty_grid(3)
    grid.get_tile((1, 2)).learned_value = 2.0
    assert best_action_direction(grid, (1, 1)) == "down"

    boxed = create_empty_grid(1)
    assert best_action_direction(boxed, (0, 0)) is None


def test_get_tile_reward_by_type():
    config = RLConfig()
    grid = create_empty_grid(3)
    grid.set_tile((0, 1), make_tile("reward"))
    grid.set_tile((1, 1), make_tile("punishment"))
    grid.set_tile((2, 1), make_tile("obstacle"))
    grid.set_tile((0, 2), make_tile("portal"))

    assert get_tile_reward(grid, [], (0, 0), config) == config.step_penalty
    assert get_tile_reward(grid, [], (0, 1), config) == config.reward_value
    assert get_tile_reward(grid, [], (1, 1), config) == config.punishment_value
    assert get_tile_reward(grid, [], (2, 1), config) == config.obstacle_penalty
    assert get_tile_reward(grid, [], (0, 2), config) == 0.0


def test_goal_reward_overrides_tile_type():
    grid = create_empty_grid(3)
    grid.set_tile((0, 1), make_tile("punishment"))
    assert get_tile_reward(grid, [(0, 1)], (0, 1)) == RLConfig().goal_reward == 24.0


def test_max_value():
    grid = create_empty_grid(3)
    grid.get_tile((1, 0)).learned_value = -2.0
    grid.get_tile((2, 1)).learned_value = 3.5
    assert max_value(grid, (1, 1)) == 3.5
    assert max_value(create_empty_grid(3), (1, 1)) == 0.0


def test_tick_updates_destination_and_finishes_at_goal():
    grid = create_empty_grid(3)
    grid.set_tile((2, 0), make_tile("goal"))
    grid.get_tile((1, 0)).learned_value = 1.0
    grid.get_tile((2, 0)).learned_value = 0.5
    env = _env(grid, (0, 0), [(2, 0)])

    first = env.step()
    assert first.position == (1, 0)
    assert first.reward == -1.0
    assert not first.done
    assert grid.get_tile((1, 0)).learned_value == pytest.approx(1.0 + 0.1 * (-1.0 + 0.85 * 0.5 - 1.0))
    assert grid.get_tile((1, 0)).visits == 1
    assert env.run.current_steps == 1
    assert env.run.total_reward == -1.0

    second = env.step()
    assert second.position == (2, 0)
    assert second.reached_goal and second.done
    # goal is terminal, nothing bootstrapped past it
    assert grid.get_tile((2, 0)).learned_value == pytest.approx(0.5 + 0.1 * (24.0 - 0.5))

    episode = second.episode
    assert episode.episode == 1
    assert episode.steps == 2
    assert episode.reward == pytest.approx(23.0)
    assert episode.success
    assert env.run.agent == (0, 0)
    assert env.run.current_steps == 0
    assert env.run.episode_history == [episode]


def test_step_cap_ends_episode_without_success():
    env = _env(create_empty_grid(4), (0, 0), [], config=RLConfig(max_steps_per_episode=3))
    results = [env.step() for _ in range(3)]
    assert [r.done for r in results] == [False, False, True]
    assert results[-1].episode.success is False
    assert results[-1].episode.steps == 3


def test_portal_entry_teleports_and_cools_down():
    grid = create_empty_grid(3)
    grid.set_tile((1, 0), make_tile("portal"))
    grid.set_tile((2, 2), make_tile("portal"))
    env = _env(grid, (0, 0), [])

    result = env.step_direction("right")
    assert result.teleported
    assert result.position == (2, 2)
    assert result.reward == 0.0
    assert env.run.portal_cooldowns == {cooldown_key((1, 0)): 4, cooldown_key((2, 2)): 4}

    env.step_direction("left")
    back = env.step_direction("right")
    # still cooling down, so the rover just stands on the portal
    assert not back.teleported
    assert back.position == (2, 2)


def test_blocked_direction_stays_in_place():
    env = _env(create_empty_grid(3), (0, 0), [])
    result = env.step_direction("up")
    assert result.position == (0, 0)
    assert env.run.current_steps == 1


def test_boxed_in_rover_pays_step_penalty():
    grid = create_empty_grid(3)
    grid.set_tile((0, 0), make_tile("reward"))
    grid.set_tile((1, 0), make_tile("obstacle"))
    grid.set_tile((0, 1), make_tile("obstacle"))
    env = _env(grid, (0, 0), [], exploration_rate=0.5)

    rewards = [env.step().reward for _ in range(5)]
    assert rewards == [-1.0] * 5
    assert env.run.agent == (0, 0)
    assert env.run.total_reward == -5.0
    assert grid.get_tile((0, 0)).learned_value < 0.0


def test_blocked_direction_on_reward_tile_pays_step_penalty():
    grid = create_empty_grid(3)
    grid.set_tile((2, 0), make_tile("reward"))
    env = _env(grid, (2, 0), [])

    assert [env.step_direction("right").reward for _ in range(3)] == [-1.0] * 3


def test_standing_on_portal_does_not_teleport():
    grid = create_empty_grid(1)
    grid.set_tile((0, 0), make_tile("portal"))
    env = _env(grid, (0, 0), [])

    result = env.step()
    assert not result.teleported
    assert result.reward == -1.0
    assert env.run.portal_cooldowns == {}
