"""Tabular value learning for the rover.

Learned values live on the cells themselves: the value of a cell is the
value of moving into it, whichever neighbour the rover comes from.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, List
from .types import (
    Coord, Grid, RLConfig, RunState, EpisodeStats, Action, ACTIONS, ACTION_DELTAS, DELTA_TO_ACTION
)
from .portals import decrement_all, is_on_cooldown, teleport, with_cooldowns
from ..utils.rng import RandomSource

BIAS_PROBABILITY = 0.35
BIAS_BONUS = 0.05


def possible_actions(grid: Grid, pos: Coord) -> List[Coord]:
    """
    Neighbour cells the rover can move to, in order up, down, left, right.

    Obstacles and the grid border block a move. A rover that is boxed in
    stays where it is, so the result is never empty.
    """
    actions = []
    for action in ACTIONS:
        dx, dy = ACTION_DELTAS[action]
        next_pos = (pos[0] + dx, pos[1] + dy)
        if grid.is_valid_coord(next_pos) and grid.get_tile(next_pos).is_passable():
            actions.append(next_pos)

    if not actions:
        actions.append(pos)
    return actions


def choose_action(grid: Grid, pos: Coord, exploration_rate: float, rng: RandomSource,
                  bias_direction: Optional[Coord] = None) -> Coord:
    """
    Epsilon-greedy choice of the next cell.

    Args:
        grid: Grid holding the learned values
        pos: Current rover position
        exploration_rate: Probability of exploring
        rng: Random source of the run
        bias_direction: Optional (dx, dy) hint, e.g. from a bonus

    Returns:
        The cell to move to
    """
    possible = possible_actions(grid, pos)

    bias_match = None
    if bias_direction is not None:
        target = (pos[0] + bias_direction[0], pos[1] + bias_direction[1])
        if target in possible:
            bias_match = target

    if rng.random() < exploration_rate:
        if bias_match is not None and rng.random() < BIAS_PROBABILITY:
            return bias_match
        return rng.choice(possible)

    # The bias bonus only takes part in the comparison, it is never stored
    scores = np.array([
        grid.get_tile(action).learned_value + (BIAS_BONUS if action == bias_match else 0.0)
        for action in possible
    ])
    return possible[int(np.argmax(scores))]


def best_action_direction(grid: Grid, pos: Coord) -> Optional[Action]:
    """Greedy direction from ``pos``, or None when the rover cannot move."""
    possible = possible_actions(grid, pos)
    values = np.array([grid.get_tile(action).learned_value for action in possible])
    best = possible[int(np.argmax(values))]
    return DELTA_TO_ACTION.get((best[0] - pos[0], best[1] - pos[1]))


def get_tile_reward(grid: Grid, goals: List[Coord], pos: Coord,
                    config: Optional[RLConfig] = None) -> float:
    """Reward for arriving at ``pos``; goals win over the tile underneath."""
    if config is None:
        config = RLConfig()

    if pos in goals:
        return config.goal_reward

    tile_type = grid.get_tile(pos).type
    if tile_type == "obstacle":
        return config.obstacle_penalty
    if tile_type == "reward":
        return config.reward_value
    if tile_type == "punishment":
        return config.punishment_value
    if tile_type == "portal":
        return 0.0
    return config.step_penalty


def update_value(current: float, reward: float, max_next: float, alpha: float, gamma: float) -> float:
    """Value update: current + alpha * (reward + gamma * max_next - current)."""
    return current + alpha * (reward + gamma * max_next - current)


def max_value(grid: Grid, pos: Coord) -> float:
    """Highest learned value reachable from ``pos``.

    A boxed-in rover can only stay put, so this is then the value of ``pos`` itself.
    """
    return max(grid.get_tile(action).learned_value for action in possible_actions(grid, pos))


@dataclass
class StepResult:
    """Outcome of a single tick."""
    origin: Coord
    position: Coord
    reward: float
    teleported: bool
    done: bool
    reached_goal: bool
    episode: Optional[EpisodeStats] = None


class QLearningEnvironment:
    """Applies ticks to a single run: move, portals, reward, update, termination."""

    def __init__(self, run: RunState, config: RLConfig, rng: RandomSource):
        self.run = run
        self.config = config
        self.rng = rng

    def step(self, bias_direction: Optional[Coord] = None) -> StepResult:
        """Execute one tick of the episode."""
        run = self.run
        grid = run.grid
        origin = run.agent

        target = choose_action(grid, origin, run.exploration_rate, self.rng, bias_direction)
        return self.apply_move(origin, target)

    def step_direction(self, action: Action) -> StepResult:
        """Execute one tick with a fixed direction, e.g. from a recorded replay.

        Blocked moves leave the rover in place, like a boxed-in rover.
        """
        origin = self.run.agent
        dx, dy = ACTION_DELTAS[action]
        target = (origin[0] + dx, origin[1] + dy)
        if not self.run.grid.is_valid_coord(target) or not self.run.grid.get_tile(target).is_passable():
            target = origin
        return self.apply_move(origin, target)

    def apply_move(self, origin: Coord, target: Coord) -> StepResult:
        run = self.run
        grid = run.grid

        run.portal_cooldowns = decrement_all(run.portal_cooldowns)

        destination = target
        teleported = False
        if target == origin:
            # Staying in place only costs a step, whatever tile the rover is on
            reward = self.config.step_penalty
            reached_goal = False
        else:
            if (grid.get_tile(target).type == "portal"
                    and not is_on_cooldown(run.portal_cooldowns, target)):
                exit_portal = teleport(grid, target, self.rng)
                if exit_portal != target:
                    run.portal_cooldowns = with_cooldowns(
                        run.portal_cooldowns, [target, exit_portal], self.config.portal_cooldown_steps
                    )
                    destination = exit_portal
                    teleported = True

            reward = get_tile_reward(grid, run.goals, destination, self.config)
            reached_goal = destination in run.goals

        # A reached goal is terminal, nothing is bootstrapped past it
        next_value = 0.0 if reached_goal else max_value(grid, destination)
        tile = grid.get_tile(destination)
        tile.learned_value = update_value(tile.learned_value, reward, next_value, run.alpha, run.gamma)
        tile.visits += 1

        run.agent = destination
        run.current_steps += 1
        run.total_reward += reward

        done = reached_goal or run.current_steps >= self.config.max_steps_per_episode
        result = StepResult(
            origin=origin,
            position=destination,
            reward=reward,
            teleported=teleported,
            done=done,
            reached_goal=reached_goal
        )
        if done:
            result.episode = self.finish_episode(reached_goal)
        return result

    def finish_episode(self, success: bool) -> EpisodeStats:
        """Record the finished episode and return the rover to its spawn."""
        run = self.run
        run.episode += 1
        episode = EpisodeStats(
            episode=run.episode,
            steps=run.current_steps,
            reward=run.total_reward,
            success=success,
            mode=run.mode
        )
        run.episode_history.append(episode)
        run.reset_episode()
        return episode

