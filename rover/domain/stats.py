"""Rolling statistics over completed episodes."""

from typing import Sequence
from .types import EpisodeStats, MoveStats, EpisodeSummary


def move_stats(current_steps: int, history: Sequence[EpisodeStats]) -> MoveStats:
    """Step counts for the episode in progress and the completed ones."""
    completed = [episode.steps for episode in history]
    total = sum(completed)
    episodes = len(completed)

    return MoveStats(
        current=current_steps,
        total_completed=total,
        episodes=episodes,
        average=total / episodes if episodes else None,
        best=min(completed) if completed else None
    )


def episode_summary(history: Sequence[EpisodeStats]) -> EpisodeSummary:
    """Average and best steps/reward over completed episodes."""
    count = len(history)
    if count == 0:
        return EpisodeSummary(count=0, avg_steps=None, avg_reward=None,
                              best_reward=None, best_steps=None)

    return EpisodeSummary(
        count=count,
        avg_steps=sum(ep.steps for ep in history) / count,
        avg_reward=sum(ep.reward for ep in history) / count,
        best_reward=max(ep.reward for ep in history),
        best_steps=min(ep.steps for ep in history)
    )


def success_rate(history: Sequence[EpisodeStats]) -> float:
    """Fraction of episodes that reached a goal."""
    if not history:
        return 0.0
    return sum(1 for ep in history if ep.success) / len(history)
