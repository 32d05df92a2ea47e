"""Tests for move statistics and episode summaries."""

import pytest

from rover.domain.stats import move_stats, episode_summary, success_rate
from rover.domain.types import EpisodeStats


def _history():
    return [
        EpisodeStats(episode=1, steps=10, reward=5.0, success=True, mode="playground"),
        EpisodeStats(episode=2, steps=20, reward=-3.0, success=False, mode="playground"),
    ]


def test_move_stats_without_history():
    stats = move_stats(3, [])
    assert stats.current == 3
    assert stats.total_completed == 0
    assert stats.episodes == 0
    assert stats.average is None
    assert stats.best is None


def test_move_stats_with_history():
    stats = move_stats(4, _history())
    assert stats.current == 4
    assert stats.total_completed == 30
    assert stats.episodes == 2
    assert stats.average == pytest.approx(15.0)
    assert stats.best == 10


def test_episode_summary():
    summary = episode_summary(_history())
    assert summary.count == 2
    assert summary.avg_steps == pytest.approx(15.0)
    assert summary.avg_reward == pytest.approx(1.0)
    assert summary.best_reward == 5.0
    assert summary.best_steps == 10


def test_episode_summary_empty():
    summary = episode_summary([])
    assert summary.count == 0
    assert summary.avg_steps is None
    assert summary.best_reward is None


def test_success_rate():
    assert success_rate([]) == 0.0
    assert success_rate(_history()) == pytest.approx(0.5)


def test_episode_summary_two_episode_example():
    history = [
        EpisodeStats(episode=1, steps=10, reward=100.0, success=True, mode="random"),
        EpisodeStats(episode=2, steps=20, reward=50.0, success=True, mode="random"),
    ]
    summary = episode_summary(history)
    assert summary.avg_steps == 15
    assert summary.avg_reward == 75
    assert summary.best_reward == 100
    assert summary.best_steps == 10
