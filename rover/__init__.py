"""Reward Rover - a tabular reinforcement learning grid simulation.

This package implements a value-learning rover that explores typed tile grids,
together with random, maze and seeded daily-challenge grid generators.
"""

__version__ = "1.0.0"
__author__ = "Reward Rover"
