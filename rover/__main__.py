"""
Command line entry point for Reward Rover.

Trains a rover headlessly on a random, preset, saved or daily layout, prints
the day's challenge, or verifies a recorded daily replay.
"""

import argparse
import json
import sys
from typing import List, Optional

from .app.controller import RunController
from .domain.levels import LEVELS, PRESET_LAYOUTS
from .domain.types import RLConfig
from .utils.daily_challenge import ReplayData, daily_challenge_for, replay_actions, today_key
from .utils.layout_serialization import grid_to_layout, load_layout, save_layout
from .utils.rng import make_interactive_rng


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rover", description="Reward Rover headless tools")
    sub = parser.add_subparsers(dest="command", required=True)

    train = sub.add_parser("train", help="Train a rover for a number of episodes")
    train.add_argument("--mode", choices=["random", "playground", "daily"], default="random")
    train.add_argument("--level", choices=sorted(LEVELS), default="level1")
    train.add_argument("--preset", choices=sorted(PRESET_LAYOUTS), help="Preset playground layout")
    train.add_argument("--layout", type=str, help="Path to a saved layout JSON file")
    train.add_argument("--date", type=str, help="Daily challenge date (YYYY-MM-DD)")
    train.add_argument("--size", type=int, default=10, help="Grid size for generated layouts")
    train.add_argument("--maze", action="store_true", help="Carve a maze instead of scattering obstacles")
    train.add_argument("--episodes", type=int, default=200, help="Number of episodes to train")
    train.add_argument("--alpha", type=float, default=0.1, help="Learning rate")
    train.add_argument("--gamma", type=float, default=0.85, help="Discount factor")
    train.add_argument("--epsilon", type=float, default=0.2, help="Exploration rate")
    train.add_argument("--max-steps", type=int, default=200, help="Step cap per episode")
    train.add_argument("--seed", type=int, help="Seed for the interactive random source")
    train.add_argument("--progress-interval", type=int, default=50, help="Episodes between progress lines")
    train.add_argument("--save-layout", type=str, help="Write the training layout to this path")

    daily = sub.add_parser("daily", help="Print the daily challenge layout")
    daily.add_argument("--date", type=str, help="Date (YYYY-MM-DD), today in UTC by default")

    replay = sub.add_parser("replay", help="Re-run a recorded daily replay")
    replay.add_argument("replay_file", type=str, help="JSON file with actions and initial_seed")
    replay.add_argument("--date", type=str, help="Date of the challenge (YYYY-MM-DD)")

    return parser


def _train(args) -> int:
    if args.episodes <= 0:
        print("❌ --episodes must be positive")
        return 1

    config = RLConfig(
        learning_rate=args.alpha,
        discount_factor=args.gamma,
        exploration_rate=args.epsilon,
        max_steps_per_episode=args.max_steps
    )
    controller = RunController(config, make_interactive_rng(args.seed))

    print("🧠 Reward Rover Training")
    print("=" * 50)

    try:
        if args.layout:
            print(f"📁 Loading layout from: {args.layout}")
            layout = load_layout(args.layout)
            if layout is None:
                print("❌ Failed to load layout. Exiting.")
                return 1
            controller.setup_layout(layout)
        elif args.mode == "daily":
            challenge = controller.setup_daily(args.date)
            print(f"📅 Daily challenge {challenge['date']} (seed {challenge['seed']})")
        elif args.mode == "playground":
            controller.setup_playground(size=args.size, preset=args.preset)
            print(f"🏷️  Playground: {args.preset or 'empty'}")
        else:
            report = controller.setup_random(args.level, size=args.size, use_maze=args.maze)
            print(f"🎲 Random level: {LEVELS[args.level].name}{' (maze)' if args.maze else ''}")
            if not report.complete:
                print(f"⚠️  {report.describe()}")
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    run = controller.run
    print(f"📐 Grid: {run.grid.size}x{run.grid.size}")
    print(f"🎯 Spawn: {run.spawn} → Goals: {run.goals}")

    if args.save_layout:
        if save_layout(grid_to_layout(run.grid, run.spawn, run.goals), args.save_layout):
            print(f"💾 Layout saved to {args.save_layout}")

    print(f"\n⚙️  Training Configuration:")
    print(f"   Episodes: {args.episodes}")
    print(f"   Alpha: {run.alpha}  Gamma: {run.gamma}  Epsilon: {run.exploration_rate}")
    print(f"   Step cap: {config.max_steps_per_episode}")

    print(f"\n🚀 Starting training...")
    try:
        done = 0
        while done < args.episodes:
            batch = min(args.progress_interval or args.episodes, args.episodes - done)
            episodes = controller.run_episodes(batch)
            if not episodes:
                break
            done += len(episodes)
            recent_success = sum(1 for ep in episodes if ep.success) / len(episodes)
            print(f"Episode {run.episode}: Success rate: {recent_success:.1%}, "
                  f"Last steps: {episodes[-1].steps}")
    except KeyboardInterrupt:
        controller.stop()
        print(f"\n⏹️  Training interrupted by user")
        return 1

    controller.stop()
    summary = controller.summary()
    print(f"\n🎉 Training completed!")
    print(f"   Episodes: {summary.count}")
    if summary.count:
        print(f"   Average steps: {summary.avg_steps:.1f}")
        print(f"   Average reward: {summary.avg_reward:.2f}")
        print(f"   Best reward: {summary.best_reward:.2f}")
        print(f"   Best steps: {summary.best_steps}")
    return 0


def _daily(args) -> int:
    challenge = daily_challenge_for(args.date or today_key())
    print(json.dumps(challenge, indent=2))
    return 0


def _replay(args) -> int:
    try:
        with open(args.replay_file, 'r') as f:
            replay = ReplayData.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, ValueError) as e:
        print(f"❌ Invalid replay: {e}")
        return 1

    challenge = daily_challenge_for(args.date or today_key())
    result = replay_actions(challenge["config"], replay)
    print(f"📅 Challenge {challenge['date']}")
    print(f"   Steps: {result.steps}")
    print(f"   Reward: {result.reward:.2f}")
    print(f"   Reached goal: {result.reached_goal}")
    print(f"   Final position: {result.final_position}")
    return 0 if result.reached_goal else 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the rover command line."""
    args = build_parser().parse_args(argv)
    if args.command == "train":
        return _train(args)
    if args.command == "daily":
        return _daily(args)
    return _replay(args)


if __name__ == "__main__":
    sys.exit(main())
