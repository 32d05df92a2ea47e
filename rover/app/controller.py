"""Headless controller driving rover runs in every mode."""

from collections import deque
from typing import Optional, List, Dict, Any, Tuple, Deque
from PySide6.QtCore import QObject, Signal

from ..domain.types import (
    Coord, Grid, RLConfig, RunState, EpisodeStats, MoveStats, EpisodeSummary,
    PlacementReport, TileType, BonusType, Mode
)
from ..domain.qlearning import QLearningEnvironment, StepResult
from ..domain.levels import LEVELS, PRESET_LAYOUTS, pick_weighted_bonus
from ..domain.stats import move_stats, episode_summary
from ..utils.grid_factory import (
    create_empty_grid, clone_grid, generate_maze, generate_random_level,
    make_tile, place_random_tiles, random_free_cell
)
from ..utils.layout_serialization import layout_to_grid, progress_snapshot
from ..utils.daily_challenge import daily_challenge_for
from ..utils.rng import RandomSource, InteractiveRNG, make_interactive_rng
from .fsm import EpisodeStateMachine, EpisodeState

DEFAULT_GRID_SIZE = 10
UNDO_LIMIT = 50


class RunController(QObject):
    """
    Owns the runs of the current session and steps them tick by tick.

    Playground, random and daily modes hold one run; comparison mode holds
    two runs on identical copies of the same layout. Each run has its own
    grid, cooldown map and random source.
    """

    state_changed = Signal(str)  # state description
    step_completed = Signal(int, object)  # run index, StepResult
    episode_completed = Signal(int, object)  # run index, EpisodeStats
    grid_changed = Signal()
    bonus_applied = Signal(str)

    def __init__(self, config: Optional[RLConfig] = None, rng: Optional[RandomSource] = None):
        super().__init__()
        self.config = config or RLConfig()
        self.rng = rng or make_interactive_rng()
        self.fsm = EpisodeStateMachine()
        self.mode: Mode = "playground"
        self.envs: List[QLearningEnvironment] = []
        self.level_key = "level1"
        self.use_maze = False
        self.regenerate_each_episode = False
        self.auto_continue = True
        self.bias_direction: Optional[Coord] = None
        self.last_report: Optional[PlacementReport] = None
        self.latest_bonus: Optional[BonusType] = None
        self._undo_stack: Deque[Grid] = deque(maxlen=UNDO_LIMIT)

        for state in EpisodeState:
            self.fsm.on_state_enter(state, self._emit_state)

    def _emit_state(self, context: Optional[Dict] = None):
        self.state_changed.emit(self.fsm.get_state_description())

    @property
    def runs(self) -> List[RunState]:
        return [env.run for env in self.envs]

    @property
    def run(self) -> RunState:
        """Primary run (left rover in comparison mode)."""
        return self.envs[0].run

    def _child_rng(self) -> RandomSource:
        """Independent generator for a run, drawn from the controller's source."""
        return InteractiveRNG(self.rng.randrange(2 ** 31))

    def _install(self, runs: List[RunState], mode: Mode):
        self.stop()
        self.mode = mode
        self.envs = [QLearningEnvironment(run, self.config, self._child_rng()) for run in runs]
        self._undo_stack.clear()
        self.grid_changed.emit()

    def _new_run(self, grid: Grid, spawn: Coord, goals: List[Coord], mode: Mode,
                 name: str = "Rover", **params) -> RunState:
        return RunState(
            grid=grid,
            agent=spawn,
            spawn=spawn,
            goals=list(goals),
            mode=mode,
            name=name,
            alpha=params.get("alpha", self.config.learning_rate),
            gamma=params.get("gamma", self.config.discount_factor),
            exploration_rate=params.get("exploration_rate", self.config.exploration_rate)
        )

    # Setup

    def setup_playground(self, size: int = DEFAULT_GRID_SIZE, preset: Optional[str] = None) -> RunState:
        """Empty playground grid, or one of the preset layouts."""
        if preset is not None:
            if preset not in PRESET_LAYOUTS:
                raise ValueError(f"Unknown preset: {preset}")
            grid, spawn, goals = layout_to_grid(PRESET_LAYOUTS[preset], self.config)
        else:
            if size <= 0:
                raise ValueError(f"Grid size must be positive, got {size}")
            grid = create_empty_grid(size)
            spawn = (0, 0)
            goals = [(size - 1, size - 1)] if size > 1 else []
            for goal in goals:
                grid.set_tile(goal, make_tile("goal", self.config))

        run = self._new_run(grid, spawn, goals, "playground")
        self._install([run], "playground")
        return run

    def setup_random(self, level_key: str = "level1", size: int = DEFAULT_GRID_SIZE,
                     use_maze: bool = False) -> PlacementReport:
        """Generate a random level and start a fresh random-mode run on it."""
        if level_key not in LEVELS:
            raise ValueError(f"Unknown level: {level_key}")
        self.level_key = level_key
        self.use_maze = use_maze

        grid, spawn, goals, report = self._generate_level(size)
        run = self._new_run(grid, spawn, goals, "random")
        self._install([run], "random")
        return report

    def setup_comparison(self, size: int = DEFAULT_GRID_SIZE,
                         left: Optional[Dict[str, float]] = None,
                         right: Optional[Dict[str, float]] = None) -> Tuple[RunState, RunState]:
        """Two rovers with their own learning parameters on the same layout."""
        grid, spawn, goals, _ = self._generate_level(size)

        left_run = self._new_run(grid, spawn, goals, "comparison", name="Left", **(left or {}))
        right_run = self._new_run(clone_grid(grid), spawn, goals, "comparison", name="Right", **(right or {}))
        self._install([left_run, right_run], "comparison")
        return left_run, right_run

    def setup_daily(self, date_key: Optional[str] = None) -> Dict[str, Any]:
        """Load the seeded challenge of a day."""
        challenge = daily_challenge_for(date_key)
        grid, spawn, goals = layout_to_grid(challenge["config"], self.config)
        run = self._new_run(grid, spawn, goals, "daily", name=f"Daily {challenge['date']}")
        self._install([run], "daily")
        return challenge

    def setup_layout(self, layout: Dict[str, Any], mode: Mode = "playground") -> RunState:
        """Start a run on a saved layout record."""
        grid, spawn, goals = layout_to_grid(layout, self.config)
        run = self._new_run(grid, spawn, goals, mode, name=layout.get("name", "Rover"))
        self._install([run], mode)
        return run

    def _generate_level(self, size: int) -> Tuple[Grid, Coord, List[Coord], PlacementReport]:
        level = LEVELS[self.level_key]
        grid, spawn, goals, report = generate_random_level(
            size + level.size_offset, level, self.rng, self.config, self.use_maze
        )
        self.last_report = report
        self._report_shortfall(report)
        return grid, spawn, goals, report

    def _report_shortfall(self, report: PlacementReport):
        if not report.complete:
            print(f"Level generation incomplete: {report.describe()}")

    # Editing

    def toggle_tile(self, coord: Coord, tile_type: TileType) -> bool:
        """Place a tile on the playground, or clear it if it already has that type."""
        run = self.run
        if coord == run.agent or coord == run.spawn or coord in run.goals:
            return False
        if not run.grid.is_valid_coord(coord):
            return False

        self._undo_stack.append(clone_grid(run.grid))
        current = run.grid.get_tile(coord).type
        new_type: TileType = "empty" if current == tile_type else tile_type
        run.grid.set_tile(coord, make_tile(new_type, self.config))
        self.grid_changed.emit()
        return True

    def carve_maze(self) -> None:
        """Replace the playground layout with a maze around the rover and goals."""
        run = self.run
        self._undo_stack.append(clone_grid(run.grid))
        forbidden = {run.spawn, run.agent, *run.goals}
        generate_maze(run.grid, forbidden, self.envs[0].rng, self.config)
        self.grid_changed.emit()

    def undo(self) -> bool:
        """Restore the grid from before the last edit."""
        if not self._undo_stack:
            return False
        self.run.grid = self._undo_stack.pop()
        self.grid_changed.emit()
        return True

    # Stepping

    def start(self) -> bool:
        """Start stepping all runs."""
        if not self.envs:
            return False
        if self.fsm.is_terminal():
            self.fsm.reset_to_idle()
        if not self.fsm.start():
            return False
        for run in self.runs:
            run.is_running = True
        return True

    def pause(self) -> bool:
        if not self.fsm.pause():
            return False
        for run in self.runs:
            run.is_running = False
        return True

    def resume(self) -> bool:
        if not self.fsm.resume():
            return False
        for run in self.runs:
            run.is_running = True
        return True

    def stop(self):
        """Stop all runs between ticks."""
        for run in self.runs:
            run.is_running = False
        if not self.fsm.is_idle():
            self.fsm.reset_to_idle()

    def tick(self) -> List[StepResult]:
        """Advance every running run by one step."""
        if not self.fsm.is_running():
            return []

        results = []
        finished = False
        for index, env in enumerate(self.envs):
            if not env.run.is_running:
                continue
            result = env.step(self.bias_direction)
            results.append(result)
            self.step_completed.emit(index, result)
            if result.episode is not None:
                finished = True
                self.episode_completed.emit(index, result.episode)
                self._on_episode_end(env, result.episode)

        if finished and not self.auto_continue:
            self.fsm.terminate()
            for run in self.runs:
                run.is_running = False
        return results

    def run_episodes(self, episodes: int, max_ticks: Optional[int] = None) -> List[EpisodeStats]:
        """Tick until the primary run has finished ``episodes`` more episodes."""
        history_start = len(self.run.episode_history)
        target = self.run.episode + episodes
        if max_ticks is None:
            max_ticks = episodes * self.config.max_steps_per_episode

        if not self.fsm.is_running() and not self.start():
            return []

        ticks = 0
        while self.run.episode < target and ticks < max_ticks:
            if self.fsm.is_terminal():
                self.start()
            if not self.fsm.is_running():
                break
            self.tick()
            ticks += 1

        return self.run.episode_history[history_start:]

    def _on_episode_end(self, env: QLearningEnvironment, episode: EpisodeStats):
        if self.mode != "random":
            return

        run = env.run
        if self.regenerate_each_episode:
            grid, spawn, goals, _ = self._generate_level(run.grid.size - LEVELS[self.level_key].size_offset)
            run.grid = grid
            run.spawn = spawn
            run.agent = spawn
            run.goals = goals
            self.grid_changed.emit()
            return

        if self.config.bonus_interval and run.episode % self.config.bonus_interval == 0:
            self.apply_bonus(run, pick_weighted_bonus(self.rng))

    def apply_bonus(self, run: RunState, bonus: BonusType) -> bool:
        """Drop a bonus on a random-mode run; returns False if nothing fit."""
        self.latest_bonus = bonus
        self.bonus_applied.emit(bonus)
        forbidden = {run.spawn, run.agent, *run.goals}

        if bonus == "teleport":
            cell = random_free_cell(run.grid, forbidden, self.rng)
            if cell is None:
                return False
            run.spawn = cell
            run.agent = cell
            return True

        placed = place_random_tiles(run.grid, 1, bonus, forbidden, self.rng, self.config)
        return bool(placed)

    # Statistics and records

    def move_stats(self, index: int = 0) -> MoveStats:
        run = self.envs[index].run
        return move_stats(run.current_steps, run.episode_history)

    def summary(self, index: int = 0) -> EpisodeSummary:
        return episode_summary(self.envs[index].run.episode_history)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Progress snapshots of all runs."""
        return [progress_snapshot(run) for run in self.runs]

    def state_description(self) -> str:
        return self.fsm.get_state_description()

    @property
    def state(self) -> EpisodeState:
        return self.fsm.current_state
