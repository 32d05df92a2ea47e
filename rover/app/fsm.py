"""Finite state machine for rover run execution."""

from collections import defaultdict, deque
from enum import Enum, auto
from typing import Callable, DefaultDict, Deque, Dict, List, Optional, Tuple

StateCallback = Callable[[Optional[Dict]], None]
TransitionCallback = Callable[["EpisodeState", "EpisodeState", Optional[Dict]], None]


class EpisodeState(Enum):
    """States of a rover run."""
    IDLE = auto()
    RUNNING = auto()
    PAUSED = auto()
    TERMINAL = auto()


ALLOWED_TRANSITIONS: Dict[EpisodeState, Tuple[EpisodeState, ...]] = {
    EpisodeState.IDLE: (EpisodeState.RUNNING,),
    EpisodeState.RUNNING: (EpisodeState.PAUSED, EpisodeState.TERMINAL, EpisodeState.IDLE),
    EpisodeState.PAUSED: (EpisodeState.RUNNING, EpisodeState.IDLE),
    EpisodeState.TERMINAL: (EpisodeState.IDLE,),
}

STATE_DESCRIPTIONS: Dict[EpisodeState, str] = {
    EpisodeState.IDLE: "Ready - start a run to begin learning",
    EpisodeState.RUNNING: "Rover is exploring",
    EpisodeState.PAUSED: "Run paused",
    EpisodeState.TERMINAL: "Episode finished",
}


# Most recent transitions kept in ``history``
HISTORY_LIMIT = 100


class EpisodeStateMachine:
    """
    Tracks whether the runs of a controller are stepping.

    Listeners fire in the order exit, transition, enter. Several listeners
    may be registered for the same hook.
    """

    def __init__(self):
        self.current_state = EpisodeState.IDLE
        self.history: Deque[Tuple[EpisodeState, EpisodeState]] = deque(maxlen=HISTORY_LIMIT)
        self._on_enter: DefaultDict[EpisodeState, List[StateCallback]] = defaultdict(list)
        self._on_exit: DefaultDict[EpisodeState, List[StateCallback]] = defaultdict(list)
        self._on_edge: DefaultDict[Tuple[EpisodeState, EpisodeState], List[TransitionCallback]] = defaultdict(list)

    def on_state_enter(self, state: EpisodeState, callback: StateCallback):
        self._on_enter[state].append(callback)

    def on_state_exit(self, state: EpisodeState, callback: StateCallback):
        self._on_exit[state].append(callback)

    def on_transition(self, from_state: EpisodeState, to_state: EpisodeState, callback: TransitionCallback):
        self._on_edge[(from_state, to_state)].append(callback)

    def can_transition(self, to_state: EpisodeState) -> bool:
        return to_state in ALLOWED_TRANSITIONS[self.current_state]

    def transition(self, to_state: EpisodeState, context: Optional[Dict] = None) -> bool:
        """Move to ``to_state``; returns False and stays put if the edge is not allowed."""
        if not self.can_transition(to_state):
            return False

        previous = self.current_state
        for callback in self._on_exit[previous]:
            callback(context)
        for callback in self._on_edge[(previous, to_state)]:
            callback(previous, to_state, context)

        self.current_state = to_state
        self.history.append((previous, to_state))

        for callback in self._on_enter[to_state]:
            callback(context)
        return True

    def start(self, context: Optional[Dict] = None) -> bool:
        return self.transition(EpisodeState.RUNNING, context)

    def pause(self, context: Optional[Dict] = None) -> bool:
        return self.transition(EpisodeState.PAUSED, context)

    def resume(self, context: Optional[Dict] = None) -> bool:
        """Continue a paused run; starting from idle goes through ``start``."""
        if not self.is_paused():
            return False
        return self.transition(EpisodeState.RUNNING, context)

    def terminate(self, context: Optional[Dict] = None) -> bool:
        return self.transition(EpisodeState.TERMINAL, context)

    def reset_to_idle(self, context: Optional[Dict] = None) -> bool:
        return self.transition(EpisodeState.IDLE, context)

    def is_idle(self) -> bool:
        return self.current_state is EpisodeState.IDLE

    def is_running(self) -> bool:
        return self.current_state is EpisodeState.RUNNING

    def is_paused(self) -> bool:
        return self.current_state is EpisodeState.PAUSED

    def is_terminal(self) -> bool:
        return self.current_state is EpisodeState.TERMINAL

    def get_state_description(self) -> str:
        return STATE_DESCRIPTIONS[self.current_state]
