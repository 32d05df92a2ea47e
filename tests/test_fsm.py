"""Tests for the episode state machine."""

from rover.app.fsm import HISTORY_LIMIT, EpisodeState, EpisodeStateMachine


def test_initial_state_is_idle():
    fsm = EpisodeStateMachine()
    assert fsm.is_idle()
    assert fsm.get_state_description().startswith("Ready")


def test_valid_lifecycle():
    fsm = EpisodeStateMachine()
    assert fsm.start()
    assert fsm.pause()
    assert fsm.is_paused()
    assert fsm.resume()
    assert fsm.terminate()
    assert fsm.is_terminal()
    assert fsm.reset_to_idle()
    assert fsm.is_idle()


def test_invalid_transitions_are_refused():
    fsm = EpisodeStateMachine()
    assert not fsm.pause()
    assert not fsm.resume()
    assert not fsm.terminate()
    fsm.start()
    assert not fsm.resume()
    fsm.terminate()
    assert not fsm.start()
    assert fsm.current_state == EpisodeState.TERMINAL


def test_callbacks_fire_in_order():
    fsm = EpisodeStateMachine()
    calls = []
    fsm.on_state_exit(EpisodeState.IDLE, lambda ctx: calls.append("exit idle"))
    fsm.on_transition(EpisodeState.IDLE, EpisodeState.RUNNING,
                      lambda a, b, ctx: calls.append(f"{a.name}->{b.name}"))
    fsm.on_state_enter(EpisodeState.RUNNING, lambda ctx: calls.append(ctx["run"]))

    fsm.start({"run": "enter running"})
    assert calls == ["exit idle", "IDLE->RUNNING", "enter running"]


def test_history_and_multiple_listeners():
    fsm = EpisodeStateMachine()
    seen = []
    fsm.on_state_enter(EpisodeState.RUNNING, lambda ctx: seen.append("a"))
    fsm.on_state_enter(EpisodeState.RUNNING, lambda ctx: seen.append("b"))

    fsm.start()
    fsm.pause()
    assert not fsm.terminate()
    assert seen == ["a", "b"]
    assert list(fsm.history) == [
        (EpisodeState.IDLE, EpisodeState.RUNNING),
        (EpisodeState.RUNNING, EpisodeState.PAUSED),
    ]


def test_history_keeps_recent_transitions_only():
    fsm = EpisodeStateMachine()
    for _ in range(HISTORY_LIMIT):
        fsm.start()
        fsm.reset_to_idle()

    assert len(fsm.history) == HISTORY_LIMIT
    assert fsm.history[-1] == (EpisodeState.RUNNING, EpisodeState.IDLE)
