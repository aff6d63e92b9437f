import pytest

from tests.helpers.scripts import make_script
from vnscript.services.playback_service import (
    ChoicesDisplay,
    EndDisplay,
    InputDisplay,
    TextDisplay,
    VideoDisplay,
    WaitDisplay,
    start_session,
)


def _linear(count: int = 4):
    return make_script(*({"text": f"line {number}"} for number in range(count)))


def _branching():
    return make_script(
        {"text": "x"},
        {"text": "Pick", "choices": [{"label": "A", "jump": "l1"}, {"label": "B", "jump": "l2"}]},
        {"label": "l1", "text": "one"},
        {"label": "l2", "text": "two"},
    )


def test_start_shows_first_text() -> None:
    session = start_session(_linear())
    view = session.view()

    assert view.command_index == 0
    assert view.total_commands == 4
    assert isinstance(view.display, TextDisplay)
    assert view.display.text == "line 0"
    assert not view.can_rollback
    assert not view.is_ended
    assert view.history_count == 0


def test_unresolved_jump_ends_without_raising() -> None:
    session = start_session(make_script({"label": "a", "text": "hi"}, {"jump": "missing"}))

    result = session.advance()

    assert result.accepted
    assert result.view.is_ended
    assert isinstance(result.view.display, EndDisplay)
    assert result.view.error == "unresolved_jump"


def test_select_choice_lands_on_target() -> None:
    session = start_session(_branching())
    session.advance()
    assert session.kind == "choices"

    result = session.select_choice(1)
    assert result.view.display.text == "two"

    session.rollback()
    result = session.select_choice(0)
    assert result.view.display.text == "one"


def test_choices_projection() -> None:
    session = start_session(_branching())
    view = session.advance().view

    assert isinstance(view.display, ChoicesDisplay)
    assert [choice.label for choice in view.display.choices] == ["A", "B"]
    assert view.display.text == "Pick"
    assert view.display.default_choice == 0


def test_advance_is_rejected_during_choices() -> None:
    session = start_session(_branching())
    session.advance()

    result = session.advance()

    assert not result.accepted
    assert "choices" in result.reason
    assert session.position == 1
    assert session.history_count == 1


def test_out_of_range_choice_is_rejected() -> None:
    session = start_session(_branching())
    session.advance()

    result = session.select_choice(5)

    assert not result.accepted
    assert session.kind == "choices"


def test_malformed_choices_are_filtered() -> None:
    script = make_script(
        {"text": "Pick", "choices": [{"label": "Ghost", "jump": "nowhere"}, {"label": "Real", "jump": "ok"}]},
        {"label": "ok", "text": "fine"},
    )
    session = start_session(script)
    display = session.view().display

    assert [choice.label for choice in display.choices] == ["Real"]
    assert session.select_choice(0).view.display.text == "fine"


def test_choices_without_any_valid_target_end_playback() -> None:
    session = start_session(make_script({"text": "Pick", "choices": [{"label": "Ghost", "jump": "nowhere"}]}))

    view = session.view()

    assert view.is_ended
    assert view.error == "no_valid_choices"


def test_set_then_if_takes_branch() -> None:
    script = make_script(
        {"set": {"name": "flag", "value": True}},
        {"text": "before"},
        {"if": {"var": "flag", "is": True, "jump": "L"}},
        {"text": "fallthrough"},
        {"label": "L", "text": "taken"},
    )
    session = start_session(script)

    result = session.advance()

    assert result.view.display.text == "taken"
    assert result.view.variables == {"flag": True}


def test_if_falls_through_when_not_equal() -> None:
    script = make_script(
        {"text": "before", "if": {"var": "flag", "is": True, "jump": "L"}},
        {"text": "fallthrough"},
        {"label": "L", "text": "taken"},
    )
    session = start_session(script)

    assert session.advance().view.display.text == "fallthrough"


def test_if_is_type_strict() -> None:
    script = make_script(
        {"set": {"name": "count", "value": 1}},
        {"text": "check", "if": {"var": "count", "is": True, "jump": "L"}},
        {"text": "number"},
        {"label": "L", "text": "bool"},
    )
    session = start_session(script)

    assert session.advance().view.display.text == "number"


def test_jump_takes_precedence_over_if() -> None:
    script = make_script(
        {"set": {"name": "flag", "value": True}},
        {"text": "go", "jump": "J", "if": {"var": "flag", "is": True, "jump": "I"}},
        {"label": "I", "text": "if"},
        {"label": "J", "text": "jump"},
    )
    session = start_session(script)

    assert session.advance().view.display.text == "jump"


def test_jump_with_choices_treats_command_as_text() -> None:
    script = make_script(
        {"text": "Pick", "jump": "b", "choices": [{"label": "A", "jump": "a"}]},
        {"label": "a", "text": "a"},
        {"label": "b", "text": "b"},
    )
    session = start_session(script)

    assert session.kind == "text"
    assert session.advance().view.display.text == "b"


def test_rollback_restores_variables() -> None:
    script = make_script(
        {"text": "start"},
        {"set": {"name": "gold", "value": 5}, "text": "rich"},
        {"text": "end"},
    )
    session = start_session(script)
    session.advance()
    assert session.variables == {"gold": 5}

    result = session.rollback()

    assert result.view.command_index == 0
    assert result.view.variables == {}
    assert not result.view.can_rollback


def test_advance_then_rollback_round_trip() -> None:
    session = start_session(_linear())
    session.advance()
    before = (session.position, session.variables, session.history_count)

    session.advance()
    session.rollback()

    assert (session.position, session.variables, session.history_count) == before


def test_three_advances_two_rollbacks() -> None:
    session = start_session(_linear(5))
    session.advance()
    after_one = session.view()
    session.advance()
    session.advance()

    session.rollback()
    session.rollback()

    view = session.view()
    assert view.command_index == after_one.command_index
    assert view.history_count == after_one.history_count
    assert view.variables == after_one.variables


def test_rollback_steps_and_overshoot() -> None:
    session = start_session(_linear(5))
    for _ in range(3):
        session.advance()

    assert session.rollback_steps(2).view.command_index == 1
    assert session.rollback_steps(10).view.command_index == 0
    assert not session.rollback().accepted
    assert not session.rollback_steps(0).accepted


def test_restart_clears_everything() -> None:
    script = make_script({"text": "a"}, {"set": {"name": "x", "value": "y"}, "text": "b"}, {"text": "c"})
    session = start_session(script)
    session.advance()
    session.advance()

    view = session.restart().view

    assert view.command_index == 0
    assert view.variables == {}
    assert view.history_count == 0


def test_restart_settles_leading_pass_through_commands() -> None:
    script = make_script(
        {"set": {"name": "x", "value": 1}},
        {"label": "intro"},
        {"text": "a"},
        {"set": {"name": "x", "value": 2}, "text": "b"},
    )
    session = start_session(script)
    assert session.position == 2
    assert session.variables == {"x": 1}

    session.advance()
    assert session.variables == {"x": 2}
    view = session.restart().view

    assert view.command_index == 2
    assert view.variables == {"x": 1}
    assert view.history_count == 0
    assert not view.can_rollback


@pytest.mark.parametrize("depth", [0, 1, 3])
def test_restart_matches_a_fresh_session(depth) -> None:
    script = make_script(
        {"set": {"name": "seen", "value": False}},
        {"text": "a"},
        {"set": {"name": "seen", "value": True}, "text": "b"},
        {"text": "c"},
    )
    fresh = start_session(script).view()
    session = start_session(script)
    for _ in range(depth):
        session.advance()

    view = session.restart().view

    assert (view.command_index, view.variables, view.history_count) == (
        fresh.command_index,
        fresh.variables,
        fresh.history_count,
    )


def test_end_is_terminal_until_restart() -> None:
    session = start_session(_linear(1))
    session.advance()
    assert session.is_ended

    assert not session.advance().accepted
    assert not session.select_choice(0).accepted
    assert session.restart().view.command_index == 0


def test_input_stores_value_and_continues() -> None:
    script = make_script(
        {"input": {"var": "name", "prompt": "Your name?", "default": "Hero"}},
        {"text": "hello"},
    )
    session = start_session(script)
    display = session.view().display
    assert isinstance(display, InputDisplay)
    assert display.prompt == "Your name?"
    assert not session.advance().accepted

    result = session.submit_input("Mina")

    assert result.view.variables == {"name": "Mina"}
    assert result.view.display.text == "hello"


def test_empty_input_uses_default() -> None:
    session = start_session(make_script({"input": {"var": "name", "default": "Hero"}}, {"text": "hello"}))

    assert session.submit_input("").view.variables == {"name": "Hero"}


def test_wait_completes_or_skips() -> None:
    script = make_script({"wait": 1.5}, {"text": "after"}, {"wait": 2}, {"text": "done"})
    session = start_session(script)
    display = session.view().display
    assert isinstance(display, WaitDisplay)
    assert display.duration == 1.5
    assert not session.advance().accepted

    assert session.complete_wait().view.display.text == "after"
    session.advance()
    assert session.skip_wait().view.display.text == "done"


def test_video_completion_rules() -> None:
    script = make_script(
        {"video": {"path": "a.webm", "skippable": False}},
        {"video": {"path": "b.webm", "loop": True, "skippable": False}},
        {"text": "done"},
    )
    session = start_session(script)
    display = session.view().display
    assert isinstance(display, VideoDisplay)
    assert not session.skip_video().accepted

    session.complete_video()
    assert session.view().display.path == "b.webm"
    assert not session.complete_video().accepted

    assert session.skip_video().view.display.text == "done"


def test_jump_to_label_records_history() -> None:
    session = start_session(_branching())

    result = session.jump_to_label("l2")

    assert result.view.display.text == "two"
    assert result.view.history_count == 1
    assert session.rollback().view.command_index == 0


def test_jump_to_unknown_label_ends() -> None:
    session = start_session(_linear())

    view = session.jump_to_label("nope").view

    assert view.is_ended
    assert view.error == "unresolved_jump"
    assert session.rollback().view.error is None


def test_set_variable_is_rolled_back() -> None:
    session = start_session(_linear())

    session.set_variable("debug", 3)
    assert session.variables == {"debug": 3}

    session.rollback()
    assert session.variables == {}
    assert not session.set_variable("bad", [1, 2]).accepted


def test_silent_loop_ends_instead_of_hanging() -> None:
    script = make_script({"text": "start"}, {"label": "a", "jump": "b"}, {"label": "b", "jump": "a"})
    session = start_session(script)

    view = session.advance().view

    assert view.is_ended
    assert view.error == "infinite_loop"


def test_localized_text_and_language_switch() -> None:
    script = make_script({"speaker": {"en": "Ann", "ja": "アン"}, "text": {"en": "Hello", "ja": "こんにちは"}})
    session = start_session(script, language="ja")

    assert session.view().display.text == "こんにちは"
    assert session.view().display.speaker == "アン"

    session.set_language("fr")
    assert session.view().display.text == "Hello"


def test_visual_state_carries_forward() -> None:
    script = make_script(
        {"background": "room.png", "character": "ann.png", "text": "a"},
        {"text": "b"},
        {"character": "", "text": "c"},
    )
    session = start_session(script)

    session.advance()
    visual = session.view().display.visual
    assert visual.background == "room.png"
    assert visual.character == "ann.png"

    session.advance()
    visual = session.view().display.visual
    assert visual.background == "room.png"
    assert visual.character is None


def test_history_backlog_and_labels() -> None:
    script = make_script(
        {"label": "intro", "speaker": "Ann", "text": "first"},
        {"text": "second", "transition": {"type": "dissolve", "duration": 1}},
    )
    session = start_session(script)

    view = session.advance().view

    assert [(entry.index, entry.speaker, entry.text) for entry in view.history] == [(0, "Ann", "first")]
    assert view.labels == ["intro"]
    assert view.current_label == "intro"
    assert view.transition is not None
    assert view.transition.type == "dissolve"


def test_history_is_capped() -> None:
    session = start_session(_linear(10), max_history=3)
    for _ in range(6):
        session.advance()

    assert session.history_count == 3
    assert session.rollback_steps(3).view.command_index == 3


def test_reload_script_keeps_position_and_variables() -> None:
    session = start_session(make_script({"text": "a"}, {"set": {"name": "x", "value": 1}, "text": "b"}))
    session.advance()

    result = session.reload_script(make_script({"text": "A"}, {"text": "B (edited)"}))

    assert result.view.display.text == "B (edited)"
    assert result.view.variables == {"x": 1}
    assert not result.view.can_rollback


def test_snapshot_and_restore() -> None:
    session = start_session(_linear())
    session.advance()
    saved = session.snapshot()
    session.advance()
    session.advance()

    view = session.restore(saved).view

    assert view.command_index == 1
    assert view.can_rollback


def test_stopped_session_rejects_operations() -> None:
    session = start_session(_linear())
    session.advance()

    session.stop()

    assert not session.is_active
    result = session.advance()
    assert not result.accepted
    assert result.reason == "session is stopped"
    assert result.view.variables == {}


def test_reentrant_transition_is_rejected() -> None:
    session = start_session(_linear())
    session._lock.acquire()
    try:
        result = session.advance()
    finally:
        session._lock.release()

    assert not result.accepted
    assert session.position == 0


@pytest.mark.parametrize("count", [1, 2, 5])
def test_walks_to_end(count) -> None:
    session = start_session(_linear(count))
    for _ in range(count):
        assert session.advance().accepted

    assert session.view().is_ended
    assert session.view().error is None
