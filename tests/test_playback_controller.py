import pytest

from tests.helpers.scripts import make_script
from vnscript.core.scheduler import ManualScheduler
from vnscript.services.controllers import PlaybackController
from vnscript.services.input_bindings import KeyEvent
from vnscript.services.playback_service import start_session


def _controller(*commands, **kwargs):
    scheduler = ManualScheduler()
    controller = PlaybackController(start_session(make_script(*commands)), scheduler, **kwargs)
    return controller, scheduler


def _pick(*labels, **extra):
    command = {"text": "Pick", "choices": [{"label": label, "jump": label} for label in labels]}
    command.update(extra)
    return command


def test_auto_mode_advances_text_after_delay() -> None:
    controller, scheduler = _controller({"text": "a"}, {"text": "b"}, {"text": "c"}, auto_delay=2.0)

    controller.toggle_auto_mode()
    scheduler.advance_time(1.9)
    assert controller.session.position == 0

    scheduler.advance_time(0.1)
    assert controller.session.position == 1
    assert controller.has_pending_timer


def test_auto_mode_never_advances_choices() -> None:
    controller, scheduler = _controller({"text": "a"}, _pick("x"), {"label": "x", "text": "x"})
    controller.toggle_auto_mode()

    scheduler.advance_time(2.0)
    assert controller.view().kind == "choices"

    scheduler.advance_time(60.0)
    assert controller.session.position == 1
    assert controller.is_auto_mode
    assert not controller.has_pending_timer


@pytest.mark.parametrize(
    "commands,advances,kind",
    [
        (({"input": {"var": "name"}}, {"text": "after"}), 0, "input"),
        (({"video": {"path": "intro.webm", "loop": True}}, {"text": "after"}), 0, "video"),
        (({"text": "Pick", "choices": [{"label": "A", "jump": "a"}]}, {"label": "a", "text": "a"}), 0, "choices"),
        (({"text": "only"},), 1, "end"),
    ],
)
def test_auto_mode_holds_outside_text(commands, advances, kind) -> None:
    controller, scheduler = _controller(*commands, auto_delay=2.0)
    for _ in range(advances):
        controller.advance()
    before = controller.view()

    controller.toggle_auto_mode()
    scheduler.advance_time(120.0)

    view = controller.view()
    assert view.kind == kind
    assert view.command_index == before.command_index
    assert view.history_count == before.history_count
    assert not controller.has_pending_timer


def test_auto_mode_leaves_wait_only_through_its_own_timer() -> None:
    controller, scheduler = _controller({"wait": 5}, {"text": "after"}, auto_delay=2.0)
    controller.toggle_auto_mode()

    scheduler.advance_time(4.9)
    assert controller.view().kind == "wait"

    scheduler.advance_time(0.1)
    assert controller.view().display.text == "after"


def test_set_auto_delay_reschedules_pending_advance() -> None:
    controller, scheduler = _controller({"text": "a"}, {"text": "b"}, auto_delay=2.0)
    controller.toggle_auto_mode()
    scheduler.advance_time(1.0)

    controller.set_auto_delay(5.0)
    scheduler.advance_time(1.5)
    assert controller.session.position == 0
    assert controller.auto_delay == 5.0

    scheduler.advance_time(3.5)
    assert controller.session.position == 1


def test_skip_mode_runs_until_non_text_then_turns_off() -> None:
    controller, scheduler = _controller({"text": "a"}, {"text": "b"}, {"text": "c"}, {"wait": 5}, {"text": "d"})

    assert controller.toggle_skip_mode()
    scheduler.advance_time(1.0)

    assert controller.view().kind == "wait"
    assert not controller.is_skip_mode
    assert controller.session.position == 3


def test_auto_and_skip_are_mutually_exclusive() -> None:
    controller, _ = _controller({"text": "a"})

    controller.toggle_auto_mode()
    controller.toggle_skip_mode()
    assert controller.is_skip_mode and not controller.is_auto_mode

    controller.toggle_auto_mode()
    assert controller.is_auto_mode and not controller.is_skip_mode


def test_wait_completes_on_timer() -> None:
    controller, scheduler = _controller({"wait": 1.5}, {"text": "after"})

    scheduler.advance_time(1.4)
    assert controller.view().kind == "wait"

    scheduler.advance_time(0.1)
    assert controller.view().display.text == "after"


def test_skipping_wait_cancels_its_timer() -> None:
    controller, scheduler = _controller({"wait": 5}, {"text": "after"})
    assert scheduler.pending() == 1

    controller.skip_wait()

    assert scheduler.pending() == 0
    scheduler.advance_time(10)
    assert controller.session.position == 1


def test_timed_choice_selects_default() -> None:
    command = {
        "text": "Quick!",
        "timeout": 3,
        "choices": [{"label": "Left", "jump": "left"}, {"label": "Right", "jump": "right", "default": True}],
    }
    controller, scheduler = _controller(command, {"label": "left", "text": "L"}, {"label": "right", "text": "R"})

    scheduler.advance_time(3)

    assert controller.view().display.text == "R"


def test_manual_action_supersedes_pending_auto_timer() -> None:
    controller, scheduler = _controller({"text": "a"}, {"text": "b"}, {"text": "c"}, auto_delay=2.0)
    controller.toggle_auto_mode()
    scheduler.advance_time(1.5)

    controller.advance()
    scheduler.advance_time(0.5)

    assert controller.session.position == 1
    scheduler.advance_time(1.5)
    assert controller.session.position == 2


def test_stop_cancels_timers() -> None:
    controller, scheduler = _controller({"wait": 1}, {"text": "after"})

    controller.stop()

    assert scheduler.pending() == 0
    assert not controller.session.is_active
    assert controller.handle_key(KeyEvent("Enter")) is None


def test_listeners_receive_accepted_views() -> None:
    controller, _ = _controller({"text": "a"}, {"text": "b"})
    seen = []
    controller.subscribe(lambda view: seen.append(view.command_index))

    controller.advance()
    controller.select_choice(0)

    assert seen == [1]


def test_enter_selects_first_choice() -> None:
    controller, _ = _controller(_pick("x", "y"), {"label": "x", "text": "x"}, {"label": "y", "text": "y"})

    result = controller.handle_key(KeyEvent("Enter"))

    assert result is not None and result.accepted
    assert result.view.display.text == "x"


def test_space_does_nothing_during_choices() -> None:
    controller, _ = _controller(_pick("x"), {"label": "x", "text": "x"})

    assert controller.handle_key(KeyEvent(" ")) is None
    assert controller.session.position == 0


def test_digit_keys_select_choices() -> None:
    controller, _ = _controller(_pick("x", "y"), {"label": "x", "text": "x"}, {"label": "y", "text": "y"})

    assert controller.handle_key(KeyEvent("9")) is None

    result = controller.handle_key(KeyEvent("2"))
    assert result.view.display.text == "y"


def test_rollback_key_needs_history() -> None:
    controller, _ = _controller({"text": "a"}, {"text": "b"})

    assert controller.handle_key(KeyEvent("Backspace")) is None

    controller.handle_key(KeyEvent("ArrowRight"))
    result = controller.handle_key(KeyEvent("ArrowUp"))
    assert result.view.command_index == 0


def test_restart_and_mode_keys() -> None:
    controller, _ = _controller({"text": "a"}, {"text": "b"})
    controller.advance()

    result = controller.handle_key(KeyEvent("r", ctrl=True))
    assert result.view.command_index == 0

    assert controller.handle_key(KeyEvent("a")) is None
    assert controller.is_auto_mode
    controller.handle_key(KeyEvent("s", ctrl=True))
    assert not controller.is_skip_mode
    controller.handle_key(KeyEvent("s", shift=True))
    assert controller.is_skip_mode


def test_enter_at_end_is_ignored() -> None:
    controller, _ = _controller({"text": "a"})
    controller.advance()

    assert controller.handle_key(KeyEvent("Enter")) is None


def test_quick_save_and_load() -> None:
    controller, _ = _controller({"text": "a"}, {"set": {"name": "x", "value": 1}, "text": "b"}, {"text": "c"})
    controller.advance()
    controller.handle_key(KeyEvent("F5"))
    controller.advance()

    result = controller.handle_key(KeyEvent("F9"))

    assert result.view.command_index == 1
    assert result.view.variables == {"x": 1}


def test_load_from_empty_slot_is_rejected() -> None:
    controller, _ = _controller({"text": "a"})

    result = controller.load(3)

    assert not result.accepted
    assert "empty" in result.reason
