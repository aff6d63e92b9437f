"""UI-agnostic playback controller that owns auto/skip/wait scheduling."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Sequence

from vnscript.core.scheduler import Scheduler, TimerHandle
from vnscript.services.input_bindings import PLAYTEST_KEYBINDINGS, KeyBinding, KeyEvent, lookup_action
from vnscript.services.playback_service import (
    ChoicesDisplay,
    PlaybackSession,
    PlaybackView,
    SessionSnapshot,
    StepResult,
    WaitDisplay,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTO_DELAY = 2.0
DEFAULT_SKIP_TICK = 0.05
DEFAULT_SAVE_SLOT = 1


class PlaybackController:
    """
    Drives a PlaybackSession on behalf of a UI.

    Responsibilities:
    - Apply player actions (directly or from key events) to the session
    - Schedule the single pending timer: wait countdown, timed choice,
      auto-mode advance or skip-mode tick
    - Cancel that timer whenever the session changes or the controller stops

    Non-responsibilities (handled by presentation layer):
    - Rendering the projection
    - Reading raw device input
    """

    def __init__(
        self,
        session: PlaybackSession,
        scheduler: Scheduler,
        *,
        auto_delay: float = DEFAULT_AUTO_DELAY,
        skip_tick: float = DEFAULT_SKIP_TICK,
        bindings: Sequence[KeyBinding] = PLAYTEST_KEYBINDINGS,
    ) -> None:
        self._session = session
        self._scheduler = scheduler
        self._auto_delay = auto_delay
        self._skip_tick = skip_tick
        self._bindings = tuple(bindings)
        self._auto_mode = False
        self._skip_mode = False
        self._timer: TimerHandle | None = None
        self._generation = 0
        self._slots: Dict[int, SessionSnapshot] = {}
        self._listeners: list[Callable[[PlaybackView], None]] = []
        self._reschedule()

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def is_auto_mode(self) -> bool:
        return self._auto_mode

    @property
    def is_skip_mode(self) -> bool:
        return self._skip_mode

    @property
    def auto_delay(self) -> float:
        return self._auto_delay

    @property
    def skip_tick(self) -> float:
        return self._skip_tick

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def subscribe(self, listener: Callable[[PlaybackView], None]) -> None:
        """Register a callback invoked with the new view after every accepted change."""
        self._listeners.append(listener)

    def view(self) -> PlaybackView:
        return self._session.view()

    # Player actions ------------------------------------------------------

    def advance(self) -> StepResult:
        return self._apply(self._session.advance)

    def select_choice(self, choice_index: int) -> StepResult:
        return self._apply(lambda: self._session.select_choice(choice_index))

    def submit_input(self, value: str) -> StepResult:
        return self._apply(lambda: self._session.submit_input(value))

    def skip_wait(self) -> StepResult:
        return self._apply(self._session.skip_wait)

    def complete_video(self) -> StepResult:
        return self._apply(self._session.complete_video)

    def skip_video(self) -> StepResult:
        return self._apply(self._session.skip_video)

    def rollback(self) -> StepResult:
        return self._apply(self._session.rollback)

    def rollback_steps(self, steps: int) -> StepResult:
        return self._apply(lambda: self._session.rollback_steps(steps))

    def restart(self) -> StepResult:
        return self._apply(self._session.restart)

    def jump_to_label(self, label: str) -> StepResult:
        return self._apply(lambda: self._session.jump_to_label(label))

    def set_variable(self, name: str, value) -> StepResult:
        return self._apply(lambda: self._session.set_variable(name, value))

    def save(self, slot: int = DEFAULT_SAVE_SLOT) -> None:
        """Keep an in-memory snapshot of the session in ``slot``."""
        self._slots[slot] = self._session.snapshot()

    def load(self, slot: int = DEFAULT_SAVE_SLOT) -> StepResult:
        saved = self._slots.get(slot)
        if saved is None:
            return StepResult(accepted=False, view=self._session.view(), reason=f"save slot {slot} is empty")
        return self._apply(lambda: self._session.restore(saved))

    # Scheduling policies -------------------------------------------------

    def toggle_auto_mode(self) -> bool:
        self._auto_mode = not self._auto_mode
        if self._auto_mode:
            self._skip_mode = False
        self._reschedule()
        return self._auto_mode

    def toggle_skip_mode(self) -> bool:
        self._skip_mode = not self._skip_mode
        if self._skip_mode:
            self._auto_mode = False
        self._reschedule()
        return self._skip_mode

    def set_auto_delay(self, seconds: float) -> None:
        self._auto_delay = max(0.0, seconds)
        self._reschedule()

    def stop(self) -> None:
        """Cancel any pending timer and end the session."""
        self._cancel_timer()
        self._auto_mode = False
        self._skip_mode = False
        self._session.stop()

    # Key handling --------------------------------------------------------

    def handle_key(self, event: KeyEvent) -> StepResult | None:
        """Apply the action bound to ``event``. Returns None when nothing happened."""
        request = lookup_action(event, self._bindings)
        if request is None or not self._session.is_active:
            return None
        view = self._session.view()
        choices = view.display if isinstance(view.display, ChoicesDisplay) else None
        action = request.action
        if action == "advance_or_select_first":
            if choices is not None:
                return self.select_choice(0) if choices.choices else None
            return None if view.is_ended else self.advance()
        if action == "advance":
            if choices is not None or view.is_ended:
                return None
            return self.advance()
        if action == "rollback":
            return self.rollback() if view.can_rollback else None
        if action == "restart":
            return self.restart()
        if action == "select_choice":
            index = request.choice_index
            if choices is None or index is None or index >= len(choices.choices):
                return None
            return self.select_choice(index)
        if action == "toggle_auto":
            self.toggle_auto_mode()
        elif action == "toggle_skip":
            self.toggle_skip_mode()
        elif action == "save":
            self.save()
        elif action == "load":
            return self.load()
        return None

    # Internals -----------------------------------------------------------

    def _apply(self, operation: Callable[[], StepResult]) -> StepResult:
        self._cancel_timer()
        result = operation()
        self._reschedule()
        if result.accepted:
            for listener in list(self._listeners):
                listener(result.view)
        return result

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self, delay: float, operation: Callable[[], StepResult]) -> None:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation:
                logger.debug("Ignoring stale playback timer")
                return
            self._timer = None
            self._apply(operation)

        self._timer = self._scheduler.call_later(delay, fire)

    def _reschedule(self) -> None:
        self._cancel_timer()
        if not self._session.is_active:
            return
        display = self._session.view().display
        if display.kind != "text":
            self._skip_mode = False
        if isinstance(display, WaitDisplay):
            self._schedule(display.duration, self._session.complete_wait)
            return
        if isinstance(display, ChoicesDisplay):
            if display.timeout is not None and display.default_choice is not None:
                default_choice = display.default_choice
                self._schedule(display.timeout, lambda: self._session.select_choice(default_choice))
            return
        if display.kind != "text":
            return
        if self._skip_mode:
            self._schedule(self._skip_tick, self._session.advance)
        elif self._auto_mode:
            self._schedule(self._auto_delay, self._session.advance)
