"""
Greedy pin-to-pin path selection.

Starting at pin 0, repeatedly score every chord leaving the current pin
against the residual field, take the best one, and subtract the line weight
along it. Recently visited pins are forbidden to stop the walk from bouncing
between the same few pins.
"""

from collections import deque
from enum import Enum

import numpy as np

from threadart.config import with_overrides
from threadart.models import ProgressUpdate, StopReason, Strategy, segments_from_sequence
from threadart.scheduler import drive
from threadart.search.outcome import SearchOutcome
from threadart.tracer import get_tracer, trace


class SelectorState(str, Enum):
    SELECT = "select"
    EVALUATE = "evaluate"
    TERMCHECK = "termcheck"
    COMMIT = "commit"
    DONE = "done"


class RecentPinWindow:
    """Fixed-capacity FIFO of the last visited pins with O(1) membership."""

    def __init__(self, capacity):
        self.capacity = capacity
        self._order = deque()
        self._members = set()

    def push(self, pin):
        if self.capacity <= 0:
            return
        if len(self._order) >= self.capacity:
            self._members.discard(self._order.popleft())
        self._order.append(pin)
        self._members.add(pin)

    def __contains__(self, pin):
        return pin in self._members

    def __len__(self):
        return len(self._order)

    def __iter__(self):
        return iter(self._order)


class GreedySelector:
    """
    Single-pass state machine: SELECT -> EVALUATE -> TERMCHECK -> COMMIT.

    ``field`` is owned by the selector and mutated in place by every commit.
    Each ``step()`` runs one full cycle and returns False once the selector
    has reached DONE.
    """

    def __init__(self, cache, field, config, start_pin=0):
        self.cache = cache
        self.field = field
        self.search = config.search
        self.yield_every = config.schedule.yield_every_lines

        self.current = start_pin
        self.sequence = [start_pin]
        self.window = RecentPinWindow(self.search.recent_pin_window)
        self.state = SelectorState.SELECT
        self.stop_reason = None
        self.last_score = None
        self.steps = 0

    @property
    def lines(self):
        return len(self.sequence) - 1

    @property
    def done(self):
        return self.state == SelectorState.DONE

    def stop(self, reason):
        if self.done:
            return
        self.state = SelectorState.DONE
        self.stop_reason = reason
        get_tracer().event(f"Greedy stopped: {reason.value}", lines=self.lines, score=self.last_score)

    def _budget_reached(self):
        return self.search.max_lines is not None and self.lines >= self.search.max_lines

    def step(self):
        if self.done:
            return False
        if self._budget_reached():
            self.stop(StopReason.MAX_LINES)
            return False

        self.state = SelectorState.EVALUATE
        fan = self.cache.fan(self.current)
        allowed = np.array([pin not in self.window for pin in fan.keys], dtype=bool)
        if not allowed.any():
            self.stop(StopReason.EXHAUSTED)
            return False

        scores = np.where(allowed, self.field.score_bundle(fan), -np.inf)
        best = int(np.argmax(scores))
        self.last_score = float(scores[best])

        self.state = SelectorState.TERMCHECK
        if self.last_score < self.search.end_threshold:
            self.stop(StopReason.THRESHOLD)
            return False

        self.state = SelectorState.COMMIT
        self.commit(int(fan.keys[best]))
        self.steps += 1

        if self._budget_reached():
            self.stop(StopReason.MAX_LINES)
            return False

        self.state = SelectorState.SELECT
        return True

    def commit(self, pin):
        """Draw the chord from the current pin to ``pin``."""
        self.field.commit(self.cache.pixels(self.current, pin), self.search.line_weight)
        self.sequence.append(pin)
        self.window.push(pin)
        self.current = pin

    def progress_update(self):
        return ProgressUpdate(
            strategy=Strategy.GREEDY,
            step=self.steps,
            lines=self.lines,
            best_score=self.last_score,
            finished=self.done,
        )

    @trace(label="greedy_run")
    def run(self, progress=None, cancel=None):
        drive(self, self.yield_every, progress=progress, cancel=cancel)
        return self.outcome()

    def outcome(self):
        return SearchOutcome(
            strategy=Strategy.GREEDY,
            stop_reason=self.stop_reason,
            sequence=list(self.sequence),
            segments=segments_from_sequence(self.sequence),
            steps=self.steps,
            buffers=[self.field.as_image()],
        )


def greedy_sequence(cache, field, config, max_lines=None):
    """
    Convenience wrapper returning just the pin walk.

    Runs on a copy of ``field`` so the caller's field is left untouched.
    """
    if max_lines is not None:
        config = with_overrides(config, "search", max_lines=max_lines)
    selector = GreedySelector(cache, field.copy(), config)
    return selector.run().sequence
