"""
Multi-color line selection.

Unlike the greedy walk, the router is not tied to a current pin: at every step
it considers every undrawn chord in the cache for every thread color and
commits the best (chord, color) pair. A chord is drawn at most once per run.
The selected segments are unordered; ``search.ordering`` turns them into
drawable polylines afterwards.

Scores are kept in a (colors x chords) matrix. A commit only changes the
residual of one color along one chord, so only chords crossing that chord's
pixels are rescored, and only for that color.
"""

import numpy as np

from threadart.geometry.line_cache import select_lines
from threadart.models import ProgressUpdate, Segment, StopReason, Strategy
from threadart.scheduler import drive
from threadart.search.outcome import SearchOutcome
from threadart.tracer import get_tracer, trace


class MultiColorRouter:
    """Select (chord, color) pairs one ``step()`` at a time."""

    def __init__(self, cache, fields, config):
        self.cache = cache
        self.fields = fields
        self.search = config.search
        self.yield_every = config.schedule.yield_every_lines

        self.bundle = cache.all_lines()
        self.scores = np.vstack([f.score_bundle(self.bundle) for f in fields])
        self.available = np.ones(len(self.bundle.lengths), dtype=bool)

        self.segments = []
        self.stop_reason = None
        self.last_score = None

    @property
    def done(self):
        return self.stop_reason is not None

    @property
    def lines(self):
        return len(self.segments)

    def stop(self, reason):
        if self.done:
            return
        self.stop_reason = reason
        get_tracer().event(f"Router stopped: {reason.value}", lines=self.lines, score=self.last_score)

    def _budget_reached(self):
        return self.search.max_lines is not None and self.lines >= self.search.max_lines

    def step(self):
        if self.done:
            return False
        if self._budget_reached():
            self.stop(StopReason.MAX_LINES)
            return False
        if not self.available.any():
            self.stop(StopReason.EXHAUSTED)
            return False

        masked = np.where(self.available[None, :], self.scores, -np.inf)
        color, row = np.unravel_index(int(np.argmax(masked)), masked.shape)
        color, row = int(color), int(row)
        self.last_score = float(masked[color, row])

        if self.last_score < self.search.end_threshold:
            self.stop(StopReason.THRESHOLD)
            return False

        self.commit(row, color)

        if self._budget_reached():
            self.stop(StopReason.MAX_LINES)
            return False
        return True

    def commit(self, row, color):
        """Draw chord ``row`` of the cache bundle in ``color`` and retire it."""
        a, b = (int(p) for p in self.bundle.keys[row])
        pixels = self.cache.pixels(a, b)
        field = self.fields[color]
        field.commit(pixels, self.search.line_weight)
        self.available[row] = False
        self.segments.append(Segment(pin_from=a, pin_to=b, color_index=color))

        affected = self.cache.lines_through(pixels)
        affected = affected[self.available[affected]]
        if len(affected):
            self.scores[color, affected] = field.score_bundle(select_lines(self.bundle, affected))

    def progress_update(self):
        return ProgressUpdate(
            strategy=Strategy.MULTICOLOR,
            step=self.lines,
            lines=self.lines,
            best_score=self.last_score,
            finished=self.done,
        )

    @trace(label="multicolor_run")
    def run(self, progress=None, cancel=None):
        get_tracer().event(f"Router: colors={len(self.fields)}, candidate_lines={len(self.available)}")
        drive(self, self.yield_every, progress=progress, cancel=cancel)
        return self.outcome()

    def outcome(self):
        return SearchOutcome(
            strategy=Strategy.MULTICOLOR,
            stop_reason=self.stop_reason,
            segments=list(self.segments),
            steps=self.lines,
            buffers=[f.as_image() for f in self.fields],
        )
