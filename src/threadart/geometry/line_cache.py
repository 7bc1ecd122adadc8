"""
Precomputed chord rasters between every eligible pair of pins.

Built once per (pin layout, minimum distance) and shared read-only by every
search strategy. Lines are keyed by the canonical integer pair
``(min(a, b), max(a, b))`` and stored as flat pixel indices ``y * size + x``
in the a -> b direction of that canonical pair.
"""

from collections import namedtuple

import numpy as np

from threadart.geometry.pins import pin_distance
from threadart.geometry.raster import bresenham_line
from threadart.tracer import get_tracer, trace


# Concatenated rasters of several lines: ``keys`` identifies each line (a
# candidate pin for fans, a canonical pair for the whole cache), ``pixels``
# holds all flat indices back to back, ``starts``/``lengths`` slice them.
LineBundle = namedtuple("LineBundle", ["keys", "pixels", "starts", "lengths"])


def canonical_pair(a, b):
    return (a, b) if a < b else (b, a)


def _bundle(keys, arrays):
    lengths = np.array([len(arr) for arr in arrays], dtype=np.int64)
    starts = np.zeros(len(arrays), dtype=np.int64)
    if len(arrays) > 1:
        np.cumsum(lengths[:-1], out=starts[1:])
    pixels = np.concatenate(arrays) if arrays else np.empty(0, dtype=np.int64)
    return LineBundle(np.asarray(keys), pixels, starts, lengths)


class LineCache:
    """
    Rasterized chords for all pin pairs at least ``min_distance`` steps apart.

    A lookup for a pair that was never cached raises ``KeyError``: callers
    check eligibility with ``has_line`` before asking for pixels.
    """

    def __init__(self, pins, size, min_distance):
        self.pins = pins
        self.size = size
        self.min_distance = min_distance
        self.pin_count = len(pins)
        self._lines = {}
        self._fans = {}
        self._all = None
        self._pixel_index = None
        self._build()

    @trace(label="build_line_cache")
    def _build(self):
        tracer = get_tracer()
        size = self.size

        for a in range(self.pin_count):
            pa = self.pins[a]
            for b in range(a + 1, self.pin_count):
                if pin_distance(a, b, self.pin_count) < self.min_distance:
                    continue
                pb = self.pins[b]
                points = bresenham_line(pa.px, pa.py, pb.px, pb.py)
                flat = np.array([y * size + x for x, y in points], dtype=np.int64)
                self._lines[(a, b)] = flat

        lengths = [len(v) for v in self._lines.values()]
        avg = sum(lengths) / len(lengths) if lengths else 0
        tracer.event(f"Line cache: lines={len(self._lines)}, avg_pixels={avg:.1f}")

    def __len__(self):
        return len(self._lines)

    def __contains__(self, pair):
        return canonical_pair(*pair) in self._lines

    def __iter__(self):
        return iter(self._lines)

    def trace_summary(self):
        return f"LineCache(pins={self.pin_count},lines={len(self._lines)},min_distance={self.min_distance})"

    def is_eligible(self, a, b):
        """Whether a chord between a and b is allowed by the distance rule."""
        return a != b and pin_distance(a, b, self.pin_count) >= self.min_distance

    def has_line(self, a, b):
        return canonical_pair(a, b) in self._lines

    def _get(self, a, b):
        try:
            return self._lines[canonical_pair(a, b)]
        except KeyError:
            raise KeyError(f"No cached line between pins {a} and {b}") from None

    def pixels(self, a, b):
        """Flat pixel indices of the chord, ordered from pin a to pin b."""
        line = self._get(a, b)
        return line if a < b else line[::-1]

    def points(self, a, b):
        """(x, y) pixel coordinates of the chord, ordered from pin a to pin b."""
        return [(int(i % self.size), int(i // self.size)) for i in self.pixels(a, b)]

    def length(self, a, b):
        return len(self._get(a, b))

    def neighbors(self, pin):
        """
        Pins reachable from ``pin``, in evaluation order.

        Walks forward around the circle starting ``min_distance`` steps
        ahead and stopping ``min_distance`` steps short of a full turn.
        """
        n = self.pin_count
        d = self.min_distance
        # inclusive of n - d so the fan matches the circular distance rule both ways
        return [(pin + offset) % n for offset in range(d, n - d + 1)]

    def fan(self, pin):
        """All chords leaving ``pin`` as one bundle keyed by the far pin."""
        if pin not in self._fans:
            targets = self.neighbors(pin)
            self._fans[pin] = _bundle(targets, [self.pixels(pin, t) for t in targets])
        return self._fans[pin]

    def all_lines(self):
        """Every cached chord as one bundle keyed by canonical pairs (M x 2)."""
        if self._all is None:
            pairs = list(self._lines.keys())
            bundle = _bundle(pairs, [self._lines[p] for p in pairs])
            self._all = bundle._replace(keys=np.array(pairs, dtype=np.int64).reshape(-1, 2))
        return self._all

    def lines_through(self, pixels):
        """Row indices into ``all_lines()`` of the chords crossing any of ``pixels``."""
        if self._pixel_index is None:
            bundle = self.all_lines()
            line_ids = np.repeat(np.arange(len(bundle.lengths)), bundle.lengths)
            order = np.argsort(bundle.pixels, kind="stable")
            self._pixel_index = (bundle.pixels[order], line_ids[order])

        sorted_pixels, sorted_ids = self._pixel_index
        lo = np.searchsorted(sorted_pixels, pixels, side="left")
        hi = np.searchsorted(sorted_pixels, pixels, side="right")
        hits = [sorted_ids[s:e] for s, e in zip(lo, hi) if e > s]
        if not hits:
            return np.empty(0, dtype=np.int64)
        return np.unique(np.concatenate(hits))


def select_lines(bundle, rows):
    """Sub-bundle holding only the given rows of ``bundle``, in that order."""
    rows = np.asarray(rows, dtype=np.int64)
    lengths = bundle.lengths[rows]
    starts = np.zeros(len(rows), dtype=np.int64)
    if len(rows) > 1:
        np.cumsum(lengths[:-1], out=starts[1:])
    total = int(lengths.sum())
    gather = np.repeat(bundle.starts[rows] - starts, lengths) + np.arange(total, dtype=np.int64)
    return LineBundle(bundle.keys[rows], bundle.pixels[gather], starts, lengths)
