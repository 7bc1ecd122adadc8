"""Tests for pin layout, rasterization and the line cache."""

import numpy as np
import pytest


class TestPins:
    """Tests for pin placement."""

    def test_pin_count_and_order(self):
        """Pins are indexed 0..N-1 with strictly increasing angle."""
        from threadart.geometry.pins import compute_pins

        pins = compute_pins(100, 16)

        assert len(pins) == 16
        assert [p.index for p in pins] == list(range(16))
        angles = [p.angle for p in pins]
        assert all(b > a for a, b in zip(angles, angles[1:]))
        assert angles[0] == 0.0

    def test_pins_on_inscribed_circle(self):
        """Exact positions sit on the circle; pixels stay inside the image."""
        from threadart.geometry.pins import compute_pins

        size = 101
        pins = compute_pins(size, 36)

        for pin in pins:
            r = np.hypot(pin.x - size / 2, pin.y - size / 2)
            assert r <= size / 2
            assert r == pytest.approx(size / 2 - 0.5)
            assert 0 <= pin.px < size
            assert 0 <= pin.py < size
            assert pin.px == int(np.floor(pin.x))

    def test_first_pin_on_right_edge(self):
        from threadart.geometry.pins import compute_pins

        pins = compute_pins(101, 16)

        assert (pins[0].px, pins[0].py) == (100, 50)
        assert (pins[8].px, pins[8].py) == (0, 50)

    def test_pin_distance_wraps(self):
        """Distance is measured the short way around the circle."""
        from threadart.geometry.pins import pin_distance

        assert pin_distance(0, 1, 10) == 1
        assert pin_distance(0, 9, 10) == 1
        assert pin_distance(2, 7, 10) == 5
        assert pin_distance(7, 2, 10) == 5


class TestBresenham:
    """Tests for line rasterization."""

    def test_includes_both_endpoints(self):
        from threadart.geometry.raster import bresenham_line

        points = bresenham_line(3, 7, 40, 19)

        assert points[0] == (3, 7)
        assert points[-1] == (40, 19)

    def test_eight_connected_without_duplicates(self):
        from threadart.geometry.raster import bresenham_line

        for x1, y1 in [(20, 3), (-15, 9), (4, -30), (-12, -12), (0, 25)]:
            points = bresenham_line(0, 0, x1, y1)
            assert len(points) == len(set(points))
            for (ax, ay), (bx, by) in zip(points, points[1:]):
                assert max(abs(bx - ax), abs(by - ay)) == 1
            assert len(points) == max(abs(x1), abs(y1)) + 1

    def test_single_point(self):
        from threadart.geometry.raster import bresenham_line

        assert bresenham_line(5, 5, 5, 5) == [(5, 5)]


class TestLineCache:
    """Tests for the precomputed chord cache."""

    def test_only_eligible_pairs_cached(self, small_cache):
        """Pairs closer than min_distance are never cached."""
        from threadart.geometry.pins import pin_distance

        # 276 pairs in total minus 24 at distance 1 and 24 at distance 2
        assert len(small_cache) == 228
        for a, b in small_cache:
            assert a < b
            assert pin_distance(a, b, 24) >= 3

    def test_eligibility_rule(self, small_cache):
        assert small_cache.is_eligible(0, 3)
        assert small_cache.is_eligible(0, 21)
        assert not small_cache.is_eligible(0, 2)
        assert not small_cache.is_eligible(0, 22)
        assert not small_cache.is_eligible(5, 5)

    def test_reverse_lookup_is_reversed(self, small_cache):
        """Asking for (b, a) gives the same pixels in the opposite order."""
        forward = small_cache.pixels(2, 14)
        backward = small_cache.pixels(14, 2)

        np.testing.assert_array_equal(forward, backward[::-1])
        assert small_cache.length(2, 14) == small_cache.length(14, 2)

    def test_line_endpoints_are_pins(self, small_cache):
        points = small_cache.points(4, 17)
        pin_a = small_cache.pins[4]
        pin_b = small_cache.pins[17]

        assert points[0] == (pin_a.px, pin_a.py)
        assert points[-1] == (pin_b.px, pin_b.py)

    def test_missing_line_raises_key_error(self, small_cache):
        assert not small_cache.has_line(0, 1)
        with pytest.raises(KeyError):
            small_cache.pixels(0, 1)

    def test_neighbors_evaluation_order(self, small_cache):
        """Neighbours walk forward from min_distance ahead and stay eligible."""
        neighbors = small_cache.neighbors(20)

        assert neighbors[0] == 23
        assert neighbors[-1] == 17
        assert len(neighbors) == 19
        assert all(small_cache.is_eligible(20, n) for n in neighbors)

    def test_fan_matches_neighbors(self, small_cache):
        fan = small_cache.fan(7)

        assert list(fan.keys) == small_cache.neighbors(7)
        for key, start, length in zip(fan.keys, fan.starts, fan.lengths):
            np.testing.assert_array_equal(
                fan.pixels[start:start + length],
                small_cache.pixels(7, int(key)),
            )

    def test_fan_chords_start_at_pin(self, small_cache):
        """Every chord in a fan runs from the fan's pin outwards, on both sides of it."""
        pin = small_cache.pins[20]
        fan = small_cache.fan(20)

        assert any(int(k) < 20 for k in fan.keys)
        assert all(int(fan.pixels[s]) == pin.py * small_cache.size + pin.px for s in fan.starts)

    def test_all_lines_bundle(self, small_cache):
        bundle = small_cache.all_lines()

        assert bundle.keys.shape == (228, 2)
        assert int(bundle.lengths.sum()) == len(bundle.pixels)

    def test_lines_through_finds_crossing_chords(self, small_cache):
        bundle = small_cache.all_lines()
        pixels = small_cache.pixels(0, 12)

        rows = small_cache.lines_through(pixels)
        pairs = {tuple(int(v) for v in bundle.keys[r]) for r in rows}

        assert (0, 12) in pairs
        # The vertical diameter crosses the horizontal one near the centre
        assert (6, 18) in pairs
        for r in rows:
            start, length = bundle.starts[r], bundle.lengths[r]
            assert np.intersect1d(bundle.pixels[start:start + length], pixels).size > 0

    def test_select_lines(self, small_cache):
        from threadart.geometry.line_cache import select_lines

        bundle = small_cache.all_lines()
        rows = [5, 0, 100]
        sub = select_lines(bundle, rows)

        assert len(sub.lengths) == 3
        for i, r in enumerate(rows):
            a, b = (int(v) for v in bundle.keys[r])
            np.testing.assert_array_equal(
                sub.pixels[sub.starts[i]:sub.starts[i] + sub.lengths[i]],
                small_cache.pixels(a, b),
            )
