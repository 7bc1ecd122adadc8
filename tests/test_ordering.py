"""Tests for re-stitching segments into polylines."""

import pytest


def _segments(pairs, color_index=None):
    from threadart.models import Segment

    return [Segment(pin_from=a, pin_to=b, color_index=color_index) for a, b in pairs]


@pytest.fixture
def pins():
    from threadart.geometry.pins import compute_pins

    return compute_pins(60, 24)


class TestOrderSegments:
    """Tests for polyline stitching."""

    def test_single_walk_is_one_polyline(self, pins):
        from threadart.models import segments_from_sequence
        from threadart.search.ordering import order_segments

        sequence = [0, 5, 12, 3, 17, 9, 0, 14]
        polylines = order_segments(segments_from_sequence(sequence), pins)

        assert list(polylines) == [0]
        assert len(polylines[0]) == 1
        assert polylines[0][0].pins == sequence

    def test_revisited_pin_follows_commit_order(self, pins):
        from threadart.search.ordering import order_segments

        polylines = order_segments(_segments([(0, 5), (5, 10), (10, 0), (0, 15)]), pins)

        assert [p.pins for p in polylines[0]] == [[0, 5, 10, 0, 15]]

    def test_segments_traversed_backwards(self, pins):
        from threadart.search.ordering import order_segments

        polylines = order_segments(_segments([(0, 5), (10, 5)]), pins)

        assert [p.pins for p in polylines[0]] == [[0, 5, 10]]

    def test_disconnected_segments_start_nearest(self, pins):
        """A new polyline starts at the open pin closest to where the last one ended."""
        from threadart.search.ordering import order_segments, pen_lifts

        polylines = order_segments(_segments([(0, 5), (15, 10), (20, 23)]), pins)

        assert [p.pins for p in polylines[0]] == [[0, 5], [10, 15], [20, 23]]
        assert pen_lifts(polylines) == 2

    def test_counts_preserved_per_color(self, pins):
        from threadart.search.ordering import order_segments

        segments = _segments([(0, 6), (7, 13), (13, 20)], color_index=0)
        segments += _segments([(3, 9), (9, 16), (1, 22)], color_index=1)
        polylines = order_segments(segments, pins)

        assert set(polylines) == {0, 1}
        for color in (0, 1):
            assert all(p.color_index == color for p in polylines[color])
            assert sum(p.segment_count for p in polylines[color]) == 3

    def test_every_segment_drawn_once(self, pins):
        from threadart.search.ordering import order_segments

        pairs = [(0, 8), (8, 16), (4, 12), (12, 20), (16, 0), (3, 19), (19, 8)]
        polylines = order_segments(_segments(pairs), pins)

        drawn = []
        for polyline in polylines[0]:
            drawn += [tuple(sorted(e)) for e in zip(polyline.pins, polyline.pins[1:])]
        assert sorted(drawn) == sorted(tuple(sorted(e)) for e in pairs)

    def test_empty_input(self, pins):
        from threadart.search.ordering import order_segments

        assert order_segments([], pins) == {}
