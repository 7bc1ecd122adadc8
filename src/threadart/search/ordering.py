"""
Re-stitch unordered segments into continuous per-color polylines.

Segments of one color go into an undirected multigraph keyed by commit order.
A polyline grows from its current end along the earliest-committed unused
segment touching that pin (traversed backwards if needed). When the end pin
has nothing left, the polyline is closed and a new one starts at the unused
segment endpoint geometrically nearest to it. Pen lifts are minimised this
way, not eliminated.
"""

import networkx as nx
import numpy as np

from threadart.geometry.pins import pin_positions
from threadart.models import Polyline
from threadart.tracer import get_tracer, trace


@trace(label="order_segments")
def order_segments(segments, pins):
    """
    Group segments by color and stitch each group.

    Returns ``{color_index: [Polyline, ...]}`` with colors in order of first
    appearance. Segments without a color go to color 0.
    """
    tracer = get_tracer()
    positions = pin_positions(pins)

    by_color = {}
    for segment in segments:
        by_color.setdefault(segment.color_index or 0, []).append(segment)

    result = {}
    for color, group in by_color.items():
        polylines = stitch_polylines(group, positions, color)
        tracer.event(f"Color {color}: segments={len(group)}, polylines={len(polylines)}")
        result[color] = polylines

    return result


def stitch_polylines(segments, positions, color_index=0):
    """Polylines covering every segment in ``segments`` exactly once."""
    if not segments:
        return []

    graph = nx.MultiGraph()
    for key, segment in enumerate(segments):
        graph.add_edge(segment.pin_from, segment.pin_to, key=key)

    first = segments[0]
    graph.remove_edge(first.pin_from, first.pin_to, key=0)
    path = [first.pin_from, first.pin_to]
    remaining = len(segments) - 1
    polylines = []

    while remaining:
        end = path[-1]
        edges = list(graph.edges(end, keys=True))
        if edges:
            _, nxt, key = min(edges, key=lambda e: e[2])
            graph.remove_edge(end, nxt, key)
            path.append(nxt)
            remaining -= 1
            continue

        polylines.append(Polyline(color_index=color_index, pins=path))

        start = _nearest_open_pin(graph, positions, end)
        _, nxt, key = min(graph.edges(start, keys=True), key=lambda e: e[2])
        graph.remove_edge(start, nxt, key)
        path = [start, nxt]
        remaining -= 1

    polylines.append(Polyline(color_index=color_index, pins=path))
    return polylines


def _nearest_open_pin(graph, positions, pin):
    """Pin with unused segments closest to ``pin`` (first one on ties)."""
    open_pins = [node for node, degree in graph.degree() if degree > 0]
    deltas = positions[open_pins] - positions[pin]
    distances = np.hypot(deltas[:, 0], deltas[:, 1])
    return open_pins[int(np.argmin(distances))]


def pen_lifts(polylines_by_color):
    """Number of times the thread has to be cut and restarted."""
    return sum(max(len(polylines) - 1, 0) for polylines in polylines_by_color.values())
