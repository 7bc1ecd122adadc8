"""
SVG export of thread art results.

One group per thread color, one ``<polyline>`` per continuous path, drawn at
the configured scale so the file can be printed or fed to a plotter pipeline.
"""

import svgwrite

from threadart.export.instructions import palette_label
from threadart.tracer import get_tracer, trace


def _rgb(color):
    return svgwrite.rgb(*color)


@trace(label="emit_result_svg")
def emit_result_svg(result, export, show_pins=True):
    """
    Build an ``svgwrite.Drawing`` for a ``StringArtResult``.

    ``export`` is the ``ExportConfig`` section.
    """
    tracer = get_tracer()
    scale = export.scale
    side = result.image_size * scale
    positions = {pin.index: (pin.x * scale, pin.y * scale) for pin in result.pins}

    dwg = svgwrite.Drawing(size=(f"{side}px", f"{side}px"))
    dwg.viewbox(0, 0, side, side)
    dwg.add(dwg.rect(insert=(0, 0), size=(side, side), fill="white"))
    dwg.add(dwg.circle(center=(side / 2, side / 2), r=side / 2 - 0.5 * scale,
                       fill="none", stroke="#cccccc", stroke_width=1))

    path_count = 0
    for color_index, polylines in result.polylines.items():
        color = result.colors[color_index] if color_index < len(result.colors) else (0, 0, 0)
        group = dwg.g(
            id=f"color_{color_index}",
            fill="none",
            stroke=_rgb(color),
            stroke_width=export.stroke_width,
            stroke_opacity=export.stroke_opacity,
            stroke_linecap="round",
            stroke_linejoin="round",
        )
        name = palette_label(color_index, export.palette_names)
        if name:
            group.set_desc(title=name)
        for i, polyline in enumerate(polylines):
            points = [positions[p] for p in polyline.pins]
            group.add(dwg.polyline(points=points, id=f"path_{color_index}_{i}"))
            path_count += 1
        dwg.add(group)

    if show_pins:
        pins_group = dwg.g(id="pins", fill="#888888")
        for x, y in positions.values():
            pins_group.add(dwg.circle(center=(x, y), r=max(scale * 0.5, 1)))
        dwg.add(pins_group)

    tracer.event(f"SVG emitted with {path_count} paths")
    return dwg
