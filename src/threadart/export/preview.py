"""
Raster preview of a result, drawn with OpenCV.

Lines are stroked opaque and anti-aliased, at ``export.scale`` times the
canvas size, onto a white background.
"""

import cv2
import numpy as np

from threadart.tracer import trace


@trace(label="render_preview")
def render_preview(result, export):
    """RGB uint8 preview image of all polylines in ``result``."""
    scale = export.scale
    side = result.image_size * scale
    canvas = np.full((side, side, 3), 255, dtype=np.uint8)
    thickness = max(1, int(round(export.stroke_width)))

    positions = {pin.index: (pin.x * scale, pin.y * scale) for pin in result.pins}

    for color_index, polylines in result.polylines.items():
        color = result.colors[color_index] if color_index < len(result.colors) else (0, 0, 0)
        color = tuple(int(c) for c in color)
        for polyline in polylines:
            if len(polyline.pins) < 2:
                continue
            pts = np.array([positions[p] for p in polyline.pins], dtype=np.int32)
            cv2.polylines(canvas, [pts], isClosed=False, color=color, thickness=thickness, lineType=cv2.LINE_AA)

    return canvas


def pin_overlay(image, pins, radius=2):
    """Copy of a (grayscale or RGB) image with pins marked in red."""
    if image.ndim == 2:
        overlay = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    else:
        overlay = image.copy()
    for pin in pins:
        cv2.circle(overlay, (pin.px, pin.py), radius, (255, 0, 0), -1)
    return overlay
