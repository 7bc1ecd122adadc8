"""
Threading instructions: the pin order a person follows on a physical board.
"""

import csv
import io


def palette_label(color_index, names=None):
    """Configured name of a thread color, or None when it has none."""
    if names and color_index < len(names):
        return names[color_index]
    return None


def instruction_text(result, per_line=10, names=None):
    """
    Human-readable sheet, ``per_line`` pins per row separated by dashes.

    ``names`` optionally labels each color (``ExportConfig.palette_names``).
    """
    lines = [f"Pins: {result.pin_count}"]
    for color_index, polylines in result.polylines.items():
        color = result.colors[color_index] if color_index < len(result.colors) else [0, 0, 0]
        name = palette_label(color_index, names)
        label = f" {name}" if name else ""
        lines.append(f"Color {color_index}{label} rgb({color[0]}, {color[1]}, {color[2]})")
        for n, polyline in enumerate(polylines, start=1):
            if len(polylines) > 1:
                lines.append(f"Path {n}:")
            pins = polyline.pins
            for i in range(0, len(pins), per_line):
                lines.append(" - ".join(str(p) for p in pins[i:i + per_line]))
    return "\n".join(lines) + "\n"


def instruction_csv(result, per_row=20):
    """CSV with a color,path,pin... layout, ``per_row`` pins per row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["color", "path", "pins"])
    for color_index, polylines in result.polylines.items():
        for n, polyline in enumerate(polylines):
            pins = polyline.pins
            for i in range(0, len(pins), per_row):
                writer.writerow([color_index, n] + pins[i:i + per_row])
    return buffer.getvalue()
