"""Integer line rasterization."""


def bresenham_line(x0, y0, x1, y1):
    """
    Pixels on the segment from (x0, y0) to (x1, y1), both endpoints included.

    Steps along whichever axis the accumulated error term says is behind, so
    the result is 8-connected and contains no duplicates.
    """
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy

    points = []
    x, y = x0, y0
    while True:
        points.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy

    return points
