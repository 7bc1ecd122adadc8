"""
Target and residual fields.

The target is an intensity image in 0..255 where low means "needs thread":
grayscale brightness in single-color mode, or the normalized L1 distance to a
thread color in multi-color mode. The residual is ``255 - target`` and tracks
how much ink each pixel still needs. Pixels outside the circular canvas carry
no demand.
"""

import numpy as np

from threadart.field.scoring import score_bundle, score_line
from threadart.tracer import get_tracer, trace


RESIDUAL_MIN = 0.0
RESIDUAL_MAX = 255.0


def to_rgb(image):
    """
    Return an (H, W, 3) float32 RGB image.

    RGBA input is composited over white; grayscale input is replicated.
    """
    img = np.asarray(image)
    if img.ndim == 2:
        img = np.repeat(img[:, :, None], 3, axis=2)
    img = img.astype(np.float32)

    if img.shape[2] == 4:
        alpha = img[:, :, 3:4] / 255.0
        img = img[:, :, :3] * alpha + 255.0 * (1.0 - alpha)

    return img[:, :, :3]


def circle_mask(size):
    """Boolean (size, size) mask, True inside the circle inscribed in the image."""
    center = size / 2
    ys, xs = np.mgrid[0:size, 0:size]
    return (xs - center) ** 2 + (ys - center) ** 2 <= center ** 2


def stretch_contrast(intensity, factor):
    """Scale intensities away from the midpoint by ``factor`` and clip to 0..255."""
    if factor == 1.0:
        return intensity
    return np.clip((intensity - 127.5) * factor + 127.5, 0.0, 255.0)


def grayscale_intensity(rgb):
    """Plain average of the three channels."""
    return rgb.mean(axis=2)


def color_distance(rgb, color):
    """Sum of absolute channel differences to ``color``, scaled to 0..255."""
    diff = np.abs(rgb - np.asarray(color, dtype=np.float32)[None, None, :])
    return diff.sum(axis=2) / 3.0


class ResidualField:
    """
    Remaining ink demand per pixel, stored flat.

    ``values`` is the only mutable state and is changed exclusively through
    ``commit``; it always stays within [RESIDUAL_MIN, RESIDUAL_MAX].
    """

    def __init__(self, target, size, scoring):
        self.size = size
        self.scoring = scoring
        self.target = np.ascontiguousarray(target, dtype=np.float32).reshape(-1)
        self.values = RESIDUAL_MAX - self.target

    @classmethod
    def from_intensity(cls, intensity, scoring, mask=None):
        """Build from an intensity image: contrast-stretch, then blank outside the circle."""
        size = intensity.shape[0]
        target = stretch_contrast(intensity.astype(np.float32), scoring.contrast)
        if mask is None:
            mask = circle_mask(size)
        target = np.where(mask, target, RESIDUAL_MAX)
        return cls(target, size, scoring)

    def copy(self):
        clone = ResidualField.__new__(ResidualField)
        clone.size = self.size
        clone.scoring = self.scoring
        clone.target = self.target
        clone.values = self.values.copy()
        return clone

    def trace_summary(self):
        return f"ResidualField(size={self.size},demand={float(self.values.sum()):.0f})"

    def score_line(self, pixels):
        return score_line(self.values[pixels], self.target[pixels], self.scoring)

    def score_bundle(self, bundle):
        """Scores for every line in a ``LineBundle``."""
        return score_bundle(
            self.values[bundle.pixels],
            self.target[bundle.pixels],
            bundle.starts,
            bundle.lengths,
            self.scoring,
        )

    def commit(self, pixels, weight):
        """Remove ``weight`` of demand along a committed line."""
        self.values[pixels] = np.clip(self.values[pixels] - weight, RESIDUAL_MIN, RESIDUAL_MAX)

    def total_demand(self):
        return float(self.values.sum())

    def as_image(self):
        """Residual as a (size, size) uint8 image, darker where more ink is still needed."""
        img = RESIDUAL_MAX - self.values.reshape(self.size, self.size)
        return np.clip(img, 0, 255).astype(np.uint8)

    def target_image(self):
        return self.target.reshape(self.size, self.size).astype(np.uint8)


@trace(label="grayscale_field")
def grayscale_field(image, scoring):
    """Single-color residual field from the average brightness of the image."""
    rgb = to_rgb(image)
    field = ResidualField.from_intensity(grayscale_intensity(rgb), scoring)
    get_tracer().event(f"Grayscale field: demand={field.total_demand():.0f}")
    return field


@trace(label="color_fields")
def color_fields(image, colors, scoring):
    """One residual field per thread color, all sharing the same geometry and mask."""
    rgb = to_rgb(image)
    mask = circle_mask(rgb.shape[0])
    fields = []
    for color in colors:
        field = ResidualField.from_intensity(color_distance(rgb, color), scoring, mask=mask)
        get_tracer().event(f"Color field {tuple(color)}: demand={field.total_demand():.0f}")
        fields.append(field)
    return fields
