"""
Image loading for the thread art pipeline.

Decodes a file with OpenCV and turns it into the square RGB buffer the engine
expects: centre crop to the shorter side, then resize to the canvas size.
"""

import os

import cv2
import numpy as np

from threadart.tracer import get_tracer, trace


SUPPORTED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp", ".webp"]


@trace(label="load_image")
def load_image(path):
    """
    Load an image from disk.

    Returns a tuple of (image, metadata) where:
    - image: RGB or RGBA numpy array (H, W, 3|4), uint8
    - metadata: dict with width, height, channels, source_path

    Raises FileNotFoundError if path does not exist.
    Raises ValueError if image cannot be decoded.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError(f"Failed to load image: {path}")

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
    elif img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    else:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

    if img.dtype != np.uint8:
        img = cv2.convertScaleAbs(img, alpha=255.0 / max(float(img.max()), 1.0))

    height, width = img.shape[:2]
    tracer.event(f"Loaded image: {width}x{height}, channels={img.shape[2]}")

    metadata = {
        "width": width,
        "height": height,
        "channels": img.shape[2],
        "source_path": os.path.abspath(path),
    }
    return img, metadata


def square_crop(img):
    """Centre crop to a square of the shorter side."""
    height, width = img.shape[:2]
    side = min(height, width)
    top = (height - side) // 2
    left = (width - side) // 2
    return img[top:top + side, left:left + side]


@trace(label="prepare_canvas")
def prepare_canvas(img, size):
    """Square, resized copy of ``img`` ready for the engine."""
    square = square_crop(img)
    if square.shape[0] == size:
        return np.ascontiguousarray(square)
    interpolation = cv2.INTER_AREA if square.shape[0] > size else cv2.INTER_CUBIC
    return cv2.resize(square, (size, size), interpolation=interpolation)


def validate_image_path(path):
    """
    Check that a path exists and looks like a supported image.

    Returns a list of error messages (empty if valid).
    """
    errors = []

    if not os.path.exists(path):
        errors.append(f"File not found: {path}")
        return errors

    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        errors.append(f"Unsupported image format: {path}")

    return errors
