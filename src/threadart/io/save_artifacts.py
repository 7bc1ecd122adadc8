"""
Artifact writing for the thread art pipeline.

Handles result JSON, text files, images and the optional debug directory.
"""

import json
import os

import cv2

from threadart.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_image(img, path, max_edge=None):
    """
    Save an RGB or grayscale image.

    Optionally downscales to ``max_edge`` while preserving aspect ratio.
    """
    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (int(img.shape[1] * scale), int(img.shape[0] * scale))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_AREA)

    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, img)
    get_tracer().event(f"Saved image: {path}")


def save_json(data, path, indent=2):
    """Save a dictionary or Pydantic model to JSON."""
    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    get_tracer().event(f"Saved JSON: {path}")


def save_text(text, path):
    ensure_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    get_tracer().event(f"Saved text: {path}")


class DebugArtifactWriter:
    """
    Writes intermediate images and metrics under ``<out_dir>/debug/<stage>``.

    Every method is a no-op when the writer is disabled.
    """

    def __init__(self, out_dir, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.enabled = enabled
        self.max_edge = max_edge

    def get_stage_dir(self, stage_name):
        stage_dir = os.path.join(self.out_dir, "debug", stage_name)
        ensure_dir(stage_dir)
        return stage_dir

    def save_image(self, img, stage_name, filename):
        if not self.enabled:
            return
        save_image(img, os.path.join(self.get_stage_dir(stage_name), filename), max_edge=self.max_edge)

    def save_json(self, data, stage_name, filename):
        if not self.enabled:
            return
        save_json(data, os.path.join(self.get_stage_dir(stage_name), filename))
