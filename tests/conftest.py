"""Pytest fixtures for thread art tests."""

import os
import tempfile

import cv2
import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def small_config():
    """Small, fast configuration: 60px canvas, 24 pins."""
    from threadart.config import EngineConfig, LayoutConfig, PopulationConfig, SearchConfig

    return EngineConfig(
        layout=LayoutConfig(image_size=60, pin_count=24, min_distance=3),
        search=SearchConfig(line_weight=40.0, end_threshold=5.0, max_lines=30, recent_pin_window=4),
        population=PopulationConfig(
            population_size=8,
            genome_length=12,
            elitism_fraction=0.25,
            mutation_rate=0.1,
            tournament_size=2,
            max_generations_without_improvement=5,
            max_generations=10,
        ),
    )


@pytest.fixture
def small_cache():
    """Line cache for a 60px canvas with 24 pins."""
    from threadart.geometry.line_cache import LineCache
    from threadart.geometry.pins import compute_pins

    pins = compute_pins(60, 24)
    return LineCache(pins, 60, 3)


@pytest.fixture
def gray_image():
    """Solid mid-gray 60x60 RGB image."""
    return np.full((60, 60, 3), 128, dtype=np.uint8)


@pytest.fixture
def cross_image():
    """White 60x60 image with a dark cross through the middle."""
    img = np.full((60, 60, 3), 255, dtype=np.uint8)
    cv2.line(img, (10, 30), (50, 30), (0, 0, 0), 3)
    cv2.line(img, (30, 10), (30, 50), (0, 0, 0), 3)
    return img


@pytest.fixture
def red_blue_image():
    """60x60 image, red on the left half and blue on the right half."""
    img = np.zeros((60, 60, 3), dtype=np.uint8)
    img[:, :30] = (255, 0, 0)
    img[:, 30:] = (0, 0, 255)
    return img


@pytest.fixture
def synthetic_input_file(temp_dir, cross_image):
    """Write the cross image to disk for pipeline tests."""
    path = os.path.join(temp_dir, "test_input.png")
    cv2.imwrite(path, cv2.cvtColor(cross_image, cv2.COLOR_RGB2BGR))
    return path
