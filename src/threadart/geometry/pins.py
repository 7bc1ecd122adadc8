"""
Pin layout on the circular canvas.

Pins are evenly spaced on a circle inscribed in the square image, starting at
angle zero (the right-hand edge) and proceeding in increasing angle.
"""

import math

import numpy as np

from threadart.models import Pin


def compute_pins(size, pin_count):
    """
    Place ``pin_count`` pins for an image of side ``size``.

    Pin i sits at angle 2*pi*i/N on a circle of radius size/2 - 0.5 centred
    at size/2; its pixel is the floor of the exact position.
    """
    center = size / 2
    radius = size / 2 - 0.5

    pins = []
    for i in range(pin_count):
        angle = 2 * math.pi * i / pin_count
        x = center + radius * math.cos(angle)
        y = center + radius * math.sin(angle)
        pins.append(Pin(index=i, angle=angle, x=x, y=y, px=math.floor(x), py=math.floor(y)))

    return pins


def pin_distance(a, b, pin_count):
    """Number of pin steps between a and b going the short way around."""
    d = abs(a - b) % pin_count
    return min(d, pin_count - d)


def pin_positions(pins):
    """Exact pin positions as an (N, 2) float array of x, y."""
    return np.array([[p.x, p.y] for p in pins], dtype=np.float64)
