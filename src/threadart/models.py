"""
Pydantic data models for thread art results.

Everything the engine hands back to a host flows through these models so it
can be dumped to JSON unchanged. Content-based ID generation keeps outputs
deterministic.
"""

import hashlib
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Strategy(str, Enum):
    """Search strategy that produced a result."""
    GREEDY = "greedy"
    POPULATION = "population"
    MULTICOLOR = "multicolor"


class StopReason(str, Enum):
    """Why a search loop halted. None of these is an error."""
    THRESHOLD = "threshold"
    MAX_LINES = "max_lines"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    STAGNATION = "stagnation"
    MAX_GENERATIONS = "max_generations"


class Pin(BaseModel):
    """
    An anchor point on the circle.

    ``x``/``y`` are the exact positions, ``px``/``py`` the floor-truncated
    pixel the rasterizer starts and ends lines on.
    """
    index: int
    angle: float
    x: float
    y: float
    px: int
    py: int

    model_config = ConfigDict(frozen=True)


class Segment(BaseModel):
    """One committed chord between two pins."""
    pin_from: int
    pin_to: int
    color_index: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class Polyline(BaseModel):
    """A continuous run of pins drawn without lifting the thread."""
    color_index: int = 0
    pins: List[int] = Field(default_factory=list)

    @property
    def segment_count(self):
        return max(len(self.pins) - 1, 0)


class ProgressUpdate(BaseModel):
    """Snapshot passed to progress callbacks at every yield point."""
    strategy: Strategy
    step: int
    lines: int
    best_score: Optional[float] = None
    best_fitness: Optional[float] = None
    finished: bool = False


class RunStats(BaseModel):
    """Summary of a finished (or cancelled) search."""
    strategy: Strategy
    stop_reason: StopReason
    steps: int = 0
    lines: int = 0
    best_fitness: Optional[float] = None
    fitness_history: List[float] = Field(default_factory=list)
    elapsed_ms: float = 0.0


class StringArtResult(BaseModel):
    """
    Complete output of one engine run.

    ``sequence`` is the pin walk for single-color strategies (empty for
    multi-color runs); ``segments`` lists committed chords in commit order;
    ``polylines`` maps a color index to its drawable paths.
    """
    result_id: str
    image_size: int
    pin_count: int
    pins: List[Pin] = Field(default_factory=list)
    colors: List[List[int]] = Field(default_factory=list)
    sequence: List[int] = Field(default_factory=list)
    segments: List[Segment] = Field(default_factory=list)
    polylines: Dict[int, List[Polyline]] = Field(default_factory=dict)
    stats: RunStats

    model_config = ConfigDict(extra="forbid")

    def segments_for_color(self, color_index):
        return [s for s in self.segments if (s.color_index or 0) == color_index]


def segments_from_sequence(sequence, color_index=None):
    """Consecutive pin pairs of a walk as segments."""
    return [
        Segment(pin_from=a, pin_to=b, color_index=color_index)
        for a, b in zip(sequence[:-1], sequence[1:])
    ]


def generate_result_id(image_size, pin_count, segments):
    """Content-based result ID from geometry and committed segments."""
    content = f"{image_size}:{pin_count}:" + ";".join(
        f"{s.pin_from}-{s.pin_to}-{s.color_index}" for s in segments
    )
    return f"result_{hashlib.sha256(content.encode()).hexdigest()[:12]}"
