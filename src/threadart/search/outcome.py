"""Common return type of the search strategies."""

from dataclasses import dataclass, field
from typing import List, Optional

from threadart.models import Segment, StopReason, Strategy


@dataclass
class SearchOutcome:
    """
    What a strategy hands back to the pipeline.

    ``buffers`` holds the final per-color images the search worked against
    (residual fields, or the rendered ink of the best genome) for hosts that
    want to display them.
    """
    strategy: Strategy
    stop_reason: StopReason
    sequence: List[int] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    steps: int = 0
    best_fitness: Optional[float] = None
    fitness_history: List[float] = field(default_factory=list)
    buffers: list = field(default_factory=list)

    @property
    def lines(self):
        return len(self.segments)
