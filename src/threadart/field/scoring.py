"""
Line scoring against a residual field.

A line's score is the ink demand left under it plus a run bonus, divided by
its pixel count:

    score = (sum(max(residual, 0)) + sum(streak_length ** 2)) / pixel_count

A streak is a maximal run of consecutive pixels whose target is darker than
``run_dark_threshold`` and whose residual is still above
``run_residual_threshold``. Only streaks longer than one pixel count. A streak
still open at the end of the line is closed there.

Scoring is vectorized over bundles of lines so a whole fan of candidates is
evaluated in a handful of numpy calls.
"""

import numpy as np


def score_bundle(residual_values, target_values, starts, lengths, scoring):
    """
    Score several lines at once.

    ``residual_values`` and ``target_values`` are the field values gathered
    at the concatenated pixels of all lines; ``starts``/``lengths`` delimit
    each line. Returns one float64 score per line.
    """
    residual_values = np.asarray(residual_values, dtype=np.float64)
    n_lines = len(lengths)
    if n_lines == 0:
        return np.empty(0, dtype=np.float64)

    demand = np.add.reduceat(np.maximum(residual_values, 0.0), starts)
    bonus = run_bonus(residual_values, target_values, starts, lengths, scoring)

    return (demand + bonus) / lengths


def run_bonus(residual_values, target_values, starts, lengths, scoring):
    """Sum of squared streak lengths (streaks longer than one pixel) per line."""
    n_lines = len(lengths)
    in_run = (np.asarray(target_values) < scoring.run_dark_threshold) & (
        np.asarray(residual_values) > scoring.run_residual_threshold
    )
    if not in_run.any():
        return np.zeros(n_lines, dtype=np.float64)

    # A streak starts wherever the condition holds and did not hold on the
    # previous pixel of the same line.
    previous = np.empty_like(in_run)
    previous[1:] = in_run[:-1]
    previous[starts] = False
    run_starts = in_run & ~previous

    run_ids = np.cumsum(run_starts) - 1
    run_lengths = np.bincount(run_ids[in_run])

    line_ids = np.repeat(np.arange(n_lines), lengths)
    run_lines = line_ids[run_starts]

    contributions = np.where(run_lengths > 1, run_lengths.astype(np.float64) ** 2, 0.0)
    return np.bincount(run_lines, weights=contributions, minlength=n_lines)


def score_line(residual_values, target_values, scoring):
    """Score a single line from its gathered pixel values."""
    n = len(residual_values)
    if n == 0:
        return 0.0
    starts = np.zeros(1, dtype=np.int64)
    lengths = np.array([n], dtype=np.int64)
    return float(score_bundle(residual_values, target_values, starts, lengths, scoring)[0])
