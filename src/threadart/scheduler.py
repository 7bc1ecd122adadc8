"""
Cooperative scheduling for the search loops.

Searches run synchronously and are advanced one ``step()`` at a time. The
driver hands control back to the host every ``every`` steps: it reports
progress through an optional callback and honours a cancellation token.
Cancelling never rolls anything back; the partial result stays valid.
"""

import threading

from threadart.models import StopReason
from threadart.tracer import get_tracer


class CancelToken:
    """Thread-safe cancellation flag checked at every yield point."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


def drive(search, every, progress=None, cancel=None):
    """
    Run ``search`` to completion.

    ``search`` provides ``step()`` (returns False once finished),
    ``progress_update()`` and ``stop(reason)``. Returns the number of steps
    taken by this call.
    """
    tracer = get_tracer()
    steps = 0

    if cancel is not None and cancel.cancelled:
        search.stop(StopReason.CANCELLED)
        return steps

    while search.step():
        steps += 1
        if steps % every:
            continue

        update = search.progress_update()
        tracer.progress(update.strategy.value, update.step, lines=update.lines,
                        score=update.best_score, fitness=update.best_fitness)
        if progress is not None:
            progress(update)
        if cancel is not None and cancel.cancelled:
            tracer.event(f"Cancelled after {steps} steps", level="WARN")
            search.stop(StopReason.CANCELLED)
            break

    if progress is not None:
        progress(search.progress_update().model_copy(update={"finished": True}))

    return steps
