"""
Hierarchical runtime tracing for the thread art engine.

Nested spans with timing, one-off events and search checkpoint lines. This is
the logging layer for every stage: geometry precomputation, target derivation
and the search loops all report through the global tracer.
"""

import functools
import hashlib
import json
import sys
import time
from collections import namedtuple
from contextlib import contextmanager
from datetime import datetime
from enum import Enum


LEVELS = {"ERROR": 0, "WARN": 1, "INFO": 2, "DEBUG": 3}

# One open span: what it is called, where it lives and when it started
_Span = namedtuple("_Span", ["name", "module", "started"])


class TracerConfig:
    """Where and how much the tracer writes."""

    def __init__(self):
        self.enabled = False
        self.level = "INFO"
        self.file_path = None
        self.json_output = False
        self._file_handle = None

    def configure(self, enabled=False, level="INFO", file_path=None, json_output=False):
        """Apply new settings, reopening the log file if one is requested."""
        self.close()

        level = level.upper()
        if level not in LEVELS:
            raise ValueError(f"Unknown trace level '{level}', expected one of {list(LEVELS)}")

        self.enabled = enabled
        self.level = level
        self.file_path = file_path
        self.json_output = json_output

        if enabled and file_path:
            self._file_handle = open(file_path, "w", encoding="utf-8")

    def close(self):
        if self._file_handle is not None:
            self._file_handle.close()
            self._file_handle = None


class Tracer:
    """
    Span-based tracer.

    Lines are written to stderr (and optionally a file) as
    ``HH:MM:SS.mmm LEVEL <indent>module:function  message``. With JSON output
    on, each line is followed by a JSON record with the same fields plus the
    summarized metadata.
    """

    def __init__(self):
        self.config = TracerConfig()
        self._spans = []

    @property
    def depth(self):
        return len(self._spans)

    def is_enabled(self, level="INFO"):
        return self.config.enabled and LEVELS.get(level, 2) <= LEVELS[self.config.level]

    def _emit(self, line):
        print(line, file=sys.stderr)
        handle = self.config._file_handle
        if handle is not None:
            handle.write(line + "\n")
            handle.flush()

    def _write(self, level, module, func, message, meta=None):
        if not self.is_enabled(level):
            return

        now = datetime.now()
        timestamp = f"{now:%H:%M:%S}.{now.microsecond // 1000:03d}"
        location = f"{module}:{func}" if func else module
        self._emit(f"{timestamp} {level:<5} {'  ' * self.depth}{location}  {message}")

        if self.config.json_output:
            self._emit(json.dumps({
                "timestamp": timestamp,
                "level": level,
                "depth": self.depth,
                "module": module,
                "function": func,
                "message": message,
                "meta": {k: summarize(v) for k, v in (meta or {}).items()},
            }))

    @staticmethod
    def _format_meta(message, meta):
        parts = [message] + [f"{k}={summarize(v)}" for k, v in meta.items()]
        return " ".join(p for p in parts if p)

    def _finish(self):
        span = self._spans.pop()
        return span, (time.perf_counter() - span.started) * 1000

    @contextmanager
    def span(self, name, module="", **meta):
        """
        Trace a block of work.

        Logs ``start`` with summarized metadata on entry and ``end ok`` or
        ``failed`` with the elapsed time on exit. Exceptions propagate.
        """
        if not self.config.enabled:
            yield
            return

        self._write("INFO", module, name, self._format_meta("start", meta), meta)
        self._spans.append(_Span(name, module, time.perf_counter()))

        try:
            yield
        except Exception as e:
            _, elapsed = self._finish()
            self._write("ERROR", module, name, f"failed dt={elapsed:.0f}ms error={type(e).__name__}: {str(e)[:100]}")
            raise

        _, elapsed = self._finish()
        self._write("INFO", module, name, f"end ok dt={elapsed:.0f}ms", {"elapsed_ms": elapsed})

    def event(self, message, level="INFO", **meta):
        """Log a message inside the innermost open span."""
        if not self.is_enabled(level):
            return

        if self._spans:
            module, func = self._spans[-1].module, self._spans[-1].name
        else:
            module, func = "", ""
        self._write(level, module, func, self._format_meta(message, meta), meta)

    def progress(self, strategy, step, **meta):
        """Log a search checkpoint at DEBUG level."""
        self.event(f"{strategy} checkpoint step={step}", level="DEBUG", **meta)


def summarize(obj, max_len=200):
    """
    Compact one-line description of an object for log output.

    Never longer than ``max_len`` and never raises.
    """
    try:
        result = _summarize_impl(obj)
    except Exception:
        return f"<{type(obj).__name__}>"
    if len(result) > max_len:
        return result[:max_len - 3] + "..."
    return result


def _digest(data):
    return hashlib.md5(data).hexdigest()[:8]


def _summarize_array(arr):
    shape = "x".join(str(s) for s in arr.shape)
    # Hash small buffers by content so identical fields log identically
    if 0 < arr.size <= 4096:
        return f"ndarray({arr.dtype},{shape},h={_digest(arr.tobytes())})"
    if arr.size and arr.dtype.kind in "biuf":
        return f"ndarray({arr.dtype},{shape},min={arr.min():.4g},max={arr.max():.4g})"
    return f"ndarray({arr.dtype},{shape})"


def _summarize_sequence(obj):
    type_name = type(obj).__name__
    if hasattr(obj, "_fields"):
        # namedtuples such as LineBundle
        lengths = getattr(obj, "lengths", None)
        if lengths is not None:
            return f"{type_name}(lines={len(lengths)},pixels={int(sum(lengths))})"
        return f"{type_name}({','.join(obj._fields)})"
    if not obj:
        return f"{type_name}(len=0)"
    return f"{type_name}(len={len(obj)},first={type(obj[0]).__name__})"


def _summarize_impl(obj):
    if obj is None:
        return "None"

    type_name = type(obj).__name__

    if isinstance(obj, Enum):
        return str(obj.value)

    import numpy as np
    if isinstance(obj, np.ndarray):
        return _summarize_array(obj)
    if isinstance(obj, np.generic):
        return str(obj.item())

    import networkx as nx
    if isinstance(obj, nx.Graph):
        return f"{type_name}(nodes={obj.number_of_nodes()},edges={obj.number_of_edges()})"

    from pydantic import BaseModel
    if isinstance(obj, BaseModel):
        fields = list(type(obj).model_fields.keys())[:3]
        return f"{type_name}(fields={fields}...)"

    # Engine objects describe themselves
    if hasattr(obj, "trace_summary"):
        return obj.trace_summary()

    if isinstance(obj, str):
        if len(obj) > 50:
            return f"str(len={len(obj)},h={_digest(obj.encode())})"
        return repr(obj)

    if isinstance(obj, bytes):
        return f"bytes(len={len(obj)},h={_digest(obj)})"

    if isinstance(obj, (list, tuple)):
        return _summarize_sequence(obj)

    if isinstance(obj, dict):
        keys_str = ",".join(str(k) for k in list(obj.keys())[:5])
        return f"dict(len={len(obj)},keys=[{keys_str}])"

    if isinstance(obj, float):
        return f"{obj:.4g}"

    if isinstance(obj, int):
        return str(obj)

    return f"<{type_name}>"


def trace(label=None, arg_names=None):
    """
    Decorator wrapping a function call in a span.

    ``arg_names`` selects keyword arguments to summarize in the start line.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _tracer.config.enabled:
                return func(*args, **kwargs)

            func_module = func.__module__.split(".")[-1] if func.__module__ else ""
            meta = {name: kwargs[name] for name in (arg_names or []) if name in kwargs}

            with _tracer.span(label or func.__name__, module=func_module, **meta):
                return func(*args, **kwargs)

        return wrapper
    return decorator


_tracer = Tracer()


def get_tracer():
    """Get the global tracer instance."""
    return _tracer


def configure_tracer(enabled=False, level="INFO", file_path=None, json_output=False):
    """Configure the global tracer."""
    _tracer.config.configure(
        enabled=enabled,
        level=level,
        file_path=file_path,
        json_output=json_output,
    )
