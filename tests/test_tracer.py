"""Tests for the tracer module."""

import json

import numpy as np
import pytest


class TestSummarize:
    """Tests for object summarization."""

    def test_numpy_array_summary(self):
        from threadart.tracer import summarize

        summary = summarize(np.zeros((60, 60), dtype=np.float32))

        assert "ndarray" in summary
        assert "60x60" in summary
        assert "float32" in summary

    def test_summary_capped_length(self):
        from threadart.tracer import summarize

        large_dict = {f"key_{i}": i for i in range(100)}

        assert len(summarize(large_dict, max_len=40)) <= 40

    def test_engine_objects_describe_themselves(self, small_cache):
        from threadart.tracer import summarize

        summary = summarize(small_cache)

        assert summary.startswith("LineCache(")
        assert "pins=24" in summary

    def test_line_bundle_summary(self, small_cache):
        from threadart.tracer import summarize

        fan = small_cache.fan(0)

        assert summarize(fan) == f"LineBundle(lines=19,pixels={int(fan.lengths.sum())})"

    def test_enum_summary(self):
        from threadart.models import StopReason
        from threadart.tracer import summarize

        assert summarize(StopReason.STAGNATION) == "stagnation"

    def test_pydantic_model_summary(self):
        from threadart.models import Segment
        from threadart.tracer import summarize

        assert "Segment" in summarize(Segment(pin_from=1, pin_to=9))

    def test_scalars(self):
        from threadart.tracer import summarize

        assert summarize(None) == "None"
        assert summarize(3) == "3"
        assert summarize(0.123456) == "0.1235"
        assert summarize(np.float64(2.5)) == "2.5"


class TestTracerOutput:
    """Tests for span, event and progress output."""

    def test_span_nesting(self, capsys):
        from threadart.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO")
        tracer = get_tracer()

        with tracer.span("outer", module="test"):
            with tracer.span("inner", module="test"):
                tracer.event("inside")

        configure_tracer(enabled=False)
        lines = capsys.readouterr().err.strip().split("\n")

        assert len(lines) == 5
        assert "test:outer  start" in lines[0]
        assert "    test:inner  inside" in lines[2]
        assert "end ok" in lines[-1]

    def test_disabled_tracer_is_silent(self, capsys):
        from threadart.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=False)
        tracer = get_tracer()

        with tracer.span("test", module="test"):
            tracer.event("should not appear")

        assert capsys.readouterr().err == ""

    def test_progress_only_at_debug(self, capsys):
        from threadart.tracer import configure_tracer, get_tracer

        tracer = get_tracer()

        configure_tracer(enabled=True, level="INFO")
        tracer.progress("greedy", 100, lines=100)
        assert capsys.readouterr().err == ""

        configure_tracer(enabled=True, level="DEBUG")
        tracer.progress("greedy", 100, lines=100)
        configure_tracer(enabled=False)

        err = capsys.readouterr().err
        assert "greedy checkpoint step=100" in err
        assert "lines=100" in err

    def test_json_records(self, capsys):
        from threadart.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO", json_output=True)
        get_tracer().event("hello", pins=24)
        configure_tracer(enabled=False)

        lines = capsys.readouterr().err.strip().split("\n")
        record = json.loads(lines[1])

        assert record["message"] == "hello pins=24"
        assert record["meta"] == {"pins": "24"}

    def test_unknown_level_rejected(self):
        from threadart.tracer import configure_tracer

        with pytest.raises(ValueError):
            configure_tracer(enabled=True, level="LOUD")
        configure_tracer(enabled=False)

    def test_failed_span_reraises(self, capsys):
        from threadart.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO")
        with pytest.raises(ValueError):
            with get_tracer().span("work", module="test"):
                raise ValueError("boom")
        configure_tracer(enabled=False)

        assert "failed" in capsys.readouterr().err


class TestTraceDecorator:
    """Tests for the @trace decorator."""

    def test_decorator_runs_function(self):
        from threadart.tracer import configure_tracer, trace

        configure_tracer(enabled=False)

        @trace(label="double")
        def double(x):
            return x * 2

        assert double(5) == 10

    def test_decorator_with_exception(self):
        from threadart.tracer import configure_tracer, trace

        configure_tracer(enabled=True, level="ERROR")

        @trace(label="failing_func")
        def failing_func():
            raise ValueError("test error")

        with pytest.raises(ValueError):
            failing_func()
        configure_tracer(enabled=False)
