"""Tests for the configuration registry and module-level settings."""

import io
import sys

import pytest

import spanlog
from spanlog.config import Registry, get_registry, set_registry
from spanlog.filters import FilterSet
from spanlog.logger import create_logger
from spanlog.sink import Sink


@pytest.fixture
def make_registry():
    """Factory for registries from an environment dict, with quiet sinks."""
    created = []

    def _make(env):
        """Build a registry from ``env`` and remember it for cleanup."""
        reg = Registry.from_env(env, sink=Sink(stream=io.StringIO()))
        created.append(reg)
        return reg

    yield _make
    for reg in created:
        reg.sink.close()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove spanlog environment variables for the duration of a test."""
    for name in ("LOG_LEVEL", "DEBUG", "TRACE", "TRACE_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Environment
# =============================================================================


class TestFromEnv:
    """Tests for building a registry from environment variables."""

    def test_defaults(self, make_registry):
        """Verifies an empty environment gives the documented defaults.

        Arrangement:
        Empty environment dict.

        Action:
        Registry.from_env({}).

        Assertion Strategy:
        info threshold, spans off, no filters, console format.

        Testing Principle:
        Validates an unconfigured program logs info and above only.
        """
        reg = make_registry({})
        assert reg.get_log_level() == "info"
        assert not reg.spans_enabled
        assert reg.get_trace_filter() is None
        assert reg.get_debug_filter() is None
        assert not reg.json_format

    def test_log_level(self, make_registry):
        """Verifies LOG_LEVEL is read case-insensitively.

        Arrangement:
        LOG_LEVEL=WARN.

        Action:
        Build the registry.

        Assertion Strategy:
        Threshold "warn".

        Testing Principle:
        Validates the environment sets the threshold.
        """
        assert make_registry({"LOG_LEVEL": "WARN"}).get_log_level() == "warn"

    def test_unknown_log_level_falls_back(self, make_registry):
        """Verifies an unknown LOG_LEVEL falls back to info.

        Arrangement:
        LOG_LEVEL=verbose.

        Action:
        Build the registry.

        Assertion Strategy:
        Threshold "info", no exception.

        Testing Principle:
        Validates environment parsing is lenient.
        """
        assert make_registry({"LOG_LEVEL": "verbose"}).get_log_level() == "info"

    @pytest.mark.parametrize("value", ["1", "true", "TRUE"])
    def test_trace_flag_enables_spans(self, make_registry, value):
        """Verifies boolean TRACE values enable spans without a filter.

        Arrangement:
        TRACE set to each boolean spelling.

        Action:
        Build the registry.

        Assertion Strategy:
        Spans enabled; trace filter None.

        Testing Principle:
        Validates TRACE=1 means "every span".
        """
        reg = make_registry({"TRACE": value})
        assert reg.spans_enabled
        assert reg.get_trace_filter() is None

    def test_trace_list_sets_filter(self, make_registry):
        """Verifies TRACE=a,b enables spans for those namespaces only.

        Arrangement:
        1. TRACE lists two namespaces with stray whitespace.

        Action:
        Build registry; ask should_emit_span for several namespaces.

        Assertion Strategy:
        Spans on; listed namespaces and descendants pass, others don't.

        Testing Principle:
        Validates environment parsing reaches the span filter intact.
        """
        reg = make_registry({"TRACE": "myapp, other"})
        assert reg.spans_enabled
        assert sorted(reg.get_trace_filter()) == ["myapp", "other"]
        assert reg.should_emit_span("myapp:import")
        assert reg.should_emit_span("other")
        assert not reg.should_emit_span("third")

    def test_debug_lowers_threshold(self, make_registry):
        """Verifies DEBUG sets the debug filter and lowers the threshold.

        Arrangement:
        DEBUG with an include and an exclude; LOG_LEVEL=error.

        Action:
        Build the registry.

        Assertion Strategy:
        Threshold "debug"; filter reads back both patterns.

        Testing Principle:
        Validates DEBUG=ns shows debug output for ns regardless of LOG_LEVEL.
        """
        reg = make_registry({"DEBUG": "myapp,-myapp:noisy", "LOG_LEVEL": "error"})
        assert reg.get_log_level() == "debug"
        assert sorted(reg.get_debug_filter()) == ["-myapp:noisy", "myapp"]

    def test_debug_keeps_trace_threshold(self, make_registry):
        """Verifies DEBUG never raises a trace threshold to debug.

        Arrangement:
        DEBUG=* with LOG_LEVEL=trace.

        Action:
        Build the registry.

        Assertion Strategy:
        Threshold stays "trace".

        Testing Principle:
        Validates DEBUG only ever lowers the threshold.
        """
        reg = make_registry({"DEBUG": "*", "LOG_LEVEL": "trace"})
        assert reg.get_log_level() == "trace"

    @pytest.mark.parametrize("value", ["*", "1", "true", "myapp,*"])
    def test_debug_wildcards_collapse(self, make_registry, value):
        """Verifies wildcard aliases in DEBUG collapse to '*'.

        Arrangement:
        DEBUG set to each wildcard spelling.

        Action:
        Build the registry.

        Assertion Strategy:
        Filter reads back ["*"] and allows anything.

        Testing Principle:
        Validates DEBUG=1 means "debug everything".
        """
        reg = make_registry({"DEBUG": value})
        assert reg.get_debug_filter() == ["*"]
        assert reg.debug_filter.allowed("anything")

    def test_trace_format_json(self, make_registry):
        """Verifies only TRACE_FORMAT=json selects JSON output.

        Arrangement:
        TRACE_FORMAT json and pretty.

        Action:
        Build a registry for each.

        Assertion Strategy:
        JSON on for "json" only.

        Testing Principle:
        Validates the single output-format switch.
        """
        assert make_registry({"TRACE_FORMAT": "json"}).json_format
        assert not make_registry({"TRACE_FORMAT": "pretty"}).json_format


# =============================================================================
# Programmatic configuration
# =============================================================================


class TestLevelThreshold:
    """Tests for set_log_level/get_log_level."""

    def test_set_and_get(self, registry):
        """Verifies the module setter updates the default registry.

        Arrangement:
        Default registry at info.

        Action:
        spanlog.set_log_level("warn").

        Assertion Strategy:
        Module getter and registry both report "warn".

        Testing Principle:
        Validates module functions delegate to the default registry.
        """
        spanlog.set_log_level("warn")
        assert spanlog.get_log_level() == "warn"
        assert registry.get_log_level() == "warn"

    def test_unknown_level_raises(self, registry):
        """Verifies programmatic configuration rejects unknown levels.

        Arrangement:
        Default registry at info.

        Action:
        spanlog.set_log_level("verbose").

        Assertion Strategy:
        ValueError raised; threshold unchanged.

        Testing Principle:
        Validates a failed call leaves configuration intact.
        """
        with pytest.raises(ValueError):
            spanlog.set_log_level("verbose")
        assert registry.get_log_level() == "info"

    def test_error_threshold_blocks_lower_levels(self, output):
        """Verifies only error passes an error threshold.

        Arrangement:
        1. Threshold error; JSON capture of output.

        Action:
        Log once at each output level.

        Assertion Strategy:
        Exactly one record, at level error.

        Testing Principle:
        Validates the threshold gate of the emission pipeline.
        """
        spanlog.set_log_level("error")
        log = create_logger("myapp")
        log.trace("t")
        log.debug("d")
        log.info("i")
        log.warn("w")
        log.error("e")
        assert [r["level"] for r in output.records] == ["error"]

    def test_silent_blocks_everything(self, output):
        """Verifies the silent threshold blocks even errors.

        Arrangement:
        Threshold silent; JSON capture.

        Action:
        Log an error.

        Assertion Strategy:
        Nothing captured.

        Testing Principle:
        Validates "silent" is a true off switch.
        """
        spanlog.set_log_level("silent")
        create_logger("myapp").error("nope")
        assert output.lines == []


class TestFilters:
    """Tests for trace and debug filter configuration."""

    def test_debug_filter_raises_threshold(self, registry):
        """Verifies setting a debug filter lowers a warn threshold to debug.

        Arrangement:
        Threshold warn.

        Action:
        set_debug_filter(["myapp"]).

        Assertion Strategy:
        Threshold "debug".

        Testing Principle:
        Validates programmatic and environment configuration agree.
        """
        spanlog.set_log_level("warn")
        spanlog.set_debug_filter(["myapp"])
        assert spanlog.get_log_level() == "debug"

    def test_debug_filter_preserves_trace(self, registry):
        """Verifies a debug filter keeps a trace threshold.

        Arrangement:
        Threshold trace.

        Action:
        set_debug_filter(["myapp"]).

        Assertion Strategy:
        Threshold still "trace".

        Testing Principle:
        Validates the filter never hides more output.
        """
        spanlog.set_log_level("trace")
        spanlog.set_debug_filter(["myapp"])
        assert spanlog.get_log_level() == "trace"

    def test_clearing_debug_filter(self, registry):
        """Verifies None clears the debug filter.

        Arrangement:
        Debug filter ["myapp"].

        Action:
        set_debug_filter(None).

        Assertion Strategy:
        Getter None; registry filter unrestricted.

        Testing Principle:
        Validates filters can be removed at runtime.
        """
        spanlog.set_debug_filter(["myapp"])
        spanlog.set_debug_filter(None)
        assert spanlog.get_debug_filter() is None
        assert registry.debug_filter.is_unrestricted

    def test_debug_filter_reads_back_excludes(self, registry):
        """Verifies excludes read back with their '-' marker.

        Arrangement:
        Debug filter ["*", "-myapp:noisy"].

        Action:
        get_debug_filter().

        Assertion Strategy:
        Both patterns returned.

        Testing Principle:
        Validates the getter mirrors the setter's format.
        """
        spanlog.set_debug_filter(["*", "-myapp:noisy"])
        assert sorted(spanlog.get_debug_filter()) == ["*", "-myapp:noisy"]

    def test_trace_filter_enables_spans(self, registry):
        """Verifies a non-empty trace filter turns spans on.

        Arrangement:
        Spans off.

        Action:
        set_trace_filter(["myapp"]).

        Assertion Strategy:
        Spans enabled; filter reads back.

        Testing Principle:
        Validates one call is enough to trace a component.
        """
        assert not spanlog.spans_are_enabled()
        spanlog.set_trace_filter(["myapp"])
        assert spanlog.spans_are_enabled()
        assert spanlog.get_trace_filter() == ["myapp"]

    def test_clearing_trace_filter_keeps_spans_state(self, registry):
        """Verifies clearing the trace filter leaves spans enabled.

        Arrangement:
        Trace filter ["myapp"] (spans on).

        Action:
        set_trace_filter([]).

        Assertion Strategy:
        Filter None; spans still enabled.

        Testing Principle:
        Validates clearing widens tracing rather than disabling it.
        """
        spanlog.set_trace_filter(["myapp"])
        spanlog.set_trace_filter([])
        assert spanlog.get_trace_filter() is None
        assert spanlog.spans_are_enabled()

    def test_enable_disable_spans(self, registry):
        """Verifies spans can be toggled.

        Arrangement:
        Default registry.

        Action:
        enable_spans() then disable_spans().

        Assertion Strategy:
        spans_enabled follows each call.

        Testing Principle:
        Validates the explicit on/off switch.
        """
        spanlog.enable_spans()
        assert registry.spans_enabled
        spanlog.disable_spans()
        assert not registry.spans_enabled

    def test_should_emit_span_needs_both_filters(self, registry):
        """Verifies spans pass only when both filters allow the namespace.

        Arrangement:
        Spans on, trace filter ["myapp"], debug filter ["-myapp:noisy"].

        Action:
        should_emit_span for allowed, excluded and untraced namespaces.

        Assertion Strategy:
        Only myapp:db passes.

        Testing Principle:
        Validates excludes in the debug filter also silence spans.
        """
        registry.enable_spans()
        registry.set_trace_filter(["myapp"])
        registry.set_debug_filter(["-myapp:noisy"])
        assert registry.should_emit_span("myapp:db")
        assert not registry.should_emit_span("myapp:noisy")
        assert not registry.should_emit_span("other")


class TestOutputMode:
    """Tests for the module-level output mode switch."""

    def test_default_is_console(self, registry):
        """Verifies a fresh registry writes log records to the console.

        Arrangement:
        Default registry.

        Action:
        get_output_mode().

        Assertion Strategy:
        "console".

        Testing Principle:
        Validates the default output destination.
        """
        assert spanlog.get_output_mode() == "console"

    def test_set_and_get(self, registry):
        """Verifies the module setter reaches the registry's sink.

        Arrangement:
        Default registry.

        Action:
        set_output_mode("writers-only").

        Assertion Strategy:
        Module getter and sink both report "writers-only".

        Testing Principle:
        Validates module functions delegate to the default registry.
        """
        spanlog.set_output_mode("writers-only")
        assert spanlog.get_output_mode() == "writers-only"
        assert registry.sink.output_mode == "writers-only"

    def test_unknown_mode_raises(self, registry):
        """Verifies unknown modes are rejected without changing state.

        Arrangement:
        Default registry in console mode.

        Action:
        set_output_mode("stdout").

        Assertion Strategy:
        ValueError naming the mode; mode still "console".

        Testing Principle:
        Validates programmatic configuration fails loudly.
        """
        with pytest.raises(ValueError, match="stdout"):
            spanlog.set_output_mode("stdout")
        assert spanlog.get_output_mode() == "console"


class TestRegistryLifecycle:
    """Tests for the default registry and reset."""

    def test_set_registry_returns_previous(self, registry):
        """Verifies set_registry swaps the default and returns the old one.

        Arrangement:
        Second registry with a quiet sink.

        Action:
        set_registry(other).

        Assertion Strategy:
        Returns the fixture registry; get_registry returns other.

        Testing Principle:
        Validates registries can be swapped and restored.
        """
        other = Registry(sink=Sink(stream=io.StringIO()))
        try:
            assert set_registry(other) is registry
            assert get_registry() is other
        finally:
            set_registry(registry)
            other.sink.close()

    def test_default_registry_built_lazily(self, registry, clean_env):
        """Verifies the default is rebuilt from the environment when dropped.

        Arrangement:
        1. LOG_LEVEL=error in the environment.
        2. Default registry dropped with set_registry(None).

        Action:
        get_registry() twice.

        Assertion Strategy:
        A new registry at "error", returned again on the second call.

        Testing Principle:
        Validates lazy initialization happens once.
        """
        clean_env.setenv("LOG_LEVEL", "error")
        set_registry(None)
        built = get_registry()
        try:
            assert built is not registry
            assert built.get_log_level() == "error"
            assert get_registry() is built
        finally:
            built.sink.close()
            set_registry(registry)

    def test_rebuilt_default_does_not_duplicate_output(self, registry, clean_env):
        """Verifies rebuilding the default registry writes each line once.

        Arrangement:
        1. sys.stderr replaced by an in-memory stream.
        2. Default registry dropped and rebuilt twice.

        Action:
        Log one info message through the latest default.

        Assertion Strategy:
        The message appears exactly once on the stream; the shared
        output logger holds a single handler.

        Testing Principle:
        Validates a new default sink takes over the handlers left by the
        previous one instead of stacking on top of them.
        """
        stderr = io.StringIO()
        clean_env.setattr(sys, "stderr", stderr)
        set_registry(None)
        get_registry()
        set_registry(None)
        built = get_registry()
        try:
            create_logger("myapp").info("hello")
            lines = [line for line in stderr.getvalue().splitlines() if "hello" in line]
            assert len(lines) == 1
            assert len(built.sink.handlers) == 1
        finally:
            built.sink.close()
            set_registry(registry)

    def test_reset(self, registry):
        """Verifies reset restores every default but keeps the sink.

        Arrangement:
        Registry with level, filters, JSON, output mode and ids changed.

        Action:
        reset().

        Assertion Strategy:
        Every setting back to default; ids restart at sp_1.

        Testing Principle:
        Validates tests can start from a known state.
        """
        registry.set_log_level("error")
        registry.set_trace_filter(["x"])
        registry.set_debug_filter(["y"])
        registry.set_json_format(True)
        registry.sink.set_output_mode("writers-only")
        registry.ids.next_span_id()
        registry.reset()
        assert registry.get_log_level() == "info"
        assert not registry.spans_enabled
        assert registry.trace_filter == FilterSet()
        assert registry.debug_filter == FilterSet()
        assert not registry.json_format
        assert registry.sink.output_mode == "console"
        assert registry.ids.next_span_id() == "sp_1"

    def test_reset_ids(self, registry):
        """Verifies reset_ids restarts span numbering.

        Arrangement:
        One span already created.

        Action:
        spanlog.reset_ids(), then create another span.

        Assertion Strategy:
        New span id is "sp_1".

        Testing Principle:
        Validates deterministic ids for tests.
        """
        create_logger("a").span("b").end()
        spanlog.reset_ids()
        assert create_logger("a").span("b").span_data.id == "sp_1"


class TestCollection:
    """Tests for span collection."""

    def test_collects_ended_spans(self, registry):
        """Verifies ended spans are collected while collection is on.

        Arrangement:
        1. Spans disabled (collection is independent of output).

        Action:
        End one span before, two during and one after collecting.

        Assertion Strategy:
        Only the two spans ended during collection are returned.

        Testing Principle:
        Validates collection captures spans for analysis even when
        nothing is written.
        """
        log = create_logger("myapp")
        log.span("before").end()
        spanlog.start_collecting()
        log.span("one").end()
        with log.span("two"):
            pass
        collected = spanlog.stop_collecting()
        log.span("after").end()

        assert [s.namespace for s in collected] == ["myapp:one", "myapp:two"]
        assert all(s.end_time is not None for s in collected)
        assert [s.namespace for s in spanlog.get_collected_spans()] == [
            "myapp:one",
            "myapp:two",
        ]

    def test_start_clears_previous(self, registry):
        """Verifies starting collection discards earlier spans.

        Arrangement:
        One span collected.

        Action:
        start_collecting() again.

        Assertion Strategy:
        Collected list is empty.

        Testing Principle:
        Validates each collection run starts clean.
        """
        spanlog.start_collecting()
        create_logger("a").span().end()
        spanlog.start_collecting()
        assert spanlog.get_collected_spans() == []

    def test_clear(self, registry):
        """Verifies clear_collected_spans empties the buffer.

        Arrangement:
        One span collected.

        Action:
        clear_collected_spans(), then stop_collecting().

        Assertion Strategy:
        Nothing returned.

        Testing Principle:
        Validates the buffer can be drained mid-run.
        """
        spanlog.start_collecting()
        create_logger("a").span().end()
        spanlog.clear_collected_spans()
        assert spanlog.stop_collecting() == []
