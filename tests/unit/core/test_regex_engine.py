"""
Tests for the RegexEngine implementation.

Tests cover:
- Basic operations
- Pattern caching
- Timeout behaviors
- Metrics tracking
"""

from unittest.mock import MagicMock, patch

import pytest

from jsonsalve.core.regex_engine import (
    IGNORECASE,
    PatternCache,
    RegexConfig,
    RegexEngine,
    RegexTimeoutError,
    TimeoutBehavior,
    get_engine,
    reset_engine,
)

# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """Create a fresh engine for each test."""
    return RegexEngine(RegexConfig(default_timeout=1.0))


@pytest.fixture(autouse=True)
def cleanup_global_engine():
    """Reset global engine after each test."""
    yield
    reset_engine()


def timing_out_pattern():
    """A compiled-pattern stand-in whose every operation times out."""
    compiled = MagicMock()
    for name in ("search", "match", "fullmatch", "finditer", "sub"):
        getattr(compiled, name).side_effect = TimeoutError("regex timed out")
    return compiled


# ============================================================================
# Basic Functionality Tests
# ============================================================================


class TestBasicOperations:
    """Test basic regex operations work correctly."""

    def test_search(self, engine):
        result = engine.search(r"\d+", "test123")
        assert result is not None
        assert result.group() == "123"

    def test_search_from_position(self, engine):
        result = engine.search(r"\d", "1a2", pos=1)
        assert result.start() == 2

    def test_match_and_fullmatch(self, engine):
        assert engine.match(r"\d+", "123test").group() == "123"
        assert engine.match(r"\d+", "test123") is None
        assert engine.fullmatch(r"\d+", "123") is not None
        assert engine.fullmatch(r"\d+", "123x") is None

    def test_finditer_returns_list(self, engine):
        matches = engine.finditer(r"\d+", "a1b22c333")
        assert [m.group() for m in matches] == ["1", "22", "333"]

    def test_sub(self, engine):
        assert engine.sub(r"\d+", "X", "test123abc456") == "testXabcX"
        assert engine.sub(r"\d+", "X", "test123abc456", count=1) == "testXabc456"

    def test_sub_with_callable(self, engine):
        result = engine.sub(r"\d+", lambda m: str(int(m.group()) * 2), "a2b10")
        assert result == "a4b20"

    def test_flags(self, engine):
        assert engine.search(r"TEST", "test123", flags=IGNORECASE) is not None
        assert engine.search(r"TEST", "test123") is None


# ============================================================================
# Cache Tests
# ============================================================================


class TestPatternCache:
    """Test compiled pattern caching."""

    def test_cache_hit_and_miss(self, engine):
        engine.search(r"abc", "abc")
        engine.search(r"abc", "xabc")

        metrics = engine.get_metrics()
        assert metrics.cache_misses == 1
        assert metrics.cache_hits == 1

    def test_flags_are_part_of_key(self, engine):
        engine.compile(r"abc")
        engine.compile(r"abc", IGNORECASE)
        assert engine.cache.size() == 2

    def test_lru_eviction(self):
        cache = PatternCache(maxsize=2)
        cache.put("a", 0, "A")
        cache.put("b", 0, "B")
        cache.get("a", 0)
        cache.put("c", 0, "C")

        assert cache.get("a", 0) == "A"
        assert cache.get("b", 0) is None
        assert cache.size() == 2

    def test_clear_cache(self, engine):
        engine.compile(r"abc")
        engine.clear_cache()
        assert engine.cache.size() == 0

    def test_cache_disabled(self):
        engine = RegexEngine(RegexConfig(cache_enabled=False))
        assert engine.cache is None
        assert engine.search(r"a", "a") is not None


# ============================================================================
# Timeout Tests
# ============================================================================


class TestTimeoutBehavior:
    """Test the policies applied when a pattern times out."""

    def test_raise_exception(self):
        engine = RegexEngine(
            RegexConfig(timeout_behavior=TimeoutBehavior.RAISE_EXCEPTION)
        )
        with patch.object(engine, "compile", return_value=timing_out_pattern()):
            with pytest.raises(RegexTimeoutError) as exc_info:
                engine.search(r"(a+)+b", "aaaa", timeout=0.5)

        assert exc_info.value.operation == "search"
        assert exc_info.value.timeout == 0.5
        assert exc_info.value.input_length == 4

    def test_return_original(self):
        engine = RegexEngine(
            RegexConfig(timeout_behavior=TimeoutBehavior.RETURN_ORIGINAL)
        )
        with patch.object(engine, "compile", return_value=timing_out_pattern()):
            assert engine.search(r"x", "text") is None
            assert engine.match(r"x", "text") is None
            assert engine.fullmatch(r"x", "text") is None
            assert engine.finditer(r"x", "text") == []
            assert engine.sub(r"x", "y", "text") == "text"

    def test_log_and_continue_is_default(self, caplog):
        engine = RegexEngine()
        assert engine.config.timeout_behavior is TimeoutBehavior.LOG_AND_CONTINUE

        with patch.object(engine, "compile", return_value=timing_out_pattern()):
            with caplog.at_level("WARNING", logger="jsonsalve.core.regex_engine"):
                assert engine.sub(r"x", "y", "text") == "text"

        assert "timed out" in caplog.text

    def test_timeouts_are_counted(self):
        engine = RegexEngine(
            RegexConfig(timeout_behavior=TimeoutBehavior.RETURN_ORIGINAL)
        )
        with patch.object(engine, "compile", return_value=timing_out_pattern()):
            engine.search(r"slow", "text")
            engine.search(r"slow", "text")

        metrics = engine.get_metrics()
        assert metrics.timeouts == 2
        assert metrics.timeout_patterns == {"slow": 2}
        assert metrics.get_timeout_rate() == 100.0

    def test_timeout_passed_to_regex(self, engine):
        compiled = MagicMock()
        compiled.search.return_value = None
        with patch.object(engine, "compile", return_value=compiled):
            engine.search(r"x", "text", timeout=0.25)
            engine.search(r"x", "text")

        assert compiled.search.call_args_list[0].kwargs["timeout"] == 0.25
        assert compiled.search.call_args_list[1].kwargs["timeout"] == 1.0

    def test_error_message_truncates_pattern(self):
        error = RegexTimeoutError("a" * 150, 10, 1.0)
        assert "a" * 100 + "..." in str(error)


# ============================================================================
# Global Engine Tests
# ============================================================================


class TestGlobalEngine:
    """Test the shared engine instance."""

    def test_get_engine_is_singleton(self):
        assert get_engine() is get_engine()

    def test_reset_engine(self):
        first = get_engine()
        reset_engine()
        assert get_engine() is not first

    def test_config_only_used_on_first_call(self):
        first = get_engine(RegexConfig(default_timeout=2.0))
        second = get_engine(RegexConfig(default_timeout=5.0))
        assert second is first
        assert second.config.default_timeout == 2.0


class TestMetrics:
    """Test metrics collection."""

    def test_operations_counted(self, engine):
        engine.search(r"a", "a")
        engine.sub(r"a", "b", "a")
        assert engine.get_metrics().total_operations == 2

    def test_metrics_disabled(self):
        engine = RegexEngine(RegexConfig(enable_metrics=False))
        engine.search(r"a", "a")
        assert engine.get_metrics() is None

    def test_timeout_rate_without_operations(self, engine):
        assert engine.get_metrics().get_timeout_rate() == 0.0
