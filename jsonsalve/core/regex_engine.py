"""
Regex engine with timeout protection for the repair heuristics.

Every repair rule is a regular expression run against untrusted text, so a
single pathological input could otherwise stall the whole pipeline through
catastrophic backtracking. This module runs patterns through the ``regex``
module, which supports a per-call timeout natively, and:
- Caches compiled patterns
- Applies a configurable policy when a pattern times out
- Tracks simple metrics for monitoring
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

import regex

# Flags re-exported so rule modules do not need to import regex directly
IGNORECASE = regex.IGNORECASE
MULTILINE = regex.MULTILINE
DOTALL = regex.DOTALL

Match = Any  # regex.Match is not subscriptable on every supported release
Replacement = Union[str, Callable[[Any], str]]


class TimeoutBehavior(Enum):
    """Defines behavior when a regex operation times out."""

    RAISE_EXCEPTION = "raise"  # Raise RegexTimeoutError
    RETURN_ORIGINAL = "original"  # Return input unchanged / no match
    LOG_AND_CONTINUE = "log"  # Log error, then behave like RETURN_ORIGINAL


@dataclass
class RegexConfig:
    """Configuration for regex engine behavior."""

    default_timeout: float = 1.0  # Seconds per operation
    timeout_behavior: TimeoutBehavior = TimeoutBehavior.LOG_AND_CONTINUE

    cache_size: int = 256
    cache_enabled: bool = True

    enable_metrics: bool = True

    logger: Optional[logging.Logger] = None


class RegexTimeoutError(Exception):
    """Raised when a regex operation exceeds its timeout."""

    def __init__(
        self,
        pattern: str,
        input_length: int,
        timeout: float,
        operation: str = "search",
    ):
        self.pattern = pattern
        self.input_length = input_length
        self.timeout = timeout
        self.operation = operation

        pattern_display = pattern[:100] + "..." if len(pattern) > 100 else pattern
        message = (
            f"Regex {operation} timed out after {timeout}s\n"
            f"Pattern: {pattern_display}\n"
            f"Input length: {input_length} chars"
        )
        super().__init__(message)


@dataclass
class RegexMetrics:
    """Tracks regex operation statistics."""

    total_operations: int = 0
    timeouts: int = 0
    cache_hits: int = 0
    cache_misses: int = 0

    # Pattern -> timeout count
    timeout_patterns: dict[str, int] = field(default_factory=dict)

    _lock: threading.RLock = field(default_factory=threading.RLock)

    def record_operation(self) -> None:
        """Record a regex operation."""
        with self._lock:
            self.total_operations += 1

    def record_timeout(self, pattern: str) -> None:
        """Record a timeout event."""
        with self._lock:
            self.timeouts += 1
            self.timeout_patterns[pattern] = self.timeout_patterns.get(pattern, 0) + 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_misses += 1

    def get_timeout_rate(self) -> float:
        """Get percentage of operations that timed out."""
        with self._lock:
            if self.total_operations == 0:
                return 0.0
            return (self.timeouts / self.total_operations) * 100.0


class PatternCache:
    """Thread-safe LRU cache for compiled regex patterns."""

    def __init__(self, maxsize: int = 256):
        self.maxsize = maxsize
        self._lock = threading.RLock()
        self._cache: "OrderedDict[tuple[str, int], Any]" = OrderedDict()

    def get(self, pattern: str, flags: int) -> Optional[Any]:
        """Get cached compiled pattern."""
        key = (pattern, flags)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]
            return None

    def put(self, pattern: str, flags: int, compiled: Any) -> None:
        """Add compiled pattern to cache."""
        key = (pattern, flags)
        with self._lock:
            self._cache[key] = compiled
            self._cache.move_to_end(key)
            while len(self._cache) > self.maxsize > 0:
                self._cache.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


class RegexEngine:
    """
    Regex engine with pattern caching and timeout protection.

    This is the interface every repair rule uses to run its patterns.
    """

    def __init__(self, config: Optional[RegexConfig] = None):
        self.config = config or RegexConfig()
        self.cache = (
            PatternCache(self.config.cache_size) if self.config.cache_enabled else None
        )
        self.metrics = RegexMetrics() if self.config.enable_metrics else None
        self.logger = self.config.logger or logging.getLogger(__name__)

    def compile(self, pattern: str, flags: int = 0) -> Any:
        """Get compiled pattern from cache or compile a new one."""
        if self.cache:
            cached = self.cache.get(pattern, flags)
            if cached is not None:
                if self.metrics:
                    self.metrics.record_cache_hit()
                return cached

        if self.metrics:
            self.metrics.record_cache_miss()

        compiled = regex.compile(pattern, flags)
        if self.cache:
            self.cache.put(pattern, flags, compiled)
        return compiled

    def _timeout(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self.config.default_timeout

    def search(
        self,
        pattern: str,
        string: str,
        flags: int = 0,
        pos: int = 0,
        timeout: Optional[float] = None,
    ) -> Optional[Match]:
        """
        Search for pattern in string with timeout protection.

        Args:
            pattern: Regex pattern string
            string: Input string to search
            flags: Regex flags (IGNORECASE, MULTILINE, ...)
            pos: Offset to start searching from
            timeout: Timeout in seconds (None = use default)

        Returns:
            Match object if found, None otherwise (also None on a tolerated timeout)

        Raises:
            RegexTimeoutError: If operation times out and the config says to raise
        """
        compiled = self.compile(pattern, flags)
        self._record_operation()
        try:
            return compiled.search(string, pos, timeout=self._timeout(timeout))
        except TimeoutError:
            return self._handle_timeout(pattern, string, "search", timeout)

    def match(
        self,
        pattern: str,
        string: str,
        flags: int = 0,
        timeout: Optional[float] = None,
    ) -> Optional[Match]:
        """Match pattern at start of string."""
        compiled = self.compile(pattern, flags)
        self._record_operation()
        try:
            return compiled.match(string, timeout=self._timeout(timeout))
        except TimeoutError:
            return self._handle_timeout(pattern, string, "match", timeout)

    def fullmatch(
        self,
        pattern: str,
        string: str,
        flags: int = 0,
        timeout: Optional[float] = None,
    ) -> Optional[Match]:
        """Match pattern against the whole string."""
        compiled = self.compile(pattern, flags)
        self._record_operation()
        try:
            return compiled.fullmatch(string, timeout=self._timeout(timeout))
        except TimeoutError:
            return self._handle_timeout(pattern, string, "fullmatch", timeout)

    def finditer(
        self,
        pattern: str,
        string: str,
        flags: int = 0,
        timeout: Optional[float] = None,
    ) -> list[Match]:
        """Return all non-overlapping matches; an empty list on a tolerated timeout."""
        compiled = self.compile(pattern, flags)
        self._record_operation()
        try:
            return list(compiled.finditer(string, timeout=self._timeout(timeout)))
        except TimeoutError:
            self._handle_timeout(pattern, string, "finditer", timeout)
            return []

    def sub(
        self,
        pattern: str,
        repl: Replacement,
        string: str,
        count: int = 0,
        flags: int = 0,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Replace pattern matches in string with timeout protection.

        Returns the original string on a tolerated timeout.
        """
        compiled = self.compile(pattern, flags)
        self._record_operation()
        try:
            return compiled.sub(repl, string, count, timeout=self._timeout(timeout))
        except TimeoutError:
            self._handle_timeout(pattern, string, "sub", timeout)
            return string

    def _record_operation(self) -> None:
        if self.metrics:
            self.metrics.record_operation()

    def _handle_timeout(
        self, pattern: str, string: str, operation: str, timeout: Optional[float]
    ) -> None:
        """Handle timeout according to configured behavior."""
        if self.metrics:
            self.metrics.record_timeout(pattern)

        behavior = self.config.timeout_behavior
        if behavior == TimeoutBehavior.RAISE_EXCEPTION:
            raise RegexTimeoutError(
                pattern, len(string), self._timeout(timeout), operation
            )
        if behavior == TimeoutBehavior.LOG_AND_CONTINUE:
            self.logger.warning(
                "Regex %s timed out on pattern: %s", operation, pattern[:50]
            )
        return None

    def get_metrics(self) -> Optional[RegexMetrics]:
        """Get current metrics (if enabled)."""
        return self.metrics

    def clear_cache(self) -> None:
        """Clear the pattern cache."""
        if self.cache:
            self.cache.clear()


_global_engine: Optional[RegexEngine] = None
_global_engine_lock = threading.RLock()


def get_engine(config: Optional[RegexConfig] = None) -> RegexEngine:
    """
    Get or create the global RegexEngine instance.

    Args:
        config: Optional configuration. Only used on first call.

    Returns:
        Global RegexEngine instance
    """
    global _global_engine

    if _global_engine is None:
        with _global_engine_lock:
            if _global_engine is None:
                _global_engine = RegexEngine(config)

    return _global_engine


def reset_engine() -> None:
    """Reset the global engine (mainly for testing)."""
    global _global_engine
    with _global_engine_lock:
        _global_engine = None
