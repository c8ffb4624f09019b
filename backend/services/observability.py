"""
Module: observability.py
Description: Logging and metrics tracking for the Smart Budget Assistant.

Features:
    - Structured logging with key=value context
    - Timing decorator for performance monitoring
    - In-memory counters and timing histograms
    - Chat pipeline event helpers (bypass, rate limit, cache, fallback, LLM)

Usage:
    from services.observability import logger, metrics, timed

    @timed("summary.build")
    def build(user_id):
        logger.info("Building summary", user_id=user_id)
        ...

Author: Smart Budget Team
"""

import asyncio
import time
import logging
import functools
from datetime import datetime
from typing import Dict, Any, Optional, Callable
from collections import defaultdict


# =============================================================================
# Structured Logger
# =============================================================================

class StructuredLogger:
    """
    Thin wrapper over stdlib logging that appends key=value fields.
    """

    def __init__(self, name: str = "smart-budget-assistant"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s | %(levelname)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _format_message(self, message: str, **kwargs) -> str:
        if kwargs:
            field_str = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {field_str}"
        return message

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(self._format_message(message, **kwargs))

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Simple in-memory metrics collection for monitoring and debugging.

    Collects:
        - Counters (requests, fallbacks, cache hits, LLM errors)
        - Gauges (cache and limiter sizes after each sweep)
        - Timings (summary build and LLM latency)

    Note: In production, replace with Prometheus/StatsD/DataDog client.
    """

    MAX_TIMING_SAMPLES = 1000

    def __init__(self):
        self.counters: Dict[str, int] = defaultdict(int)
        self.gauges: Dict[str, float] = {}
        self.timings: Dict[str, list] = defaultdict(list)
        self._start_time = datetime.utcnow()

    def increment(self, name: str, value: int = 1, tags: Dict[str, str] = None) -> None:
        key = self._make_key(name, tags)
        self.counters[key] += value

    def gauge(self, name: str, value: float, tags: Dict[str, str] = None) -> None:
        key = self._make_key(name, tags)
        self.gauges[key] = value

    def timing(self, name: str, duration_ms: float, tags: Dict[str, str] = None) -> None:
        """Record a timing measurement."""
        key = self._make_key(name, tags)
        self.timings[key].append(duration_ms)
        if len(self.timings[key]) > self.MAX_TIMING_SAMPLES:
            self.timings[key] = self.timings[key][-self.MAX_TIMING_SAMPLES:]

    def _make_key(self, name: str, tags: Optional[Dict[str, str]] = None) -> str:
        if tags:
            tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
            return f"{name}:{tag_str}"
        return name

    def reset(self) -> None:
        """Drop all recorded values (used between tests)."""
        self.counters.clear()
        self.gauges.clear()
        self.timings.clear()

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics."""
        summary = {
            "uptime_seconds": (datetime.utcnow() - self._start_time).total_seconds(),
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
            "timings": {},
        }

        for name, values in self.timings.items():
            if values:
                ordered = sorted(values)
                summary["timings"][name] = {
                    "count": len(values),
                    "avg_ms": sum(values) / len(values),
                    "min_ms": ordered[0],
                    "max_ms": ordered[-1],
                    "p50_ms": ordered[len(values) // 2],
                    "p95_ms": ordered[int(len(values) * 0.95)] if len(values) >= 20 else None,
                }

        return summary


# =============================================================================
# Timing Decorator
# =============================================================================

def timed(name: str = None):
    """
    Decorator to time function execution and record metrics.

    Works for both plain and async functions.

    Args:
        name: Metric name (defaults to function name).
    """
    def decorator(func: Callable) -> Callable:
        metric_name = name or func.__name__

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                metrics.increment(f"{metric_name}.success")
                return result
            except Exception:
                metrics.increment(f"{metric_name}.error")
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                metrics.timing(metric_name, duration_ms)
                logger.debug(f"{metric_name} completed", duration_ms=f"{duration_ms:.2f}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                metrics.increment(f"{metric_name}.success")
                return result
            except Exception:
                metrics.increment(f"{metric_name}.error")
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                metrics.timing(metric_name, duration_ms)
                logger.debug(f"{metric_name} completed", duration_ms=f"{duration_ms:.2f}")

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# =============================================================================
# Global Instances
# =============================================================================

logger = StructuredLogger()

metrics = MetricsCollector()


# =============================================================================
# Chat Pipeline Events
# =============================================================================

def log_chat_request(user_id: str, message_length: int) -> None:
    logger.info("Chat request", user_id=user_id, msg_length=message_length)
    metrics.increment("chat.requests")


def log_simple_bypass(user_id: str) -> None:
    logger.info("Simple question answered locally", user_id=user_id)
    metrics.increment("chat.simple_bypass")


def log_rate_limited(user_id: str, retry_after_seconds: int) -> None:
    logger.info("Chat rate limited", user_id=user_id, retry_after=retry_after_seconds)
    metrics.increment("chat.rate_limited")


def log_cache_hit(user_id: str) -> None:
    logger.info("Chat cache hit", user_id=user_id)
    metrics.increment("chat.cache_hit")


def log_fallback(user_id: str, reason: str) -> None:
    """Record that a request degraded to the local answer."""
    logger.info("Serving fallback response", user_id=user_id, reason=reason)
    metrics.increment("chat.fallback", tags={"reason": reason})


def log_llm_call(model: str, tokens: int, duration_ms: float) -> None:
    logger.debug("LLM call", model=model, tokens=tokens, duration_ms=f"{duration_ms:.2f}")
    metrics.increment("llm.calls")
    metrics.increment("llm.tokens", tokens)
    metrics.timing("llm.latency", duration_ms)


def log_llm_error(status: Optional[int], message: str) -> None:
    logger.warning("LLM call failed", status=status, error=message)
    metrics.increment("llm.errors", tags={"status": str(status)})


def log_reaper_sweep(cache_evicted: int, limiter_evicted: int,
                     cache_size: int, limiter_size: int) -> None:
    logger.debug(
        "Reaper sweep",
        cache_evicted=cache_evicted,
        limiter_evicted=limiter_evicted,
    )
    metrics.increment("reaper.sweeps")
    metrics.increment("reaper.evicted", cache_evicted + limiter_evicted)
    metrics.gauge("chat.cache_size", cache_size)
    metrics.gauge("chat.rate_limit_entries", limiter_size)
