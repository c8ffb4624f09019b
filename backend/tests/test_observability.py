"""
Test Module: test_observability.py
Description: Tests for structured log formatting and the timing decorator.

Author: Smart Budget Team
"""

import pytest

from services.observability import StructuredLogger, metrics, timed, log_fallback


class TestStructuredLogger:

    def test_fields_appended_per_call(self):
        log = StructuredLogger("smart-budget-assistant.test")
        assert log._format_message("Cache hit", user_id="1") == "Cache hit | user_id=1"
        assert log._format_message("Reaper started") == "Reaper started"

    def test_fields_do_not_leak_between_calls(self):
        log = StructuredLogger("smart-budget-assistant.test")
        log._format_message("first", user_id="1")
        assert log._format_message("second") == "second"


class TestMetrics:

    def test_fallback_counter_tagged_with_reason(self):
        log_fallback("1", "llm_timeout")
        assert metrics.counters["chat.fallback:reason=llm_timeout"] == 1

    def test_timed_sync_records_success_and_error(self):
        @timed("unit.work")
        def work(fail=False):
            if fail:
                raise ValueError("bad input")
            return 5

        assert work() == 5
        with pytest.raises(ValueError):
            work(fail=True)

        assert metrics.counters["unit.work.success"] == 1
        assert metrics.counters["unit.work.error"] == 1
        assert len(metrics.timings["unit.work"]) == 2

    @pytest.mark.asyncio
    async def test_timed_async(self):
        @timed("unit.async_work")
        async def work():
            return "done"

        assert await work() == "done"
        assert metrics.counters["unit.async_work.success"] == 1
