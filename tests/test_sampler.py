"""Tests for the sampler cycle, publishing and start/stop state machine."""

import threading
import time

import pytest

from mempulse.counters import PAGE_SIZE, PRESSURE_LEVEL
from mempulse.pressure import PressureLevel
from mempulse.report import ReportParser
from mempulse.sampler import Sampler, create_sampler
from mempulse.usage import UsageCalculator

from helpers import FakeCounterSource, FakeReportCommand


@pytest.fixture
def sampler(counter_source, report_command):
    s = Sampler(counter_source, report_command, interval_seconds=60.0)
    yield s
    s.stop(timeout=5)


class TestSampleOnce:
    def test_critical_cycle_end_to_end(self, report_command):
        source = FakeCounterSource({PRESSURE_LEVEL: 4, PAGE_SIZE: 4096}, swap_used=2 * 2 ** 30)
        sampler = Sampler(source, report_command)
        received = []
        sampler.subscribe(received.append)

        result = sampler.sample_once()

        counters = ReportParser().parse(report_command.output)
        expected = UsageCalculator().compute_memory_used_gb(counters, 4096)
        assert result.level is PressureLevel.CRITICAL
        assert result.raw_level == 4
        assert result.stats.memory_used_gb == pytest.approx(expected)
        assert result.stats.swap_used_gb == 2.0
        assert received == [result]
        assert sampler.latest is result

    def test_memory_used_uses_sampled_page_size(self, sampler, report_command):
        result = sampler.sample_once()
        assert result.stats.memory_used_gb == pytest.approx((1000 - 200 + 300 + 100) * 4096 / 2 ** 30)
        assert result.stats.memory_total_gb == 16.0

    def test_failed_counters_degrade_to_normal_and_zero(self):
        sampler = Sampler(FakeCounterSource(), FakeReportCommand(""))
        result = sampler.sample_once()

        assert result.level is PressureLevel.NORMAL
        assert result.stats.memory_used_gb == 0.0
        assert result.stats.swap_used_gb == 0.0
        assert result.stats.memory_total_gb == 0.0

    def test_page_size_falls_back_to_report_header(self, report_command):
        source = FakeCounterSource({PRESSURE_LEVEL: 2}, swap_used=0)
        result = Sampler(source, report_command).sample_once()

        assert result.level is PressureLevel.WARNING
        assert result.stats.memory_used_gb == pytest.approx(1200 * 16384 / 2 ** 30)

    def test_unknown_raw_level_is_normal(self, report_command):
        source = FakeCounterSource({PRESSURE_LEVEL: 3, PAGE_SIZE: 4096})
        assert Sampler(source, report_command).sample_once().level is PressureLevel.NORMAL

    def test_oversized_report_value_publishes_zero(self, counter_source):
        report = "header\nAnonymous pages: " + "9" * 400 + ".\n"
        received = []
        sampler = Sampler(counter_source, FakeReportCommand(report))
        sampler.subscribe(received.append)

        result = sampler.sample_once()

        assert result.stats.memory_used_gb == 0.0
        assert received == [result]

    def test_raising_counter_source_returns_none(self, report_command):
        class BrokenSource(FakeCounterSource):
            def read_int64(self, key):
                raise RuntimeError("counter store unavailable")

        received = []
        sampler = Sampler(BrokenSource(), report_command)
        sampler.subscribe(received.append)

        assert sampler.sample_once() is None
        assert received == []
        assert sampler.latest is None
        assert sampler.sample_once() is None

    def test_latest_replaced_each_cycle(self, sampler):
        first = sampler.sample_once()
        second = sampler.sample_once()
        assert first is not second
        assert sampler.latest is second
        assert sampler.cycle_count == 2

    def test_skips_when_cycle_in_flight(self, counter_source):
        entered = threading.Event()
        release = threading.Event()

        class BlockingReport(FakeReportCommand):
            def run_report_command(self):
                entered.set()
                release.wait(5)
                return super().run_report_command()

        sampler = Sampler(counter_source, BlockingReport())
        worker = threading.Thread(target=sampler.sample_once)
        worker.start()
        assert entered.wait(5)

        assert sampler.sample_once() is None

        release.set()
        worker.join(5)
        assert sampler.cycle_count == 1


class TestSubscribers:
    def test_failing_subscriber_does_not_stop_others(self, sampler):
        received = []

        def broken(result):
            raise RuntimeError("display gone")

        sampler.subscribe(broken)
        sampler.subscribe(received.append)

        result = sampler.sample_once()

        assert received == [result]

    def test_unsubscribe(self, sampler):
        received = []
        sampler.subscribe(received.append)
        sampler.unsubscribe(received.append)
        sampler.sample_once()
        assert received == []

    def test_subscribe_twice_publishes_once(self, sampler):
        received = []
        sampler.subscribe(received.append)
        sampler.subscribe(received.append)
        sampler.sample_once()
        assert len(received) == 1

    def test_unsubscribe_unknown_is_noop(self, sampler):
        sampler.unsubscribe(print)


class TestStartStop:
    def test_initially_idle(self, sampler):
        assert not sampler.is_polling

    def test_start_publishes_first_sample(self, sampler):
        published = threading.Event()
        sampler.subscribe(lambda result: published.set())

        sampler.start()

        assert sampler.is_polling
        assert published.wait(5)

    def test_start_twice_is_noop(self, sampler):
        published = threading.Event()
        sampler.subscribe(lambda result: published.set())

        sampler.start()
        thread = sampler._thread
        sampler.start()

        assert sampler._thread is thread
        assert published.wait(5)
        time.sleep(0.2)
        assert sampler.cycle_count == 1

    def test_stop_returns_to_idle(self, sampler):
        sampler.start()
        thread = sampler._thread
        sampler.stop(timeout=5)

        assert not sampler.is_polling
        assert not thread.is_alive()

    def test_stop_when_idle_is_noop(self, sampler):
        sampler.stop()
        sampler.stop()
        assert not sampler.is_polling

    def test_restart_after_stop(self, sampler):
        sampler.start()
        sampler.stop(timeout=5)
        sampler.start()
        assert sampler.is_polling

    def test_periodic_cycles(self, counter_source, report_command):
        sampler = Sampler(counter_source, report_command, interval_seconds=0.05)
        done = threading.Event()

        def on_sample(result):
            if sampler.cycle_count >= 3:
                done.set()

        sampler.subscribe(on_sample)
        sampler.start()
        try:
            assert done.wait(5)
        finally:
            sampler.stop(timeout=5)

    def test_delayed_first_sample(self, counter_source, report_command):
        sampler = Sampler(counter_source, report_command, interval_seconds=60.0,
                          first_sample_immediately=False)
        sampler.start()
        time.sleep(0.1)
        sampler.stop(timeout=5)
        assert sampler.cycle_count == 0

    def test_cycle_exception_keeps_loop_alive(self, report_command):
        calls = []
        done = threading.Event()

        class FlakySource(FakeCounterSource):
            def read_int64(self, key):
                if key == PRESSURE_LEVEL:
                    calls.append(key)
                    if len(calls) == 1:
                        raise RuntimeError("transient")
                    done.set()
                return super().read_int64(key)

        sampler = Sampler(FlakySource({PRESSURE_LEVEL: 1}), report_command, interval_seconds=0.05)
        sampler.start()
        try:
            assert done.wait(5)
        finally:
            sampler.stop(timeout=5)


class TestCreateSampler:
    def test_from_config(self):
        config = {
            "counter_source": "procfs",
            "report_command": ["vm_stat"],
            "report_timeout_seconds": 3,
            "sampling_interval_seconds": 7,
            "first_sample_immediately": False,
        }
        sampler = create_sampler(config)
        assert sampler.interval_seconds == 7.0
        assert sampler.first_sample_immediately is False
        assert sampler.report_command.argv == ["vm_stat"]
        assert sampler.report_command.timeout == 3.0
