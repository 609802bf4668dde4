import pytest

from mempulse.counters import MEMORY_SIZE, PAGE_SIZE, PRESSURE_LEVEL

from helpers import VM_STAT_REPORT, FakeCounterSource, FakeReportCommand


@pytest.fixture
def vm_stat_report():
    return VM_STAT_REPORT


@pytest.fixture
def counter_source():
    return FakeCounterSource(
        {PRESSURE_LEVEL: 1, PAGE_SIZE: 4096, MEMORY_SIZE: 16 * 1024 ** 3},
        swap_used=2 * 1024 ** 3,
    )


@pytest.fixture
def report_command():
    return FakeReportCommand()
