from typing import Dict, Optional, Tuple

from mempulse.counters import CounterSource

VM_STAT_REPORT = """Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                               12345.
Pages active:                            200000.
Pages inactive:                          190000.
Pages wired down:                           300.
Pages purgeable:                            200.
"Translation faults":                 123456789.
File-backed pages:                       160000.
Anonymous pages:                           1000.
Pages stored in compressor:              300000.
Pages occupied by compressor:               100.
Swapins:                                      0.
Swapouts:                                     0.
"""


class FakeCounterSource(CounterSource):
    """按字典返回计数器，缺失的键视为读取失败"""

    def __init__(self, values: Optional[Dict[str, int]] = None, swap_used: Optional[int] = None):
        self.values = dict(values or {})
        self.swap_used = swap_used
        self.calls = []

    def read_int64(self, key: str) -> Tuple[int, bool]:
        self.calls.append(key)
        if key not in self.values:
            return 0, False
        return self.values[key], True

    def read_swap_usage(self) -> Tuple[int, bool]:
        self.calls.append("vm.swapusage")
        if self.swap_used is None:
            return 0, False
        return self.swap_used, True


class FakeReportCommand:
    def __init__(self, output: str = VM_STAT_REPORT):
        self.output = output
        self.calls = 0

    def run_report_command(self) -> str:
        self.calls += 1
        return self.output
