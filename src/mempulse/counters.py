import logging
import os
import platform
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import psutil

from .config import ConfigError
from .utils import read_memory_pressure_indicators, run_command

logger = logging.getLogger(__name__)

PAGE_SIZE = "hw.pagesize"
MEMORY_SIZE = "hw.memsize"
PRESSURE_LEVEL = "kern.memorystatus_vm_pressure_level"
SWAP_USAGE = "vm.swapusage"

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_SWAP_USED_PATTERN = re.compile(r"used\s*=\s*([0-9]+(?:\.[0-9]+)?)\s*([KMGTP]?)", re.IGNORECASE)
_UNIT_EXPONENT = {"": 0, "K": 1, "M": 2, "G": 3, "T": 4, "P": 5}

_FAILED = (0, False)


class CounterSource(ABC):
    """按名称读取内核计数器；失败时返回 (0, False)，由调用方决定默认值"""

    @abstractmethod
    def read_int64(self, key: str) -> Tuple[int, bool]:
        ...

    @abstractmethod
    def read_swap_usage(self) -> Tuple[int, bool]:
        """返回已用交换空间（字节）"""

    def read_int32(self, key: str) -> Tuple[int, bool]:
        value, ok = self.read_int64(key)
        if not ok:
            return _FAILED
        if not INT32_MIN <= value <= INT32_MAX:
            logger.warning("counter %s value %d does not fit in int32", key, value)
            return _FAILED
        return value, True


def parse_swap_used(text: str) -> Optional[int]:
    """解析 `total = 2048.00M  used = 1024.50M  free = ...` 中的已用量（字节）"""
    match = _SWAP_USED_PATTERN.search(text)
    if not match:
        return None
    amount = float(match.group(1))
    exponent = _UNIT_EXPONENT[match.group(2).upper()]
    return int(amount * 1024 ** exponent)


class SysctlCounterSource(CounterSource):
    """macOS：通过 `sysctl -n <key>` 读取计数器"""

    def __init__(self, sysctl_path: str = "sysctl", timeout: float = 5.0):
        self.sysctl_path = sysctl_path
        self.timeout = timeout

    def _query(self, key: str) -> Optional[str]:
        return run_command([self.sysctl_path, "-n", key], self.timeout)

    def read_int64(self, key: str) -> Tuple[int, bool]:
        output = self._query(key)
        if output is None:
            return _FAILED

        try:
            value = int(output.strip())
        except ValueError:
            logger.warning("counter %s returned non-integer output %r", key, output[:80])
            return _FAILED

        if not INT64_MIN <= value <= INT64_MAX:
            return _FAILED
        return value, True

    def read_swap_usage(self) -> Tuple[int, bool]:
        output = self._query(SWAP_USAGE)
        if output is None:
            return _FAILED

        used = parse_swap_used(output)
        if used is None:
            logger.warning("cannot parse %s output %r", SWAP_USAGE, output[:80])
            return _FAILED
        return used, True


class ProcfsCounterSource(CounterSource):
    """Linux：通过 psutil 与 /proc/pressure/memory（PSI）提供同名计数器"""

    def __init__(self, psi_thresholds: Optional[Dict[str, float]] = None,
                 pressure_file: str = "/proc/pressure/memory"):
        thresholds = psi_thresholds or {}
        self.some_warning = float(thresholds.get("some_warning", 10.0))
        self.some_critical = float(thresholds.get("some_critical", 40.0))
        self.full_critical = float(thresholds.get("full_critical", 10.0))
        self.pressure_file = pressure_file

    def _pressure_level(self) -> Tuple[int, bool]:
        indicators = read_memory_pressure_indicators(self.pressure_file)
        if indicators is None:
            return _FAILED

        some_avg10 = indicators.get("some_avg10", 0.0)
        full_avg10 = indicators.get("full_avg10", 0.0)
        if full_avg10 >= self.full_critical or some_avg10 >= self.some_critical:
            return 4, True
        if some_avg10 >= self.some_warning:
            return 2, True
        return 1, True

    def read_int64(self, key: str) -> Tuple[int, bool]:
        try:
            if key == PAGE_SIZE:
                return int(os.sysconf("SC_PAGE_SIZE")), True
            if key == MEMORY_SIZE:
                return int(psutil.virtual_memory().total), True
        except (ValueError, OSError, RuntimeError, psutil.Error) as e:
            logger.warning("cannot read counter %s: %s", key, e)
            return _FAILED

        if key == PRESSURE_LEVEL:
            return self._pressure_level()

        logger.debug("counter %s is not available from procfs", key)
        return _FAILED

    def read_swap_usage(self) -> Tuple[int, bool]:
        try:
            return int(psutil.swap_memory().used), True
        except (OSError, RuntimeError, psutil.Error) as e:
            logger.warning("cannot read swap usage: %s", e)
            return _FAILED


def create_counter_source(config: Dict[str, Any]) -> CounterSource:
    """按配置 counter_source（auto/sysctl/procfs）创建计数器来源"""
    kind = str(config.get("counter_source", "auto")).lower()
    if kind == "auto":
        kind = "sysctl" if platform.system() == "Darwin" else "procfs"

    if kind == "sysctl":
        return SysctlCounterSource(timeout=float(config.get("sysctl_timeout_seconds", 5)))
    if kind == "procfs":
        return ProcfsCounterSource(config.get("psi_thresholds") or {})
    raise ConfigError(f"unknown counter_source: {kind}")
