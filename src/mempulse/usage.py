import math
from typing import Dict

from .models import DerivedStats

BYTES_PER_GB = 1024 ** 3

ANONYMOUS_PAGES = "Anonymous pages"
PURGEABLE_PAGES = "Pages purgeable"
WIRED_PAGES = "Pages wired down"
COMPRESSED_PAGES = "Pages occupied by compressor"


def _non_negative_gb(total_bytes: int) -> float:
    try:
        value = total_bytes / BYTES_PER_GB
    except OverflowError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)


class UsageCalculator:
    """由页计数与交换信息计算已用内存/交换（GB）"""

    def compute_memory_used_gb(self, counters: Dict[str, int], page_size_bytes: int) -> float:
        """已用内存 = (匿名页 - 可清除页 + 常驻页 + 压缩页) * 页大小"""
        app_pages = counters.get(ANONYMOUS_PAGES, 0) - counters.get(PURGEABLE_PAGES, 0)
        used_pages = app_pages + counters.get(WIRED_PAGES, 0) + counters.get(COMPRESSED_PAGES, 0)
        return _non_negative_gb(used_pages * page_size_bytes)

    def compute_swap_used_gb(self, swap_used_bytes: int) -> float:
        return _non_negative_gb(swap_used_bytes)

    def compute_memory_total_gb(self, total_bytes: int) -> float:
        return _non_negative_gb(total_bytes)

    def compute(self, counters: Dict[str, int], page_size_bytes: int,
                swap_used_bytes: int, total_bytes: int = 0) -> DerivedStats:
        return DerivedStats(
            memory_used_gb=self.compute_memory_used_gb(counters, page_size_bytes),
            swap_used_gb=self.compute_swap_used_gb(swap_used_bytes),
            memory_total_gb=self.compute_memory_total_gb(total_bytes),
        )
