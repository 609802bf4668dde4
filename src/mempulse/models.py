from dataclasses import dataclass, field
from typing import Any, Dict, List

from .pressure import PressureLevel


@dataclass(frozen=True)
class DerivedStats:
    memory_used_gb: float = 0.0
    swap_used_gb: float = 0.0
    memory_total_gb: float = 0.0

    def format_lines(self) -> List[str]:
        """供展示层使用的两行统计文本"""
        return [
            "Memory Used: %.2f GB" % self.memory_used_gb,
            "Swap Used: %.2f GB" % self.swap_used_gb,
        ]


@dataclass(frozen=True)
class SampleResult:
    """每个采样周期发布给订阅者的结果"""
    level: PressureLevel
    stats: DerivedStats
    timestamp: float
    raw_level: int = field(default=0, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """心跳消息（JSON友好）"""
        return {
            "timestamp": int(self.timestamp),
            "status": self.level.name,
            "raw_level": self.raw_level,
            "color": self.level.color,
            "memory_used_gb": round(self.stats.memory_used_gb, 3),
            "swap_used_gb": round(self.stats.swap_used_gb, 3),
            "memory_total_gb": round(self.stats.memory_total_gb, 3),
        }
