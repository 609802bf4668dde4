import logging
from enum import IntEnum

logger = logging.getLogger(__name__)


class PressureLevel(IntEnum):
    """内存压力等级，取值与内核 kern.memorystatus_vm_pressure_level 一致"""

    NORMAL = 1
    WARNING = 2
    CRITICAL = 4

    @property
    def color(self) -> str:
        """状态指示灯颜色"""
        return _LEVEL_COLORS[self]


_LEVEL_COLORS = {
    PressureLevel.NORMAL: "green",
    PressureLevel.WARNING: "yellow",
    PressureLevel.CRITICAL: "red",
}


class PressureClassifier:
    """内存压力分类器"""

    def classify(self, raw_level: int) -> PressureLevel:
        """将内核原始压力值映射为压力等级，未知值（含3、0、负数）一律视为NORMAL"""
        try:
            return PressureLevel(raw_level)
        except ValueError:
            logger.debug("unknown raw pressure level %r, treating as NORMAL", raw_level)
            return PressureLevel.NORMAL
