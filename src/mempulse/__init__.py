"""
内存压力监控模块
"""

from .counters import CounterSource, SysctlCounterSource, ProcfsCounterSource, create_counter_source
from .report import ReportParser, SubprocessReportCommand
from .usage import UsageCalculator
from .pressure import PressureLevel, PressureClassifier
from .models import DerivedStats, SampleResult
from .sampler import Sampler, create_sampler
from .config import ConfigError, load_configuration

__all__ = [
    'CounterSource',
    'SysctlCounterSource',
    'ProcfsCounterSource',
    'create_counter_source',
    'ReportParser',
    'SubprocessReportCommand',
    'UsageCalculator',
    'PressureLevel',
    'PressureClassifier',
    'DerivedStats',
    'SampleResult',
    'Sampler',
    'create_sampler',
    'ConfigError',
    'load_configuration',
]
