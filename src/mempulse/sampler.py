import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .counters import MEMORY_SIZE, PAGE_SIZE, PRESSURE_LEVEL, CounterSource, create_counter_source
from .models import SampleResult
from .pressure import PressureClassifier
from .report import ReportParser, SubprocessReportCommand
from .usage import UsageCalculator

logger = logging.getLogger(__name__)

Subscriber = Callable[[SampleResult], None]


class Sampler:
    """内存压力采样器

    两种状态：Idle（无工作线程）与 Polling（工作线程按固定间隔采样）。
    每个周期依次：读取并分类压力值 -> 执行内存报告命令并解析 -> 计算统计 -> 发布结果。
    采样周期串行执行，同一时刻最多一个周期在进行。
    """

    def __init__(self, counter_source: CounterSource, report_command,
                 interval_seconds: float = 5.0, first_sample_immediately: bool = True,
                 parser: Optional[ReportParser] = None,
                 classifier: Optional[PressureClassifier] = None,
                 calculator: Optional[UsageCalculator] = None):
        self.counter_source = counter_source
        self.report_command = report_command
        self.interval_seconds = float(interval_seconds)
        self.first_sample_immediately = first_sample_immediately
        self.parser = parser or ReportParser()
        self.classifier = classifier or PressureClassifier()
        self.calculator = calculator or UsageCalculator()

        # 当前结果槽位：每个周期整体替换一次
        self.latest: Optional[SampleResult] = None
        self.cycle_count = 0

        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_polling(self) -> bool:
        return self._thread is not None

    def subscribe(self, callback: Subscriber):
        with self._subscribers_lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber):
        with self._subscribers_lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def start(self):
        """Idle -> Polling；已在采样时为空操作"""
        with self._state_lock:
            if self._thread is not None:
                logger.debug("sampler already polling")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                            name="mempulse-sampler", daemon=True)
            self._thread.start()
        logger.info("sampler started, interval=%.1fs", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None):
        """Polling -> Idle；已停止时为空操作。进行中的周期允许执行完毕"""
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()

        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("sampler stopped")

    def _run(self, stop_event: threading.Event):
        wait_seconds = 0.0 if self.first_sample_immediately else self.interval_seconds
        while not stop_event.wait(wait_seconds):
            cycle_start = time.monotonic()
            try:
                self.sample_once()
            except Exception:
                logger.exception("sampling cycle failed")

            # 周期超时时不补发错过的节拍
            elapsed = time.monotonic() - cycle_start
            wait_seconds = max(0.0, self.interval_seconds - elapsed)

    def sample_once(self) -> Optional[SampleResult]:
        """同步执行一个采样周期；已有周期在进行或周期出错时返回None"""
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("sampling cycle already in progress, skipping")
            return None

        try:
            result = self._collect()
            self.latest = result
            self.cycle_count += 1
            self._publish(result)
        except Exception:
            logger.exception("sampling cycle failed")
            return None
        finally:
            self._cycle_lock.release()
        return result

    def _collect(self) -> SampleResult:
        raw_level, ok = self.counter_source.read_int32(PRESSURE_LEVEL)
        if not ok:
            logger.info("memory pressure level unavailable, reporting NORMAL")
            raw_level = 0
        level = self.classifier.classify(raw_level)
        logger.debug("raw memory pressure level %d -> %s", raw_level, level.name)

        report = self.report_command.run_report_command()
        counters = self.parser.parse(report)
        if not counters:
            logger.info("memory report produced no counters")

        page_size, ok = self.counter_source.read_int64(PAGE_SIZE)
        if not ok or page_size <= 0:
            page_size = self.parser.parse_page_size(report) or 0

        swap_used, ok = self.counter_source.read_swap_usage()
        if not ok:
            swap_used = 0

        total_bytes, ok = self.counter_source.read_int64(MEMORY_SIZE)
        if not ok:
            total_bytes = 0

        stats = self.calculator.compute(counters, page_size, swap_used, total_bytes)
        return SampleResult(level=level, stats=stats, timestamp=time.time(), raw_level=raw_level)

    def _publish(self, result: SampleResult):
        with self._subscribers_lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(result)
            except Exception:
                logger.exception("subscriber %r failed", callback)


def create_sampler(config: Dict[str, Any]) -> Sampler:
    """根据配置创建采样器"""
    report_command = SubprocessReportCommand(config.get("report_command", ["vm_stat"]),
                                             timeout=float(config.get("report_timeout_seconds", 10)))
    return Sampler(
        counter_source=create_counter_source(config),
        report_command=report_command,
        interval_seconds=float(config.get("sampling_interval_seconds", 5)),
        first_sample_immediately=bool(config.get("first_sample_immediately", True)),
    )
