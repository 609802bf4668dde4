import logging
import re
import shutil
from typing import Dict, List, Optional, Sequence

from .utils import run_command

logger = logging.getLogger(__name__)

_PAGE_SIZE_PATTERN = re.compile(r"page size of (\d+) bytes")


class SubprocessReportCommand:
    """通过子进程获取内存报告（默认 vm_stat）"""

    def __init__(self, argv: Sequence[str] = ("vm_stat",), timeout: float = 10.0):
        self.argv: List[str] = list(argv)
        self.timeout = timeout
        self._missing_reported = False

    def run_report_command(self) -> str:
        """执行报告命令，失败时返回空字符串"""
        if shutil.which(self.argv[0]) is None:
            # 命令不存在（如 Linux 上没有 vm_stat）：只提示一次
            if not self._missing_reported:
                logger.warning("report command %s not found, memory used will read 0.00 GB", self.argv[0])
                self._missing_reported = True
            return ""

        output = run_command(self.argv, self.timeout)
        if output is None:
            return ""
        return output


class ReportParser:
    """解析 `Label: 123.` 形式的内存报告，输出单位为页"""

    def parse(self, command_output: str) -> Dict[str, int]:
        counters: Dict[str, int] = {}
        if not command_output:
            return counters

        # 第一行是表头
        for line in command_output.splitlines()[1:]:
            label, sep, value = line.partition(":")
            if not sep:
                continue

            label = label.strip()
            value = value.strip()
            if value.endswith("."):
                value = value[:-1].rstrip()

            # 尾部摘要等不符合格式的行逐行跳过
            if not label or not (value.isascii() and value.isdigit()):
                continue
            try:
                counters[label] = int(value)
            except ValueError:
                # 超出整数字符串长度上限
                continue

        return counters

    def parse_page_size(self, command_output: str) -> Optional[int]:
        """从表头 `(page size of N bytes)` 中读取页大小"""
        if not command_output:
            return None

        header = command_output.splitlines()[0]
        match = _PAGE_SIZE_PATTERN.search(header)
        if not match:
            return None
        page_size = int(match.group(1))
        return page_size if page_size > 0 else None
