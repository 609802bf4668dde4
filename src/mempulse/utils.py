import logging
import os
import subprocess
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def read_memory_pressure_indicators(pressure_file: str = "/proc/pressure/memory") -> Optional[Dict[str, float]]:
    """读取/proc/pressure/memory中的PSI指标，文件不存在时返回None"""
    if not os.path.exists(pressure_file):
        return None

    result = {"some_avg10": 0.0, "full_avg10": 0.0}
    try:
        with open(pressure_file, 'r', encoding='utf-8') as file:
            for line in file:
                line = line.strip()
                if not line:
                    continue

                parts = line.split()
                pressure_type = parts[0]  # "some" or "full"

                for part in parts[1:]:
                    if '=' in part:
                        metric_name, metric_value = part.split('=', 1)
                        if metric_name == "avg10":
                            try:
                                result[f"{pressure_type}_avg10"] = float(metric_value)
                            except ValueError:
                                continue
    except (IOError, PermissionError) as e:
        logger.warning("cannot read %s: %s", pressure_file, e)
        return None

    return result


def run_command(cmd: List[str], timeout: float) -> Optional[str]:
    """执行外部命令并返回UTF-8标准输出；启动失败、超时或非零退出时返回None"""
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8",
                              errors="replace", timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("command %s failed to run: %s", " ".join(cmd), e)
        return None

    if proc.returncode != 0:
        logger.warning("command %s exited with %d: %s", " ".join(cmd), proc.returncode,
                       proc.stderr.strip()[:200])
        return None
    return proc.stdout
