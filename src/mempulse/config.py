import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV = "MEMPULSE_CONFIG"

DEFAULT_CONFIG: Dict[str, Any] = {
    "sampling_interval_seconds": 5,
    "first_sample_immediately": True,
    "report_command": ["vm_stat"],
    "report_timeout_seconds": 10,
    "counter_source": "auto",
    "sysctl_timeout_seconds": 5,
    "psi_thresholds": {
        "some_warning": 10.0,
        "some_critical": 40.0,
        "full_critical": 10.0,
    },
    "log_level": "WARNING",
}

COUNTER_SOURCES = ("auto", "sysctl", "procfs")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """配置文件缺失或内容无效"""


def find_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    """按 --config、环境变量 MEMPULSE_CONFIG、默认候选路径的顺序查找配置文件"""
    requested = explicit or os.environ.get(CONFIG_ENV)
    if requested:
        p = Path(requested).expanduser()
        if not p.exists():
            raise ConfigError(f"config file not found: {p}")
        return p

    candidates = [
        Path.cwd() / "mempulse.yaml",
        Path.home() / ".config" / "mempulse" / "mempulse.yaml",
    ]
    for c in candidates:
        if c.exists():
            return c
    return None


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_configuration(config: Dict[str, Any]) -> Dict[str, Any]:
    try:
        interval = float(config["sampling_interval_seconds"])
        float(config["report_timeout_seconds"])
        float(config["sysctl_timeout_seconds"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid numeric setting: {e}") from e
    if interval <= 0:
        raise ConfigError("sampling_interval_seconds must be positive")

    command = config["report_command"]
    if isinstance(command, str):
        command = command.split()
    if not isinstance(command, list) or not command:
        raise ConfigError("report_command must be a non-empty list or string")
    config["report_command"] = [str(part) for part in command]

    if str(config["counter_source"]).lower() not in COUNTER_SOURCES:
        raise ConfigError(f"counter_source must be one of {', '.join(COUNTER_SOURCES)}")

    if str(config["log_level"]).upper() not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
    return config


def load_configuration(explicit: Optional[str] = None) -> Dict[str, Any]:
    """加载 YAML 配置并合并到默认值之上；找不到配置文件时使用默认值"""
    cfg_path = find_config_path(explicit)
    if cfg_path is None:
        return validate_configuration(copy.deepcopy(DEFAULT_CONFIG))

    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {cfg_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{cfg_path} must contain a mapping")
    return validate_configuration(_merge(DEFAULT_CONFIG, data))
