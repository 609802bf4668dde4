#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
MemPulse 控制台前端
- 按固定间隔采样内存压力与内存/交换使用量
- 每次采样向 stdout 打印一行 JSON 心跳（或 --lines 时打印两行统计文本）
- 日志统一输出到 stderr，避免污染 stdout

可选环境变量：
- MEMPULSE_CONFIG : 配置文件 mempulse.yaml（绝对路径）
"""

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from .config import ConfigError, load_configuration
from .models import SampleResult
from .sampler import create_sampler


def print_heartbeat(result: SampleResult):
    print(json.dumps(result.to_dict(), ensure_ascii=False), flush=True)


def print_stat_lines(result: SampleResult):
    print(f"[{result.level.name}]", flush=True)
    for line in result.stats.format_lines():
        print(f"  {line}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mempulse", description="内存压力与内存/交换使用量监控")
    parser.add_argument("--config", "-c", help="配置文件路径（mempulse.yaml）")
    parser.add_argument("--interval", "-i", type=float, help="采样间隔（秒），覆盖配置文件")
    parser.add_argument("--once", action="store_true", help="只采样一次后退出")
    parser.add_argument("--lines", action="store_true", help="输出统计文本而不是 JSON 心跳")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_configuration(args.config)
        if args.interval is not None:
            if args.interval <= 0:
                raise ConfigError("--interval must be positive")
            config["sampling_interval_seconds"] = args.interval
    except ConfigError as e:
        print(f"[MemPulse] config error: {e}", file=sys.stderr, flush=True)
        return 2

    logging.basicConfig(
        level=str(config.get("log_level", "WARNING")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        sampler = create_sampler(config)
    except ConfigError as e:
        print(f"[MemPulse] config error: {e}", file=sys.stderr, flush=True)
        return 2

    sampler.subscribe(print_stat_lines if args.lines else print_heartbeat)

    if args.once:
        sampler.sample_once()
        return 0

    sampler.start()
    try:
        # 主线程只等待中断；采样在工作线程中进行
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n[MemPulse] Stopped", file=sys.stderr, flush=True)
    finally:
        sampler.stop(timeout=float(config.get("report_timeout_seconds", 10)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
