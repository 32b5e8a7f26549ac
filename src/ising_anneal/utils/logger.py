# -*- coding: utf-8 -*-
"""
日志记录器

实现功能：
    - setup_logger: 控制台（TTY 下彩色）+ 可选文件输出（支持按大小/按时间轮转）
    - ProgressLogger: 可直接作为 on_progress 回调传给 Annealer.run / run_cooperative，
      按报告次数或时间间隔打印进度
    - log_result: 将 RunResult 摘要写入日志

库代码本身只通过 logging.getLogger(__name__) 打日志，导入时不会配置任何 handler。
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any, Union

from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

__all__ = ['setup_logger', 'get_logger', 'ProgressLogger', 'log_result']

_DATEFMT = '%Y-%m-%d %H:%M:%S'
_CONSOLE_FMT = '%(asctime)s | %(levelname)-8s | %(message)s'
_FILE_FMT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'

# 级别 -> ANSI 颜色码
_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}


class ColoredFormatter(logging.Formatter):
    """整行着色（按 levelno），不修改 record 本身。"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}\033[0m" if color else line


def _formatter(fmt: str, utc: bool, colored: bool = False) -> logging.Formatter:
    cls = ColoredFormatter if colored else logging.Formatter
    formatter = cls(fmt, datefmt=_DATEFMT)
    if utc:
        formatter.converter = time.gmtime  # type: ignore
    return formatter


def _open_file_handler(log_path: Path, rotate: Optional[Dict[str, Any]], utc: bool) -> logging.Handler:
    """rotate 含 'when' 按时间轮转，否则按 maxBytes 轮转；rotate 为空则普通追加写。"""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if not rotate:
        return logging.FileHandler(str(log_path), mode='a', encoding='utf-8')
    if 'when' in rotate:
        return TimedRotatingFileHandler(
            str(log_path), when=rotate['when'],
            interval=int(rotate.get('interval', 1)),
            backupCount=int(rotate.get('backupCount', 14)),
            encoding='utf-8', utc=utc,
        )
    return RotatingFileHandler(
        str(log_path),
        maxBytes=int(rotate.get('maxBytes', 10_000_000)),
        backupCount=int(rotate.get('backupCount', 5)),
        encoding='utf-8',
    )

# -----------------------------------------------------------------------------
# setup_logger / get_logger
# -----------------------------------------------------------------------------
def setup_logger(
    name: str = 'ising_anneal',
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    use_color: bool = True,
    utc: bool = False,
    rotate: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    配置并返回 logger。重复调用会替换同名 logger 的 handlers。
    参数可直接由 LoggingConfig 展开：setup_logger(**asdict(cfg.logging))。
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level!r}")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False

    # 仅在真实终端时启用颜色
    use_color = bool(use_color and hasattr(sys.stdout, "isatty") and sys.stdout.isatty())

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(_formatter(_CONSOLE_FMT, utc, colored=use_color))
    logger.addHandler(console)

    if log_file:
        fh = _open_file_handler(Path(log_file), rotate, utc)
        fh.setLevel(logging.DEBUG)  # 实际输出由 logger.level 控制
        fh.setFormatter(_formatter(_FILE_FMT, utc))
        logger.addHandler(fh)
    return logger


def get_logger(name: str = 'ising_anneal') -> logging.Logger:
    """获取 logger（若未 setup，返回同名 logger 对象，但不自动配置 handlers）。"""
    return logging.getLogger(name)

# -----------------------------------------------------------------------------
# ProgressLogger
# -----------------------------------------------------------------------------
class ProgressLogger:
    """
    进度回调：接收 ProgressInfo，按报告次数或时间间隔打印。

    >>> prog = ProgressLogger(desc="anneal", log_every_n=5)
    >>> result = annealer.run(on_progress=prog)
    >>> prog.finish()
    """
    def __init__(self, desc: str = "Annealing",
                 logger: Optional[logging.Logger] = None,
                 log_every_n: int = 1,
                 log_every_seconds: Optional[float] = None):
        self.desc = desc
        self.logger = logger or get_logger()
        self.log_every_n = max(1, int(log_every_n))
        self.log_every_seconds = float(log_every_seconds) if log_every_seconds is not None else None

        self.reports = 0
        self.last = None
        self.start_time = time.time()
        self.last_log_time = self.start_time

    def __call__(self, info) -> None:
        self.reports += 1
        self.last = info
        now = time.time()
        should = (self.reports % self.log_every_n == 0) or (info.step >= info.total_steps)
        if self.log_every_seconds is not None:
            should = should or ((now - self.last_log_time) >= self.log_every_seconds)
        if should:
            self._log_progress(info, now)
            self.last_log_time = now

    def _log_progress(self, info, now: float):
        elapsed = max(1e-9, now - self.start_time)
        speed = info.step / elapsed
        self.logger.info(
            "%s: %d/%d (%.1f%%) | E: %.6f | best: %.6f | T: %.4g | %.0f steps/s",
            self.desc, info.step, info.total_steps, info.percent,
            info.current_energy, info.best_energy, info.temperature, speed,
        )

    def finish(self):
        elapsed = max(1e-9, time.time() - self.start_time)
        steps = self.last.step if self.last is not None else 0
        self.logger.info("%s 完成! 报告: %d | 步数: %d | 耗时: %.2fs",
                         self.desc, self.reports, steps, elapsed)

# -----------------------------------------------------------------------------
# 结果摘要
# -----------------------------------------------------------------------------
def log_result(result, logger: Optional[logging.Logger] = None) -> None:
    """将 RunResult 的关键字段逐行写入日志。"""
    logger = logger or get_logger()
    logger.info("=" * 70)
    logger.info("退火结果 (%s):", result.mode)
    logger.info("  N: %d | steps: %d | seed: %s", result.n_spins, result.steps, result.seed)
    logger.info("  best_energy: %.6f", result.best_energy)
    logger.info("  final_energy: %.6f", result.final_energy)
    logger.info("  final_temperature: %.6g", result.final_temperature)
    logger.info("  acceptance_rate: %.4f", result.acceptance_rate)
    logger.info("  elapsed: %.3fs", result.elapsed_s)
    logger.info("=" * 70)
