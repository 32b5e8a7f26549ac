# -*- coding: utf-8 -*-
"""
异常类型

所有错误均为本地、同步失败，直接抛给调用方；库内部不做重试。
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    'AnnealerError',
    'InvalidConfigurationError',
    'ConcurrentRunError',
    'NumericDegeneracyError',
    'RunCancelledError',
]


class AnnealerError(Exception):
    """ising_anneal 所有异常的基类。"""


class InvalidConfigurationError(AnnealerError, ValueError):
    """参数非法（N<2、T0<=0、cooling_rate 不在 (0,1)、steps<0、J/h 形状错误等）。"""


class ConcurrentRunError(AnnealerError, RuntimeError):
    """同一 Annealer 实例上已有运行中的任务。"""


class NumericDegeneracyError(AnnealerError, FloatingPointError):
    """温度下溢为 0 / 非有限，或能量出现 NaN/inf。"""


class RunCancelledError(AnnealerError):
    """运行被 cancel() 或超时中止；不返回部分结果。"""

    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message)
        self.step = step
