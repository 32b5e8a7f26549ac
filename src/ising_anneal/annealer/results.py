# -*- coding: utf-8 -*-
"""
运行结果与进度快照（不可变数据类）
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

__all__ = ['ProgressInfo', 'RunResult', 'frozen_copy']


def frozen_copy(a: Any, dtype=None) -> np.ndarray:
    """复制为只读数组，保证快照不与运行中的缓冲区别名。"""
    out = np.array(a, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class ProgressInfo:
    step: int               # 同步模式：步下标；分块模式：已完成步数
    total_steps: int
    current_energy: float
    best_energy: float
    temperature: float
    percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step': int(self.step),
            'total_steps': int(self.total_steps),
            'current_energy': float(self.current_energy),
            'best_energy': float(self.best_energy),
            'temperature': float(self.temperature),
            'percent': float(self.percent),
        }


@dataclass(frozen=True, eq=False)
class RunResult:
    """
    一次退火运行的最终快照。

    数组字段均为只读副本；interaction_matrix / external_field 为问题实例本身（只读），
    供调用方复现与审计。
    """
    best_spins: np.ndarray
    best_energy: float
    final_spins: np.ndarray
    final_energy: float
    energy_history: np.ndarray
    temperature_history: np.ndarray
    history_steps: np.ndarray
    interaction_matrix: np.ndarray
    external_field: np.ndarray

    # 运行元信息
    steps: int = 0
    final_temperature: float = float('nan')
    accepted_moves: int = 0
    seed: Optional[int] = None
    mode: str = 'sync'
    elapsed_s: float = 0.0

    @property
    def n_spins(self) -> int:
        return int(self.best_spins.shape[0])

    @property
    def acceptance_rate(self) -> float:
        return float(self.accepted_moves) / self.steps if self.steps > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """转换为纯 Python 结构（list/float/int），便于交给 UI 层或序列化。"""
        return {
            'best_spins': [int(x) for x in self.best_spins],
            'best_energy': float(self.best_energy),
            'final_spins': [int(x) for x in self.final_spins],
            'final_energy': float(self.final_energy),
            'energy_history': self.energy_history.tolist(),
            'temperature_history': self.temperature_history.tolist(),
            'history_steps': self.history_steps.tolist(),
            'interaction_matrix': self.interaction_matrix.tolist(),
            'external_field': self.external_field.tolist(),
            'steps': int(self.steps),
            'final_temperature': float(self.final_temperature),
            'accepted_moves': int(self.accepted_moves),
            'seed': self.seed,
            'mode': self.mode,
            'elapsed_s': float(self.elapsed_s),
        }
