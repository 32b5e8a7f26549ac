# -*- coding: utf-8 -*-
"""
    Ising 问题实例（耦合矩阵 J 与外场 h）

    能量函数：E(s) = -Σ_{i<j} J_ij s_i s_j - Σ_i h_i s_i ，s_i ∈ {+1, -1}

实现功能：
    - ProblemInstance：不可变问题实例，J/h 以只读 float64 数组保存
    - generate_problem：由显式 numpy.random.Generator 随机生成 J（对称、零对角）与 h
    - from_arrays：从外部给定的 J/h 构造并做形状/对称性/有限性检查

注意：
    J 的对角元在构造时被置零，能量与 ΔE 计算都不会读取 J[i][i]。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from ..errors import InvalidConfigurationError

__all__ = ['ProblemInstance', 'generate_problem', 'MIN_SPINS']

MIN_SPINS = 2
_SYM_TOL = 1e-12


def _readonly(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class ProblemInstance:
    """
    不可变问题实例。

    属性：
      - n_spins: 自旋数 N（>= 2）
      - J: (N, N) float64，对称，对角为 0，只读
      - h: (N,) float64，只读
    """
    n_spins: int
    J: np.ndarray
    h: np.ndarray

    @classmethod
    def from_arrays(cls, J: Any, h: Any) -> 'ProblemInstance':
        """从外部 J/h 构造（复制一份，不与调用方共享缓冲区）。"""
        try:
            Jm = np.array(J, dtype=np.float64, copy=True)
            hv = np.array(h, dtype=np.float64, copy=True)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"J and h must be numeric arrays: {exc}") from exc

        if Jm.ndim != 2 or Jm.shape[0] != Jm.shape[1]:
            raise InvalidConfigurationError(f"J must be a square matrix, got shape {Jm.shape}")
        n = int(Jm.shape[0])
        if n < MIN_SPINS:
            raise InvalidConfigurationError(f"spin count must be >= {MIN_SPINS}, got {n}")
        if hv.ndim != 1 or hv.shape[0] != n:
            raise InvalidConfigurationError(f"h must have shape ({n},), got {hv.shape}")

        # 对角元不参与计算，先清零再检查有限性/对称性
        np.fill_diagonal(Jm, 0.0)
        if not (np.all(np.isfinite(Jm)) and np.all(np.isfinite(hv))):
            raise InvalidConfigurationError("J and h must contain only finite values")
        if not np.allclose(Jm, Jm.T, rtol=0.0, atol=_SYM_TOL):
            raise InvalidConfigurationError("J must be symmetric (J[i][j] == J[j][i])")

        return cls(n_spins=n, J=_readonly(Jm), h=_readonly(hv))

    def to_dict(self) -> dict:
        return {'n_spins': int(self.n_spins), 'J': self.J.tolist(), 'h': self.h.tolist()}


def generate_problem(n_spins: int, rng: np.random.Generator) -> ProblemInstance:
    """
    随机生成问题实例：
      J[i][j] = J[j][i] ~ U[-1, 1)（i < j），对角为 0；h[i] ~ U[-1, 1)。

    随机数消耗顺序固定：先按行主序生成上三角 N(N-1)/2 个耦合，再生成 N 个外场。
    """
    n = int(n_spins)
    if n < MIN_SPINS:
        raise InvalidConfigurationError(f"spin count must be >= {MIN_SPINS}, got {n}")

    iu = np.triu_indices(n, k=1)
    couplings = rng.uniform(-1.0, 1.0, size=iu[0].size)
    J = np.zeros((n, n), dtype=np.float64)
    J[iu] = couplings
    J[(iu[1], iu[0])] = couplings
    h = rng.uniform(-1.0, 1.0, size=n).astype(np.float64)
    return ProblemInstance(n_spins=n, J=_readonly(J), h=_readonly(h))
