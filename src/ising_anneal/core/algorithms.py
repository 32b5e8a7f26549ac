# -*- coding: utf-8 -*-
"""
    全连接 Ising 模型的单自旋翻转 Metropolis 内核

    为了保证可复现性，所有随机性均通过显式传递的 `numpy.random.Generator` 控制，
不使用任何全局随机状态。

实现功能：
    - make_rng: 由整数种子构造 Generator（优先 Philox 位生成器）
    - energy: 完整哈密顿量，O(N^2)，仅用于初始化与校验
    - energy_delta: 翻转单个自旋的能量变化，O(N)
    - metropolis_step: 一次 Metropolis 移动（随机选址 + 接受判据 + 原地翻转）

随机数消耗口径（每步）：
    - 1 次 integers(N) 选址
    - 仅当 ΔE >= 0 时再消耗 1 次 uniform 用于接受判据
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

import math

import numpy as np
from numpy.random import Generator, Philox

from ..errors import InvalidConfigurationError, NumericDegeneracyError
from ..utils.config import _is_int
from .problem import ProblemInstance

__all__ = [
    'make_rng', 'random_spins', 'energy', 'energy_delta', 'flip',
    'metropolis_accept', 'metropolis_step',
]


# -----------------------
# 随机种子 / Generator 辅助
# -----------------------
def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    根据整数种子构造 Generator（Philox）。seed=None 时由操作系统熵源初始化。
    """
    if seed is None:
        return Generator(Philox())
    if not _is_int(seed):
        raise InvalidConfigurationError(f"seed must be an integer, got {seed!r}")
    if seed < 0:
        raise InvalidConfigurationError(f"seed must be non-negative, got {seed}")
    return Generator(Philox(int(seed)))


def random_spins(n_spins: int, rng: np.random.Generator) -> np.ndarray:
    """均匀随机 ±1 构型，dtype=int8。"""
    return (rng.integers(0, 2, size=int(n_spins), dtype=np.int8) * 2 - 1).astype(np.int8)


def _as_spins(spins: Any, n_spins: int) -> np.ndarray:
    s = np.asarray(spins)
    if s.shape != (n_spins,):
        raise ValueError(f"spins must have shape ({n_spins},), got {s.shape}")
    return s


# -----------------------
# 能量 / ΔE
# -----------------------
def energy(problem: ProblemInstance, spins: Any) -> float:
    """
    E = -Σ_{i<j} J_ij s_i s_j - Σ_i h_i s_i

    J 对称且对角为 0，因此 Σ_{i<j} = ½ sᵀJs。纯函数，不修改 spins。
    """
    s = _as_spins(spins, problem.n_spins).astype(np.float64)
    e_pair = -0.5 * float(s @ (problem.J @ s))
    e_field = -float(problem.h @ s)
    return e_pair + e_field


def energy_delta(problem: ProblemInstance, spins: Any, index: int) -> float:
    """
    翻转 spins[index] 引起的能量变化：
        ΔE = 2 * s_k * (Σ_{j≠k} J_kj s_j + h_k)
    J[k][k] == 0，因此整行点积即为 j≠k 的求和。
    """
    k = int(index)
    if not 0 <= k < problem.n_spins:
        raise IndexError(f"index {k} out of range for {problem.n_spins} spins")
    local = float(problem.J[k] @ spins) + float(problem.h[k])
    return 2.0 * float(spins[k]) * local


def flip(spins: Any, index: int) -> np.ndarray:
    """返回翻转 index 后的新构型（不修改输入）。"""
    out = np.array(spins, dtype=np.int8, copy=True)
    out[int(index)] = -out[int(index)]
    return out


# -----------------------
# Metropolis 判据与单步
# -----------------------
def metropolis_accept(delta: float, temperature: float, rng: np.random.Generator) -> bool:
    """
    ΔE < 0 无条件接受（不消耗随机数）；否则以 exp(-ΔE/T) 概率接受（消耗 1 个 uniform）。
    """
    if not (temperature > 0.0 and math.isfinite(temperature)):
        raise NumericDegeneracyError(f"temperature must be finite and > 0, got {temperature!r}")
    if delta < 0.0:
        return True
    return bool(rng.random() < math.exp(-delta / temperature))


def metropolis_step(
    problem: ProblemInstance,
    spins: np.ndarray,
    temperature: float,
    rng: np.random.Generator,
) -> Tuple[int, float, bool]:
    """
    一次单自旋翻转 Metropolis 移动；接受时原地翻转 spins。

    返回：(index, delta, accepted)。能量累加、最优解快照与降温由调用方负责。
    """
    index = int(rng.integers(problem.n_spins))
    delta = energy_delta(problem, spins, index)
    if not math.isfinite(delta):
        raise NumericDegeneracyError(f"non-finite energy delta {delta!r} at spin {index}")
    accepted = metropolis_accept(delta, temperature, rng)
    if accepted:
        spins[index] = -spins[index]
    return index, delta, accepted
