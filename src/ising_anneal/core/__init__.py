# -*- coding: utf-8 -*-
"""
核心算法模块
============

提供全连接 Ising 问题实例与单自旋翻转 Metropolis 内核。

子模块
------
- problem: ProblemInstance 与随机问题生成
- algorithms: 能量 / ΔE / Metropolis 单步 / RNG 构造

示例
----
>>> from ising_anneal.core import algorithms as alg, problem as pb
>>> rng = alg.make_rng(42)
>>> prob = pb.generate_problem(8, rng)
>>> s = alg.random_spins(8, rng)
>>> d = alg.energy_delta(prob, s, 3)
"""

# ising_anneal/core/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["problem", "algorithms"]

_lazy = {
    "problem": ".problem",
    "algorithms": ".algorithms",
}

def __getattr__(name: str):
    if name in _lazy:
        mod = import_module(_lazy[name], __name__)
        globals()[name] = mod
        return mod
    raise AttributeError(f"{__name__} has no attribute {name!r}")

def __dir__():
    return sorted(list(__all__))

if TYPE_CHECKING:
    from . import problem, algorithms
