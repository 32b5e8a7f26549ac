# -*- coding: utf-8 -*-
"""
Ising Simulated Annealing
=========================

全连接 Ising 模型的经典模拟退火求解器。

    E(s) = -Σ_{i<j} J_ij s_i s_j - Σ_i h_i s_i ,  s_i ∈ {+1, -1}

主要功能
--------
- 单自旋翻转 Metropolis 内核，O(N) 增量 ΔE
- 几何降温 T_k = T0 · r^k
- 同步运行 / asyncio 协作运行（分块让出）/ 生成器逐块驱动
- 显式可注入 RNG（numpy Generator + Philox），结果可复现
- 分层配置（预设 < YAML/JSON < 环境变量 < --set）与日志工具

快速开始
--------
>>> import ising_anneal as ia
>>> ann = ia.Annealer(spin_count=10, initial_temp=100.0, cooling_rate=0.95, steps=1000, seed=42)
>>> result = ann.run()
>>> result.best_energy <= result.final_energy
True

模块组织
--------
- core: 问题实例与 Metropolis 内核
- annealer: Annealer 主控与结果类型
- utils: 日志与配置工具
- errors: 异常类型
"""

# ising_anneal/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

try:
    from importlib.metadata import version as _pkg_version, PackageNotFoundError
    __version__ = _pkg_version("ising-anneal")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "core",
    "annealer",
    "utils",
    "errors",
    "Annealer",
    "RunResult",
    "ProgressInfo",
    "ProblemInstance",
    "AnnealerError",
    "InvalidConfigurationError",
    "ConcurrentRunError",
    "NumericDegeneracyError",
    "RunCancelledError",
    "__version__",
]

_lazy_subpackages = {
    "core": ".core",
    "annealer": ".annealer",
    "utils": ".utils",
    "errors": ".errors",
}

# 常用类型的懒加载入口：name -> (module, attr)
_lazy_attrs = {
    "Annealer": (".annealer.annealer", "Annealer"),
    "RunResult": (".annealer.results", "RunResult"),
    "ProgressInfo": (".annealer.results", "ProgressInfo"),
    "ProblemInstance": (".core.problem", "ProblemInstance"),
    "AnnealerError": (".errors", "AnnealerError"),
    "InvalidConfigurationError": (".errors", "InvalidConfigurationError"),
    "ConcurrentRunError": (".errors", "ConcurrentRunError"),
    "NumericDegeneracyError": (".errors", "NumericDegeneracyError"),
    "RunCancelledError": (".errors", "RunCancelledError"),
}

def __getattr__(name: str):
    if name in _lazy_subpackages:
        mod = import_module(_lazy_subpackages[name], __name__)
        globals()[name] = mod  # cache
        return mod
    if name in _lazy_attrs:
        mod_name, attr = _lazy_attrs[name]
        obj = getattr(import_module(mod_name, __name__), attr)
        globals()[name] = obj
        return obj
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

def __dir__():
    return sorted(list(__all__))

if TYPE_CHECKING:  # for IDE/static type checkers only
    from . import core, annealer, utils, errors
    from .annealer.annealer import Annealer
    from .annealer.results import RunResult, ProgressInfo
    from .core.problem import ProblemInstance
    from .errors import (AnnealerError, InvalidConfigurationError, ConcurrentRunError,
                         NumericDegeneracyError, RunCancelledError)
