# -*- coding: utf-8 -*-
"""
退火层
======

提供 Annealer 主控类与运行结果类型。

子模块
------
- annealer: Annealer（同步 / 协作 / 逐块生成器 三种驱动方式）
- results: RunResult、ProgressInfo

示例
----
>>> from ising_anneal.annealer import Annealer
>>> ann = Annealer(spin_count=16, initial_temp=10.0, cooling_rate=0.99, steps=2000, seed=7)
>>> result = ann.run()
>>> result = asyncio.run(Annealer(16, 10.0, 0.99, 2000, seed=7).run_cooperative())
"""

# ising_anneal/annealer/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["annealer", "results", "Annealer", "RunResult", "ProgressInfo"]

_lazy = {
    "annealer": ".annealer",
    "results": ".results",
}

_lazy_attrs = {
    "Annealer": (".annealer", "Annealer"),
    "RunResult": (".results", "RunResult"),
    "ProgressInfo": (".results", "ProgressInfo"),
}

def __getattr__(name: str):
    if name in _lazy:
        mod = import_module(_lazy[name], __name__)
        globals()[name] = mod
        return mod
    if name in _lazy_attrs:
        mod_name, attr = _lazy_attrs[name]
        obj = getattr(import_module(mod_name, __name__), attr)
        globals()[name] = obj
        return obj
    raise AttributeError(f"{__name__} has no attribute {name!r}")

def __dir__():
    return sorted(list(__all__))

if TYPE_CHECKING:
    from . import annealer, results
    from .annealer import Annealer
    from .results import RunResult, ProgressInfo
