# -*- coding: utf-8 -*-
"""
工具层
======

提供日志配置与全局配置管理。

子模块
------
- logger: 日志工具（setup_logger / ProgressLogger / log_result）
- config: 分层配置（AnnealConfig / LoggingConfig / Config）

示例
----
>>> from ising_anneal.utils.logger import setup_logger
>>> from ising_anneal.utils.config import from_args
>>> cfg = from_args(['--preset', 'quick', '--set', 'anneal.seed=42'])
>>> logger = setup_logger(level=cfg.logging.level)
"""

# ising_anneal/utils/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["logger", "config"]

_lazy = {
    "logger": ".logger",
    "config": ".config",
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
    from . import logger, config
