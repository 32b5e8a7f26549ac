# -*- coding: utf-8 -*-
"""
统一配置管理（支持预设、分层覆盖、参数硬性检查）

实现功能：
    - AnnealConfig：退火参数（N、T0、冷却率、步数、种子、采样/进度/分块步长等）
    - LoggingConfig：日志参数，可直接展开传给 setup_logger
    - 硬性约束（构造时立即抛 InvalidConfigurationError）：
         spin_count >= 2
         initial_temp > 0 且有限
         0 < cooling_rate < 1
         steps >= 0
         history_stride / progress_stride / chunk_size >= 1
    - validate_config() 返回软性 warnings（例如温度在最后一步前下溢为 0）
    - ENV/CLI/YAML 合并，优先级：默认/预设 < 文件 < 环境变量 < CLI --set
"""

from __future__ import annotations

import os
import ast
import copy
import json
import math
import numbers
import logging
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple

import yaml

from ..errors import InvalidConfigurationError

__all__ = [
    'Config', 'AnnealConfig', 'LoggingConfig', 'check_anneal_params',
    'load_config', 'save_config', 'get_preset_config',
    'load_from_env', 'merge_configs', 'validate_config', 'from_args',
]

logger = logging.getLogger(__name__)

# 最小正次正规 float64；T0 * r^k 小于它即下溢为 0
_FLOAT_TINY = 5e-324

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _is_int(v: Any) -> bool:
    return isinstance(v, numbers.Integral) and not isinstance(v, bool)


def _is_real(v: Any) -> bool:
    return isinstance(v, numbers.Real) and not isinstance(v, bool)


def _deep_merge(d1: Dict[str, Any], d2: Dict[str, Any]) -> Dict[str, Any]:
    """将 d2 深度合并到 d1（原地修改 d1 并返回它）。"""
    for k, v in (d2 or {}).items():
        if k in d1 and isinstance(d1[k], dict) and isinstance(v, dict):
            _deep_merge(d1[k], v)
        else:
            d1[k] = v
    return d1


def _set_by_path(d: Dict[str, Any], path: List[str], value: Any):
    """按照 path（list）在嵌套 dict 中设置 value。"""
    cur = d
    for key in path[:-1]:
        if key not in cur or not isinstance(cur[key], dict):
            cur[key] = {}
        cur = cur[key]
    cur[path[-1]] = value


def _parse_env_value(s: str):
    """将环境变量字符串解析为 Python 值（literal_eval 优先，兼容 true/false/none）。"""
    if s is None:
        return None
    try:
        return ast.literal_eval(s)
    except (ValueError, SyntaxError):
        sl = s.strip()
        sl_l = sl.lower()
        if sl_l == 'true':
            return True
        if sl_l == 'false':
            return False
        if sl_l in ('none', 'null'):
            return None
        return sl


def check_anneal_params(
    spin_count: Any,
    initial_temp: Any,
    cooling_rate: Any,
    steps: Any,
    history_stride: Any = 10,
    progress_stride: Any = 100,
    chunk_size: Any = 10,
    resync_interval: Any = 0,
    min_temperature: Any = None,
) -> None:
    """参数硬性检查；任何一项不满足即抛 InvalidConfigurationError。"""
    if not (_is_int(spin_count) and spin_count >= 2):
        raise InvalidConfigurationError(f"spin_count must be an integer >= 2, got {spin_count!r}")
    if not (_is_real(initial_temp) and math.isfinite(initial_temp) and initial_temp > 0):
        raise InvalidConfigurationError(f"initial_temp must be a finite number > 0, got {initial_temp!r}")
    if not (_is_real(cooling_rate) and 0.0 < cooling_rate < 1.0):
        raise InvalidConfigurationError(f"cooling_rate must be in the open interval (0, 1), got {cooling_rate!r}")
    if not (_is_int(steps) and steps >= 0):
        raise InvalidConfigurationError(f"steps must be a non-negative integer, got {steps!r}")
    for name, v in (('history_stride', history_stride),
                    ('progress_stride', progress_stride),
                    ('chunk_size', chunk_size)):
        if not (_is_int(v) and v >= 1):
            raise InvalidConfigurationError(f"{name} must be a positive integer, got {v!r}")
    if not (_is_int(resync_interval) and resync_interval >= 0):
        raise InvalidConfigurationError(f"resync_interval must be a non-negative integer, got {resync_interval!r}")
    if min_temperature is not None:
        if not (_is_real(min_temperature) and math.isfinite(min_temperature) and min_temperature > 0):
            raise InvalidConfigurationError(f"min_temperature must be None or a finite number > 0, got {min_temperature!r}")
        if min_temperature > initial_temp:
            raise InvalidConfigurationError(
                f"min_temperature ({min_temperature}) must not exceed initial_temp ({initial_temp})")


# -----------------------------------------------------------------------------
# Dataclasses
# -----------------------------------------------------------------------------
@dataclass
class AnnealConfig:
    # 问题规模与温度表（默认值与前端应用一致）
    spin_count: int = 10
    initial_temp: float = 100.0
    cooling_rate: float = 0.95
    steps: int = 1000

    # 随机种子（None → 操作系统熵源，不可复现）
    seed: Optional[int] = None

    # 采样 / 进度 / 协作模式分块
    history_stride: int = 10
    progress_stride: int = 100
    chunk_size: int = 10

    # 0 表示从不重算；>0 时每隔该步数用完整求和校正累计能量
    resync_interval: int = 0
    # 温度下限（None 表示纯几何衰减）
    min_temperature: Optional[float] = None

    def __post_init__(self):
        if self.seed is not None and not (_is_int(self.seed) and self.seed >= 0):
            raise InvalidConfigurationError(f"seed must be None or a non-negative integer, got {self.seed!r}")
        check_anneal_params(
            self.spin_count, self.initial_temp, self.cooling_rate, self.steps,
            history_stride=self.history_stride,
            progress_stride=self.progress_stride,
            chunk_size=self.chunk_size,
            resync_interval=self.resync_interval,
            min_temperature=self.min_temperature,
        )

    def final_temperature(self) -> float:
        """最后一步执行后的理论温度 T0 * r^steps（考虑 min_temperature 下限）。"""
        t = float(self.initial_temp) * float(self.cooling_rate) ** int(self.steps)
        if self.min_temperature is not None:
            t = max(t, float(self.min_temperature))
        return t


@dataclass
class LoggingConfig:
    level: str = 'INFO'
    log_file: Optional[str] = None
    use_color: bool = True
    utc: bool = False
    rotate: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        lvl = str(self.level).upper()
        if lvl not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise InvalidConfigurationError(f"logging.level must be a standard level name, got {self.level!r}")
        self.level = lvl


@dataclass
class Config:
    anneal: AnnealConfig = field(default_factory=AnnealConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    project_name: str = 'ising_anneal'
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'anneal': asdict(self.anneal),
            'logging': asdict(self.logging),
            'project_name': self.project_name,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Config':
        d = d or {}
        try:
            anneal = AnnealConfig(**(d.get('anneal', {}) or {}))
            log_cfg = LoggingConfig(**(d.get('logging', {}) or {}))
        except TypeError as exc:
            # 未知字段
            raise InvalidConfigurationError(f"Invalid config keys: {exc}") from exc
        return cls(
            anneal=anneal,
            logging=log_cfg,
            project_name=d.get('project_name', 'ising_anneal'),
            version=int(d.get('version', 1)),
        )

# -----------------------------------------------------------------------------
# I/O
# -----------------------------------------------------------------------------
def _read_config_file(filepath: str) -> Dict[str, Any]:
    p = Path(filepath)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")
    suf = p.suffix.lower()
    if suf in ('.yaml', '.yml'):
        with open(p, 'r', encoding='utf-8') as f:
            cfg = yaml.safe_load(f) or {}
    elif suf == '.json':
        with open(p, 'r', encoding='utf-8') as f:
            cfg = json.load(f) or {}
    else:
        raise ValueError(f"Unsupported config file extension: {suf}")
    if not isinstance(cfg, dict):
        raise InvalidConfigurationError(f"Config file {filepath} must contain a mapping at top level")
    return cfg


def load_config(filepath: str) -> Config:
    """从 YAML 或 JSON 文件加载配置并返回 Config 对象（缺省字段取默认值）。"""
    return Config.from_dict(_read_config_file(filepath))


def save_config(config: Config, filepath: str, format: Optional[str] = None):
    """将 Config 保存为 YAML 或 JSON。默认根据后缀判断格式。"""
    p = Path(filepath)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    fmt = format
    if fmt is None:
        fmt = 'json' if p.suffix.lower() == '.json' else 'yaml'

    if fmt == 'yaml':
        with open(p, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    elif fmt == 'json':
        with open(p, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    else:
        raise ValueError(f"Unsupported format: {fmt}")
    logger.info("Config saved: %s", p)

# -----------------------------------------------------------------------------
# Presets
# -----------------------------------------------------------------------------
def get_preset_config(name: str) -> Config:
    """返回内置预设配置的副本（deepcopy）。"""
    presets: Dict[str, Config] = {
        'quick': Config(
            anneal=AnnealConfig(spin_count=10, initial_temp=10.0, cooling_rate=0.95, steps=200)
        ),
        'default': Config(),
        'long': Config(
            anneal=AnnealConfig(
                spin_count=50, initial_temp=100.0, cooling_rate=0.999, steps=20000,
                history_stride=50, progress_stride=1000, chunk_size=100, resync_interval=5000,
            )
        ),
    }
    if name not in presets:
        raise ValueError(f"Unknown preset: {name}. Available: {list(presets.keys())}")
    return copy.deepcopy(presets[name])

# -----------------------------------------------------------------------------
# Environment variables (nested via sep, e.g., ANNEAL__anneal__steps=5000)
# -----------------------------------------------------------------------------
def load_from_env(prefix: str = 'ANNEAL', sep: str = '__') -> Dict[str, Any]:
    """
    从环境变量读取以 prefix 开头、用 sep 分层的键，返回嵌套 dict。
    例： ANNEAL__anneal__steps=5000  → {'anneal': {'steps': 5000}}
    """
    out: Dict[str, Any] = {}
    pfx = prefix + sep
    for k, v in os.environ.items():
        if not k.startswith(pfx):
            continue
        parts = [p for p in k[len(pfx):].split(sep) if p]
        if not parts:
            continue
        _set_by_path(out, parts, _parse_env_value(v))
    return out

# -----------------------------------------------------------------------------
# Merge & validate
# -----------------------------------------------------------------------------
def merge_configs(base: Config, override: Dict[str, Any]) -> Config:
    """将 override（nested dict）深度合并到 base 的字典表示上，返回新的 Config。"""
    base_dict = base.to_dict()
    _deep_merge(base_dict, override or {})
    return Config.from_dict(base_dict)


def validate_config(cfg: Config) -> Tuple[bool, List[str]]:
    """
    软性一致性检查（仅返回 issues，不抛错；硬约束已在 __post_init__ 完成）。
    """
    issues: List[str] = []
    a = cfg.anneal

    # 温度在最后一步开始前下溢为 0 → 运行时会抛 NumericDegeneracyError
    if a.min_temperature is None and a.steps > 1:
        log_t_last = math.log(a.initial_temp) + (a.steps - 1) * math.log(a.cooling_rate)
        if log_t_last < math.log(_FLOAT_TINY):
            k = int(math.ceil((math.log(_FLOAT_TINY) - math.log(a.initial_temp)) / math.log(a.cooling_rate)))
            issues.append(f"temperature underflows to 0 around step {k} of {a.steps}; "
                          "set anneal.min_temperature or reduce anneal.steps")

    if a.steps > 0 and a.chunk_size > a.steps:
        issues.append(f"anneal.chunk_size ({a.chunk_size}) > anneal.steps ({a.steps}); "
                      "cooperative mode will run in a single chunk")
    if a.steps > 0 and a.progress_stride > a.steps:
        issues.append(f"anneal.progress_stride ({a.progress_stride}) > anneal.steps ({a.steps}); "
                      "only the first step will be reported in sync mode")
    if a.seed is None:
        issues.append("anneal.seed is None -- runs are not reproducible")

    return len(issues) == 0, issues

# -----------------------------------------------------------------------------
# CLI helpers
# -----------------------------------------------------------------------------
def _parse_cli_overrides(kv_list: List[str]) -> Dict[str, Any]:
    """
    解析 --set key=value（点分路径）列表，返回 nested dict。
    例：--set anneal.steps=5000 → {'anneal': {'steps': 5000}}
    """
    out: Dict[str, Any] = {}
    for kv in (kv_list or []):
        if '=' not in kv:
            raise ValueError(f"--set expects key=value pairs, got: {kv}")
        key, val = kv.split('=', 1)
        path = [p.strip() for p in key.split('.') if p.strip()]
        if not path:
            continue
        _set_by_path(out, path, _parse_env_value(val))
    return out


def from_args(args: Optional[List[str]] = None, env_prefix: str = 'ANNEAL') -> Config:
    """
    从命令行参数加载并合并配置（优先级从低到高）:
      默认/预设 <- 文件 (--config) <- 环境变量 (--env-prefix) <- CLI --set
    """
    import argparse
    ap = argparse.ArgumentParser(description="Load & merge annealer configuration")
    ap.add_argument('--preset', type=str, choices=['quick', 'default', 'long'], help='preset name')
    ap.add_argument('--config', type=str, help='config file (yaml|json)')
    ap.add_argument('--env-prefix', type=str, default=env_prefix,
                    help=f'environment variable prefix (default {env_prefix})')
    ap.add_argument('--set', dest='sets', action='append', default=[],
                    help='override key=value (dot notation, can repeat)')
    ns = ap.parse_args(args=args)

    cfg = get_preset_config(ns.preset) if ns.preset else Config()

    if ns.config:
        # 只覆盖文件中出现的键，未出现的保留预设值
        cfg = merge_configs(cfg, _read_config_file(ns.config))

    env_over = load_from_env(prefix=ns.env_prefix)
    if env_over:
        cfg = merge_configs(cfg, env_over)

    cli_over = _parse_cli_overrides(ns.sets)
    if cli_over:
        cfg = merge_configs(cfg, cli_over)

    ok, issues = validate_config(cfg)
    if not ok:
        for it in issues:
            logger.warning("Config validation: %s", it)
    return cfg
