# -*- coding: utf-8 -*-
"""
    全连接 Ising 模型模拟退火器 (cpu 版)

    `Annealer` 持有问题实例 (J, h)、当前搜索状态（自旋、累计能量、温度）、最优解，
以及按固定步长采样的能量/温度历史。两种运行模式共用同一个单步内核：

实现功能:
    - run(): 同步运行到结束，适合批处理/离线任务
    - run_cooperative(): asyncio 协程，每 chunk_size 步让出一次控制权，避免长期占用宿主事件循环
    - iter_chunks(): 同一分块循环的普通生成器版本，供非 asyncio 宿主（定时器、GUI idle 回调）逐块驱动
    - 显式 RNG: 随机数全部来自实例持有的 numpy.random.Generator（seed 或注入）
    - 并发保护: 同一实例上同时发起第二次运行直接抛 ConcurrentRunError
    - 取消: cancel() / timeout 在分块边界检查，抛 RunCancelledError，不返回部分结果
    - 能量校正: resync_interval > 0 时周期性用完整求和校正累计能量

注意:
    给定相同的随机数序列，run() 与 run_cooperative() 的接受/拒绝序列和结果逐位一致；
    两者只在让出控制权的粒度与进度回调节奏上不同。
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Generator, Optional
import asyncio
import logging
import math
import threading
import time
import warnings

import numpy as np

from ..core.algorithms import energy, energy_delta, make_rng, metropolis_step, random_spins
from ..core.problem import ProblemInstance, generate_problem
from ..errors import (
    ConcurrentRunError,
    InvalidConfigurationError,
    NumericDegeneracyError,
    RunCancelledError,
)
from ..utils.config import AnnealConfig, Config, check_anneal_params
from .results import ProgressInfo, RunResult, frozen_copy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressInfo], Any]

__all__ = ['Annealer', 'ProgressCallback']


async def _next_tick() -> None:
    await asyncio.sleep(0)


class Annealer:
    """
    模拟退火主控类（实例独占 RNG 与搜索状态）

    >>> ann = Annealer(spin_count=10, initial_temp=100.0, cooling_rate=0.95, steps=1000, seed=42)
    >>> result = ann.run()
    >>> result.best_energy <= result.final_energy
    True
    """

    def __init__(
        self,
        spin_count: int,
        initial_temp: float,
        cooling_rate: float,
        steps: int,
        *,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        problem: Optional[ProblemInstance] = None,
        history_stride: int = 10,
        progress_stride: int = 100,
        chunk_size: int = 10,
        resync_interval: int = 0,
        min_temperature: Optional[float] = None,
    ) -> None:
        check_anneal_params(
            spin_count, initial_temp, cooling_rate, steps,
            history_stride=history_stride,
            progress_stride=progress_stride,
            chunk_size=chunk_size,
            resync_interval=resync_interval,
            min_temperature=min_temperature,
        )
        self.N = int(spin_count)
        self.T0 = float(initial_temp)
        self.cooling_rate = float(cooling_rate)
        self.steps = int(steps)
        self.history_stride = int(history_stride)
        self.progress_stride = int(progress_stride)
        self.chunk_size = int(chunk_size)
        self.resync_interval = int(resync_interval)
        self.min_temperature = None if min_temperature is None else float(min_temperature)

        # RNG：rng 优先；同时给 seed 时忽略 seed
        if rng is not None:
            if not isinstance(rng, np.random.Generator):
                raise InvalidConfigurationError("rng must be a numpy.random.Generator if provided.")
            if seed is not None:
                warnings.warn("Both 'rng' and 'seed' given; 'seed' is ignored.", UserWarning, stacklevel=2)
                seed = None
            self._rng = rng
        else:
            self._rng = make_rng(seed)
        self.seed = None if seed is None else int(seed)

        # 问题实例：显式给定或随机生成（先 J 后 h）
        if problem is not None:
            if not isinstance(problem, ProblemInstance):
                raise InvalidConfigurationError("problem must be a ProblemInstance")
            if problem.n_spins != self.N:
                raise InvalidConfigurationError(
                    f"spin_count ({self.N}) does not match problem size ({problem.n_spins})")
            self.problem = problem
        else:
            self.problem = generate_problem(self.N, self._rng)

        # 搜索状态 + 最优解（值拷贝，不与 _spins 别名）
        self._spins = random_spins(self.N, self._rng)
        self._current_energy = energy(self.problem, self._spins)
        if not math.isfinite(self._current_energy):
            raise NumericDegeneracyError(f"initial energy is not finite: {self._current_energy!r}")
        self._temperature = self.T0
        self._best_spins = self._spins.copy()
        self._best_energy = self._current_energy

        self._history_steps: list = []
        self._energy_history: list = []
        self._temperature_history: list = []
        self._accepted = 0
        self._steps_done = 0

        self._run_lock = threading.Lock()
        self._cancel_event = threading.Event()

        logger.debug("Annealer created: N=%d T0=%g r=%g steps=%d seed=%s E0=%.6f",
                     self.N, self.T0, self.cooling_rate, self.steps, self.seed, self._current_energy)

    @classmethod
    def from_config(cls, config: Any, **kwargs) -> 'Annealer':
        """由 AnnealConfig（或含 anneal 段的 Config）构造；kwargs 透传（如 rng / problem）。"""
        a = config.anneal if isinstance(config, Config) else config
        if not isinstance(a, AnnealConfig):
            raise InvalidConfigurationError(f"expected AnnealConfig or Config, got {type(config).__name__}")
        params: Dict[str, Any] = dict(
            seed=a.seed,
            history_stride=a.history_stride,
            progress_stride=a.progress_stride,
            chunk_size=a.chunk_size,
            resync_interval=a.resync_interval,
            min_temperature=a.min_temperature,
        )
        params.update(kwargs)
        return cls(a.spin_count, a.initial_temp, a.cooling_rate, a.steps, **params)

    # -------------------------
    # 只读访问
    # -------------------------
    @property
    def spins(self) -> np.ndarray:
        return self._spins.copy()

    @property
    def current_energy(self) -> float:
        return float(self._current_energy)

    @property
    def temperature(self) -> float:
        return float(self._temperature)

    @property
    def best_spins(self) -> np.ndarray:
        return self._best_spins.copy()

    @property
    def best_energy(self) -> float:
        return float(self._best_energy)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def energy(self, spins: Any = None) -> float:
        """完整哈密顿量；spins 缺省为当前构型。"""
        return energy(self.problem, self._spins if spins is None else spins)

    def energy_delta(self, spins: Any, index: int) -> float:
        return energy_delta(self.problem, np.asarray(spins), index)

    def cancel(self) -> None:
        """请求中止当前运行（在下一个分块边界生效）。"""
        self._cancel_event.set()

    # -------------------------
    # 核心：单步 / 校正 / 采样
    # -------------------------
    def _step(self, k: int) -> None:
        """第 k 步（0 起算）：Metropolis 移动 → 更新最优 → 降温 → 可选校正 → 采样。"""
        if not (self._temperature > 0.0 and math.isfinite(self._temperature)):
            logger.error("Temperature degenerated to %r before step %d", self._temperature, k)
            raise NumericDegeneracyError(
                f"temperature is {self._temperature!r} at step {k}; "
                "cooling schedule underflowed (set min_temperature or reduce steps)")

        _, delta, accepted = metropolis_step(self.problem, self._spins, self._temperature, self._rng)
        if accepted:
            self._current_energy += delta
            self._accepted += 1
            if self._current_energy < self._best_energy:
                self._best_energy = self._current_energy
                self._best_spins = self._spins.copy()

        t = self._temperature * self.cooling_rate
        if self.min_temperature is not None and t < self.min_temperature:
            t = self.min_temperature
        self._temperature = t
        self._steps_done = k + 1

        if self.resync_interval and (k + 1) % self.resync_interval == 0:
            self._resync(k + 1)

        if k % self.history_stride == 0:
            self._record(k + 1)

    def _resync(self, step: int) -> None:
        exact = energy(self.problem, self._spins)
        if not math.isfinite(exact):
            raise NumericDegeneracyError(f"energy is not finite at step {step}: {exact!r}")
        logger.debug("resync at step %d: drift=%.3e", step, self._current_energy - exact)
        self._current_energy = exact
        if self._current_energy < self._best_energy:
            self._best_energy = self._current_energy
            self._best_spins = self._spins.copy()

    def _record(self, step: int) -> None:
        self._history_steps.append(step)
        self._energy_history.append(self._current_energy)
        self._temperature_history.append(self._temperature)

    def _progress(self, step: int) -> ProgressInfo:
        percent = 100.0 * step / self.steps if self.steps > 0 else 100.0
        return ProgressInfo(
            step=int(step),
            total_steps=self.steps,
            current_energy=float(self._current_energy),
            best_energy=float(self._best_energy),
            temperature=float(self._temperature),
            percent=float(percent),
        )

    def _check_cancel(self, step: int, deadline: Optional[float] = None) -> None:
        if self._cancel_event.is_set():
            logger.warning("Run cancelled at step %d/%d", step, self.steps)
            raise RunCancelledError(f"run cancelled at step {step}", step=step)
        if deadline is not None and time.monotonic() > deadline:
            logger.warning("Run exceeded its deadline at step %d/%d", step, self.steps)
            raise RunCancelledError(f"run deadline exceeded at step {step}", step=step)

    # -------------------------
    # 运行生命周期
    # -------------------------
    def _begin(self, mode: str) -> float:
        if not self._run_lock.acquire(blocking=False):
            raise ConcurrentRunError("a run is already in progress on this Annealer instance")
        try:
            self._cancel_event.clear()
            self._temperature = self.T0
            self._current_energy = energy(self.problem, self._spins)
            if not math.isfinite(self._current_energy):
                raise NumericDegeneracyError(f"energy is not finite: {self._current_energy!r}")
            if self._current_energy < self._best_energy:
                self._best_energy = self._current_energy
                self._best_spins = self._spins.copy()
            self._history_steps = []
            self._energy_history = []
            self._temperature_history = []
            self._accepted = 0
            self._steps_done = 0
            self._record(0)
        except BaseException:
            self._run_lock.release()
            raise
        logger.info("Annealing started (%s): N=%d steps=%d T0=%g r=%g E0=%.6f",
                    mode, self.N, self.steps, self.T0, self.cooling_rate, self._current_energy)
        return time.perf_counter()

    def _end(self) -> None:
        self._run_lock.release()

    def _finish(self, mode: str, t_start: float) -> RunResult:
        elapsed = time.perf_counter() - t_start
        result = RunResult(
            best_spins=frozen_copy(self._best_spins, dtype=np.int8),
            best_energy=float(self._best_energy),
            final_spins=frozen_copy(self._spins, dtype=np.int8),
            final_energy=float(self._current_energy),
            energy_history=frozen_copy(self._energy_history, dtype=np.float64),
            temperature_history=frozen_copy(self._temperature_history, dtype=np.float64),
            history_steps=frozen_copy(self._history_steps, dtype=np.int64),
            interaction_matrix=self.problem.J,
            external_field=self.problem.h,
            steps=self._steps_done,
            final_temperature=float(self._temperature),
            accepted_moves=int(self._accepted),
            seed=self.seed,
            mode=mode,
            elapsed_s=float(elapsed),
        )
        logger.info("Annealing finished (%s): best=%.6f final=%.6f accepted=%d/%d in %.3fs",
                    mode, result.best_energy, result.final_energy,
                    result.accepted_moves, result.steps, elapsed)
        return result

    # -------------------------
    # 同步模式
    # -------------------------
    def run(self, on_progress: Optional[ProgressCallback] = None, *,
            timeout: Optional[float] = None) -> RunResult:
        """
        同步执行 steps 步。

        参数：
          - on_progress: 第 k 步（0 起算）执行后若 k % progress_stride == 0 则调用；
            ProgressInfo.step 为步下标 k（percent = k / steps），能量与温度为该步之后的值
          - timeout: 可选截止时间（秒），在每个 chunk_size 边界检查，超时抛 RunCancelledError
        """
        if timeout is not None and not (timeout > 0):
            raise InvalidConfigurationError(f"timeout must be > 0 seconds, got {timeout!r}")
        t_start = self._begin('sync')
        try:
            deadline = time.monotonic() + float(timeout) if timeout is not None else None
            for k in range(self.steps):
                if k % self.chunk_size == 0:
                    self._check_cancel(k, deadline)
                self._step(k)
                if on_progress is not None and k % self.progress_stride == 0:
                    on_progress(self._progress(k))
            return self._finish('sync', t_start)
        finally:
            self._end()

    # -------------------------
    # 协作（分块）模式
    # -------------------------
    def _chunk_loop(self, on_progress: Optional[ProgressCallback], mode: str
                    ) -> Generator[ProgressInfo, None, RunResult]:
        t_start = self._begin(mode)
        try:
            step = 0
            while True:
                self._check_cancel(step)
                end = min(step + self.chunk_size, self.steps)
                for k in range(step, end):
                    self._step(k)
                step = end
                info = self._progress(step)
                if on_progress is not None:
                    on_progress(info)
                if step >= self.steps:
                    return self._finish(mode, t_start)
                yield info
        finally:
            self._end()

    def iter_chunks(self, on_progress: Optional[ProgressCallback] = None
                    ) -> Generator[ProgressInfo, None, RunResult]:
        """
        分块执行的生成器：每完成一个 chunk 产出一次 ProgressInfo（最后一块除外），
        结束时以 StopIteration.value 返回 RunResult。

        注意：并发检查在第一次 next() 时进行；中途丢弃生成器（close/GC）会释放运行锁。
        """
        return self._chunk_loop(on_progress, 'cooperative')

    async def run_cooperative(self, on_progress: Optional[ProgressCallback] = None, *,
                              yield_point: Optional[Callable[[], Awaitable[Any]]] = None) -> RunResult:
        """
        协程版运行：每 chunk_size 步后调用 on_progress，再 await yield_point()
        （缺省 asyncio.sleep(0)）把控制权交还事件循环。只在分块边界挂起。
        """
        pause = yield_point or _next_tick
        chunks = self._chunk_loop(on_progress, 'cooperative')
        try:
            while True:
                try:
                    next(chunks)
                except StopIteration as stop:
                    return stop.value
                await pause()
        finally:
            chunks.close()
