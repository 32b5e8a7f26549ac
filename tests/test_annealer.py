# -*- coding: utf-8 -*-
"""
Annealer 单元测试

覆盖:
- 构造期参数检查（InvalidConfigurationError）
- 边界：steps=0 返回初始状态；N=2 铁磁对收敛到 E=-1
- 不变量：最优能量单调不增且 <= 当前能量；温度 T_k = T0 r^k；累计能量与完整求和一致
- 模式等价：run / run_cooperative / iter_chunks 在相同种子下结果逐位一致
- 历史采样与进度回调节奏
- 并发保护、取消、超时、温度下溢、能量校正、RNG 注入
"""

from __future__ import annotations

import asyncio
import math
import sys
import unittest
from pathlib import Path

import numpy as np

# ----------------------------- 路径适配 -----------------------------
try:
    _ROOT = Path(__file__).resolve().parents[1]
except NameError:
    _ROOT = Path.cwd()

if str(_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(_ROOT / "src"))

from ising_anneal.annealer.annealer import Annealer
from ising_anneal.annealer.results import ProgressInfo, RunResult
from ising_anneal.core.algorithms import make_rng
from ising_anneal.core.problem import ProblemInstance
from ising_anneal.errors import (
    ConcurrentRunError,
    InvalidConfigurationError,
    NumericDegeneracyError,
    RunCancelledError,
)
from ising_anneal.utils.config import AnnealConfig, Config


def _make(seed=42, **kw):
    params = dict(spin_count=12, initial_temp=5.0, cooling_rate=0.99, steps=500)
    params.update(kw)
    return Annealer(seed=seed, **params)


class TestConstruction(unittest.TestCase):

    def test_invalid_configurations(self):
        bad = [
            dict(spin_count=1),
            dict(spin_count=0),
            dict(spin_count=2.5),
            dict(spin_count=True),
            dict(cooling_rate=1.0),
            dict(cooling_rate=0.0),
            dict(cooling_rate=1.5),
            dict(initial_temp=0.0),
            dict(initial_temp=-3.0),
            dict(initial_temp=float('nan')),
            dict(initial_temp=float('inf')),
            dict(steps=-1),
            dict(chunk_size=0),
            dict(history_stride=0),
            dict(progress_stride=0),
            dict(resync_interval=-1),
            dict(min_temperature=0.0),
            dict(min_temperature=100.0),
        ]
        for kw in bad:
            with self.subTest(kw=kw):
                with self.assertRaises(InvalidConfigurationError):
                    _make(**kw)

    def test_seed_type_matches_config(self):
        for bad in (3.0, -2, "7"):
            with self.subTest(seed=bad):
                with self.assertRaises(InvalidConfigurationError):
                    Annealer(4, 1.0, 0.9, 10, seed=bad)
                with self.assertRaises(InvalidConfigurationError):
                    AnnealConfig(spin_count=4, initial_temp=1.0, cooling_rate=0.9, steps=10, seed=bad)

    def test_configuration_error_is_value_error(self):
        with self.assertRaises(ValueError):
            Annealer(1, 1.0, 0.5, 10)

    def test_initial_state(self):
        ann = _make()
        self.assertEqual(ann.N, 12)
        self.assertEqual(ann.temperature, 5.0)
        self.assertEqual(ann.best_energy, ann.current_energy)
        np.testing.assert_array_equal(ann.best_spins, ann.spins)
        self.assertTrue({int(x) for x in ann.spins}.issubset({-1, 1}))
        self.assertAlmostEqual(ann.current_energy, ann.energy(ann.spins), places=12)
        self.assertFalse(ann.is_running)

    def test_same_seed_same_instance(self):
        a, b = _make(seed=3), _make(seed=3)
        np.testing.assert_array_equal(a.problem.J, b.problem.J)
        np.testing.assert_array_equal(a.problem.h, b.problem.h)
        np.testing.assert_array_equal(a.spins, b.spins)

    def test_injected_rng_matches_seed(self):
        a = _make(seed=5)
        b = Annealer(12, 5.0, 0.99, 500, rng=make_rng(5))
        np.testing.assert_array_equal(a.problem.J, b.problem.J)
        ra, rb = a.run(), b.run()
        self.assertEqual(ra.best_energy, rb.best_energy)
        np.testing.assert_array_equal(ra.final_spins, rb.final_spins)

    def test_rng_and_seed_together_warns(self):
        with self.assertWarns(UserWarning):
            ann = Annealer(4, 1.0, 0.9, 10, seed=1, rng=make_rng(2))
        self.assertIsNone(ann.seed)

    def test_explicit_problem(self):
        prob = ProblemInstance.from_arrays([[0.0, 1.0], [1.0, 0.0]], [0.0, 0.0])
        ann = Annealer(2, 1.0, 0.9, 10, seed=0, problem=prob)
        self.assertIs(ann.problem, prob)
        with self.assertRaises(InvalidConfigurationError):
            Annealer(3, 1.0, 0.9, 10, seed=0, problem=prob)

    def test_from_config(self):
        cfg = Config(anneal=AnnealConfig(spin_count=8, initial_temp=2.0, cooling_rate=0.9,
                                         steps=50, seed=17, chunk_size=5))
        a = Annealer.from_config(cfg)
        b = Annealer(8, 2.0, 0.9, 50, seed=17, chunk_size=5)
        self.assertEqual(a.chunk_size, 5)
        np.testing.assert_array_equal(a.problem.J, b.problem.J)
        self.assertEqual(a.run().best_energy, b.run().best_energy)

    def test_delta_helper_matches_energy(self):
        ann = _make(seed=8)
        s = ann.spins
        for i in range(ann.N):
            flipped = s.copy()
            flipped[i] = -flipped[i]
            self.assertAlmostEqual(ann.energy_delta(s, i), ann.energy(flipped) - ann.energy(s), places=9)


class TestRunInvariants(unittest.TestCase):

    def test_zero_steps_returns_initial_state(self):
        ann = _make(steps=0)
        spins0, e0 = ann.spins, ann.current_energy
        result = ann.run()
        self.assertIsInstance(result, RunResult)
        np.testing.assert_array_equal(result.final_spins, spins0)
        np.testing.assert_array_equal(result.best_spins, spins0)
        self.assertEqual(result.final_energy, e0)
        self.assertEqual(result.best_energy, e0)
        self.assertEqual(result.steps, 0)
        self.assertEqual(result.final_temperature, 5.0)
        self.assertEqual(list(result.history_steps), [0])

    def test_two_spin_ferromagnet_aligns(self):
        prob = ProblemInstance.from_arrays([[0.0, 1.0], [1.0, 0.0]], [0.0, 0.0])
        ann = Annealer(2, 0.1, 0.999, 2000, seed=1, problem=prob)
        result = ann.run()
        self.assertAlmostEqual(result.best_energy, -1.0, places=12)
        self.assertEqual(int(result.best_spins[0]), int(result.best_spins[1]))

    def test_best_energy_monotone_and_bounded(self):
        ann = _make(seed=21, steps=400, chunk_size=1)
        seen = []
        gen = ann.iter_chunks(on_progress=seen.append)
        try:
            while True:
                next(gen)
        except StopIteration as stop:
            result = stop.value
        self.assertEqual(len(seen), 400)
        for prev, cur in zip(seen, seen[1:]):
            self.assertLessEqual(cur.best_energy, prev.best_energy)
        for info in seen:
            self.assertLessEqual(info.best_energy, info.current_energy)
        self.assertAlmostEqual(result.best_energy, ann.energy(result.best_spins), places=9)
        self.assertAlmostEqual(result.final_energy, ann.energy(result.final_spins), places=9)

    def test_best_energy_monotone_in_sync_run(self):
        ann = _make(seed=21, steps=400, progress_stride=1)
        seen = []
        result = ann.run(on_progress=seen.append)
        self.assertEqual([p.step for p in seen], list(range(400)))
        for prev, cur in zip(seen, seen[1:]):
            self.assertLessEqual(cur.best_energy, prev.best_energy)
        for info in seen:
            self.assertLessEqual(info.best_energy, info.current_energy)
        self.assertEqual(seen[-1].best_energy, result.best_energy)
        self.assertEqual(seen[-1].current_energy, result.final_energy)

    def test_temperature_decay(self):
        T0, r = 5.0, 0.99
        ann = _make(initial_temp=T0, cooling_rate=r, steps=300)
        result = ann.run()
        self.assertTrue(math.isclose(result.final_temperature, T0 * r ** 300, rel_tol=1e-10))
        for k, t in zip(result.history_steps, result.temperature_history):
            self.assertTrue(math.isclose(t, T0 * r ** int(k), rel_tol=1e-10), msg=f"k={k}")

    def test_result_snapshots_do_not_alias_live_state(self):
        ann = _make(seed=4)
        result = ann.run()
        self.assertFalse(result.best_spins.flags.writeable)
        self.assertFalse(result.final_spins.flags.writeable)
        spins = ann.spins
        spins[:] = 1
        np.testing.assert_array_equal(ann.spins, result.final_spins)

    def test_reuse_keeps_best_and_resets_history(self):
        ann = _make(seed=9, steps=200)
        r1 = ann.run()
        r2 = ann.run()
        self.assertLessEqual(r2.best_energy, r1.best_energy)
        self.assertEqual(r2.history_steps[0], 0)
        self.assertEqual(len(r2.history_steps), len(r1.history_steps))
        self.assertEqual(r2.temperature_history[0], ann.T0)

    def test_to_dict_is_plain_python(self):
        d = _make(steps=30).run().to_dict()
        for key in ('best_spins', 'best_energy', 'final_spins', 'final_energy',
                    'energy_history', 'temperature_history', 'interaction_matrix', 'external_field'):
            self.assertIn(key, d)
        self.assertIsInstance(d['best_spins'], list)
        self.assertIsInstance(d['interaction_matrix'][0], list)
        self.assertIsInstance(d['best_energy'], float)


class TestModeEquivalence(unittest.TestCase):

    def _assert_same(self, a: RunResult, b: RunResult):
        self.assertEqual(a.best_energy, b.best_energy)
        self.assertEqual(a.final_energy, b.final_energy)
        np.testing.assert_array_equal(a.best_spins, b.best_spins)
        np.testing.assert_array_equal(a.final_spins, b.final_spins)
        np.testing.assert_array_equal(a.energy_history, b.energy_history)
        np.testing.assert_array_equal(a.temperature_history, b.temperature_history)
        self.assertEqual(a.accepted_moves, b.accepted_moves)

    def test_sync_and_cooperative_identical(self):
        sync = _make(seed=1234, steps=1003).run()
        coop = asyncio.run(_make(seed=1234, steps=1003).run_cooperative())
        self.assertEqual(sync.mode, 'sync')
        self.assertEqual(coop.mode, 'cooperative')
        self._assert_same(sync, coop)

    def test_sync_and_generator_identical(self):
        sync = _make(seed=77, steps=257).run()
        gen = _make(seed=77, steps=257, chunk_size=13).iter_chunks()
        chunks = 0
        try:
            while True:
                next(gen)
                chunks += 1
        except StopIteration as stop:
            result = stop.value
        self.assertEqual(chunks, 257 // 13)  # 最后一块不 yield
        self._assert_same(sync, result)

    def test_resync_applies_to_both_modes(self):
        sync = _make(seed=5, steps=300, resync_interval=7).run()
        coop = asyncio.run(_make(seed=5, steps=300, resync_interval=7).run_cooperative())
        self._assert_same(sync, coop)


class TestCadence(unittest.TestCase):

    def test_history_sampling(self):
        result = _make(steps=25).run()
        self.assertEqual(list(result.history_steps), [0, 1, 11, 21])
        self.assertEqual(len(result.energy_history), 4)
        self.assertEqual(len(result.temperature_history), 4)

    def test_sync_progress_cadence(self):
        seen = []
        _make(steps=250).run(on_progress=seen.append)
        self.assertEqual([p.step for p in seen], [0, 100, 200])
        self.assertEqual([p.percent for p in seen], [0.0, 40.0, 80.0])
        p = seen[-1]
        self.assertIsInstance(p, ProgressInfo)
        self.assertEqual(p.total_steps, 250)
        # 温度为第 200 步降温之后的值
        self.assertTrue(math.isclose(p.temperature, 5.0 * 0.99 ** 201, rel_tol=1e-10))

    def test_cooperative_progress_cadence(self):
        seen = []
        asyncio.run(_make(steps=25).run_cooperative(on_progress=seen.append))
        self.assertEqual([p.step for p in seen], [10, 20, 25])
        self.assertEqual(seen[-1].percent, 100.0)

    def test_cooperative_zero_steps_reports_once(self):
        seen = []
        result = asyncio.run(_make(steps=0).run_cooperative(on_progress=seen.append))
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].step, 0)
        self.assertEqual(seen[0].percent, 100.0)
        self.assertEqual(result.steps, 0)

    def test_custom_yield_point(self):
        ticks = []

        async def tick():
            ticks.append(1)
            await asyncio.sleep(0)

        asyncio.run(_make(steps=45).run_cooperative(yield_point=tick))
        # 5 个 chunk，最后一个之后不再让出
        self.assertEqual(len(ticks), 4)


class TestConcurrencyAndCancellation(unittest.TestCase):

    def test_nested_run_rejected(self):
        ann = _make(steps=300)
        errors = []

        def on_progress(_info):
            try:
                ann.run()
            except ConcurrentRunError as exc:
                errors.append(exc)

        ann.run(on_progress=on_progress)
        self.assertEqual(len(errors), 3)
        self.assertFalse(ann.is_running)

    def test_generator_holds_lock_until_closed(self):
        ann = _make(steps=100)
        gen = ann.iter_chunks()
        next(gen)
        self.assertTrue(ann.is_running)
        with self.assertRaises(ConcurrentRunError):
            ann.run()
        gen.close()
        self.assertFalse(ann.is_running)
        ann.run()

    def test_concurrent_cooperative_runs_rejected(self):
        ann = _make(steps=200)

        async def main():
            return await asyncio.gather(ann.run_cooperative(), ann.run_cooperative(),
                                        return_exceptions=True)

        first, second = asyncio.run(main())
        self.assertIsInstance(first, RunResult)
        self.assertIsInstance(second, ConcurrentRunError)
        self.assertFalse(ann.is_running)

    def test_cancel_sync_run(self):
        ann = _make(steps=1000)
        with self.assertRaises(RunCancelledError) as cm:
            ann.run(on_progress=lambda _info: ann.cancel())
        self.assertEqual(cm.exception.step, ann.chunk_size)
        self.assertFalse(ann.is_running)
        # 新的运行会清除取消标记
        self.assertEqual(ann.run().steps, 1000)

    def test_cancel_cooperative_run(self):
        ann = _make(steps=1000)
        with self.assertRaises(RunCancelledError) as cm:
            asyncio.run(ann.run_cooperative(on_progress=lambda info: ann.cancel() if info.step >= 30 else None))
        self.assertEqual(cm.exception.step, 30)
        self.assertFalse(ann.is_running)

    def test_asyncio_task_cancellation_releases_lock(self):
        ann = _make(steps=100_000)

        async def main():
            task = asyncio.ensure_future(ann.run_cooperative())
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return True
            return False

        self.assertTrue(asyncio.run(main()))
        self.assertFalse(ann.is_running)

    def test_timeout(self):
        ann = _make(steps=1_000_000)
        with self.assertRaises(RunCancelledError):
            ann.run(timeout=1e-9)
        self.assertFalse(ann.is_running)
        with self.assertRaises(InvalidConfigurationError):
            ann.run(timeout=0)


class TestNumericGuards(unittest.TestCase):

    def test_temperature_underflow_detected(self):
        ann = Annealer(6, 1e-300, 1e-10, 10, seed=3)
        with self.assertRaises(NumericDegeneracyError):
            ann.run()
        self.assertFalse(ann.is_running)

    def test_min_temperature_floor(self):
        ann = Annealer(6, 1e-300, 1e-10, 10, seed=3, min_temperature=1e-305)
        result = ann.run()
        self.assertEqual(result.final_temperature, 1e-305)

    def test_resync_keeps_energy_exact(self):
        ann = _make(seed=13, steps=500, resync_interval=50)
        result = ann.run()
        self.assertEqual(result.final_energy, ann.energy(result.final_spins))
        self.assertLessEqual(result.best_energy, result.final_energy)


if __name__ == "__main__":
    unittest.main(verbosity=2)
