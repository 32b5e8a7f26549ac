# examples/quick_start.py
"""
Quick start: 最简单的模拟退火示例

- 随机生成 N=10 的全连接 Ising 实例，同步跑 1000 步
- 同一实例再用协程模式跑一遍（asyncio 事件循环内分块执行）
- 不依赖 Config 系统，直接用裸参数
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "src"):
    s = str(p)
    if s not in sys.path:
        sys.path.insert(0, s)

from ising_anneal.annealer.annealer import Annealer
from ising_anneal.utils.logger import ProgressLogger, log_result, setup_logger


async def _heartbeat(ann: Annealer) -> int:
    # 退火运行期间事件循环仍能调度其他任务
    ticks = 0
    while ann.is_running or ticks == 0:
        ticks += 1
        await asyncio.sleep(0)
    return ticks


async def run_both(ann: Annealer):
    result, ticks = await asyncio.gather(ann.run_cooperative(), _heartbeat(ann))
    return result, ticks


def main():
    logger = setup_logger('ising_anneal', level='INFO')

    ann = Annealer(spin_count=10, initial_temp=100.0, cooling_rate=0.95, steps=1000, seed=42)

    # 1. 同步模式
    prog = ProgressLogger(desc="sync", logger=logger)
    result = ann.run(on_progress=prog)
    prog.finish()
    log_result(result, logger=logger)

    # 2. 协程模式（同一实例：温度重置为 T0，从上一次的终态继续）
    result_coop, ticks = asyncio.run(run_both(ann))
    log_result(result_coop, logger=logger)
    print("事件循环心跳次数:", ticks)
    print("最优构型:", result_coop.best_spins.tolist())


if __name__ == "__main__":
    main()
