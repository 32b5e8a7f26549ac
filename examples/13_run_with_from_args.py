# examples/run_with_from_args.py
"""
使用 from_args() + 命令行 --preset / --config / --set / ENV 来驱动退火。

    python examples/13_run_with_from_args.py --preset long --set anneal.seed=7
    ANNEAL__anneal__steps=5000 python examples/13_run_with_from_args.py
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "src"):
    s = str(p)
    if s not in sys.path:
        sys.path.insert(0, s)

from ising_anneal.annealer.annealer import Annealer
from ising_anneal.utils.config import from_args
from ising_anneal.utils.logger import ProgressLogger, log_result, setup_logger


def main():
    cfg = from_args()  # 会解析 --preset / --config / --set / ENV 等
    logger = setup_logger(cfg.project_name, **asdict(cfg.logging))

    ann = Annealer.from_config(cfg)
    prog = ProgressLogger(desc=cfg.project_name, logger=logger, log_every_n=5)
    result = ann.run(on_progress=prog)
    prog.finish()
    log_result(result, logger=logger)

    out = Path("runs") / "from_args_result.json"
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    print("Run finished. Result:", out)


if __name__ == "__main__":
    main()
