import sqlite3
import time
from pathlib import Path
from typing import Dict, Optional

import numpy as np

from point_schema import new_point
from positional_db import PositionalDB


def _timer():
    t0 = time.perf_counter()

    def lap() -> float:
        return time.perf_counter() - t0
    return lap


def run_comparison(
    n: int,
    workdir: Path,
    center=(50.0, 50.0),
    radius: float = 20.0,
    seed: Optional[int] = None
) -> Dict:
    """
    Mismos n puntos en una tabla única y en una PositionalDB; mide la
    misma consulta por radio en ambas.
    """
    workdir = Path(workdir)
    workdir.mkdir(parents=True, exist_ok=True)
    plain_path = workdir / "plain.db"
    pos_path = workdir / "pos.db"

    for path in (plain_path, pos_path):
        for suffix in ("", "-wal", "-shm"):
            Path(f"{path}{suffix}").unlink(missing_ok=True)

    rng = np.random.default_rng(seed)
    coords = rng.random((n, 2)) * 100.0
    points = [new_point(x, y, str="some sample data") for x, y in coords.tolist()]

    posdb = PositionalDB(pos_path, "str TEXT")
    posdb.add_many(points)

    plaindb = sqlite3.connect(str(plain_path))
    plaindb.execute("PRAGMA journal_mode = WAL")
    plaindb.execute(
        "CREATE TABLE IF NOT EXISTS allpoints (id TEXT PRIMARY KEY, x REAL, y REAL, str TEXT)"
    )
    plaindb.executemany(
        "INSERT INTO allpoints VALUES (?, ?, ?, ?)",
        ((p["id"], p["x"], p["y"], p["str"]) for p in points)
    )
    plaindb.commit()

    cx, cy = center

    # Tabla única: recorrer todo
    lap = _timer()
    r2 = radius * radius
    plain_hits = [
        row for row in plaindb.execute("SELECT * FROM allpoints")
        if (row[1] - cx) ** 2 + (row[2] - cy) ** 2 <= r2
    ]
    plain_time = lap()

    lap = _timer()
    pos_hits = posdb.get_within_radius(cx, cy, radius)
    pos_time = lap()

    plaindb.close()
    posdb.close()

    return {
        "plain": {"time": plain_time, "size": plain_path.stat().st_size, "hits": len(plain_hits)},
        "pos": {"time": pos_time, "size": pos_path.stat().st_size, "hits": len(pos_hits)},
    }


def average_results(test_count: int, n: int, workdir: Path) -> Dict:
    results = [run_comparison(n, workdir) for _ in range(test_count)]

    summary = {}
    for name in ("plain", "pos"):
        summary[name] = {
            "time": sum(r[name]["time"] for r in results) / test_count,
            "size": results[-1][name]["size"],
        }

    print(f"n: {n}")
    print(f"plain db: {summary['plain']}")
    print(f"pos db: {summary['pos']}")
    print()

    return summary


if __name__ == "__main__":
    WORKDIR = Path("benchmark_data")
    TEST_COUNT = 10

    for n in (100, 1_000, 10_000, 100_000):
        average_results(TEST_COUNT, n, WORKDIR)
