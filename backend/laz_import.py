import gc
from pathlib import Path
from typing import Dict, Iterator, List

import laspy
import numpy as np

from config import BLOCK_SIZE, CHUNK_SIZE, DATA_DIR, DB_PATH, LAZ_SCHEMA
from positional_db import PositionalDB


WHITE = 65535


class LazImporter:
    """
    Carga nubes LAZ/LAS en una PositionalDB creada con LAZ_SCHEMA.
    """

    def __init__(self, db: PositionalDB, input_dir: Path, chunk_size: int = CHUNK_SIZE):
        self.db = db
        self.input_dir = Path(input_dir)
        self.chunk_size = chunk_size
        self.total_points = 0

        missing = [name for name, _ in LAZ_SCHEMA if name not in db.schema.names]
        if missing:
            raise ValueError(f"El esquema de la base no tiene: {', '.join(missing)}")

    def files(self) -> List[Path]:
        return sorted(
            list(self.input_dir.glob("*.laz")) + list(self.input_dir.glob("*.las"))
        )

    def build_records(self, points) -> List[Dict]:
        """
        Un dict por punto: x, y, z, red, green, blue.
        """
        xyz = np.vstack((points.x, points.y, points.z)).T.astype(np.float64)

        # 🎨 COLORES (si existen)
        if hasattr(points, "red"):
            rgb = np.vstack((points.red, points.green, points.blue)).T.astype(np.int64)
        else:
            rgb = np.full((xyz.shape[0], 3), WHITE, dtype=np.int64)

        return [
            {"x": x, "y": y, "z": z, "red": r, "green": g, "blue": b}
            for (x, y, z), (r, g, b) in zip(xyz.tolist(), rgb.tolist())
        ]

    def chunks(self, laz_file: Path) -> Iterator[List[Dict]]:
        with laspy.open(laz_file) as reader:
            for points in reader.chunk_iterator(self.chunk_size):
                yield self.build_records(points)

    # =========================
    # PIPELINE
    # =========================

    def run(self) -> int:
        print("🧱 Importando archivos LAZ...")

        for laz_file in self.files():
            print(f"📦 {laz_file.name}")

            for records in self.chunks(laz_file):
                self.total_points += self.db.add_many(records)

                del records
                gc.collect()

        print(f"✅ Total puntos importados: {self.total_points}")
        return self.total_points


if __name__ == "__main__":
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    with PositionalDB(DB_PATH, LAZ_SCHEMA, BLOCK_SIZE) as db:
        LazImporter(db, DATA_DIR).run()
        print(f"🧾 Bloques: {len(db.list_blocks())}")
