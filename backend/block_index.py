import math
import re
from typing import NamedTuple, Optional, Tuple

import numpy as np


_TABLE_RE = re.compile(r"^block_x([pn])(\d+)_y([pn])(\d+)$")


def floor_div(a: float, b: float) -> int:
    return int(math.floor(a / b))


def _signed(value: int) -> str:
    return f"{'n' if value < 0 else 'p'}{abs(value)}"


class BlockKey(NamedTuple):
    """Índices enteros de la celda; el nombre de la tabla sale de aquí."""

    cell_x: int
    cell_y: int

    @property
    def table(self) -> str:
        return f"block_x{_signed(self.cell_x)}_y{_signed(self.cell_y)}"

    @classmethod
    def from_table(cls, name: str) -> Optional["BlockKey"]:
        match = _TABLE_RE.match(name)
        if match is None:
            return None
        sx, ax, sy, ay = match.groups()
        cell_x = -int(ax) if sx == "n" else int(ax)
        cell_y = -int(ay) if sy == "n" else int(ay)
        return cls(cell_x, cell_y)

    def __str__(self):
        return self.table


# =========================
# BLOCK INDEX
# =========================

class BlockIndex:
    """
    Matemática de la rejilla. Las celdas son cuadrados de lado block_size
    alineados en múltiplos de block_size; para coordenadas negativas se
    redondea hacia -inf, así (-0.5, -0.5) cae en el bloque (-20, -20).
    """

    def __init__(self, block_size: float = 20.0):
        block_size = float(block_size)
        if not math.isfinite(block_size) or block_size <= 0:
            raise ValueError(f"block_size debe ser positivo, no {block_size}")
        self.block_size = block_size

    def cell(self, x: float, y: float) -> Tuple[int, int]:
        return floor_div(x, self.block_size), floor_div(y, self.block_size)

    def find_block(self, x: float, y: float) -> Tuple[float, float]:
        cx, cy = self.cell(x, y)
        return cx * self.block_size, cy * self.block_size

    def block_key(self, block_x: float, block_y: float) -> BlockKey:
        return BlockKey(
            int(round(block_x / self.block_size)),
            int(round(block_y / self.block_size)),
        )

    def find_table(self, x: float, y: float) -> BlockKey:
        return BlockKey(*self.cell(x, y))

    def origin(self, key: BlockKey) -> Tuple[float, float]:
        return key.cell_x * self.block_size, key.cell_y * self.block_size

    def cells_in_range(
        self,
        left: float,
        bottom: float,
        right: float,
        top: float
    ) -> Tuple[range, range]:
        cx_min, cy_min = self.cell(left, bottom)
        cx_max, cy_max = self.cell(right, top)
        return range(cx_min, cx_max + 1), range(cy_min, cy_max + 1)

    # ─────────────────────────────────────────────
    # VECTORIZADO
    # ─────────────────────────────────────────────

    def find_blocks(self, xs, ys) -> np.ndarray:
        """
        Devuelve un array (N, 2) con los índices de celda de cada punto.
        """
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)

        tx = np.floor(xs / self.block_size).astype(np.int64)
        ty = np.floor(ys / self.block_size).astype(np.int64)

        return np.column_stack((tx, ty))
