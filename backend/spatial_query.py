from typing import Dict, List, Tuple

from block_index import BlockIndex, BlockKey
from block_store import BlockStore


def normalize_rect(
    x: float,
    y: float,
    width: float,
    height: float
) -> Tuple[float, float, float, float]:
    """
    (x, y) es una esquina; width/height negativos extienden la caja hacia
    la izquierda/abajo. Devuelve (left, bottom, right, top).
    """
    left = x + width if width < 0 else x
    bottom = y + height if height < 0 else y
    return left, bottom, left + abs(width), bottom + abs(height)


class SpatialQueryEngine:

    def __init__(self, index: BlockIndex, store: BlockStore):
        self.index = index
        self.store = store

    def _blocks_in_range(self, cols: range, rows: range) -> List[BlockKey]:
        """
        Bloques a consultar dentro del rango de celdas. Si el rango tiene
        más celdas que bloques ocupados se recorren los bloques existentes.
        """
        existing = self.store.list_existing_blocks()

        if len(cols) * len(rows) > len(existing):
            return [key for key in existing if key.cell_x in cols and key.cell_y in rows]

        return [BlockKey(cx, cy) for cy in rows for cx in cols]

    # =========================
    # RECTÁNGULO
    # =========================

    def blocks_in_rect(self, x, y, width, height) -> List[BlockKey]:
        cols, rows = self.index.cells_in_range(*normalize_rect(x, y, width, height))
        return [BlockKey(cx, cy) for cy in rows for cx in cols]

    def within_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float
    ) -> List[Dict]:
        left, bottom, right, top = normalize_rect(x, y, width, height)
        cols, rows = self.index.cells_in_range(left, bottom, right, top)

        result: List[Dict] = []

        with self.store.transaction():
            for key in self._blocks_in_range(cols, rows):
                interior = (
                    cols[0] < key.cell_x < cols[-1] and
                    rows[0] < key.cell_y < rows[-1]
                )

                # Bloques enteros dentro de la caja: sin filtrar
                if interior:
                    result.extend(self.store.select_all(key))
                else:
                    result.extend(
                        self.store.select_in_rect(key, left, bottom, right, top)
                    )

        return result

    # =========================
    # RADIO
    # =========================

    def within_radius(self, x: float, y: float, radius: float) -> List[Dict]:
        radius = abs(radius)
        cols, rows = self.index.cells_in_range(
            x - radius, y - radius, x + radius, y + radius
        )

        result: List[Dict] = []

        with self.store.transaction():
            for key in self._blocks_in_range(cols, rows):
                result.extend(self.store.select_in_radius(key, x, y, radius))

        return result
