import logging
import math
import uuid
from numbers import Real
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from block_index import BlockIndex, BlockKey
from block_store import BlockStore
from errors import InvalidOperation, NotFound

logger = logging.getLogger(__name__)


def merge(current: Dict, patch: Dict) -> Dict:
    """{**current, **patch} sin tocar el id."""
    return {**current, **patch, "id": current["id"]}


def is_coordinate(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


class EntityManager:
    """
    Alta, baja y modificación de puntos.

    Cada id vive en exactamente un bloque. Las coordenadas opcionales
    (x, y) de get/remove/move/edit sólo sirven para no recorrer todos
    los bloques buscando el id. Cada operación, búsqueda incluida, corre
    dentro de una sola transacción del store.
    """

    def __init__(self, index: BlockIndex, store: BlockStore):
        self.index = index
        self.store = store

    # ─────────────────────────────────────────────
    # LOCALIZACIÓN
    # ─────────────────────────────────────────────

    def _scan(self, point_id: str) -> Optional[Tuple[BlockKey, Dict]]:
        for key in self.store.list_existing_blocks():
            record = self.store.select_by_id(key, point_id)
            if record is not None:
                return key, record
        return None

    def _locate(
        self,
        point_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None
    ) -> Tuple[BlockKey, Dict]:
        if x is not None and y is not None:
            key = self.index.find_table(x, y)
            record = self.store.select_by_id(key, point_id)
            if record is None:
                raise NotFound(point_id)
            return key, record

        found = self._scan(point_id)
        if found is None:
            raise NotFound(point_id)
        return found

    def _drop_if_empty(self, key: BlockKey):
        if self.store.count(key) == 0:
            self.store.drop(key)

    # ─────────────────────────────────────────────
    # ALTA
    # ─────────────────────────────────────────────

    def add(self, point: Dict) -> str:
        record = dict(point)
        self._check_fields(record)
        self._check_coordinates(record, required=True)

        with self.store.transaction():
            if record.get("id") is None:
                record["id"] = str(uuid.uuid4())
            elif self._scan(record["id"]) is not None:
                raise InvalidOperation(f"El id {record['id']} ya existe")

            key = self.index.find_table(record["x"], record["y"])
            self.store.ensure_created(key)
            self.store.insert(key, record)

        return record["id"]

    def add_many(self, points: Iterable[Dict]) -> int:
        """
        Carga masiva: agrupa por bloque y escribe cada grupo de una vez.
        Si algún id ya existe (en la base o repetido en el lote) no se
        escribe nada.
        """
        records = []
        for point in points:
            record = dict(point)
            self._check_fields(record)
            self._check_coordinates(record, required=True)
            if record.get("id") is None:
                record["id"] = str(uuid.uuid4())
            records.append(record)

        if not records:
            return 0

        cells = self.index.find_blocks(
            [r["x"] for r in records],
            [r["y"] for r in records]
        )
        unique_cells, inverse = np.unique(cells, axis=0, return_inverse=True)
        inverse = inverse.reshape(-1)

        with self.store.transaction():
            seen = set()
            for key in self.store.list_existing_blocks():
                seen |= self.store.select_ids(key)

            for record in records:
                if record["id"] in seen:
                    raise InvalidOperation(f"El id {record['id']} ya existe")
                seen.add(record["id"])

            for i, (cell_x, cell_y) in enumerate(unique_cells):
                key = BlockKey(int(cell_x), int(cell_y))
                group = [records[j] for j in np.flatnonzero(inverse == i)]

                self.store.ensure_created(key)
                self.store.insert_many(key, group)

        logger.info(f"{len(records)} puntos cargados en {len(unique_cells)} bloques")
        return len(records)

    # ─────────────────────────────────────────────
    # CONSULTA
    # ─────────────────────────────────────────────

    def get(
        self,
        point_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None
    ) -> Dict:
        with self.store.transaction():
            return self._locate(point_id, x, y)[1]

    # ─────────────────────────────────────────────
    # BAJA
    # ─────────────────────────────────────────────

    def remove(
        self,
        point_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None
    ):
        with self.store.transaction():
            key, _ = self._locate(point_id, x, y)
            self.store.delete(key, point_id)
            self._drop_if_empty(key)

    def remove_entity(self, point: Dict):
        self.remove(point["id"], point["x"], point["y"])

    # ─────────────────────────────────────────────
    # MODIFICACIÓN
    # ─────────────────────────────────────────────

    def move(
        self,
        point_id: str,
        new_x: float,
        new_y: float,
        prev_x: Optional[float] = None,
        prev_y: Optional[float] = None
    ) -> Dict:
        patch = {"x": new_x, "y": new_y}
        self._check_coordinates(patch)

        with self.store.transaction():
            prev_key, current = self._locate(point_id, prev_x, prev_y)
            return self._relocate(prev_key, current, patch)

    def edit(
        self,
        point_id: str,
        fields: Dict,
        x: Optional[float] = None,
        y: Optional[float] = None
    ) -> Dict:
        if "id" in fields:
            raise InvalidOperation("No se puede editar el id")
        self._check_fields(fields)
        self._check_coordinates(fields)

        with self.store.transaction():
            prev_key, current = self._locate(point_id, x, y)
            return self._relocate(prev_key, current, fields)

    def _relocate(self, prev_key: BlockKey, current: Dict, patch: Dict) -> Dict:
        updated = merge(current, patch)
        new_key = self.index.find_table(updated["x"], updated["y"])

        if new_key == prev_key:
            self.store.update(prev_key, updated["id"], patch)
        else:
            self.store.delete(prev_key, updated["id"])
            self._drop_if_empty(prev_key)

            self.store.ensure_created(new_key)
            self.store.insert(new_key, updated)
            logger.debug(f"Punto {updated['id']}: {prev_key} -> {new_key}")

        return updated

    # ─────────────────────────────────────────────
    # VALIDACIÓN
    # ─────────────────────────────────────────────

    def _check_fields(self, fields: Dict):
        allowed = set(self.store.schema.columns)
        unknown = [name for name in fields if name not in allowed]
        if unknown:
            raise InvalidOperation(f"Campos desconocidos: {', '.join(unknown)}")

    def _check_coordinates(self, fields: Dict, required: bool = False):
        for axis in ("x", "y"):
            if axis not in fields and not required:
                continue
            if not is_coordinate(fields.get(axis)):
                raise InvalidOperation(f"Coordenada {axis} inválida: {fields.get(axis)!r}")
