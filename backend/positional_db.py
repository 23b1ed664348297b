from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from block_index import BlockIndex, BlockKey
from block_store import BlockStore
from entity_manager import EntityManager
from point_schema import PointSchema
from spatial_query import SpatialQueryEngine


SchemaLike = Union[PointSchema, str, Iterable[Tuple[str, str]]]


def _as_schema(schema: SchemaLike) -> PointSchema:
    if isinstance(schema, PointSchema):
        return schema
    if isinstance(schema, str):
        return PointSchema.parse(schema)
    return PointSchema(schema)


class PositionalDB:
    """
    Puntos repartidos en bloques cuadrados de lado block_size, una tabla
    SQLite por bloque ocupado.

        db = PositionalDB("pos.db", "str TEXT")
        point_id = db.add({"x": 25, "y": 25, "str": "hola"})
        db.get_within_radius(20, 20, 10)
    """

    def __init__(
        self,
        location: Union[str, Path] = ":memory:",
        schema: SchemaLike = (),
        block_size: float = 20.0
    ):
        self.index = BlockIndex(block_size)
        self.store = BlockStore(location, _as_schema(schema))
        self.entities = EntityManager(self.index, self.store)
        self.queries = SpatialQueryEngine(self.index, self.store)

    @property
    def block_size(self) -> float:
        return self.index.block_size

    @property
    def schema(self) -> PointSchema:
        return self.store.schema

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ─────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────

    def add(self, point: Dict) -> str:
        return self.entities.add(point)

    def add_many(self, points: Iterable[Dict]) -> int:
        return self.entities.add_many(points)

    def get(self, point_id: str, x: Optional[float] = None, y: Optional[float] = None) -> Dict:
        return self.entities.get(point_id, x, y)

    def remove(self, point: Dict):
        self.entities.remove_entity(point)

    def remove_with_id(self, point_id: str, x: Optional[float] = None, y: Optional[float] = None):
        self.entities.remove(point_id, x, y)

    def move(self, point: Dict, new_x: float, new_y: float) -> Dict:
        return self.entities.move(point["id"], new_x, new_y, point["x"], point["y"])

    def move_with_id(
        self,
        point_id: str,
        new_x: float,
        new_y: float,
        prev_x: Optional[float] = None,
        prev_y: Optional[float] = None
    ) -> Dict:
        return self.entities.move(point_id, new_x, new_y, prev_x, prev_y)

    def edit(self, point: Dict, fields: Dict) -> Dict:
        return self.entities.edit(point["id"], fields, point["x"], point["y"])

    def edit_with_id(
        self,
        point_id: str,
        fields: Dict,
        x: Optional[float] = None,
        y: Optional[float] = None
    ) -> Dict:
        return self.entities.edit(point_id, fields, x, y)

    # ─────────────────────────────────────────────
    # CONSULTAS
    # ─────────────────────────────────────────────

    def get_within_rect(self, x: float, y: float, width: float, height: float) -> List[Dict]:
        return self.queries.within_rect(x, y, width, height)

    def get_within_radius(self, x: float, y: float, radius: float) -> List[Dict]:
        return self.queries.within_radius(x, y, radius)

    def get_within_block(self, block: Union[str, Sequence[float]]) -> List[Dict]:
        """
        block: nombre de tabla ('block_xp1_yp1') o un par [x, y] dentro del bloque.
        """
        if isinstance(block, str):
            key = BlockKey.from_table(block)
            if key is None:
                return []
        else:
            key = self.index.find_table(block[0], block[1])
        return self.store.select_all(key)

    def get_all(self) -> List[Dict]:
        result = []
        with self.store.transaction():
            for key in self.store.list_existing_blocks():
                result.extend(self.store.select_all(key))
        return result

    def find_blocks_in_rect(self, x: float, y: float, width: float, height: float) -> List[str]:
        return [key.table for key in self.queries.blocks_in_rect(x, y, width, height)]

    # ─────────────────────────────────────────────
    # BLOQUES
    # ─────────────────────────────────────────────

    def find_block(self, x: float, y: float) -> Tuple[float, float]:
        return self.index.find_block(x, y)

    def find_table(self, x: float, y: float) -> str:
        return self.index.find_table(x, y).table

    def list_blocks(self) -> List[Dict]:
        blocks = []
        with self.store.transaction():
            for key in self.store.list_existing_blocks():
                blocks.append({
                    "block": key.table,
                    "origin": list(self.index.origin(key)),
                    "points": self.store.count(key)
                })
        return blocks

    def __len__(self):
        with self.store.transaction():
            return sum(self.store.count(key) for key in self.store.list_existing_blocks())
