import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from block_index import BlockKey
from point_schema import PointSchema, quote

logger = logging.getLogger(__name__)


def _is_missing_table(error: sqlite3.OperationalError) -> bool:
    return str(error).startswith("no such table")


class BlockStore:
    """
    Adaptador sobre SQLite: una tabla por bloque ocupado.

    Una tabla inexistente equivale a un bloque vacío; las lecturas,
    borrados y conteos contra ella devuelven vacío o cero.

    La conexión se comparte entre hilos (FastAPI atiende los endpoints
    síncronos en un threadpool): cada sentencia y cada transacción
    completa se ejecutan con `lock` tomado.
    """

    def __init__(self, location: Union[str, Path], schema: PointSchema):
        self.location = str(location)
        self.schema = schema

        self.conn = sqlite3.connect(
            self.location,
            isolation_level=None,
            check_same_thread=False
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode = WAL")

        self.lock = threading.RLock()
        self._depth = 0
        self._placeholders = ", ".join("?" for _ in schema.columns)

    def close(self):
        with self.lock:
            self.conn.close()

    def _execute(self, sql: str, params=()):
        with self.lock:
            return self.conn.execute(sql, params)

    def _fetchall(self, sql: str, params=()) -> List[sqlite3.Row]:
        with self.lock:
            return self.conn.execute(sql, params).fetchall()

    # ─────────────────────────────────────────────
    # TRANSACCIONES
    # ─────────────────────────────────────────────

    @contextmanager
    def transaction(self):
        with self.lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self.conn.execute("BEGIN")
            self._depth = 1
            try:
                yield self
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._depth = 0

    # ─────────────────────────────────────────────
    # CICLO DE VIDA DEL BLOQUE
    # ─────────────────────────────────────────────

    def ensure_created(self, key: BlockKey):
        with self.lock:
            if self.exists(key):
                return
            self.conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{key.table}" ({self.schema.column_sql()})'
            )
        logger.debug(f"Bloque creado: {key.table}")

    def drop(self, key: BlockKey):
        self._execute(f'DROP TABLE IF EXISTS "{key.table}"')
        logger.debug(f"Bloque eliminado: {key.table}")

    def exists(self, key: BlockKey) -> bool:
        rows = self._fetchall(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
            (key.table,)
        )
        return bool(rows)

    def list_existing_blocks(self) -> List[BlockKey]:
        rows = self._fetchall("SELECT name FROM sqlite_master WHERE type='table'")

        blocks = []
        for row in rows:
            key = BlockKey.from_table(row["name"])
            if key is not None:
                blocks.append(key)
        return blocks

    # ─────────────────────────────────────────────
    # ESCRITURA
    # ─────────────────────────────────────────────

    def insert(self, key: BlockKey, record: Dict):
        self._execute(
            f'INSERT INTO "{key.table}" VALUES ({self._placeholders})',
            self.schema.row(record)
        )

    def insert_many(self, key: BlockKey, records: Iterable[Dict]):
        with self.lock:
            self.conn.executemany(
                f'INSERT INTO "{key.table}" VALUES ({self._placeholders})',
                (self.schema.row(r) for r in records)
            )

    def update(self, key: BlockKey, point_id: str, fields: Dict):
        if not fields:
            return
        assignments = ", ".join(f"{quote(name)}=?" for name in fields)
        self._execute(
            f'UPDATE "{key.table}" SET {assignments} WHERE id=?',
            (*fields.values(), point_id)
        )

    def delete(self, key: BlockKey, point_id: str):
        try:
            self._execute(f'DELETE FROM "{key.table}" WHERE id=?', (point_id,))
        except sqlite3.OperationalError as e:
            if not _is_missing_table(e):
                raise

    # ─────────────────────────────────────────────
    # LECTURA
    # ─────────────────────────────────────────────

    def _select(self, key: BlockKey, where: str = "", params=()) -> List[Dict]:
        sql = f'SELECT * FROM "{key.table}"'
        if where:
            sql += f" WHERE {where}"
        try:
            rows = self._fetchall(sql, params)
        except sqlite3.OperationalError as e:
            if not _is_missing_table(e):
                raise
            return []
        return [dict(row) for row in rows]

    def count(self, key: BlockKey) -> int:
        try:
            rows = self._fetchall(f'SELECT COUNT(1) FROM "{key.table}"')
        except sqlite3.OperationalError as e:
            if not _is_missing_table(e):
                raise
            return 0
        return rows[0][0]

    def select_ids(self, key: BlockKey) -> Set[str]:
        try:
            rows = self._fetchall(f'SELECT id FROM "{key.table}"')
        except sqlite3.OperationalError as e:
            if not _is_missing_table(e):
                raise
            return set()
        return {row[0] for row in rows}

    def select_all(self, key: BlockKey) -> List[Dict]:
        return self._select(key)

    def select_by_id(self, key: BlockKey, point_id: str) -> Optional[Dict]:
        rows = self._select(key, "id=?", (point_id,))
        return rows[0] if rows else None

    def select_in_rect(
        self,
        key: BlockKey,
        left: float,
        bottom: float,
        right: float,
        top: float
    ) -> List[Dict]:
        return self._select(
            key,
            "? <= y AND y <= ? AND ? <= x AND x <= ?",
            (bottom, top, left, right)
        )

    def select_in_radius(
        self,
        key: BlockKey,
        x: float,
        y: float,
        radius: float
    ) -> List[Dict]:
        return self._select(
            key,
            "(x - ?) * (x - ?) + (y - ?) * (y - ?) <= ?",
            (x, x, y, y, radius * radius)
        )
