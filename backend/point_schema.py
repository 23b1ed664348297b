import re
import uuid
from typing import Dict, Iterable, List, Tuple


SQLITE_TYPES = ("TEXT", "REAL", "INTEGER", "NUMERIC", "BLOB")
RESERVED = ("id", "x", "y")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote(name: str) -> str:
    return f'"{name}"'


def new_point(x: float, y: float, **fields) -> Dict:
    """Crea un registro nuevo con un id recién asignado."""
    return {"id": str(uuid.uuid4()), "x": x, "y": y, **fields}


class PointSchema:
    """
    Campos extra (ordenados) que acompañan a id, x, y en cada bloque.
    """

    def __init__(self, fields: Iterable[Tuple[str, str]] = ()):
        self.fields: List[Tuple[str, str]] = []

        for name, type_ in fields:
            type_ = type_.strip().upper()
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Nombre de campo inválido: {name!r}")
            if name.lower() in RESERVED:
                raise ValueError(f"Campo reservado: {name}")
            if type_ not in SQLITE_TYPES:
                raise ValueError(f"Tipo no soportado para {name}: {type_}")
            if name in self.names:
                raise ValueError(f"Campo duplicado: {name}")
            self.fields.append((name, type_))

    @classmethod
    def parse(cls, definition: str) -> "PointSchema":
        # "str TEXT, n INTEGER"
        fields = []
        for column in definition.split(","):
            column = column.strip()
            if not column:
                continue
            parts = column.split()
            if len(parts) != 2:
                raise ValueError(f"Definición de columna inválida: {column!r}")
            fields.append((parts[0], parts[1]))
        return cls(fields)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.fields]

    @property
    def columns(self) -> List[str]:
        return ["id", "x", "y"] + self.names

    def column_sql(self) -> str:
        extra = "".join(f", {quote(name)} {type_}" for name, type_ in self.fields)
        return f"id TEXT PRIMARY KEY, x REAL, y REAL{extra}"

    def row(self, record: Dict) -> Tuple:
        return tuple(record.get(column) for column in self.columns)

    def __len__(self):
        return len(self.fields)

    def __repr__(self):
        return f"PointSchema({self.fields!r})"
