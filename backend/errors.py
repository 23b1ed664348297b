class PositionalDBError(Exception):
    pass


class NotFound(PositionalDBError):
    """No existe ningún punto con ese id donde se buscó."""

    def __init__(self, point_id: str):
        super().__init__(f"Punto {point_id} no encontrado")
        self.point_id = point_id


class InvalidOperation(PositionalDBError):
    pass
