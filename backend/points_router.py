import threading
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from config import BLOCK_SIZE, DATA_DIR, DB_PATH, LAZ_SCHEMA
from entity_manager import is_coordinate
from errors import InvalidOperation, NotFound
from positional_db import PositionalDB

router = APIRouter()

_db: Optional[PositionalDB] = None
_db_lock = threading.Lock()


def get_db() -> PositionalDB:
    global _db
    with _db_lock:
        if _db is None:
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            _db = PositionalDB(DB_PATH, LAZ_SCHEMA, BLOCK_SIZE)
    return _db


class MoveRequest(BaseModel):
    x: float
    y: float
    prev_x: Optional[float] = None
    prev_y: Optional[float] = None


def _not_found(e: NotFound):
    return HTTPException(status_code=404, detail=str(e))


def _invalid(e: InvalidOperation):
    return HTTPException(status_code=400, detail=str(e))

# ─────────────────────────────────────────────
# PUNTOS
# ─────────────────────────────────────────────

@router.post("/points")
def create_point(point: Dict[str, Any] = Body(...), db: PositionalDB = Depends(get_db)):
    if not (is_coordinate(point.get("x")) and is_coordinate(point.get("y"))):
        raise HTTPException(status_code=422, detail="x e y deben ser números")
    try:
        point_id = db.add(point)
    except InvalidOperation as e:
        raise _invalid(e)
    return {"id": point_id}


@router.get("/points")
def list_points(db: PositionalDB = Depends(get_db)):
    return db.get_all()

# ─────────────────────────────────────────────
# CONSULTAS ESPACIALES
# ─────────────────────────────────────────────

@router.get("/points/rect")
def points_in_rect(
    x: float,
    y: float,
    width: float,
    height: float,
    db: PositionalDB = Depends(get_db)
):
    return db.get_within_rect(x, y, width, height)


@router.get("/points/radius")
def points_in_radius(
    x: float,
    y: float,
    radius: float,
    db: PositionalDB = Depends(get_db)
):
    return db.get_within_radius(x, y, radius)

# ─────────────────────────────────────────────
# PUNTO INDIVIDUAL
# ─────────────────────────────────────────────

@router.get("/points/{point_id}")
def get_point(
    point_id: str,
    x: Optional[float] = None,
    y: Optional[float] = None,
    db: PositionalDB = Depends(get_db)
):
    try:
        return db.get(point_id, x, y)
    except NotFound as e:
        raise _not_found(e)


@router.patch("/points/{point_id}")
def edit_point(
    point_id: str,
    fields: Dict[str, Any] = Body(...),
    x: Optional[float] = None,
    y: Optional[float] = None,
    db: PositionalDB = Depends(get_db)
):
    try:
        return db.edit_with_id(point_id, fields, x, y)
    except NotFound as e:
        raise _not_found(e)
    except InvalidOperation as e:
        raise _invalid(e)


@router.post("/points/{point_id}/move")
def move_point(point_id: str, req: MoveRequest, db: PositionalDB = Depends(get_db)):
    try:
        return db.move_with_id(point_id, req.x, req.y, req.prev_x, req.prev_y)
    except NotFound as e:
        raise _not_found(e)


@router.delete("/points/{point_id}")
def delete_point(
    point_id: str,
    x: Optional[float] = None,
    y: Optional[float] = None,
    db: PositionalDB = Depends(get_db)
):
    try:
        db.remove_with_id(point_id, x, y)
    except NotFound as e:
        raise _not_found(e)
    return {"deleted": point_id}

# ─────────────────────────────────────────────
# BLOQUES
# ─────────────────────────────────────────────

@router.get("/blocks")
def list_blocks(db: PositionalDB = Depends(get_db)):
    return db.list_blocks()


@router.get("/blocks/{block}/points")
def block_points(block: str, db: PositionalDB = Depends(get_db)):
    return db.get_within_block(block)
