import threading

import pytest

from block_index import BlockKey
from errors import InvalidOperation, NotFound
from point_schema import new_point
from positional_db import PositionalDB


def tables(db):
    return {block["block"] for block in db.list_blocks()}


def test_round_trip(db):
    p = new_point(25.0, 25.0, str="hola")
    assert db.add(p) == p["id"]
    assert db.get(p["id"]) == p
    assert db.get(p["id"], 25, 25) == p


def test_add_assigns_id(db):
    point_id = db.add({"x": 1.0, "y": 2.0, "str": "a"})
    assert db.get(point_id) == {"id": point_id, "x": 1.0, "y": 2.0, "str": "a"}


def test_add_rejects_existing_id(db):
    p = new_point(5, 5)
    db.add(p)
    with pytest.raises(InvalidOperation):
        db.add({**p, "x": 65, "y": 65})
    assert len(db) == 1


def test_add_rejects_unknown_field(db):
    with pytest.raises(InvalidOperation):
        db.add({"x": 1, "y": 1, "color": "red"})
    assert tables(db) == set()


def test_scenario_a_creates_blocks(db):
    db.add(new_point(25, 25))
    db.add(new_point(5, 5))
    assert tables(db) == {BlockKey(1, 1).table, BlockKey(0, 0).table}
    origins = sorted(tuple(b["origin"]) for b in db.list_blocks())
    assert origins == [(0, 0), (20, 20)]


def test_get_missing(db):
    db.add(new_point(5, 5))
    with pytest.raises(NotFound):
        db.get("nope")
    with pytest.raises(NotFound):
        db.get("nope", 5, 5)


def test_get_with_wrong_hint(db):
    p = new_point(5, 5)
    db.add(p)
    with pytest.raises(NotFound):
        db.get(p["id"], 50, 50)


def test_remove_drops_empty_block(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    db.remove(p)

    assert tables(db) == set()
    assert db.get_all() == []
    assert db.get_within_rect(0, 0, 20, 20) == []
    assert db.get_within_radius(5, 5, 10) == []

    # el bloque se vuelve a crear como nuevo
    q = new_point(6, 6, str="b")
    db.add(q)
    assert db.get_all() == [q]


def test_remove_keeps_non_empty_block(db):
    a, b = new_point(5, 5), new_point(6, 6)
    db.add(a)
    db.add(b)
    db.remove_with_id(a["id"])
    assert tables(db) == {BlockKey(0, 0).table}
    assert [p["id"] for p in db.get_all()] == [b["id"]]


def test_remove_missing_raises(db):
    p = new_point(5, 5)
    db.add(p)
    with pytest.raises(NotFound):
        db.remove_with_id("nope")
    with pytest.raises(NotFound):
        db.remove_with_id("nope", 5, 5)
    assert len(db) == 1


def test_scenario_c_move_across_blocks(db):
    p = new_point(5, 5, str="a")
    db.add(p)

    moved = db.move(p, 45, 45)

    assert moved == {**p, "x": 45, "y": 45}
    assert tables(db) == {BlockKey(2, 2).table}
    assert db.get(p["id"], 45, 45) == moved
    assert db.get_within_block([0, 0]) == []


def test_move_in_same_block(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    moved = db.move_with_id(p["id"], 15, 15)
    assert moved["x"] == 15 and moved["y"] == 15
    assert db.get(p["id"], 15, 15) == moved
    assert tables(db) == {BlockKey(0, 0).table}


def test_move_missing(db):
    with pytest.raises(NotFound):
        db.move_with_id("nope", 1, 1)


def test_edit_merges_fields(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    edited = db.edit(p, {"str": "b"})
    assert edited == {**p, "str": "b"}
    assert db.get(p["id"]) == edited


def test_edit_with_coordinates_moves(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    edited = db.edit_with_id(p["id"], {"x": -5, "str": "b"})
    assert edited == {"id": p["id"], "x": -5, "y": 5, "str": "b"}
    assert tables(db) == {BlockKey(-1, 0).table}
    assert db.get(p["id"], -5, 5) == edited


def test_edit_cannot_change_id(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    with pytest.raises(InvalidOperation):
        db.edit(p, {"id": "new"})
    assert db.get(p["id"]) == p


def test_edit_unknown_field(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    with pytest.raises(InvalidOperation):
        db.edit(p, {"color": "red"})
    assert db.get(p["id"]) == p


def test_failed_cross_block_move_rolls_back(db, monkeypatch):
    p = new_point(5, 5, str="a")
    db.add(p)

    def broken_insert(key, record):
        raise RuntimeError("disk full")

    monkeypatch.setattr(db.store, "insert", broken_insert)
    with pytest.raises(RuntimeError):
        db.move(p, 45, 45)
    monkeypatch.undo()

    assert db.get(p["id"], 5, 5) == p
    assert tables(db) == {BlockKey(0, 0).table}


def test_add_many_groups_by_block(db):
    points = [new_point(x, y, str="s") for x, y in [(1, 1), (2, 2), (25, 1), (-1, -1)]]
    assert db.add_many(points) == 4
    counts = {b["block"]: b["points"] for b in db.list_blocks()}
    assert counts == {
        BlockKey(0, 0).table: 2,
        BlockKey(1, 0).table: 1,
        BlockKey(-1, -1).table: 1,
    }
    assert db.get(points[2]["id"]) == points[2]


def test_add_many_empty(db):
    assert db.add_many([]) == 0


def test_add_many_rejects_id_in_other_block(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    with pytest.raises(InvalidOperation):
        db.add_many([new_point(30, 30), {**p, "x": 65, "y": 65}])
    assert len(db) == 1
    assert tables(db) == {BlockKey(0, 0).table}


def test_add_many_rejects_repeated_id_in_batch(db):
    p = new_point(5, 5)
    with pytest.raises(InvalidOperation):
        db.add_many([p, {**p, "x": 45}])
    assert len(db) == 0


@pytest.mark.parametrize("point", [
    {"x": "abc", "y": 1},
    {"x": None, "y": 1},
    {"y": 1},
    {"x": float("nan"), "y": 1},
    {"x": True, "y": 1},
])
def test_add_rejects_bad_coordinates(db, point):
    with pytest.raises(InvalidOperation):
        db.add(point)
    with pytest.raises(InvalidOperation):
        db.add_many([point])
    assert tables(db) == set()


def test_edit_rejects_bad_coordinates(db):
    p = new_point(5, 5, str="a")
    db.add(p)
    with pytest.raises(InvalidOperation):
        db.edit(p, {"x": None})
    with pytest.raises(InvalidOperation):
        db.move(p, "abc", 5)
    assert db.get(p["id"]) == p


def test_sql_keyword_field_names():
    with PositionalDB(":memory:", "order TEXT, select INTEGER") as keyword_db:
        p = new_point(1, 1, order="a", select=3)
        keyword_db.add(p)
        assert keyword_db.get(p["id"]) == p

        edited = keyword_db.edit(p, {"order": "b"})
        assert keyword_db.get(p["id"], 1, 1) == edited == {**p, "order": "b"}


def test_concurrent_add_and_move(tmp_path):
    shared = PositionalDB(tmp_path / "shared.db", "str TEXT", block_size=20)
    errors = []
    moved = {}

    def worker(n):
        try:
            p = new_point(5 + n, 5, str=str(n))
            shared.add(p)
            moved[p["id"]] = shared.move_with_id(p["id"], 45 + n, 45 + n)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert errors == []
        assert len(shared) == 8
        assert tables(shared) == {BlockKey(2, 2).table}
        for point_id, record in moved.items():
            assert shared.get(point_id, record["x"], record["y"]) == record
    finally:
        shared.close()
