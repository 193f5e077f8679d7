import json

import pytest
from embedded_json_db import (
    DeleteFailedError,
    Driver,
    ParseError,
    RecordNotFoundError,
    SerializationError,
    UpdateFailedError,
)


class Item:
    """Plain class entity: public attributes are its stored fields."""

    def __init__(self, id, title="", qty=0):
        self.id = id
        self.title = title
        self.qty = qty
        self._cache = "not stored"

    @classmethod
    def identity(cls):
        return "item"

    def identifier(self):
        return self.id


class Note:
    """Entity with its own to_dict/from_dict."""

    def __init__(self, key, text):
        self.key = key
        self.text = text

    @classmethod
    def identity(cls):
        return "note"

    def identifier(self):
        return self.key

    def to_dict(self):
        return {"id": self.key, "body": self.text}

    @classmethod
    def from_dict(cls, d):
        return cls(d["id"], d["body"])


def records(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def test_update_no_match_leaves_file(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("a", "first"))
    before = (tmp_path / "item.json").read_bytes()

    with pytest.raises(UpdateFailedError):
        db.update(Item("zzz", "ghost"))
    assert (tmp_path / "item.json").read_bytes() == before


def test_update_on_empty_collection(tmp_path):
    db = Driver(str(tmp_path))
    with pytest.raises(UpdateFailedError):
        db.update(Item("a"))
    assert not (tmp_path / "item.json").exists()


def test_update_replaces_in_place(tmp_path):
    db = Driver(str(tmp_path))
    for i in range(3):
        db.insert(Item(f"i{i}", f"t{i}", i))

    db.update(Item("i1", "changed", 99))
    got = records(tmp_path / "item.json")
    assert [r["id"] for r in got] == ["i0", "i1", "i2"]
    assert got[1] == {"id": "i1", "title": "changed", "qty": 99}

    # Snapshots follow the rewritten file
    assert db.raw_array()[1]["title"] == "changed"


def test_update_first_duplicate_only(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("dup", "one"))
    db.insert(Item("dup", "two"))

    db.update(Item("dup", "new"))
    assert [r["title"] for r in records(tmp_path / "item.json")] == ["new", "two"]


def test_upsert(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("a", "first"))

    # Missing identifier: exactly one new record
    db.upsert(Item("b", "second"))
    got = records(tmp_path / "item.json")
    assert [r["id"] for r in got] == ["a", "b"]

    # Existing identifier: same count, new fields
    db.upsert(Item("a", "renamed", 5))
    got = records(tmp_path / "item.json")
    assert len(got) == 2
    assert got[0] == {"id": "a", "title": "renamed", "qty": 5}


def test_upsert_does_not_insert_on_load_error(tmp_path):
    path = tmp_path / "item.json"
    path.write_text("not json at all", encoding="utf-8")
    db = Driver(str(tmp_path))

    with pytest.raises(ParseError):
        db.update(Item("a"))
    with pytest.raises(ParseError):
        db.upsert(Item("a"))
    assert path.read_text(encoding="utf-8") == "not json at all"
    # Load failures are also recorded
    assert all(isinstance(e, ParseError) for e in db.errors)
    assert len(db.errors) == 2


def test_delete(tmp_path):
    db = Driver(str(tmp_path))
    for key in ("a", "b", "c"):
        db.insert(Item(key, key.upper()))

    db.delete(Item("b"))
    assert [r["id"] for r in records(tmp_path / "item.json")] == ["a", "c"]
    assert [r["id"] for r in db.raw_array()] == ["a", "c"]


def test_delete_missing_leaves_file(tmp_path):
    db = Driver(str(tmp_path))
    for key in ("a", "b"):
        db.insert(Item(key, key))
    before = (tmp_path / "item.json").read_bytes()

    with pytest.raises(DeleteFailedError) as exc:
        db.delete(Item("nope"))
    assert "item" in str(exc.value)
    assert "id nope" in str(exc.value)
    assert isinstance(exc.value, RecordNotFoundError)
    assert (tmp_path / "item.json").read_bytes() == before


def test_delete_removes_all_duplicates(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("x", "1"))
    db.insert(Item("y", "2"))
    db.insert(Item("x", "3"))

    db.delete(Item("x"))
    assert records(tmp_path / "item.json") == [{"id": "y", "title": "2", "qty": 0}]


def test_identifier_compared_as_text(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("7", "seven"))
    db.insert(Item(8, "eight"))

    db.update(Item(7, "SEVEN"))
    assert records(tmp_path / "item.json")[0]["title"] == "SEVEN"

    db.delete(Item(8.0))
    assert [r["id"] for r in records(tmp_path / "item.json")] == ["7"]


def test_insert_allows_duplicates(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("a"))
    db.insert(Item("a"))
    assert len(db.open(Item).where("id", "=", "a").get().raw_array()) == 2


def test_private_attributes_not_stored(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("a", "t"))
    assert "_cache" not in records(tmp_path / "item.json")[0]
    item = db.open(Item).first().as_entity(Item)
    assert (item.id, item.title, item.qty) == ("a", "t", 0)


def test_custom_serialization(tmp_path):
    db = Driver(str(tmp_path), indent=2)
    db.insert(Note("n1", "hello"))
    text = (tmp_path / "note.json").read_text(encoding="utf-8")
    assert '\n  {\n    "id": "n1"' in text

    note = db.open(Note).where("body", "contains", "ell").first().as_entity(Note)
    assert (note.key, note.text) == ("n1", "hello")

    db.update(Note("n1", "bye"))
    assert records(tmp_path / "note.json") == [{"id": "n1", "body": "bye"}]


def test_progress_events(tmp_path):
    events = []

    def collect(evt):
        events.append(evt["phase"])
        assert 0 <= evt["pct"] <= 100

    db = Driver(str(tmp_path), on_progress=collect)
    db.insert(Item("a"))
    db.insert(Item("b"))
    assert events == ["insert.start", "insert.done", "insert.start", "insert.done"]

    events.clear()
    db.update(Item("b", "x"))
    assert events[0] == "update.start" and events[-1] == "update.done"
    assert "update.scan" in events

    events.clear()
    db.delete(Item("a"))
    assert events[0] == "delete.start" and events[-1] == "delete.done"
    assert "delete.scan" in events


def test_unencodable_text_leaves_no_temp_file(tmp_path):
    db = Driver(str(tmp_path))
    db.insert(Item("a", "ok"))
    before = (tmp_path / "item.json").read_bytes()

    with pytest.raises(SerializationError):
        db.insert(Item("b", "\ud800"))
    with pytest.raises(SerializationError):
        db.update(Item("a", "\ud800"))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["item.json"]
    assert (tmp_path / "item.json").read_bytes() == before
