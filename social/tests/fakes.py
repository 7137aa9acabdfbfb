"""
In-memory stand-in for the Firestore client used by the services.

Supports the subset the services touch: collections and subcollections,
document get/set/update/delete with dotted field paths, ArrayUnion /
ArrayRemove / DELETE_FIELD transforms, where/order_by/limit
queries, write batches, transactions and get_all.
"""
import copy
import uuid
from datetime import datetime, timedelta, timezone

from firebase_admin import firestore
from google.api_core import exceptions as api_exceptions


def _split(path):
    parent, _, doc_id = path.rpartition("/")
    return parent, doc_id


def _lookup(data, field_path):
    value = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None, False
        value = value[part]
    return value, True


def _apply(data, field_path, value):
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    key = parts[-1]

    if value is firestore.DELETE_FIELD:
        target.pop(key, None)
    elif isinstance(value, firestore.ArrayUnion):
        current = list(target.get(key) or [])
        for item in value.values:
            if item not in current:
                current.append(copy.deepcopy(item))
        target[key] = current
    elif isinstance(value, firestore.ArrayRemove):
        target[key] = [item for item in target.get(key) or [] if item not in value.values]
    else:
        target[key] = copy.deepcopy(value)


def _merge(data, updates):
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            _merge(data[key], value)
        else:
            _apply(data, key, value)


_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
    "array_contains_any": lambda a, b: isinstance(a, list) and any(v in a for v in b),
}


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data) if data is not None else None

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path):
        value, _ = _lookup(self._data or {}, field_path)
        return value


class FakeDocumentReference:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = _split(path)[1]

    def collection(self, name):
        return FakeCollectionReference(self._db, f"{self.path}/{name}")

    def get(self, transaction=None):
        return FakeSnapshot(self, self._db.docs.get(self.path))

    def set(self, data, merge=False):
        if merge and self.path in self._db.docs:
            _merge(self._db.docs[self.path], data)
            return
        doc = {}
        for key, value in data.items():
            _apply(doc, key, value)
        self._db.docs[self.path] = doc

    def update(self, data):
        if self.path not in self._db.docs:
            raise api_exceptions.NotFound(f"No document to update: {self.path}")
        doc = self._db.docs[self.path]
        for key, value in data.items():
            _apply(doc, key, value)

    def delete(self):
        self._db.docs.pop(self.path, None)

    def __eq__(self, other):
        return isinstance(other, FakeDocumentReference) and other.path == self.path

    def __hash__(self):
        return hash(self.path)


class FakeQuery:
    def __init__(self, db, path, filters=(), orders=(), limit=None):
        self._db = db
        self._path = path
        self._filters = list(filters)
        self._orders = list(orders)
        self._limit = limit

    def _copy(self, **changes):
        params = {
            "filters": self._filters,
            "orders": self._orders,
            "limit": self._limit,
        }
        params.update(changes)
        return FakeQuery(self._db, self._path, **params)

    def where(self, field_path, op_string, value):
        if op_string not in _OPS:
            raise ValueError(f"unsupported operator {op_string}")
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path, direction=firestore.Query.ASCENDING):
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count):
        return self._copy(limit=count)

    def stream(self, transaction=None):
        rows = []
        for path, data in list(self._db.docs.items()):
            parent, _ = _split(path)
            if parent != self._path:
                continue
            matched = True
            for field_path, op_string, value in self._filters:
                current, present = _lookup(data, field_path)
                if not present or not _OPS[op_string](current, value):
                    matched = False
                    break
            if matched:
                rows.append((path, data))

        for field_path, direction in reversed(self._orders):
            rows = [row for row in rows if _lookup(row[1], field_path)[1]]
            rows.sort(
                key=lambda row: _lookup(row[1], field_path)[0],
                reverse=direction == firestore.Query.DESCENDING,
            )

        if self._limit is not None:
            rows = rows[:self._limit]

        for path, data in rows:
            yield FakeSnapshot(FakeDocumentReference(self._db, path), data)

    def get(self, transaction=None):
        return list(self.stream())


class FakeCollectionReference(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)
        self.id = _split(path)[1]

    def document(self, document_id=None):
        return FakeDocumentReference(self._db, f"{self._path}/{document_id or uuid.uuid4().hex[:20]}")


class FakeWriteBatch:
    def __init__(self, db):
        self._db = db
        self._writes = []

    def set(self, reference, document_data, merge=False):
        self._writes.append(lambda: reference.set(document_data, merge=merge))

    def update(self, reference, field_updates):
        self._writes.append(lambda: reference.update(field_updates))

    def delete(self, reference):
        self._writes.append(reference.delete)

    def commit(self):
        self._db.commits += 1
        writes, self._writes = self._writes, []
        for write in writes:
            write()


class FakeTransaction(FakeWriteBatch):
    pass


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.commits = 0

    def collection(self, name):
        return FakeCollectionReference(self, name)

    def document(self, path):
        return FakeDocumentReference(self, path)

    def batch(self):
        return FakeWriteBatch(self)

    def transaction(self):
        return FakeTransaction(self)

    def get_all(self, references):
        return [reference.get() for reference in references]

    # Test helpers

    def seed(self, path, data):
        self.docs[path] = copy.deepcopy(data)

    def data(self, path):
        return copy.deepcopy(self.docs.get(path))

    def paths(self, prefix):
        return sorted(path for path in self.docs if path.startswith(prefix))


def run_fake_transaction(db, callback):
    transaction = db.transaction()
    result = callback(transaction)
    transaction.commit()
    return result


class Clock:
    """Monotonic fake clock; every call advances one second."""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current
