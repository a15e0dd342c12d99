"""In-memory stand-ins for the Firestore client and Firebase Auth."""

import copy
import itertools
from datetime import datetime, timezone
from types import SimpleNamespace

from google.api_core.exceptions import AlreadyExists, NotFound, ServiceUnavailable
from google.cloud.firestore_v1 import ArrayRemove, ArrayUnion

_MISSING = object()


def _apply_update(current, changes):
    for key, value in changes.items():
        if isinstance(value, ArrayUnion):
            merged = list(current.get(key) or [])
            for item in value.values:
                if item not in merged:
                    merged.append(item)
            current[key] = merged
        elif isinstance(value, ArrayRemove):
            current[key] = [item for item in current.get(key) or [] if item not in value.values]
        else:
            current[key] = copy.deepcopy(value)


def _matches(data, field_filter):
    value = data.get(field_filter.field_path, _MISSING)
    if value is _MISSING:
        return False
    op, expected = field_filter.op_string, field_filter.value
    if op == '==':
        return value == expected
    if op == 'in':
        return value in expected
    if op == 'array_contains':
        return expected in (value or [])
    if op == 'array_contains_any':
        return any(item in (value or []) for item in expected)
    raise NotImplementedError(op)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self):
        return self._collection._docs

    def get(self):
        return FakeSnapshot(self, self._docs.get(self.id))

    def set(self, data):
        self._docs[self.id] = {}
        _apply_update(self._docs[self.id], data)

    def create(self, data):
        if self.id in self._docs:
            raise AlreadyExists(f'{self._collection.name}/{self.id} already exists')
        self.set(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f'{self._collection.name}/{self.id} not found')
        _apply_update(self._docs[self.id], data)

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection, filters=(), order=None, limit=None):
        self._collection = collection
        self._filters = list(filters)
        self._order = order
        self._limit = limit

    def where(self, filter=None):
        return FakeQuery(self._collection, self._filters + [filter], self._order, self._limit)

    def order_by(self, field_path, direction='ASCENDING'):
        return FakeQuery(self._collection, self._filters, (field_path, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._collection, self._filters, self._order, count)

    def count(self, alias=None):
        return FakeAggregationQuery(self, alias)

    def stream(self):
        rows = [
            (doc_id, data) for doc_id, data in self._collection._docs.items()
            if all(_matches(data, f) for f in self._filters)
        ]
        if self._order:
            field_path, direction = self._order
            rows = [r for r in rows if r[1].get(field_path) is not None]
            rows.sort(key=lambda r: r[1][field_path], reverse=direction == 'DESCENDING')
        if self._limit is not None:
            rows = rows[:self._limit]
        return iter([FakeSnapshot(self._collection.document(doc_id), data) for doc_id, data in rows])


class FakeAggregationQuery:
    def __init__(self, query, alias):
        self._query = query
        self._alias = alias

    def get(self):
        value = sum(1 for _ in self._query.stream())
        return [[SimpleNamespace(alias=self._alias, value=value)]]


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        self._db = db
        self.name = name
        super().__init__(self)

    @property
    def _docs(self):
        return self._db._store.setdefault(self.name, {})

    def document(self, doc_id=None):
        return FakeDocumentReference(self, doc_id or self._db.next_id(self.name))

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeBatch:
    def __init__(self):
        self._ops = []

    def set(self, ref, data):
        self._ops.append((ref.set, data))

    def update(self, ref, data):
        self._ops.append((ref.update, data))

    def delete(self, ref):
        self._ops.append((lambda _: ref.delete(), None))

    def commit(self):
        for op, data in self._ops:
            op(data)
        self._ops = []


class FakeFirestore:
    def __init__(self):
        self._store = {}
        self._ids = itertools.count(1)

    def next_id(self, collection):
        return f'{collection}-{next(self._ids)}'

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch()

    def docs(self, collection):
        """Snapshot of a collection for assertions: {id: data}."""
        return copy.deepcopy(self._store.get(collection, {}))


class FakeFirestoreDown(FakeFirestore):
    """Client whose writes to the given collections fail."""

    def __init__(self, failing=('notifications',)):
        super().__init__()
        self.failing = set(failing)

    def collection(self, name):
        collection = super().collection(name)
        if name in self.failing:
            def add(data):
                raise ServiceUnavailable(f'{name} is unavailable')
            collection.add = add
        return collection


class FakeAuth:
    """The parts of firebase_admin.auth the app calls."""

    def __init__(self):
        self.users = {}
        self._ids = itertools.count(1)

    def create_user(self, email=None, password=None, display_name=None):
        uid = f'uid-{next(self._ids)}'
        self.users[uid] = {'email': email, 'password': password, 'display_name': display_name}
        return SimpleNamespace(uid=uid, email=email, display_name=display_name)

    def update_user(self, uid, **fields):
        self.users[uid].update(fields)

    def delete_user(self, uid):
        self.users.pop(uid, None)

    def create_session_cookie(self, id_token, expires_in=None):
        return id_token

    def verify_session_cookie(self, session_cookie, check_revoked=False):
        return {'uid': session_cookie}


class FakeBlob:
    def __init__(self, bucket, name):
        self._bucket = bucket
        self.name = name

    def upload_from_string(self, data, content_type=None):
        self._bucket.files[self.name] = (data, content_type)

    def exists(self):
        return self.name in self._bucket.files

    def delete(self):
        self._bucket.files.pop(self.name)

    def generate_signed_url(self, version=None, expiration=None, method='GET'):
        return f'https://storage.example.com/{self.name}?signed'


class FakeBucket:
    def __init__(self):
        self.files = {}

    def blob(self, name):
        return FakeBlob(self, name)
