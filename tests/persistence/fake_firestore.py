"""Dict-backed stand-in for ``google.cloud.firestore.AsyncClient``.

Covers the calls ``RouteRepository`` makes on ``/users/{uid}/routes``:
document get/set/delete, collection add and stream.
"""

from __future__ import annotations

import uuid
from typing import Any


class FakeDocumentSnapshot:
    def __init__(self, data: dict[str, Any] | None, doc_id: str):
        self._data = data
        self.id = doc_id
        self.exists = data is not None

    def to_dict(self) -> dict[str, Any]:
        if self._data is None:
            raise ValueError("Document does not exist")
        return dict(self._data)


class FakeDocumentRef:
    def __init__(self, store: dict[str, dict], path: str):
        self._store = store
        self._path = path
        self.id = path.rsplit("/", 1)[-1]

    async def get(self) -> FakeDocumentSnapshot:
        return FakeDocumentSnapshot(self._store.get(self._path), self.id)

    async def set(self, data: dict, merge: bool = False) -> None:
        if merge and self._path in self._store:
            self._store[self._path].update(data)
        else:
            self._store[self._path] = dict(data)

    async def delete(self) -> None:
        self._store.pop(self._path, None)

    def collection(self, name: str) -> "FakeCollectionRef":
        return FakeCollectionRef(self._store, f"{self._path}/{name}")


class FakeCollectionRef:
    def __init__(self, store: dict[str, dict], path: str):
        self._store = store
        self._path = path

    def document(self, doc_id: str | None = None) -> FakeDocumentRef:
        if doc_id is None:
            doc_id = uuid.uuid4().hex[:20]
        return FakeDocumentRef(self._store, f"{self._path}/{doc_id}")

    async def add(self, data: dict) -> tuple[object, FakeDocumentRef]:
        doc_ref = self.document()
        self._store[doc_ref._path] = dict(data)
        return object(), doc_ref

    async def stream(self):
        prefix = self._path + "/"
        for path, data in sorted(self._store.items()):
            rest = path[len(prefix):] if path.startswith(prefix) else None
            # Direct children only
            if rest and "/" not in rest:
                yield FakeDocumentSnapshot(dict(data), rest)


class FakeFirestoreClient:
    def __init__(self):
        self.store: dict[str, dict] = {}

    def collection(self, name: str) -> FakeCollectionRef:
        return FakeCollectionRef(self.store, name)
