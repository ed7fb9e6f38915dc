"""
In-Memory Storage Implementation

Keeps every collection as a dict of serialized documents. Records are
serialized on the way in and rebuilt on the way out, so callers can never
mutate stored state through a returned object, the same guarantee the
SQLite backend gives.

Used for tests and for throwaway stores (`FINLEDGER_STORE_BACKEND=memory`).
"""

from typing import Any, Optional, Sequence

from finledger.models.ledger import Collection, LedgerRecord
from finledger.services.storage.codec import (
    check_record_type,
    document_to_record,
    record_to_document,
)
from finledger.services.storage.interface import (
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Process-local storage. Nothing survives the process."""

    def __init__(self):
        self._documents: dict[Collection, dict[int, dict[str, Any]]] = {
            collection: {} for collection in Collection
        }
        self._next_ids: dict[Collection, int] = {
            collection: 1 for collection in Collection
        }

    def _store(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        check_record_type(collection, record)
        documents = self._documents[collection]

        record_id = record.id if record.id is not None else self._next_ids[collection]
        if record_id in documents:
            raise ConflictError(f"{collection.value} record {record_id} already exists")

        document = record_to_document(record)
        document["id"] = record_id
        documents[record_id] = document
        self._next_ids[collection] = max(self._next_ids[collection], record_id + 1)
        return document_to_record(collection, document)

    async def insert(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        return self._store(collection, record)

    async def bulk_insert(
        self,
        collection: Collection,
        records: Sequence[LedgerRecord],
    ) -> int:
        for record in records:
            self._store(collection, record)
        return len(records)

    async def get(self, collection: Collection, record_id: int) -> Optional[LedgerRecord]:
        document = self._documents[collection].get(record_id)
        if document is None:
            return None
        return document_to_record(collection, document)

    async def replace(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        check_record_type(collection, record)
        documents = self._documents[collection]
        if record.id is None or record.id not in documents:
            raise NotFoundError(f"{collection.value} record not found: {record.id}")
        document = record_to_document(record)
        documents[record.id] = document
        return document_to_record(collection, document)

    async def delete(self, collection: Collection, record_id: int) -> bool:
        return self._documents[collection].pop(record_id, None) is not None

    async def list_records(self, collection: Collection) -> list[LedgerRecord]:
        documents = self._documents[collection]
        return [
            document_to_record(collection, documents[record_id])
            for record_id in sorted(documents)
        ]

    async def count(self, collection: Collection) -> int:
        return len(self._documents[collection])

    async def clear(self, collection: Collection) -> int:
        removed = len(self._documents[collection])
        self._documents[collection] = {}
        return removed
