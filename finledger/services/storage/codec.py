"""
Record <-> document conversion

Every backend stores a record as its camelCase JSON document, the same shape
used by export payloads. Keeping one codec means a stored row, an exported
record and a snapshot record can never drift apart.
"""

import json
from typing import Any

from finledger.models.ledger import COLLECTION_MODELS, Collection, LedgerRecord
from finledger.services.storage.interface import StorageError


def check_record_type(collection: Collection, record: LedgerRecord) -> None:
    """Refuse to put a record into the wrong collection."""
    expected = COLLECTION_MODELS[collection]
    if not isinstance(record, expected):
        raise StorageError(
            f"Cannot store {type(record).__name__} in {collection.value}; "
            f"expected {expected.__name__}"
        )


def record_to_document(record: LedgerRecord) -> dict[str, Any]:
    """Convert a record to its JSON-compatible document (id included)."""
    return record.model_dump(mode="json", by_alias=True)


def document_to_record(collection: Collection, document: dict[str, Any]) -> LedgerRecord:
    """Rebuild a record from its document."""
    return COLLECTION_MODELS[collection].model_validate(document)


def record_to_json(record: LedgerRecord) -> str:
    """Serialize a record without its id (the id lives in its own column)."""
    document = record_to_document(record)
    document.pop("id", None)
    return json.dumps(document, ensure_ascii=False)


def json_to_record(collection: Collection, record_id: int, text: str) -> LedgerRecord:
    """Deserialize a stored row."""
    document = json.loads(text)
    document["id"] = record_id
    return document_to_record(collection, document)
