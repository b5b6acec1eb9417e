import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from bson import Decimal128, ObjectId
from pymongo import ReturnDocument
from pymongo.errors import (
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    ServerSelectionTimeoutError,
)

from app.shared.errors import NotFound, StorageTimeout, StorageUnavailable

logger = logging.getLogger(__name__)

# Collection names of the existing database
NOMINEES = "nominees"
MATERIAL_TRANSACTIONS = "materialtransactions"
PRODUCT_GIVE_TRANSACTIONS = "productgivetransactions"
PRODUCT_TAKE_TRANSACTIONS = "producttaketransactions"
LENDEN = "lendens"
BUYERS = "buyers"
BILLS = "bills"

TRANSACTION_COLLECTIONS = (
    MATERIAL_TRANSACTIONS,
    PRODUCT_GIVE_TRANSACTIONS,
    PRODUCT_TAKE_TRANSACTIONS,
)

# Fields holding ids of other documents; stored as ObjectId
REFERENCE_FIELDS = frozenset({"nomineeId", "buyerId"})

Record = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]

_ENTITY_NAMES = {
    NOMINEES: "Nominee",
    MATERIAL_TRANSACTIONS: "Material transaction",
    PRODUCT_GIVE_TRANSACTIONS: "Product give transaction",
    PRODUCT_TAKE_TRANSACTIONS: "Product take transaction",
    LENDEN: "Lenden entry",
    BUYERS: "Buyer",
    BILLS: "Bill",
}


def entity_name(collection: str) -> str:
    return _ENTITY_NAMES.get(collection, collection)


class PersistenceGateway(ABC):
    """
    Narrow document-store interface used by the services.

    Records are plain dicts with an ``id`` string, ``createdAt`` and
    ``updatedAt`` datetimes, and Decimal numbers. Filters use MongoDB query
    syntax restricted to equality, ``$gte``, ``$lte``, ``$lt``, ``$in`` and
    ``$regex``/``$options``.
    """

    @abstractmethod
    async def find_by_id(self, collection: str, record_id: str) -> Record:
        """Return the record or raise NotFound."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Optional[Record] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """Return matching records, optionally sorted and limited."""

    @abstractmethod
    async def insert(self, collection: str, record: Record) -> Record:
        """Store a new record and return it with id and timestamps assigned."""

    @abstractmethod
    async def update_by_id(self, collection: str, record_id: str, patch: Record) -> Record:
        """Set the given fields and return the updated record, or raise NotFound."""

    @abstractmethod
    async def delete_by_id(self, collection: str, record_id: str) -> Record:
        """Remove the record and return it, or raise NotFound."""


def _encode_value(value: Any, reference: bool = False) -> Any:
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, dict):
        return {
            key: _encode_value(item, reference or key in REFERENCE_FIELDS)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_encode_value(item, reference) for item in value]
    if reference and isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def encode_document(record: Record) -> Record:
    """Prepare a record (or a filter) for MongoDB."""
    encoded = {}
    for key, value in record.items():
        if key == "id":
            encoded["_id"] = _encode_value(value, reference=True)
        else:
            encoded[key] = _encode_value(value, key in REFERENCE_FIELDS)
    return encoded


def _decode_value(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return decode_document(value)
    if isinstance(value, list):
        return [_decode_value(item) for item in value]
    return value


def decode_document(document: Record) -> Record:
    """Turn a MongoDB document into a plain record."""
    decoded = {}
    for key, value in document.items():
        if key == "__v":
            continue
        decoded["id" if key == "_id" else key] = _decode_value(value)
    return decoded


def _object_id(collection: str, record_id: str) -> ObjectId:
    if not ObjectId.is_valid(record_id):
        raise NotFound(entity_name(collection), record_id)
    return ObjectId(record_id)


class MongoGateway(PersistenceGateway):
    def __init__(self, db, timeout_seconds: float = 10.0):
        self.db = db
        self.timeout_seconds = timeout_seconds

    async def _run(self, operation: str, collection: str, awaitable: Awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, ExecutionTimeout, NetworkTimeout, ServerSelectionTimeoutError) as e:
            logger.error(f"MongoDB {operation} on '{collection}' timed out: {e}")
            raise StorageTimeout(operation, collection, str(e)) from e
        except ConnectionFailure as e:
            logger.error(f"MongoDB {operation} on '{collection}' failed: {e}")
            raise StorageUnavailable(operation, collection, str(e)) from e

    async def find_by_id(self, collection: str, record_id: str) -> Record:
        oid = _object_id(collection, record_id)
        document = await self._run("find_by_id", collection, self.db[collection].find_one({"_id": oid}))
        if document is None:
            raise NotFound(entity_name(collection), record_id)
        return decode_document(document)

    async def find(
        self,
        collection: str,
        filter: Optional[Record] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        cursor = self.db[collection].find(encode_document(filter or {}))
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        documents = await self._run("find", collection, cursor.to_list(length=None))
        return [decode_document(document) for document in documents]

    async def insert(self, collection: str, record: Record) -> Record:
        now = datetime.utcnow()
        document = encode_document({**record, "createdAt": now, "updatedAt": now})
        document.pop("_id", None)
        result = await self._run("insert", collection, self.db[collection].insert_one(document))
        document["_id"] = result.inserted_id
        return decode_document(document)

    async def update_by_id(self, collection: str, record_id: str, patch: Record) -> Record:
        oid = _object_id(collection, record_id)
        fields = {key: value for key, value in patch.items() if key not in ("id", "createdAt")}
        fields["updatedAt"] = datetime.utcnow()
        document = await self._run(
            "update_by_id",
            collection,
            self.db[collection].find_one_and_update(
                {"_id": oid},
                {"$set": encode_document(fields)},
                return_document=ReturnDocument.AFTER,
            ),
        )
        if document is None:
            raise NotFound(entity_name(collection), record_id)
        return decode_document(document)

    async def delete_by_id(self, collection: str, record_id: str) -> Record:
        oid = _object_id(collection, record_id)
        document = await self._run(
            "delete_by_id", collection, self.db[collection].find_one_and_delete({"_id": oid})
        )
        if document is None:
            raise NotFound(entity_name(collection), record_id)
        return decode_document(document)
