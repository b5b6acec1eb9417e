import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from app.domains.transactions.models import (
    COLLECTIONS,
    INPUT_MODELS,
    RECORD_MODELS,
    MaterialTransactionView,
    TransactionIn,
    TransactionKind,
    TransactionRecord,
)
from app.domains.transactions.reconciler import BalanceReconciler
from app.shared.gateway import NOMINEES, PersistenceGateway
from app.shared.schema import alias_patch, validate_record

logger = logging.getLogger(__name__)


class TransactionService:
    """Create, edit and delete ledger transactions, reconciling the nominee balance each time."""

    def __init__(self, gateway: PersistenceGateway, reconciler: BalanceReconciler):
        self.gateway = gateway
        self.reconciler = reconciler

    async def _require_nominee(self, nominee_id: str) -> dict:
        return await self.gateway.find_by_id(NOMINEES, nominee_id)

    async def create(self, kind: TransactionKind, payload: Union[TransactionIn, Dict[str, Any]]) -> TransactionRecord:
        kind = TransactionKind(kind)
        if not isinstance(payload, BaseModel):
            payload = validate_record(INPUT_MODELS[kind], payload)
        await self._require_nominee(payload.nominee_id)

        async with self.reconciler.serialize(payload.nominee_id):
            stored = await self.gateway.insert(COLLECTIONS[kind], payload.to_document())
            await self.reconciler.reconcile(payload.nominee_id)

        logger.info(f"Created {kind.value} transaction {stored['id']} for nominee {payload.nominee_id}")
        return RECORD_MODELS[kind].model_validate(stored)

    async def get(self, kind: TransactionKind, transaction_id: str) -> TransactionRecord:
        kind = TransactionKind(kind)
        stored = await self.gateway.find_by_id(COLLECTIONS[kind], transaction_id)
        return RECORD_MODELS[kind].model_validate(stored)

    async def get_material_with_nominee(self, transaction_id: str) -> MaterialTransactionView:
        stored = await self.gateway.find_by_id(COLLECTIONS[TransactionKind.MATERIAL], transaction_id)
        view = MaterialTransactionView.model_validate(stored)
        nominees = await self.gateway.find(NOMINEES, {"id": {"$in": [view.nominee_id]}})
        if nominees:
            view.nominee_name = nominees[0]["name"]
        return view

    @asynccontextmanager
    async def _hold_record(self, collection: str, transaction_id: str, target: Optional[str] = None):
        """
        Hold the lock of the nominee owning the record (and of ``target``) and
        yield the record as read under that lock. A record moved to another
        nominee while waiting is read again and locked under its new owner.
        """
        while True:
            owner = (await self.gateway.find_by_id(collection, transaction_id)).get("nomineeId")
            async with self.reconciler.serialize(owner, target):
                current = await self.gateway.find_by_id(collection, transaction_id)
                if current.get("nomineeId") == owner:
                    yield current
                    return
            logger.info(f"Transaction {transaction_id} moved away from nominee {owner} while waiting, retrying")

    async def update(self, kind: TransactionKind, transaction_id: str, patch: Dict[str, Any]) -> TransactionRecord:
        """Apply a partial update; the merged record must still satisfy the full model."""
        kind = TransactionKind(kind)
        collection = COLLECTIONS[kind]
        model = INPUT_MODELS[kind]
        fields = alias_patch(model, patch)

        existing = await self.gateway.find_by_id(collection, transaction_id)
        target = validate_record(model, {**existing, **fields}).nominee_id
        if target != existing.get("nomineeId"):
            await self._require_nominee(target)

        async with self._hold_record(collection, transaction_id, target) as current:
            updated = validate_record(model, {**current, **fields})
            document = updated.to_document()
            stored = await self.gateway.update_by_id(
                collection, transaction_id, {key: document[key] for key in fields}
            )
            for nominee_id in sorted({current.get("nomineeId"), updated.nominee_id} - {None}):
                await self.reconciler.reconcile(nominee_id)

        logger.info(f"Updated {kind.value} transaction {transaction_id}")
        return RECORD_MODELS[kind].model_validate(stored)

    async def delete(self, kind: TransactionKind, transaction_id: str) -> TransactionRecord:
        kind = TransactionKind(kind)
        collection = COLLECTIONS[kind]

        async with self._hold_record(collection, transaction_id) as current:
            deleted = await self.gateway.delete_by_id(collection, transaction_id)
            nominee_id = current.get("nomineeId")
            if nominee_id:
                await self.reconciler.reconcile(nominee_id)

        logger.info(f"Deleted {kind.value} transaction {transaction_id} of nominee {nominee_id}")
        return RECORD_MODELS[kind].model_validate(deleted)
