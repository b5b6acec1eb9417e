import logging
from typing import Any, Dict, List, Optional

from app.domains.billing.models import Bill, BillIn, BillView, Buyer, BuyerIn
from app.shared.errors import ValidationError
from app.shared.gateway import BILLS, BUYERS, PersistenceGateway
from app.shared.schema import alias_patch, validate_record

logger = logging.getLogger(__name__)


class BillingService:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    # Buyers

    async def create_buyer(self, payload: BuyerIn) -> Buyer:
        stored = await self.gateway.insert(BUYERS, payload.to_document())
        logger.info(f"Created buyer {stored['id']} ({payload.name})")
        return Buyer.model_validate(stored)

    async def get_buyer(self, buyer_id: str) -> Buyer:
        return Buyer.model_validate(await self.gateway.find_by_id(BUYERS, buyer_id))

    async def list_buyers(self) -> List[Buyer]:
        records = await self.gateway.find(BUYERS, {}, sort=[("name", 1)])
        return [Buyer.model_validate(record) for record in records]

    async def update_buyer(self, buyer_id: str, patch: Dict[str, Any]) -> Buyer:
        fields = alias_patch(BuyerIn, patch)
        existing = await self.gateway.find_by_id(BUYERS, buyer_id)
        document = validate_record(BuyerIn, {**existing, **fields}).to_document()
        stored = await self.gateway.update_by_id(BUYERS, buyer_id, {key: document[key] for key in fields})
        logger.info(f"Updated buyer {buyer_id}")
        return Buyer.model_validate(stored)

    async def delete_buyer(self, buyer_id: str) -> Buyer:
        bills = await self.gateway.find(BILLS, {"buyerId": buyer_id}, limit=1)
        if bills:
            raise ValidationError(f"Buyer {buyer_id} still has bills and cannot be deleted")
        deleted = await self.gateway.delete_by_id(BUYERS, buyer_id)
        logger.info(f"Deleted buyer {buyer_id}")
        return Buyer.model_validate(deleted)

    # Bills

    async def create_bill(self, payload: BillIn) -> Bill:
        await self.gateway.find_by_id(BUYERS, payload.buyer_id)
        stored = await self.gateway.insert(BILLS, payload.to_document())
        logger.info(f"Created bill {stored['id']} for buyer {payload.buyer_id} total {payload.total_amount}")
        return Bill.model_validate(stored)

    async def get_bill(self, bill_id: str) -> BillView:
        view = BillView.model_validate(await self.gateway.find_by_id(BILLS, bill_id))
        buyers = await self.gateway.find(BUYERS, {"id": {"$in": [view.buyer_id]}})
        if buyers:
            view.buyer = Buyer.model_validate(buyers[0])
        return view

    async def list_bills(self, buyer_id: Optional[str] = None) -> List[Bill]:
        filter = {"buyerId": buyer_id} if buyer_id else {}
        records = await self.gateway.find(BILLS, filter, sort=[("date", -1)])
        return [Bill.model_validate(record) for record in records]

    async def delete_bill(self, bill_id: str) -> Bill:
        deleted = await self.gateway.delete_by_id(BILLS, bill_id)
        logger.info(f"Deleted bill {bill_id}")
        return Bill.model_validate(deleted)
