import logging
import re
from typing import List, Optional

from app.domains.nominees.models import Nominee, NomineeCreate
from app.shared.gateway import NOMINEES, PersistenceGateway
from app.shared.schema import Balance

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5


class NomineeService:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def create(self, payload: NomineeCreate) -> Nominee:
        # The balance starts at zero and is only ever written by the reconciler
        document = {**payload.to_document(), "currentBalance": Balance().to_document()}
        stored = await self.gateway.insert(NOMINEES, document)
        logger.info(f"Created nominee {stored['id']} ({payload.name})")
        return Nominee.model_validate(stored)

    async def get(self, nominee_id: str) -> Nominee:
        return Nominee.model_validate(await self.gateway.find_by_id(NOMINEES, nominee_id))

    async def list_all(self) -> List[Nominee]:
        records = await self.gateway.find(NOMINEES, {}, sort=[("name", 1)])
        return [Nominee.model_validate(record) for record in records]

    async def search(self, query: str = "", nominee_type: Optional[str] = None) -> List[Nominee]:
        """Case-insensitive name match, optionally restricted to one nominee type."""
        filter = {"name": {"$regex": re.escape(query or ""), "$options": "i"}}
        if nominee_type:
            filter["type"] = nominee_type
        records = await self.gateway.find(NOMINEES, filter, sort=[("name", 1)], limit=SEARCH_LIMIT)
        return [Nominee.model_validate(record) for record in records]
