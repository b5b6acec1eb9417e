import logging
from typing import Any, Dict, List, Optional

from app.domains.lenden.models import LendenEntry, LendenEntryIn, LendenSummary, LendenType
from app.shared.dates import DateRange
from app.shared.gateway import LENDEN, PersistenceGateway
from app.shared.precision import to_decimal
from app.shared.schema import alias_patch, validate_record

logger = logging.getLogger(__name__)


class LendenService:
    """Cash lending book. Entries are keyed by a free-text name, not by nominee."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def create(self, payload: LendenEntryIn) -> LendenEntry:
        stored = await self.gateway.insert(LENDEN, payload.to_document())
        logger.info(f"Created lenden entry {stored['id']} for {payload.name}")
        return LendenEntry.model_validate(stored)

    async def get(self, entry_id: str) -> LendenEntry:
        return LendenEntry.model_validate(await self.gateway.find_by_id(LENDEN, entry_id))

    async def list_entries(self, name: Optional[str] = None, date_range: Optional[DateRange] = None) -> List[LendenEntry]:
        filter = dict((date_range or DateRange()).as_filter("date"))
        if name:
            filter["name"] = name
        records = await self.gateway.find(LENDEN, filter, sort=[("date", -1)])
        return [LendenEntry.model_validate(record) for record in records]

    async def update(self, entry_id: str, patch: Dict[str, Any]) -> LendenEntry:
        fields = alias_patch(LendenEntryIn, patch)
        existing = await self.gateway.find_by_id(LENDEN, entry_id)
        document = validate_record(LendenEntryIn, {**existing, **fields}).to_document()
        stored = await self.gateway.update_by_id(LENDEN, entry_id, {key: document[key] for key in fields})
        logger.info(f"Updated lenden entry {entry_id}")
        return LendenEntry.model_validate(stored)

    async def delete(self, entry_id: str) -> LendenEntry:
        deleted = await self.gateway.delete_by_id(LENDEN, entry_id)
        logger.info(f"Deleted lenden entry {entry_id}")
        return LendenEntry.model_validate(deleted)

    async def summary(self, name: Optional[str] = None) -> List[LendenSummary]:
        """Credit, debit and net (credit - debit) per name."""
        totals: Dict[str, LendenSummary] = {}
        for entry in await self.list_entries(name=name):
            row = totals.setdefault(entry.name, LendenSummary(name=entry.name))
            amount = to_decimal(entry.amount)
            if entry.trans_type == LendenType.CREDIT:
                row.credit += amount
            else:
                row.debit += amount
            row.net = row.credit - row.debit
        return [totals[key] for key in sorted(totals)]
