import logging
from datetime import datetime
from typing import List, Optional

from app.domains.transactions.balance import contribution_of
from app.domains.transactions.models import (
    COLLECTIONS,
    RECORD_MODELS,
    NomineeLedger,
    TaggedTransaction,
    TransactionKind,
)
from app.shared.dates import DateRange
from app.shared.gateway import NOMINEES, PersistenceGateway
from app.shared.schema import Balance

logger = logging.getLogger(__name__)


def _feed_order(field: str):
    def key(entry: TaggedTransaction):
        return (getattr(entry, field) or datetime.min, entry.created_at or datetime.min, entry.id)
    return key


class LedgerAggregator:
    """Read side of the ledger: merged, tagged and ordered transaction feeds."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def _collect(self, filter: dict) -> List[TaggedTransaction]:
        entries = []
        for kind in TransactionKind:
            records = await self.gateway.find(COLLECTIONS[kind], filter)
            for raw in records:
                record = RECORD_MODELS[kind].model_validate(raw)
                entries.append(
                    TaggedTransaction(
                        kind=kind,
                        id=record.id,
                        nominee_id=record.nominee_id,
                        date=record.date,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                        contribution=contribution_of(kind, record),
                        record=record,
                    )
                )
        return entries

    async def list_transactions(self, nominee_id: str, date_range: Optional[DateRange] = None) -> NomineeLedger:
        nominee = await self.gateway.find_by_id(NOMINEES, nominee_id)
        date_range = date_range or DateRange()

        entries = await self._collect({"nomineeId": nominee_id, **date_range.as_filter("date")})
        entries.sort(key=_feed_order("date"), reverse=True)

        opening = Balance()
        if date_range.start is not None:
            earlier = await self._collect({"nomineeId": nominee_id, "date": {"$lt": date_range.start}})
            opening = Balance.total(entry.contribution for entry in earlier)

        running = opening
        for entry in reversed(entries):
            running = running + entry.contribution
            entry.running_balance = running
            entry.nominee_name = nominee["name"]

        logger.info(f"Ledger for nominee {nominee_id}: {len(entries)} transactions")
        return NomineeLedger(
            nominee_id=nominee_id,
            nominee_name=nominee["name"],
            nominee_type=nominee["type"],
            current_balance=nominee.get("currentBalance") or Balance(),
            opening_balance=opening,
            closing_balance=running,
            transactions=entries,
        )

    async def list_all_transactions(self, date_range: Optional[DateRange] = None) -> List[TaggedTransaction]:
        date_range = date_range or DateRange()
        entries = await self._collect(date_range.as_filter("updatedAt"))
        entries.sort(key=_feed_order("updated_at"), reverse=True)

        nominee_ids = sorted({entry.nominee_id for entry in entries})
        if nominee_ids:
            nominees = await self.gateway.find(NOMINEES, {"id": {"$in": nominee_ids}})
            names = {nominee["id"]: nominee["name"] for nominee in nominees}
            for entry in entries:
                entry.nominee_name = names.get(entry.nominee_id)
        return entries

    async def ledger_total(self, nominee_id: str) -> Balance:
        entries = await self._collect({"nomineeId": nominee_id})
        return Balance.total(entry.contribution for entry in entries)
