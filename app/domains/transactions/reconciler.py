import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict, Optional

from app.domains.nominees.models import NomineeBalance
from app.domains.transactions.ledger import LedgerAggregator
from app.shared.errors import ReconciliationFailure
from app.shared.gateway import NOMINEES, PersistenceGateway
from app.shared.schema import Balance

logger = logging.getLogger(__name__)


class BalanceReconciler:
    """
    Keeps ``Nominee.currentBalance`` equal to the ledger total.

    The transaction collections are the source of truth: after each write the
    nominee's balance is recomputed from all of its transactions. Writes and
    recomputation for one nominee run under that nominee's lock, so concurrent
    requests in this process cannot lose an update.
    """

    def __init__(self, gateway: PersistenceGateway, aggregator: LedgerAggregator):
        self.gateway = gateway
        self.aggregator = aggregator
        self._locks: Dict[str, asyncio.Lock] = {}
        # tasks holding or waiting for each lock; the lock is dropped at zero
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def _nominee_lock(self, nominee_id: str):
        lock = self._locks.setdefault(nominee_id, asyncio.Lock())
        self._users[nominee_id] = self._users.get(nominee_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[nominee_id] -= 1
            if not self._users[nominee_id]:
                del self._users[nominee_id]
                del self._locks[nominee_id]

    @asynccontextmanager
    async def serialize(self, *nominee_ids: Optional[str]):
        """Hold the locks of every given nominee; acquired in sorted order to avoid deadlock."""
        async with AsyncExitStack() as stack:
            for nominee_id in sorted({nominee_id for nominee_id in nominee_ids if nominee_id}):
                await stack.enter_async_context(self._nominee_lock(nominee_id))
            yield

    async def _write_balance(self, nominee_id: str) -> Balance:
        total = await self.aggregator.ledger_total(nominee_id)
        await self.gateway.update_by_id(NOMINEES, nominee_id, {"currentBalance": total.to_document()})
        return total

    async def reconcile(self, nominee_id: str) -> Balance:
        """
        Recompute after a transaction write. Call inside ``serialize(nominee_id)``.

        Any failure here leaves the cached balance stale, so it is reported as
        ReconciliationFailure instead of the underlying error.
        """
        try:
            balance = await self._write_balance(nominee_id)
        except Exception as e:
            logger.error(f"Reconciliation failed for nominee {nominee_id}: {e}")
            raise ReconciliationFailure(nominee_id, e) from e
        logger.info(f"Nominee {nominee_id} balance reconciled to fine={balance.fine} amount={balance.amount}")
        return balance

    async def repair(self, nominee_id: str) -> Balance:
        """Recompute a nominee's balance from the full ledger on demand."""
        async with self.serialize(nominee_id):
            await self.gateway.find_by_id(NOMINEES, nominee_id)
            balance = await self._write_balance(nominee_id)
        logger.info(f"Repaired balance of nominee {nominee_id}")
        return balance

    async def repair_all(self) -> Dict[str, Balance]:
        nominees = await self.gateway.find(NOMINEES, {})
        repaired = {}
        for nominee in nominees:
            repaired[nominee["id"]] = await self.repair(nominee["id"])
        logger.info(f"Repaired balances of {len(repaired)} nominees")
        return repaired

    async def verify(self, nominee_id: str) -> NomineeBalance:
        nominee = await self.gateway.find_by_id(NOMINEES, nominee_id)
        cached = Balance.model_validate(nominee.get("currentBalance") or {})
        ledger = await self.aggregator.ledger_total(nominee_id)
        consistent = cached == ledger
        if not consistent:
            logger.warning(f"Nominee {nominee_id} cached balance {cached} differs from ledger {ledger}")
        return NomineeBalance(nominee_id=nominee_id, cached=cached, ledger=ledger, consistent=consistent)
