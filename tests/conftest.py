"""
Shared fixtures: an in-memory PersistenceGateway, wired services and an
authenticated API client.
"""

import asyncio
import copy
import itertools
import re
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.config.setting import settings
from app.domains.billing.services import BillingService
from app.domains.lenden.services import LendenService
from app.domains.nominees.models import NomineeCreate
from app.domains.nominees.services import NomineeService
from app.domains.transactions.ledger import LedgerAggregator
from app.domains.transactions.reconciler import BalanceReconciler
from app.domains.transactions.services import TransactionService
from app.shared.errors import NotFound
from app.shared.gateway import PersistenceGateway, entity_name

LOGIN_ID = "owner"
LOGIN_PASSWORD = "s3cret"


def _matches(record: dict, filter: dict) -> bool:
    for key, condition in filter.items():
        value = record.get(key)
        if isinstance(condition, dict):
            for op, arg in condition.items():
                if op == "$gte":
                    if value is None or value < arg:
                        return False
                elif op == "$lte":
                    if value is None or value > arg:
                        return False
                elif op == "$lt":
                    if value is None or value >= arg:
                        return False
                elif op == "$in":
                    if value not in arg:
                        return False
                elif op == "$regex":
                    flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                    if value is None or not re.search(arg, value, flags):
                        return False
                elif op == "$options":
                    continue
                else:
                    raise NotImplementedError(op)
        elif value != condition:
            return False
    return True


class InMemoryGateway(PersistenceGateway):
    """Dict-backed gateway; every call yields to the event loop like a real driver would."""

    def __init__(self):
        self.collections = {}
        self._ticks = itertools.count(1)

    def _now(self) -> datetime:
        # strictly increasing so updatedAt ordering is deterministic
        return datetime(2024, 1, 1) + timedelta(seconds=next(self._ticks))

    def _collection(self, name: str) -> dict:
        return self.collections.setdefault(name, {})

    async def find_by_id(self, collection, record_id):
        await asyncio.sleep(0)
        record = self._collection(collection).get(record_id)
        if record is None:
            raise NotFound(entity_name(collection), record_id)
        return copy.deepcopy(record)

    async def find(self, collection, filter=None, sort=None, limit=None) -> List[dict]:
        await asyncio.sleep(0)
        records = [r for r in self._collection(collection).values() if _matches(r, filter or {})]
        for field, direction in reversed(list(sort or [])):
            records.sort(key=lambda r: r.get(field), reverse=direction < 0)
        if limit:
            records = records[:limit]
        return copy.deepcopy(records)

    async def insert(self, collection, record):
        await asyncio.sleep(0)
        now = self._now()
        stored = {**copy.deepcopy(record), "id": str(ObjectId()), "createdAt": now, "updatedAt": now}
        self._collection(collection)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update_by_id(self, collection, record_id, patch):
        await asyncio.sleep(0)
        record = self._collection(collection).get(record_id)
        if record is None:
            raise NotFound(entity_name(collection), record_id)
        fields = {k: v for k, v in patch.items() if k not in ("id", "createdAt")}
        record.update(copy.deepcopy(fields))
        record["updatedAt"] = self._now()
        return copy.deepcopy(record)

    async def delete_by_id(self, collection, record_id):
        await asyncio.sleep(0)
        record = self._collection(collection).pop(record_id, None)
        if record is None:
            raise NotFound(entity_name(collection), record_id)
        return record


class Services:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self.ledger = LedgerAggregator(gateway)
        self.reconciler = BalanceReconciler(gateway, self.ledger)
        self.nominees = NomineeService(gateway)
        self.transactions = TransactionService(gateway, self.reconciler)
        self.lenden = LendenService(gateway)
        self.billing = BillingService(gateway)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def services(gateway) -> Services:
    return Services(gateway)


@pytest.fixture
def make_nominee(services):
    def _make(name: str = "Ravi", type: str = "Material", contact: Optional[str] = None):
        return run(services.nominees.create(NomineeCreate(name=name, type=type, contact=contact)))
    return _make


@pytest.fixture
def client(gateway, monkeypatch) -> TestClient:
    from main import app, wire_services

    monkeypatch.setattr(settings, "login_id", LOGIN_ID)
    monkeypatch.setattr(settings, "login_password", LOGIN_PASSWORD)
    wire_services(app, gateway)
    return TestClient(app)


@pytest.fixture
def auth_headers(client) -> dict:
    response = client.post("/login", json={"id": LOGIN_ID, "password": LOGIN_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
