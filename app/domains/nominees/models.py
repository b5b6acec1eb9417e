# app/domains/nominees/models.py

from enum import Enum
from typing import Optional

from pydantic import Field

from app.shared.schema import Balance, LedgerModel, StoredRecord


class NomineeType(str, Enum):
    MATERIAL = "Material"
    PRODUCT = "Product"


class NomineeCreate(LedgerModel):
    name: str = Field(..., min_length=1)
    contact: Optional[str] = None
    type: NomineeType


class Nominee(StoredRecord):
    name: str
    contact: Optional[str] = None
    type: NomineeType
    current_balance: Balance = Field(default_factory=Balance)


class NomineeBalance(LedgerModel):
    nominee_id: str
    cached: Balance
    ledger: Balance
    consistent: bool
