# app/domains/lenden/models.py

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from app.shared.precision import ZERO
from app.shared.schema import LedgerModel, Quantity, StoredRecord, UtcDatetime


class LendenType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class LendenEntryIn(LedgerModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    trans_type: LendenType
    amount: Quantity = Field(..., ge=0)


class LendenEntry(StoredRecord, LendenEntryIn):
    pass


class LendenSummary(LedgerModel):
    name: str
    credit: Quantity = ZERO
    debit: Quantity = ZERO
    net: Quantity = ZERO
