# app/domains/billing/models.py

from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from app.shared.precision import decimal_sum, round_amount
from app.shared.schema import LedgerModel, Quantity, StoredRecord, UtcDatetime


class BuyerIn(LedgerModel):
    name: str = Field(..., min_length=1)
    contact: Optional[str] = None
    address: Optional[str] = None


class Buyer(StoredRecord, BuyerIn):
    pass


class BillItem(LedgerModel):
    name: str = Field(..., min_length=1)
    weight: Optional[Quantity] = None
    rate: Optional[Quantity] = None
    amount: Quantity


class BillIn(LedgerModel):
    buyer_id: str = Field(..., min_length=1)
    bill_number: Optional[str] = None
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    description: Optional[str] = None
    items: List[BillItem] = Field(..., min_length=1)
    total_amount: Optional[Quantity] = None

    @model_validator(mode="after")
    def total_matches_items(self):
        items_total = decimal_sum(item.amount for item in self.items)
        if self.total_amount is None:
            self.total_amount = items_total
        elif round_amount(self.total_amount) != round_amount(items_total):
            raise ValueError(f"totalAmount {self.total_amount} does not match the item total {items_total}")
        return self


class Bill(StoredRecord, BillIn):
    pass


class BillView(Bill):
    buyer: Optional[Buyer] = None
