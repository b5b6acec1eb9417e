# app/domains/transactions/models.py

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import Field, model_validator

from app.shared.errors import InvalidArgument
from app.shared.gateway import (
    MATERIAL_TRANSACTIONS,
    PRODUCT_GIVE_TRANSACTIONS,
    PRODUCT_TAKE_TRANSACTIONS,
)
from app.shared.precision import decimal_sum, round_fine
from app.shared.schema import Balance, LedgerModel, Quantity, StoredRecord, UtcDatetime


class TransactionKind(str, Enum):
    MATERIAL = "Material"
    PRODUCT_GIVE = "ProductGive"
    PRODUCT_TAKE = "ProductTake"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TransactionKind":
        """Accept 'Material', 'Product Give', 'productgive', 'product-take' and the like."""
        normalized = "".join(ch for ch in (value or "") if ch.isalnum()).lower()
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        raise InvalidArgument(f"Invalid transaction type: {value!r}")


class TransType(str, Enum):
    NAAM = "Naam"   # debit
    JAMA = "Jama"   # credit


class PaymentMode(str, Enum):
    CASH = "cash"
    METAL = "metal"
    BHAV = "bhav"


Badla = Literal[0, 10, 12]


class MaterialTransactionIn(LedgerModel):
    nominee_id: str = Field(..., min_length=1)
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    product: str = Field(..., min_length=1)
    net_weight: Optional[Quantity] = None
    tunch: Optional[Quantity] = None
    wastage: Optional[Quantity] = None
    trans_type: TransType
    pieces: Optional[int] = None
    fine: Optional[Quantity] = None
    bhav: Optional[Quantity] = None
    badla: Optional[Badla] = None
    amount: Optional[Quantity] = None
    description: Optional[str] = None
    mode: PaymentMode


class MaterialTransaction(StoredRecord, MaterialTransactionIn):
    pass


class Box(LedgerModel):
    quantity: Quantity
    weight: Quantity


class Polythene(LedgerModel):
    quantity: Quantity
    weight: Quantity


class ProductLine(LedgerModel):
    name: str = Field(..., min_length=1)
    gross_weight: Quantity
    tunch: Quantity
    boxes: List[Box] = Field(default_factory=list)
    polythene: List[Polythene] = Field(default_factory=list)
    wastage: Quantity
    fine: Quantity


class ProductGiveTransactionIn(LedgerModel):
    nominee_id: str = Field(..., min_length=1)
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    description: Optional[str] = None
    products: List[ProductLine] = Field(default_factory=list)
    total_fine: Quantity = Field(..., alias="Totalfine")

    @model_validator(mode="after")
    def total_matches_products(self):
        if self.products:
            products_fine = decimal_sum(product.fine for product in self.products)
            if round_fine(products_fine) != round_fine(self.total_fine):
                raise ValueError(
                    f"Totalfine {self.total_fine} does not match the sum of product fine {products_fine}"
                )
        return self


class ProductGiveTransaction(StoredRecord, ProductGiveTransactionIn):
    pass


class MetalEntry(LedgerModel):
    weight: Optional[Quantity] = None
    tunch: Optional[Quantity] = None
    fine: Optional[Quantity] = None
    bhav: Optional[Quantity] = None
    badla: Optional[Badla] = None


class ProductTakeTransactionIn(LedgerModel):
    nominee_id: str = Field(..., min_length=1)
    date: UtcDatetime = Field(default_factory=datetime.utcnow)
    description: Optional[str] = None
    amount: Optional[Quantity] = None
    metal: Optional[bool] = None
    metals: List[MetalEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def amount_or_metal(self):
        if not self.amount and not self.metal:
            raise ValueError("Either amount or metal must be provided")
        return self


class ProductTakeTransaction(StoredRecord, ProductTakeTransactionIn):
    pass


TransactionIn = Union[MaterialTransactionIn, ProductGiveTransactionIn, ProductTakeTransactionIn]
TransactionRecord = Union[MaterialTransaction, ProductGiveTransaction, ProductTakeTransaction]

COLLECTIONS = {
    TransactionKind.MATERIAL: MATERIAL_TRANSACTIONS,
    TransactionKind.PRODUCT_GIVE: PRODUCT_GIVE_TRANSACTIONS,
    TransactionKind.PRODUCT_TAKE: PRODUCT_TAKE_TRANSACTIONS,
}

INPUT_MODELS = {
    TransactionKind.MATERIAL: MaterialTransactionIn,
    TransactionKind.PRODUCT_GIVE: ProductGiveTransactionIn,
    TransactionKind.PRODUCT_TAKE: ProductTakeTransactionIn,
}

RECORD_MODELS = {
    TransactionKind.MATERIAL: MaterialTransaction,
    TransactionKind.PRODUCT_GIVE: ProductGiveTransaction,
    TransactionKind.PRODUCT_TAKE: ProductTakeTransaction,
}


class TaggedTransaction(LedgerModel):
    """Common envelope for the merged feed; ``record`` keeps the kind-specific fields."""
    kind: TransactionKind
    id: str
    nominee_id: str
    nominee_name: Optional[str] = None
    date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    contribution: Balance
    running_balance: Optional[Balance] = None
    record: TransactionRecord


class NomineeLedger(LedgerModel):
    nominee_id: str
    nominee_name: str
    nominee_type: str
    current_balance: Balance
    opening_balance: Balance
    closing_balance: Balance
    transactions: List[TaggedTransaction]


class MaterialTransactionView(MaterialTransaction):
    nominee_name: Optional[str] = None
