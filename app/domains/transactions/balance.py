"""
Signed contribution of each transaction kind to a nominee's balance.

The balance is what the nominee has been credited with:

* Material: Jama adds its fine and amount, Naam subtracts them.
* Product give: goods handed to the nominee, so its Totalfine is subtracted.
* Product take: the nominee settles in cash or metal, so the amount and the
  fine of every metal entry are added.
"""

from app.domains.transactions.models import (
    MaterialTransaction,
    ProductGiveTransaction,
    ProductTakeTransaction,
    TransactionKind,
    TransactionRecord,
    TransType,
)
from app.shared.precision import ZERO, decimal_sum, to_decimal
from app.shared.schema import Balance


def material_contribution(record: MaterialTransaction) -> Balance:
    fine, amount = to_decimal(record.fine), to_decimal(record.amount)
    if record.trans_type == TransType.JAMA:
        return Balance(fine=fine, amount=amount)
    return Balance(fine=ZERO - fine, amount=ZERO - amount)


def product_give_contribution(record: ProductGiveTransaction) -> Balance:
    return Balance(fine=ZERO - to_decimal(record.total_fine), amount=ZERO)


def product_take_contribution(record: ProductTakeTransaction) -> Balance:
    return Balance(
        fine=decimal_sum(metal.fine for metal in record.metals),
        amount=to_decimal(record.amount),
    )


_CONTRIBUTIONS = {
    TransactionKind.MATERIAL: material_contribution,
    TransactionKind.PRODUCT_GIVE: product_give_contribution,
    TransactionKind.PRODUCT_TAKE: product_take_contribution,
}


def contribution_of(kind: TransactionKind, record: TransactionRecord) -> Balance:
    return _CONTRIBUTIONS[TransactionKind(kind)](record)
