from fastapi import APIRouter, Body, Depends, Query, Request
import logging
from typing import Any, Dict, Optional
from app.domains.transactions.ledger import LedgerAggregator
from app.shared.dates import DateRange
from app.domains.transactions.models import (
    MaterialTransactionIn,
    ProductGiveTransactionIn,
    ProductTakeTransactionIn,
    TransactionKind,
)
from app.domains.transactions.services import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_transaction_service(request: Request) -> TransactionService:
    return request.app.state.transaction_service


def get_ledger(request: Request) -> LedgerAggregator:
    return request.app.state.ledger


# Merged feeds

@router.get("/transactions/all")
async def list_all_transactions(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    ledger: LedgerAggregator = Depends(get_ledger),
):
    return await ledger.list_all_transactions(DateRange.parse(startDate, endDate))


@router.get("/transactions/by-nominee/{nominee_id}")
async def list_nominee_transactions(
    nominee_id: str,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    ledger: LedgerAggregator = Depends(get_ledger),
):
    return await ledger.list_transactions(nominee_id, DateRange.parse(startDate, endDate))


# Any kind by id; ``type`` defaults to Material for reads and edits

@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    type: Optional[str] = None,
    service: TransactionService = Depends(get_transaction_service),
):
    kind = TransactionKind.parse(type) if type else TransactionKind.MATERIAL
    if kind == TransactionKind.MATERIAL:
        return await service.get_material_with_nominee(transaction_id)
    return await service.get(kind, transaction_id)


@router.put("/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    patch: Dict[str, Any] = Body(...),
    type: Optional[str] = None,
    service: TransactionService = Depends(get_transaction_service),
):
    kind = TransactionKind.parse(type) if type else TransactionKind.MATERIAL
    return await service.update(kind, transaction_id, patch)


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    type: str = Query(...),
    service: TransactionService = Depends(get_transaction_service),
):
    kind = TransactionKind.parse(type)
    await service.delete(kind, transaction_id)
    return {"message": "Transaction deleted successfully"}


# Material transactions

@router.post("/material-transactions", status_code=201)
async def create_material_transaction(
    payload: MaterialTransactionIn,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.create(TransactionKind.MATERIAL, payload)


@router.get("/material-transactions/{transaction_id}")
async def get_material_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.get_material_with_nominee(transaction_id)


@router.put("/material-transactions/{transaction_id}")
async def update_material_transaction(
    transaction_id: str,
    patch: Dict[str, Any] = Body(...),
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.update(TransactionKind.MATERIAL, transaction_id, patch)


@router.delete("/material-transactions/{transaction_id}")
async def delete_material_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    await service.delete(TransactionKind.MATERIAL, transaction_id)
    return {"message": "Transaction deleted successfully"}


# Product give transactions

@router.post("/product-give-transactions", status_code=201)
async def create_product_give_transaction(
    payload: ProductGiveTransactionIn,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.create(TransactionKind.PRODUCT_GIVE, payload)


@router.get("/product-give-transactions/{transaction_id}")
async def get_product_give_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.get(TransactionKind.PRODUCT_GIVE, transaction_id)


@router.put("/product-give-transactions/{transaction_id}")
async def update_product_give_transaction(
    transaction_id: str,
    patch: Dict[str, Any] = Body(...),
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.update(TransactionKind.PRODUCT_GIVE, transaction_id, patch)


@router.delete("/product-give-transactions/{transaction_id}")
async def delete_product_give_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    await service.delete(TransactionKind.PRODUCT_GIVE, transaction_id)
    return {"message": "Transaction deleted successfully"}


# Product take transactions

@router.post("/product-take-transactions", status_code=201)
async def create_product_take_transaction(
    payload: ProductTakeTransactionIn,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.create(TransactionKind.PRODUCT_TAKE, payload)


@router.get("/product-take-transactions/{transaction_id}")
async def get_product_take_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.get(TransactionKind.PRODUCT_TAKE, transaction_id)


@router.put("/product-take-transactions/{transaction_id}")
async def update_product_take_transaction(
    transaction_id: str,
    patch: Dict[str, Any] = Body(...),
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.update(TransactionKind.PRODUCT_TAKE, transaction_id, patch)


@router.delete("/product-take-transactions/{transaction_id}")
async def delete_product_take_transaction(
    transaction_id: str,
    service: TransactionService = Depends(get_transaction_service),
):
    await service.delete(TransactionKind.PRODUCT_TAKE, transaction_id)
    return {"message": "Transaction deleted successfully"}
