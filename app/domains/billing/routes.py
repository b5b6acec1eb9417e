from fastapi import APIRouter, Body, Depends, Request
from typing import Any, Dict, Optional
from app.domains.billing.models import BillIn, BuyerIn
from app.domains.billing.services import BillingService

router = APIRouter()


def get_billing_service(request: Request) -> BillingService:
    return request.app.state.billing_service


@router.post("/buyers", status_code=201)
async def create_buyer(payload: BuyerIn, service: BillingService = Depends(get_billing_service)):
    return await service.create_buyer(payload)


@router.get("/buyers")
async def list_buyers(service: BillingService = Depends(get_billing_service)):
    return await service.list_buyers()


@router.get("/buyers/{buyer_id}")
async def get_buyer(buyer_id: str, service: BillingService = Depends(get_billing_service)):
    return await service.get_buyer(buyer_id)


@router.put("/buyers/{buyer_id}")
async def update_buyer(
    buyer_id: str,
    patch: Dict[str, Any] = Body(...),
    service: BillingService = Depends(get_billing_service),
):
    return await service.update_buyer(buyer_id, patch)


@router.delete("/buyers/{buyer_id}")
async def delete_buyer(buyer_id: str, service: BillingService = Depends(get_billing_service)):
    await service.delete_buyer(buyer_id)
    return {"message": "Buyer deleted successfully"}


@router.post("/bills", status_code=201)
async def create_bill(payload: BillIn, service: BillingService = Depends(get_billing_service)):
    return await service.create_bill(payload)


@router.get("/bills")
async def list_bills(buyerId: Optional[str] = None, service: BillingService = Depends(get_billing_service)):
    return await service.list_bills(buyerId)


@router.get("/bills/{bill_id}")
async def get_bill(bill_id: str, service: BillingService = Depends(get_billing_service)):
    return await service.get_bill(bill_id)


@router.delete("/bills/{bill_id}")
async def delete_bill(bill_id: str, service: BillingService = Depends(get_billing_service)):
    await service.delete_bill(bill_id)
    return {"message": "Bill deleted successfully"}
