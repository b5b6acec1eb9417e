from fastapi import APIRouter, Depends, Request
import logging
from typing import Optional
from app.domains.nominees.models import NomineeCreate
from app.domains.nominees.services import NomineeService
from app.domains.transactions.reconciler import BalanceReconciler

logger = logging.getLogger(__name__)

router = APIRouter()


def get_nominee_service(request: Request) -> NomineeService:
    return request.app.state.nominee_service


def get_reconciler(request: Request) -> BalanceReconciler:
    return request.app.state.reconciler


@router.get("/nominees/search")
async def search_nominees(
    query: str = "",
    type: Optional[str] = None,
    service: NomineeService = Depends(get_nominee_service),
):
    return await service.search(query, type)


@router.get("/nominees")
async def list_nominees(service: NomineeService = Depends(get_nominee_service)):
    return await service.list_all()


@router.post("/nominees", status_code=201)
async def create_nominee(payload: NomineeCreate, service: NomineeService = Depends(get_nominee_service)):
    return await service.create(payload)


@router.post("/nominees/reconcile")
async def reconcile_all_nominees(reconciler: BalanceReconciler = Depends(get_reconciler)):
    repaired = await reconciler.repair_all()
    return {"reconciled": len(repaired), "balances": repaired}


@router.get("/nominees/{nominee_id}")
async def get_nominee(nominee_id: str, service: NomineeService = Depends(get_nominee_service)):
    return await service.get(nominee_id)


@router.get("/nominees/{nominee_id}/balance")
async def get_nominee_balance(nominee_id: str, reconciler: BalanceReconciler = Depends(get_reconciler)):
    return await reconciler.verify(nominee_id)


@router.post("/nominees/{nominee_id}/reconcile")
async def reconcile_nominee(nominee_id: str, reconciler: BalanceReconciler = Depends(get_reconciler)):
    balance = await reconciler.repair(nominee_id)
    return {"nomineeId": nominee_id, "currentBalance": balance}
