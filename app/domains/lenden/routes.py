from fastapi import APIRouter, Body, Depends, Request
from typing import Any, Dict, Optional
from app.domains.lenden.models import LendenEntryIn
from app.domains.lenden.services import LendenService
from app.shared.dates import DateRange

router = APIRouter()


def get_lenden_service(request: Request) -> LendenService:
    return request.app.state.lenden_service


@router.post("/lenden", status_code=201)
async def create_lenden_entry(payload: LendenEntryIn, service: LendenService = Depends(get_lenden_service)):
    return await service.create(payload)


@router.get("/lenden")
async def list_lenden_entries(
    name: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    service: LendenService = Depends(get_lenden_service),
):
    return await service.list_entries(name, DateRange.parse(startDate, endDate))


@router.get("/lenden/summary")
async def lenden_summary(name: Optional[str] = None, service: LendenService = Depends(get_lenden_service)):
    return await service.summary(name)


@router.get("/lenden/{entry_id}")
async def get_lenden_entry(entry_id: str, service: LendenService = Depends(get_lenden_service)):
    return await service.get(entry_id)


@router.put("/lenden/{entry_id}")
async def update_lenden_entry(
    entry_id: str,
    patch: Dict[str, Any] = Body(...),
    service: LendenService = Depends(get_lenden_service),
):
    return await service.update(entry_id, patch)


@router.delete("/lenden/{entry_id}")
async def delete_lenden_entry(entry_id: str, service: LendenService = Depends(get_lenden_service)):
    await service.delete(entry_id)
    return {"message": "Entry deleted successfully"}
