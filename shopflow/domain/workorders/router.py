"""Work order router - FastAPI endpoints for work order operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...cache import Cache, get_cache
from ...database import get_db
from ...shared.exceptions import ValidationError
from .schemas import RecomputeStatusResponse, WorkOrderCreate, WorkOrderResponse, WorkOrderUpdate
from .service import WorkOrderService
from .status_sync import normalize_work_order_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workorders", tags=["Work Orders"])


def get_work_order_service(
    db: Session = Depends(get_db), cache: Cache = Depends(get_cache)
) -> WorkOrderService:
    """Dependency injection for WorkOrderService"""
    return WorkOrderService(db, cache)


@router.get("", response_model=list[WorkOrderResponse])
async def list_work_orders(
    status: Optional[str] = Query(None),
    service: WorkOrderService = Depends(get_work_order_service),
):
    """List work orders, newest first, optionally filtered by status"""
    if status:
        normalized = normalize_work_order_status(status)
        if normalized is None:
            raise ValidationError(f"Invalid work order status: {status}", field="status")
        status = normalized
    return service.list_work_orders(status)


@router.get("/action-needed", response_model=list[WorkOrderResponse])
async def action_needed(service: WorkOrderService = Depends(get_work_order_service)):
    """Work orders waiting on a service writer (oldest status change first)"""
    return service.action_needed()


@router.get("/{work_order_id}", response_model=WorkOrderResponse)
async def get_work_order(
    work_order_id: int,
    service: WorkOrderService = Depends(get_work_order_service),
):
    return WorkOrderResponse.from_model(service.get_work_order(work_order_id))


@router.post("", response_model=WorkOrderResponse, status_code=201)
async def create_work_order(
    data: WorkOrderCreate,
    service: WorkOrderService = Depends(get_work_order_service),
):
    """Create a work order directly"""
    work_order = service.create_work_order(data)
    return WorkOrderResponse.from_model(work_order)


@router.patch("/{work_order_id}", response_model=WorkOrderResponse)
async def update_work_order(
    work_order_id: int,
    data: WorkOrderUpdate,
    service: WorkOrderService = Depends(get_work_order_service),
):
    """Update a work order; a status here is taken as-is"""
    work_order = service.update_work_order(work_order_id, data)
    return WorkOrderResponse.from_model(work_order)


@router.post("/{work_order_id}/recompute-status", response_model=RecomputeStatusResponse)
async def recompute_status(
    work_order_id: int,
    service: WorkOrderService = Depends(get_work_order_service),
):
    """Re-derive the status from the primary appointment"""
    work_order, previous, changed = service.recompute_status(work_order_id)
    return RecomputeStatusResponse(
        id=work_order.id, previousStatus=previous, status=work_order.status, changed=changed
    )
