"""Appointment router - FastAPI endpoints for scheduling operations"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlalchemy.orm import Session

from ...cache import Cache, get_cache
from ...database import get_db
from ...services.notification_service import NotificationDispatcher, get_notifier
from ...services.status_automation import run_end_of_day_sweep
from ..workorders.schemas import WorkOrderResponse
from .schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    AppointmentWriteResponse,
    CheckConflictsRequest,
    CheckConflictsResponse,
    ConflictSummary,
    CreateWorkOrderResponse,
    ReminderResponse,
    SweepResponse,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, cache, notifier)


def queue_notifications(service: AppointmentService, background_tasks: BackgroundTasks) -> None:
    """Deliver the service's pending notifications after the response is sent"""
    for notification in service.outbox:
        background_tasks.add_task(service.notifier.deliver, notification)
    service.outbox.clear()


# ============================================================================
# LISTINGS
# ============================================================================


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    start: Optional[datetime] = Query(None, alias="startDate"),
    end: Optional[datetime] = Query(None, alias="endDate"),
    status: Optional[str] = Query(None),
    technician: Optional[int] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List appointments by start time, optionally filtered"""
    appointments = service.list_appointments(start, end, status, technician)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.get("/today", response_model=list[AppointmentResponse])
async def get_today_appointments(service: AppointmentService = Depends(get_appointment_service)):
    """Today's appointments (shop time zone)"""
    return service.list_today()


@router.get("/date-range/{start_date}/{end_date}", response_model=list[AppointmentResponse])
async def get_appointments_by_date_range(
    start_date: date,
    end_date: date,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments starting between two shop calendar days, both inclusive"""
    return service.list_by_date_range(start_date, end_date)


@router.get("/customer/{customer_id}", response_model=list[AppointmentResponse])
async def get_customer_appointments(
    customer_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return [AppointmentResponse.from_model(a) for a in service.list_for_customer(customer_id)]


@router.get("/vehicle/{vehicle_id}", response_model=list[AppointmentResponse])
async def get_vehicle_appointments(
    vehicle_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return [AppointmentResponse.from_model(a) for a in service.list_for_vehicle(vehicle_id)]


# ============================================================================
# CONFLICTS AND SWEEP
# ============================================================================


@router.post("/check-conflicts", response_model=CheckConflictsResponse)
async def check_conflicts(
    data: CheckConflictsRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Overlapping live appointments for a proposed window (never rejects)"""
    conflicts = service.check_conflicts(
        data.startTime, data.endTime, data.technician, data.appointmentId
    )
    return CheckConflictsResponse(
        hasConflicts=bool(conflicts),
        results=len(conflicts),
        conflicts=[ConflictSummary.from_model(c) for c in conflicts],
    )


@router.post("/sweep/run", response_model=SweepResponse)
async def run_sweep(db: Session = Depends(get_db), cache: Cache = Depends(get_cache)):
    """Run the end-of-day sweep now"""
    summary = run_end_of_day_sweep(db, cache)
    return SweepResponse(**summary)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.post("", response_model=AppointmentWriteResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment; overlaps are reported in ``conflicts``"""
    appointment, conflicts = service.create_appointment(data)
    queue_notifications(service, background_tasks)
    return AppointmentWriteResponse.build(appointment, conflicts)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(service.get_appointment(appointment_id))


@router.patch("/{appointment_id}", response_model=AppointmentWriteResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    background_tasks: BackgroundTasks,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reschedule, reassign, change status or link a work order"""
    appointment, conflicts = service.update_appointment(appointment_id, data)
    queue_notifications(service, background_tasks)
    return AppointmentWriteResponse.build(appointment, conflicts)


@router.delete("/{appointment_id}", status_code=204)
async def delete_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    service.delete_appointment(appointment_id)
    return Response(status_code=204)


@router.post("/{appointment_id}/send-reminder", response_model=ReminderResponse)
async def send_reminder(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment, result = await service.send_reminder(appointment_id)
    message = "Appointment reminder sent successfully" if result.sent else "Reminder was not sent"
    return ReminderResponse(
        message=message,
        appointment=AppointmentResponse.from_model(appointment),
        delivery=result,
    )


@router.post(
    "/{appointment_id}/create-work-order", response_model=CreateWorkOrderResponse, status_code=201
)
async def create_work_order_from_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment, work_order = service.create_work_order_from_appointment(appointment_id)
    return CreateWorkOrderResponse(
        appointment=AppointmentResponse.from_model(appointment),
        workOrder=WorkOrderResponse.from_model(work_order),
    )
