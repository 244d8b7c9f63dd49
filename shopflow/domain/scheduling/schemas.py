"""Scheduling domain schemas - Pydantic models for appointment requests and responses"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...schemas import CustomerSummary, TechnicianSummary, VehicleSummary, aware
from ...services.notification_service import DeliveryResult
from ..workorders.schemas import WorkOrderResponse

AppointmentStatusValue = Literal[
    "Scheduled", "Confirmed", "In Progress", "Completed", "Cancelled", "No-Show"
]


def _strip_service_type(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Service type cannot be blank")
    return value


class AppointmentCreate(BaseModel):
    """
    Booking request. Times without an offset are shop-local wall-clock times.

    ``workOrder`` links the booking to an existing work order; otherwise
    ``createWorkOrder`` asks for a new one built from the appointment.
    """

    customer: int
    vehicle: Optional[int] = None
    serviceType: str = Field(..., min_length=1, max_length=255)
    startTime: datetime
    endTime: datetime
    technician: Optional[int] = None
    notes: Optional[str] = None
    workOrder: Optional[int] = None
    createWorkOrder: bool = False

    @field_validator("serviceType")
    @classmethod
    def strip_service_type(cls, v):
        return _strip_service_type(v)


class AppointmentUpdate(BaseModel):
    """Partial update; only fields present in the body are applied"""

    vehicle: Optional[int] = None
    serviceType: Optional[str] = Field(None, min_length=1, max_length=255)
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    technician: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatusValue] = None
    workOrder: Optional[int] = None

    @field_validator("serviceType")
    @classmethod
    def strip_service_type(cls, v):
        return _strip_service_type(v) if v is not None else v


class CheckConflictsRequest(BaseModel):
    startTime: datetime
    endTime: datetime
    technician: Optional[int] = None
    appointmentId: Optional[int] = None


class WorkOrderLink(BaseModel):
    id: int
    status: str


class ConflictSummary(BaseModel):
    id: int
    customerName: Optional[str] = None
    serviceType: str
    startTime: datetime
    endTime: datetime
    technician: Optional[int] = None
    status: str

    @classmethod
    def from_model(cls, appointment) -> "ConflictSummary":
        return cls(
            id=appointment.id,
            customerName=appointment.customer.name if appointment.customer else None,
            serviceType=appointment.service_type,
            startTime=aware(appointment.start_time),
            endTime=aware(appointment.end_time),
            technician=appointment.technician_id,
            status=appointment.status,
        )


class CheckConflictsResponse(BaseModel):
    hasConflicts: bool
    results: int
    conflicts: list[ConflictSummary]


class AppointmentResponse(BaseModel):
    id: int
    customer: Optional[CustomerSummary] = None
    vehicle: Optional[VehicleSummary] = None
    serviceType: str
    startTime: datetime
    endTime: datetime
    durationHours: float
    technician: Optional[TechnicianSummary] = None
    notes: Optional[str] = None
    status: str
    workOrder: Optional[WorkOrderLink] = None
    workOrders: list[int] = []
    reminderSent: bool = False
    reminderSentAt: Optional[datetime] = None
    followUpSent: bool = False
    followUpSentAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def fields_from_model(cls, appointment) -> dict:
        primary = None
        if appointment.work_order_id is not None:
            for work_order in appointment.work_orders:
                if work_order.id == appointment.work_order_id:
                    primary = WorkOrderLink(id=work_order.id, status=work_order.status)
                    break
        return dict(
            id=appointment.id,
            customer=CustomerSummary.from_model(appointment.customer),
            vehicle=VehicleSummary.from_model(appointment.vehicle),
            serviceType=appointment.service_type,
            startTime=aware(appointment.start_time),
            endTime=aware(appointment.end_time),
            durationHours=round(appointment.duration_hours, 2),
            technician=TechnicianSummary.from_model(appointment.technician),
            notes=appointment.notes,
            status=appointment.status,
            workOrder=primary,
            workOrders=appointment.work_order_ids,
            reminderSent=bool(appointment.reminder_sent),
            reminderSentAt=aware(appointment.reminder_sent_at),
            followUpSent=bool(appointment.follow_up_sent),
            followUpSentAt=aware(appointment.follow_up_sent_at),
            createdAt=aware(appointment.created_at),
            updatedAt=aware(appointment.updated_at),
        )

    @classmethod
    def from_model(cls, appointment) -> "AppointmentResponse":
        return cls(**cls.fields_from_model(appointment))


class AppointmentWriteResponse(AppointmentResponse):
    """Create/update result: the appointment plus any advisory conflicts"""

    conflicts: list[ConflictSummary] = []
    hasConflicts: bool = False

    @classmethod
    def build(cls, appointment, conflicts) -> "AppointmentWriteResponse":
        return cls(
            **cls.fields_from_model(appointment),
            conflicts=[ConflictSummary.from_model(c) for c in conflicts],
            hasConflicts=bool(conflicts),
        )


class CreateWorkOrderResponse(BaseModel):
    appointment: AppointmentResponse
    workOrder: WorkOrderResponse


class SweepResponse(BaseModel):
    transitioned: int
    failed: int = 0


class ReminderResponse(BaseModel):
    message: str
    appointment: AppointmentResponse
    delivery: DeliveryResult
