"""Work order domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...schemas import CustomerSummary, TechnicianSummary, VehicleSummary, aware
from .status_sync import HOLD_REASONS, normalize_work_order_status

Priority = Literal["Low", "Normal", "High", "Urgent"]


class ServiceItem(BaseModel):
    description: str = Field(..., min_length=1)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Service description cannot be blank")
        return v


class PartItem(BaseModel):
    name: str
    partNumber: Optional[str] = None
    itemNumber: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(0, ge=0)
    cost: float = Field(0, ge=0)
    ordered: bool = False
    received: bool = False
    vendor: Optional[str] = None
    supplier: Optional[str] = None
    purchaseOrderNumber: Optional[str] = None


class LaborItem(BaseModel):
    description: str
    hours: float = Field(..., ge=0)
    rate: float = Field(..., ge=0)


class AttachmentItem(BaseModel):
    type: Literal["Pre-Inspection", "Diagnostic", "Parts Receipt", "Post-Inspection", "Other"]
    fileUrl: str
    fileName: str
    notes: Optional[str] = None


def _check_status(v):
    if v is None:
        return v
    normalized = normalize_work_order_status(v)
    if normalized is None:
        raise ValueError(f"Invalid work order status: {v}")
    return normalized


def _check_hold_reason(v):
    if v is not None and v not in HOLD_REASONS:
        raise ValueError(f"Invalid hold reason: {v}")
    return v


class WorkOrderCreate(BaseModel):
    """Schema for creating a work order (manual work order or quote)"""

    customer: int
    vehicle: Optional[int] = None
    date: Optional[datetime] = None
    priority: Priority = "Normal"
    status: Optional[str] = None
    currentMileage: Optional[int] = Field(None, ge=0)
    services: list[ServiceItem] = []
    serviceRequested: Optional[str] = None
    diagnosticNotes: Optional[str] = None
    parts: list[PartItem] = []
    labor: list[LaborItem] = []
    attachments: list[AttachmentItem] = []
    totalEstimate: Optional[float] = Field(None, ge=0)
    totalActual: Optional[float] = Field(None, ge=0)
    assignedTechnician: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class WorkOrderUpdate(BaseModel):
    """Partial update; a status here is a direct edit and bypasses the automatic rules"""

    vehicle: Optional[int] = None
    priority: Optional[Priority] = None
    status: Optional[str] = None
    holdReason: Optional[str] = None
    holdReasonOther: Optional[str] = None
    currentMileage: Optional[int] = Field(None, ge=0)
    services: Optional[list[ServiceItem]] = None
    serviceRequested: Optional[str] = None
    diagnosticNotes: Optional[str] = None
    parts: Optional[list[PartItem]] = None
    labor: Optional[list[LaborItem]] = None
    attachments: Optional[list[AttachmentItem]] = None
    totalEstimate: Optional[float] = Field(None, ge=0)
    totalActual: Optional[float] = Field(None, ge=0)
    assignedTechnician: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)

    @field_validator("holdReason")
    @classmethod
    def validate_hold_reason(cls, v):
        return _check_hold_reason(v)


class CostBreakdown(BaseModel):
    partsCost: float
    laborCost: float
    total: float


class WorkOrderResponse(BaseModel):
    id: int
    customer: Optional[CustomerSummary] = None
    vehicle: Optional[VehicleSummary] = None
    date: Optional[datetime] = None
    priority: str
    status: str
    statusChangedAt: Optional[datetime] = None
    holdReason: Optional[str] = None
    holdReasonOther: Optional[str] = None
    currentMileage: Optional[int] = None
    services: list[dict] = []
    serviceRequested: Optional[str] = None
    diagnosticNotes: Optional[str] = None
    parts: list[dict] = []
    labor: list[dict] = []
    attachments: list[dict] = []
    totalEstimate: float = 0
    totalActual: float = 0
    costBreakdown: Optional[CostBreakdown] = None
    primaryAppointment: Optional[int] = None
    appointments: list[int] = []
    assignedTechnician: Optional[TechnicianSummary] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, work_order) -> "WorkOrderResponse":
        from .calculations import get_cost_breakdown

        return cls(
            id=work_order.id,
            customer=CustomerSummary.from_model(work_order.customer),
            vehicle=VehicleSummary.from_model(work_order.vehicle),
            date=aware(work_order.date),
            priority=work_order.priority,
            status=work_order.status,
            statusChangedAt=aware(work_order.status_changed_at),
            holdReason=work_order.hold_reason,
            holdReasonOther=work_order.hold_reason_other,
            currentMileage=work_order.current_mileage,
            services=work_order.services or [],
            serviceRequested=work_order.service_requested,
            diagnosticNotes=work_order.diagnostic_notes,
            parts=work_order.parts or [],
            labor=work_order.labor or [],
            attachments=work_order.attachments or [],
            totalEstimate=work_order.total_estimate or 0,
            totalActual=work_order.total_actual or 0,
            costBreakdown=CostBreakdown(**get_cost_breakdown(work_order)),
            primaryAppointment=work_order.primary_appointment_id,
            appointments=work_order.appointment_ids,
            assignedTechnician=TechnicianSummary.from_model(work_order.assigned_technician),
            createdAt=aware(work_order.created_at),
            updatedAt=aware(work_order.updated_at),
        )


class RecomputeStatusResponse(BaseModel):
    id: int
    previousStatus: str
    status: str
    changed: bool
