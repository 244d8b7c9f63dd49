"""Work order service - Business logic for work order operations"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import ACTION_NEEDED_KEY, APPOINTMENTS_NS, WORK_ORDERS_NS, Cache, work_order_list_key
from ...config import ACTION_NEEDED_CACHE_TTL_SECONDS, WORK_ORDER_CACHE_TTL_SECONDS
from ...models import Appointment, WorkOrder
from ...shared.exceptions import NotFoundError, ValidationError
from ...shared.lookups import require_customer, require_technician, require_vehicle_for_customer
from ...shared.timeutils import to_storage, utc_now
from .calculations import calculate_work_order_total
from .repository import WorkOrderRepository
from .schemas import WorkOrderCreate, WorkOrderResponse, WorkOrderUpdate
from .status_sync import (
    ACTION_NEEDED_STATUSES,
    REPLAYABLE_STATUSES,
    SyncEvent,
    WorkOrderStatus,
    decide_status,
    event_for_appointment_status,
)

logger = logging.getLogger(__name__)


def set_status(work_order: WorkOrder, status: str) -> None:
    """Write a status and stamp status_changed_at; leaving On Hold clears the hold reason"""
    work_order.status = status
    work_order.status_changed_at = utc_now()
    if status != WorkOrderStatus.ON_HOLD:
        work_order.hold_reason = None
        work_order.hold_reason_other = None


def apply_sync_event(work_order: WorkOrder, event: str) -> Optional[str]:
    """
    Run an automatic event through the synchronizer and apply the outcome.

    Returns the new status, or None when the rules left the work order alone.
    Does not commit.
    """
    previous = work_order.status
    new_status = decide_status(previous, event)
    if new_status is None:
        return None
    set_status(work_order, new_status)
    logger.info(f"🔄 Work order {work_order.id}: '{previous}' → '{new_status}' ({event})")
    return new_status


def sync_service_fields(work_order: WorkOrder, services=None, service_requested=None) -> None:
    """Keep the services list and the legacy newline-joined text in step"""
    if services is not None:
        work_order.services = [{"description": s["description"]} for s in services]
    elif service_requested is not None:
        work_order.services = [
            {"description": line.strip()} for line in service_requested.split("\n") if line.strip()
        ]

    if work_order.services:
        work_order.service_requested = "\n".join(s["description"] for s in work_order.services)
    elif service_requested is not None:
        work_order.service_requested = service_requested


def invalidate_work_order_caches(cache: Cache, status_changed: bool = False) -> None:
    """Drop cached work order lists; appointment listings embed the work order status"""
    if status_changed:
        cache.invalidate_namespaces(WORK_ORDERS_NS, ACTION_NEEDED_KEY, APPOINTMENTS_NS)
    else:
        cache.invalidate_namespaces(WORK_ORDERS_NS, ACTION_NEEDED_KEY)


class WorkOrderService:
    """Service layer for work order business logic"""

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cache = cache
        self.repo = WorkOrderRepository()

    def get_work_order(self, work_order_id: int) -> WorkOrder:
        work_order = self.repo.get_work_order(self.db, work_order_id)
        if not work_order:
            raise NotFoundError("Work order", work_order_id)
        return work_order

    def list_work_orders(self, status: Optional[str] = None) -> list[dict]:
        """List work orders (optionally by status) through the response cache"""
        key = work_order_list_key(status)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        work_orders = self.repo.list_work_orders(self.db, status)
        payload = [WorkOrderResponse.from_model(w).model_dump(mode="json") for w in work_orders]
        self.cache.set(key, payload, WORK_ORDER_CACHE_TTL_SECONDS)
        return payload

    def action_needed(self) -> list[dict]:
        """Work orders waiting on a service writer"""
        cached = self.cache.get(ACTION_NEEDED_KEY)
        if cached is not None:
            return cached

        work_orders = self.repo.list_by_statuses(self.db, ACTION_NEEDED_STATUSES)
        payload = [WorkOrderResponse.from_model(w).model_dump(mode="json") for w in work_orders]
        self.cache.set(ACTION_NEEDED_KEY, payload, ACTION_NEEDED_CACHE_TTL_SECONDS)
        return payload

    def create_work_order(self, data: WorkOrderCreate) -> WorkOrder:
        """Create a work order directly (manual work order or quote)"""
        customer = require_customer(self.db, data.customer)
        vehicle = require_vehicle_for_customer(self.db, data.vehicle, customer)
        technician = require_technician(self.db, data.assignedTechnician)

        parts = [p.model_dump() for p in data.parts]
        labor = [item.model_dump() for item in data.labor]
        computed_total = calculate_work_order_total(parts, labor)

        work_order = WorkOrder(
            customer_id=customer.id,
            vehicle_id=vehicle.id if vehicle else None,
            date=to_storage(data.date) or utc_now(),
            priority=data.priority,
            status=data.status or WorkOrderStatus.CREATED,
            status_changed_at=utc_now(),
            current_mileage=data.currentMileage,
            diagnostic_notes=data.diagnosticNotes,
            parts=parts,
            labor=labor,
            attachments=[a.model_dump() for a in data.attachments],
            total_estimate=data.totalEstimate if data.totalEstimate is not None else computed_total,
            total_actual=data.totalActual if data.totalActual is not None else computed_total,
            assigned_technician_id=technician.id if technician else None,
        )
        sync_service_fields(
            work_order,
            services=[s.model_dump() for s in data.services] if data.services else None,
            service_requested=data.serviceRequested,
        )

        self.repo.add(self.db, work_order)
        self.db.commit()
        self.db.refresh(work_order)

        invalidate_work_order_caches(self.cache)
        logger.info(f"✅ Work order {work_order.id} created for customer {customer.id}")
        return work_order

    def update_work_order(self, work_order_id: int, data: WorkOrderUpdate) -> WorkOrder:
        """Partial update. A status in the payload is a direct edit: any legal status, no guards."""
        work_order = self.get_work_order(work_order_id)
        fields = data.model_fields_set

        if "vehicle" in fields and data.vehicle is not None:
            vehicle = require_vehicle_for_customer(self.db, data.vehicle, work_order.customer)
            work_order.vehicle_id = vehicle.id

        if "assignedTechnician" in fields:
            technician = require_technician(self.db, data.assignedTechnician)
            work_order.assigned_technician_id = technician.id if technician else None

        if data.priority is not None:
            work_order.priority = data.priority
        if data.currentMileage is not None:
            work_order.current_mileage = data.currentMileage
        if data.diagnosticNotes is not None:
            work_order.diagnostic_notes = data.diagnosticNotes
        if data.attachments is not None:
            work_order.attachments = [a.model_dump() for a in data.attachments]

        if data.services is not None or data.serviceRequested is not None:
            sync_service_fields(
                work_order,
                services=[s.model_dump() for s in data.services] if data.services is not None else None,
                service_requested=data.serviceRequested,
            )

        totals_dirty = False
        if data.parts is not None:
            work_order.parts = [p.model_dump() for p in data.parts]
            totals_dirty = True
        if data.labor is not None:
            work_order.labor = [item.model_dump() for item in data.labor]
            totals_dirty = True
        if totals_dirty:
            computed_total = calculate_work_order_total(work_order.parts, work_order.labor)
            if data.totalEstimate is None:
                work_order.total_estimate = computed_total
            if data.totalActual is None:
                work_order.total_actual = computed_total
        if data.totalEstimate is not None:
            work_order.total_estimate = data.totalEstimate
        if data.totalActual is not None:
            work_order.total_actual = data.totalActual

        status_changed = False
        if data.status is not None:
            try:
                new_status = decide_status(work_order.status, SyncEvent.DIRECT_EDIT, data.status)
            except ValueError as e:
                raise ValidationError(str(e), field="status") from e
            if new_status is not None:
                logger.info(
                    f"✏️ Work order {work_order.id}: '{work_order.status}' → '{new_status}' (direct edit)"
                )
                set_status(work_order, new_status)
                status_changed = True

        if data.holdReason is not None:
            if work_order.status != WorkOrderStatus.ON_HOLD:
                raise ValidationError("A hold reason requires status 'On Hold'", field="holdReason")
            work_order.hold_reason = data.holdReason
            work_order.hold_reason_other = data.holdReasonOther

        self.db.commit()
        self.db.refresh(work_order)

        invalidate_work_order_caches(self.cache, status_changed)
        return work_order

    def recompute_status(self, work_order_id: int) -> tuple[WorkOrder, str, bool]:
        """
        Re-derive the status from the primary appointment's current status.

        Idempotent; repairs drift left by a crash between an appointment write
        and its work order side effect. Work orders already past the appointment
        milestone are left alone.
        """
        work_order = self.get_work_order(work_order_id)
        previous = work_order.status

        changed = False
        if (
            work_order.primary_appointment_id is not None
            and work_order.status in REPLAYABLE_STATUSES
        ):
            appointment = self.db.get(Appointment, work_order.primary_appointment_id)
            event = event_for_appointment_status(appointment.status) if appointment else None
            if event is not None and apply_sync_event(work_order, event) is not None:
                changed = True

        if changed:
            self.db.commit()
            self.db.refresh(work_order)
            invalidate_work_order_caches(self.cache, status_changed=True)
        return work_order, previous, changed
