"""
Appointment lifecycle service

Owns appointment create/reschedule/status/delete and their side effects on the
linked work order. Conflicts are advisory unless the service runs with the
strict policy. Notifications are snapshotted after commit onto ``outbox``;
the router delivers them once the response is on its way.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import (
    ACTION_NEEDED_KEY,
    APPOINTMENTS_NS,
    WORK_ORDERS_NS,
    Cache,
    appointment_range_key,
)
from ...config import CACHE_TTL_SECONDS, CONFLICT_POLICY, ConflictPolicy
from ...models import Appointment, Technician, Vehicle, WorkOrder
from ...services.notification_service import (
    DeliveryResult,
    Notification,
    NotificationDispatcher,
    NotificationKind,
    channel_for,
)
from ...shared.exceptions import NotFoundError, SchedulingConflictError, ValidationError
from ...shared.lookups import require_customer, require_technician, require_vehicle_for_customer
from ...shared.timeutils import range_bounds, shop_today, to_storage, utc_now
from ...shared.validators import validate_time_window
from ..workorders.service import apply_sync_event
from ..workorders.status_sync import (
    TERMINAL_APPOINTMENT_STATUSES,
    AppointmentStatus,
    SyncEvent,
    WorkOrderStatus,
    event_for_appointment_status,
)
from .conflicts import ConflictDetector
from .linkage import link, unlink_all
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentUpdate, ConflictSummary

logger = logging.getLogger(__name__)


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(
        self,
        db: Session,
        cache: Cache,
        notifier: NotificationDispatcher,
        conflict_policy: ConflictPolicy = CONFLICT_POLICY,
    ):
        self.db = db
        self.cache = cache
        self.notifier = notifier
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.repo = AppointmentRepository()
        self.detector = ConflictDetector(db)
        # Notifications waiting to be delivered for the writes made so far
        self.outbox: list[Notification] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def list_appointments(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[str] = None,
        technician_id: Optional[int] = None,
    ) -> list[Appointment]:
        if status and status not in AppointmentStatus.ALL:
            raise ValidationError(f"Invalid appointment status: {status}", field="status")
        return self.repo.list_appointments(
            self.db,
            start=to_storage(start),
            end=to_storage(end),
            status=status,
            technician_id=technician_id,
        )

    def list_by_date_range(self, start_date: date, end_date: date) -> list[dict]:
        """Appointments starting on any shop calendar day in [start_date, end_date]"""
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date", field="start_date")

        key = appointment_range_key(start_date.isoformat(), end_date.isoformat())
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        start, end = range_bounds(start_date, end_date)
        appointments = self.repo.list_appointments(self.db, start=start, end=end)
        payload = [AppointmentResponse.from_model(a).model_dump(mode="json") for a in appointments]
        self.cache.set(key, payload, CACHE_TTL_SECONDS)
        return payload

    def list_today(self, now: Optional[datetime] = None) -> list[dict]:
        today = shop_today(now)
        return self.list_by_date_range(today, today)

    def list_for_customer(self, customer_id: int) -> list[Appointment]:
        require_customer(self.db, customer_id)
        return self.repo.list_appointments(self.db, customer_id=customer_id)

    def list_for_vehicle(self, vehicle_id: int) -> list[Appointment]:
        if self.db.get(Vehicle, vehicle_id) is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return self.repo.list_appointments(self.db, vehicle_id=vehicle_id)

    def check_conflicts(
        self,
        start_time: datetime,
        end_time: datetime,
        technician_id: Optional[int] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Appointment]:
        return self.detector.find_conflicts(
            to_storage(start_time), to_storage(end_time), technician_id, exclude_appointment_id
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _screen_conflicts(
        self,
        start: datetime,
        end: datetime,
        technician_id: Optional[int],
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Run the conflict check and apply the configured policy"""
        if self.conflict_policy == ConflictPolicy.STRICT and technician_id is not None:
            # Serialize strict bookings per technician (no-op on SQLite)
            (
                self.db.query(Technician)
                .filter(Technician.id == technician_id)
                .with_for_update()
                .first()
            )

        conflicts = self.detector.find_conflicts(start, end, technician_id, exclude_appointment_id)
        if not conflicts:
            return conflicts

        conflict_ids = [c.id for c in conflicts]
        if self.conflict_policy == ConflictPolicy.STRICT:
            logger.warning(f"❌ Booking rejected, overlaps appointments {conflict_ids}")
            raise SchedulingConflictError(
                [ConflictSummary.from_model(c).model_dump(mode="json") for c in conflicts]
            )
        logger.warning(f"⚠️ Scheduling conflict (advisory) with appointments {conflict_ids}")
        return conflicts

    def _find_work_order(self, work_order_id: int, customer_id: int) -> WorkOrder:
        work_order = self.repo.get_work_order(self.db, work_order_id)
        if work_order is None:
            raise NotFoundError("Work order", work_order_id, field="workOrder")
        if work_order.customer_id != customer_id:
            raise ValidationError(
                "The work order does not belong to this customer", field="workOrder"
            )
        return work_order

    def _build_work_order(self, appointment: Appointment) -> WorkOrder:
        """New work order mirroring an appointment's customer, vehicle, date and service"""
        work_order = WorkOrder(
            customer_id=appointment.customer_id,
            vehicle_id=appointment.vehicle_id,
            date=appointment.start_time,
            status=WorkOrderStatus.APPOINTMENT_SCHEDULED,
            status_changed_at=utc_now(),
            services=[{"description": appointment.service_type}],
            service_requested=appointment.service_type,
            parts=[],
            labor=[],
            attachments=[],
            assigned_technician_id=appointment.technician_id,
        )
        return self.repo.add(self.db, work_order)

    def _primary_work_order(self, appointment: Appointment) -> Optional[WorkOrder]:
        if appointment.work_order_id is None:
            return None
        return self.repo.get_work_order(self.db, appointment.work_order_id)

    def _queue_notification(self, kind: str, appointment: Appointment) -> None:
        self.outbox.append(
            self.notifier.prepare(kind, appointment, appointment.customer, appointment.vehicle)
        )

    def _invalidate(self, work_orders_touched: bool) -> None:
        if work_orders_touched:
            self.cache.invalidate_namespaces(APPOINTMENTS_NS, WORK_ORDERS_NS, ACTION_NEEDED_KEY)
        else:
            self.cache.invalidate_namespace(APPOINTMENTS_NS)

    def create_appointment(self, data: AppointmentCreate) -> tuple[Appointment, list[Appointment]]:
        """
        Book an appointment.

        Returns:
            (appointment, conflicts) - conflicts is the advisory overlap list
        """
        customer = require_customer(self.db, data.customer)
        vehicle = require_vehicle_for_customer(self.db, data.vehicle, customer)
        technician = require_technician(self.db, data.technician)

        start, end = to_storage(data.startTime), to_storage(data.endTime)
        validate_time_window(start, end)

        existing_work_order = None
        if data.workOrder is not None:
            existing_work_order = self._find_work_order(data.workOrder, customer.id)

        conflicts = self._screen_conflicts(start, end, technician.id if technician else None)

        appointment = Appointment(
            customer_id=customer.id,
            vehicle_id=vehicle.id if vehicle else None,
            service_type=data.serviceType,
            start_time=start,
            end_time=end,
            technician_id=technician.id if technician else None,
            notes=data.notes,
            status=AppointmentStatus.SCHEDULED,
        )
        self.repo.add(self.db, appointment)

        work_order = None
        if existing_work_order is not None:
            work_order = existing_work_order
            link(self.db, appointment, work_order)
            apply_sync_event(work_order, SyncEvent.APPOINTMENT_SCHEDULED)
        elif data.createWorkOrder:
            work_order = self._build_work_order(appointment)
            link(self.db, appointment, work_order)
            logger.info(f"✅ Work order {work_order.id} created from appointment {appointment.id}")

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            f"📅 Appointment {appointment.id} booked for customer {customer.id} "
            f"({appointment.start_time} - {appointment.end_time} UTC)"
        )

        self._queue_notification(NotificationKind.CONFIRMATION, appointment)
        self._invalidate(work_orders_touched=work_order is not None)
        return appointment, conflicts

    def update_appointment(
        self, appointment_id: int, data: AppointmentUpdate
    ) -> tuple[Appointment, list[Appointment]]:
        """
        Partial update covering reschedule, reassignment, status change and linking.

        Returns:
            (appointment, conflicts)
        """
        appointment = self.get_appointment(appointment_id)
        fields = data.model_fields_set
        previous_status = appointment.status

        new_start = to_storage(data.startTime) if data.startTime is not None else appointment.start_time
        new_end = to_storage(data.endTime) if data.endTime is not None else appointment.end_time
        new_technician_id = data.technician if "technician" in fields else appointment.technician_id

        time_changed = new_start != appointment.start_time or new_end != appointment.end_time
        technician_changed = new_technician_id != appointment.technician_id

        if (time_changed or technician_changed) and previous_status in TERMINAL_APPOINTMENT_STATUSES:
            raise ValidationError(
                f"Cannot reschedule an appointment that is {previous_status}", field="startTime"
            )

        if data.status is not None and data.status not in AppointmentStatus.ALL:
            raise ValidationError(f"Invalid appointment status: {data.status}", field="status")

        if "vehicle" in fields:
            vehicle = require_vehicle_for_customer(self.db, data.vehicle, appointment.customer)
            appointment.vehicle_id = vehicle.id if vehicle else None

        if technician_changed:
            require_technician(self.db, new_technician_id)

        conflicts = []
        if time_changed or technician_changed:
            validate_time_window(new_start, new_end)
            conflicts = self._screen_conflicts(
                new_start, new_end, new_technician_id, exclude_appointment_id=appointment.id
            )

        appointment.start_time = new_start
        appointment.end_time = new_end
        appointment.technician_id = new_technician_id
        if data.serviceType is not None:
            appointment.service_type = data.serviceType
        if "notes" in fields:
            appointment.notes = data.notes

        work_orders_touched = False

        if data.workOrder is not None:
            work_order = self._find_work_order(data.workOrder, appointment.customer_id)
            link(self.db, appointment, work_order)
            work_orders_touched = True
            final_status = data.status or previous_status
            if event_for_appointment_status(final_status) == SyncEvent.APPOINTMENT_SCHEDULED:
                apply_sync_event(work_order, SyncEvent.APPOINTMENT_SCHEDULED)

        status_changed = data.status is not None and data.status != previous_status
        if status_changed:
            appointment.status = data.status
            logger.info(f"📅 Appointment {appointment.id}: '{previous_status}' → '{data.status}'")

        primary = self._primary_work_order(appointment)
        if primary is not None:
            if status_changed:
                event = event_for_appointment_status(data.status)
                if event is not None and apply_sync_event(primary, event) is not None:
                    work_orders_touched = True
            if technician_changed:
                primary.assigned_technician_id = new_technician_id
                work_orders_touched = True
                logger.info(
                    f"🔧 Work order {primary.id} reassigned to technician {new_technician_id}"
                )

        self.db.commit()
        self.db.refresh(appointment)

        if status_changed:
            self._queue_notification(NotificationKind.STATUS_UPDATE, appointment)
        self._invalidate(work_orders_touched)
        return appointment, conflicts

    def delete_appointment(self, appointment_id: int) -> None:
        """Remove an appointment after detaching it from every linked work order"""
        appointment = self.get_appointment(appointment_id)
        unlinked = unlink_all(self.db, appointment)
        self.repo.delete(self.db, appointment)
        self.db.commit()

        if unlinked:
            logger.info(
                f"✂️ Appointment {appointment_id} unlinked from work orders {[w.id for w in unlinked]}"
            )
        logger.info(f"🗑️ Appointment {appointment_id} deleted")
        self._invalidate(work_orders_touched=bool(unlinked))

    def create_work_order_from_appointment(self, appointment_id: int) -> tuple[Appointment, WorkOrder]:
        appointment = self.get_appointment(appointment_id)
        if appointment.work_order_id is not None:
            raise ValidationError(
                "A work order already exists for this appointment", field="workOrder"
            )

        work_order = self._build_work_order(appointment)
        link(self.db, appointment, work_order)
        self.db.commit()
        self.db.refresh(appointment)
        self.db.refresh(work_order)

        logger.info(f"✅ Work order {work_order.id} created from appointment {appointment.id}")
        self._invalidate(work_orders_touched=True)
        return appointment, work_order

    async def send_reminder(self, appointment_id: int) -> tuple[Appointment, DeliveryResult]:
        """Send a reminder now; the reminder flag is only set when delivery succeeded"""
        appointment = self.get_appointment(appointment_id)
        if channel_for(appointment.customer) is None:
            raise ValidationError(
                "Customer has no valid communication preference set", field="customer"
            )

        result = await self.notifier.dispatch(
            NotificationKind.REMINDER, appointment, appointment.customer, appointment.vehicle
        )
        if result.sent:
            appointment.reminder_sent = True
            appointment.reminder_sent_at = utc_now()
            self.db.commit()
            self.db.refresh(appointment)
            self._invalidate(work_orders_touched=False)
        return appointment, result
