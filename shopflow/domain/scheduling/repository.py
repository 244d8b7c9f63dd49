"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Appointment, WorkOrder
from ..workorders.status_sync import AppointmentStatus


class AppointmentRepository:
    """Repository for appointment database operations (callers commit)"""

    @staticmethod
    def _base_query(db: Session):
        return db.query(Appointment).options(
            selectinload(Appointment.customer),
            selectinload(Appointment.vehicle),
            selectinload(Appointment.technician),
            selectinload(Appointment.work_orders),
        )

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            AppointmentRepository._base_query(db)
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def list_appointments(
        db: Session,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[str] = None,
        technician_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        vehicle_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Filter by start time window [start, end) and the optional equality filters"""
        query = AppointmentRepository._base_query(db)
        if start is not None:
            query = query.filter(Appointment.start_time >= start)
        if end is not None:
            query = query.filter(Appointment.start_time < end)
        if status:
            query = query.filter(Appointment.status == status)
        if technician_id is not None:
            query = query.filter(Appointment.technician_id == technician_id)
        if customer_id is not None:
            query = query.filter(Appointment.customer_id == customer_id)
        if vehicle_id is not None:
            query = query.filter(Appointment.vehicle_id == vehicle_id)
        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def list_sweep_candidates(db: Session, start: datetime, end: datetime) -> list[Appointment]:
        """Appointments starting in [start, end) that are not Cancelled/No-Show and have a work order"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.start_time >= start,
                Appointment.start_time < end,
                Appointment.status.notin_([AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW]),
                Appointment.work_order_id.isnot(None),
            )
            .order_by(Appointment.start_time.asc(), Appointment.id.asc())
            .all()
        )

    @staticmethod
    def get_work_order(db: Session, work_order_id: int) -> Optional[WorkOrder]:
        return db.get(WorkOrder, work_order_id)

    @staticmethod
    def add(db: Session, record):
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def delete(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.flush()
