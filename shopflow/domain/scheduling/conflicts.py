"""Double-booking detection for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from ...shared.validators import validate_time_window
from ..workorders.status_sync import TERMINAL_APPOINTMENT_STATUSES


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open windows [a_start, a_end) and [b_start, b_end) share time"""
    return a_start < b_end and a_end > b_start


class ConflictDetector:
    """
    Finds live appointments overlapping a proposed window.

    An existing appointment conflicts when it starts during the window, ends
    during it, or contains it - i.e. ``existing.start < end and existing.end > start``.
    Completed, Cancelled and No-Show appointments never conflict.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_conflicts(
        self,
        start_time: datetime,
        end_time: datetime,
        technician_id: Optional[int] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Appointment]:
        """
        Args:
            start_time: Proposed start (naive UTC)
            end_time: Proposed end (naive UTC)
            technician_id: Only check this technician's book; None checks every appointment
            exclude_appointment_id: The appointment being edited, if any

        Returns:
            Overlapping appointments ordered by start time
        """
        validate_time_window(start_time, end_time)

        query = self.db.query(Appointment).filter(
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
            Appointment.status.notin_(TERMINAL_APPOINTMENT_STATUSES),
        )

        if technician_id is not None:
            query = query.filter(Appointment.technician_id == technician_id)

        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time).all()
