"""
End-of-day work order sweep
Moves work orders still sitting in a transitional status to "Appointment Complete"
once their appointment day is over, and marks the appointment Completed
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import tz
from sqlalchemy.orm import Session

from ..cache import ACTION_NEEDED_KEY, APPOINTMENTS_NS, WORK_ORDERS_NS, Cache
from ..config import SHOP_TIMEZONE, SWEEP_HOUR, SWEEP_MINUTE
from ..domain.scheduling.linkage import check_linkage, link
from ..domain.scheduling.repository import AppointmentRepository
from ..domain.workorders.service import apply_sync_event
from ..domain.workorders.status_sync import AppointmentStatus, SyncEvent
from ..models import WorkOrder
from ..shared.timeutils import day_bounds, get_zone, shop_today

logger = logging.getLogger(__name__)


def run_end_of_day_sweep(db: Session, cache: Cache, now: Optional[datetime] = None) -> dict:
    """
    Force-complete today's stale work orders.
    Should be run as a scheduled job (daily, at close of business)

    Args:
        db: Database session
        cache: Response cache; invalidated once at the end when anything moved
        now: The instant to treat as "now" (defaults to the current time)

    Returns:
        dict: {"transitioned": int, "failed": int}

    Raises:
        Exception: The candidate query failed; the run is abandoned until the next tick
    """
    today = shop_today(now)
    start, end = day_bounds(today)
    logger.info(f"🔄 End-of-day sweep for {today} ({SHOP_TIMEZONE})")

    appointments = AppointmentRepository.list_sweep_candidates(db, start, end)
    if not appointments:
        logger.info("ℹ️ No eligible appointments found for today")
        return {"transitioned": 0, "failed": 0}

    candidate_ids = [a.id for a in appointments]
    transitioned = 0
    failed = 0

    for appointment_id in candidate_ids:
        try:
            appointment = AppointmentRepository.get_appointment(db, appointment_id)
            if appointment is None or appointment.work_order_id is None:
                continue

            work_order = db.get(WorkOrder, appointment.work_order_id)
            if work_order is None:
                logger.warning(
                    f"⚠️ Appointment {appointment_id} points at missing work order "
                    f"{appointment.work_order_id}"
                )
                continue

            if apply_sync_event(work_order, SyncEvent.SWEEP_TIMEOUT) is None:
                continue

            if appointment.status != AppointmentStatus.COMPLETED:
                appointment.status = AppointmentStatus.COMPLETED

            problems = check_linkage(appointment)
            if problems:
                for problem in problems:
                    logger.warning(f"⚠️ {problem}")
                link(db, appointment, work_order)

            db.commit()
            transitioned += 1
            logger.info(
                f"✅ Work order {work_order.id} → '{work_order.status}' "
                f"(appointment {appointment_id})"
            )
        except Exception as e:
            db.rollback()
            failed += 1
            logger.error(f"❌ Sweep failed for appointment {appointment_id}: {str(e)}")

    if transitioned > 0:
        cache.invalidate_namespaces(WORK_ORDERS_NS, ACTION_NEEDED_KEY, APPOINTMENTS_NS)

    summary = {"transitioned": transitioned, "failed": failed}
    logger.info(f"📊 End-of-day sweep summary: {summary}")
    return summary


class SweepSchedule:
    """Fixed daily wall-clock time in a named zone"""

    def __init__(
        self, hour: int = SWEEP_HOUR, minute: int = SWEEP_MINUTE, tz_name: str = SHOP_TIMEZONE
    ):
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid sweep time {hour:02d}:{minute:02d}")
        self.hour = hour
        self.minute = minute
        self.tz_name = tz_name
        self.zone = get_zone(tz_name)

    def next_run_after(self, instant: Optional[datetime] = None) -> datetime:
        """
        The first fire time strictly after ``instant`` (aware UTC).
        Naive instants are taken as UTC. Fire times that fall in a DST gap
        are shifted forward to the first valid wall-clock time.
        """
        if instant is None:
            instant = datetime.now(timezone.utc)
        elif instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)

        local_day = instant.astimezone(self.zone).date()
        while True:
            candidate = tz.resolve_imaginary(
                datetime(
                    local_day.year,
                    local_day.month,
                    local_day.day,
                    self.hour,
                    self.minute,
                    tzinfo=self.zone,
                )
            )
            if candidate > instant:
                return candidate.astimezone(timezone.utc)
            local_day += timedelta(days=1)

    def cron_kwargs(self) -> dict:
        """Arguments for arq.cron; the worker evaluates them in the shop zone"""
        return {"hour": self.hour, "minute": self.minute, "second": 0}

    def __repr__(self) -> str:
        return f"SweepSchedule({self.hour:02d}:{self.minute:02d} {self.tz_name})"
