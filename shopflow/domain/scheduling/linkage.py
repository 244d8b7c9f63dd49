"""
Appointment <-> work order linkage

Both sides keep a primary pointer (legacy one-to-one) and share the
work_order_appointments list. The invariant is that a primary pointer is
always a member of that list. Every mutation site goes through link()/unlink()
so both sides change together; nothing here commits.
"""

import logging
from typing import Union

from sqlalchemy.orm import Session

from ...models import Appointment, WorkOrder

logger = logging.getLogger(__name__)


def link(
    db: Session, appointment: Appointment, work_order: WorkOrder, make_primary: bool = True
) -> None:
    """Attach appointment and work order to each other; primary pointers are set only once"""
    if work_order not in appointment.work_orders:
        appointment.work_orders.append(work_order)

    if make_primary:
        if appointment.work_order_id is None:
            appointment.work_order_id = work_order.id
        if work_order.primary_appointment_id is None:
            work_order.primary_appointment_id = appointment.id

    db.flush()
    logger.debug(f"🔗 Linked appointment {appointment.id} <-> work order {work_order.id}")


def unlink(db: Session, appointment: Appointment, work_order: WorkOrder) -> None:
    """Detach the pair and clear whichever primary pointer referenced the other side"""
    if work_order in appointment.work_orders:
        appointment.work_orders.remove(work_order)

    if appointment.work_order_id == work_order.id:
        appointment.work_order_id = None
    if work_order.primary_appointment_id == appointment.id:
        work_order.primary_appointment_id = None

    db.flush()
    logger.debug(f"✂️ Unlinked appointment {appointment.id} <-> work order {work_order.id}")


def unlink_all(db: Session, appointment: Appointment) -> list[WorkOrder]:
    """Detach an appointment from every work order it is linked to; returns those work orders"""
    linked = list(appointment.work_orders)
    if appointment.work_order_id is not None:
        primary = db.get(WorkOrder, appointment.work_order_id)
        if primary is not None and primary not in linked:
            linked.append(primary)

    for work_order in linked:
        unlink(db, appointment, work_order)
    return linked


def check_linkage(record: Union[Appointment, WorkOrder]) -> list[str]:
    """Return invariant violations for one side of the link (empty list when consistent)"""
    problems = []
    if isinstance(record, Appointment):
        if record.work_order_id is not None and record.work_order_id not in record.work_order_ids:
            problems.append(
                f"Appointment {record.id}: primary work order {record.work_order_id} "
                f"is not in its linked work orders {record.work_order_ids}"
            )
        for work_order in record.work_orders:
            if record not in work_order.appointments:
                problems.append(
                    f"Appointment {record.id}: work order {work_order.id} does not list it back"
                )
    else:
        if (
            record.primary_appointment_id is not None
            and record.primary_appointment_id not in record.appointment_ids
        ):
            problems.append(
                f"Work order {record.id}: primary appointment {record.primary_appointment_id} "
                f"is not in its linked appointments {record.appointment_ids}"
            )
        for appointment in record.appointments:
            if record not in appointment.work_orders:
                problems.append(
                    f"Work order {record.id}: appointment {appointment.id} does not list it back"
                )
    return problems
