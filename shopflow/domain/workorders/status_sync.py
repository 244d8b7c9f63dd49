"""
Work order status synchronizer

Pure decision rules for how a work order's status follows appointment events.
No database or clock access here - callers load the work order, ask
``decide_status`` what it should become, and persist the answer.

Rule precedence:
- Direct edits (a service writer picking a status) always win and skip every guard.
- Completion and cancellation of the linked appointment apply unconditionally.
- Scheduling/confirmation only moves a work order out of a preliminary status.
- The end-of-day sweep only moves a work order out of a transitional status.
"""

from typing import Optional


class WorkOrderStatus:
    """Controlled vocabulary for WorkOrder.status"""

    QUOTE = "Quote"
    CREATED = "Work Order Created"
    APPOINTMENT_SCHEDULED = "Appointment Scheduled"
    APPOINTMENT_COMPLETE = "Appointment Complete"
    INSPECTION_IN_PROGRESS = "Inspection In Progress"
    INSPECTION_COMPLETE = "Inspection/Diag Complete"
    PARTS_ORDERED = "Parts Ordered"
    PARTS_RECEIVED = "Parts Received"
    REPAIR_IN_PROGRESS = "Repair In Progress"
    AWAITING_PAYMENT = "Repair Complete - Awaiting Payment"
    INVOICED = "Repair Complete - Invoiced"
    ON_HOLD = "On Hold"
    CANCELLED = "Cancelled"
    QUOTE_ARCHIVED = "Quote - Archived"

    ALL = (
        QUOTE,
        CREATED,
        APPOINTMENT_SCHEDULED,
        APPOINTMENT_COMPLETE,
        INSPECTION_IN_PROGRESS,
        INSPECTION_COMPLETE,
        PARTS_ORDERED,
        PARTS_RECEIVED,
        REPAIR_IN_PROGRESS,
        AWAITING_PAYMENT,
        INVOICED,
        ON_HOLD,
        CANCELLED,
        QUOTE_ARCHIVED,
    )


class AppointmentStatus:
    """Controlled vocabulary for Appointment.status"""

    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"

    ALL = (SCHEDULED, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW)


# Appointments in these statuses never conflict and cannot be rescheduled
TERMINAL_APPOINTMENT_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)

TERMINAL_WORK_ORDER_STATUSES = frozenset({WorkOrderStatus.INVOICED, WorkOrderStatus.CANCELLED})

# Eligible for the scheduled/confirmed auto-transition
PRELIMINARY_STATUSES = frozenset({WorkOrderStatus.CREATED, WorkOrderStatus.ON_HOLD})

# Eligible for the end-of-day force-complete
TRANSITIONAL_STATUSES = frozenset(
    {
        WorkOrderStatus.APPOINTMENT_SCHEDULED,
        WorkOrderStatus.INSPECTION_IN_PROGRESS,
        WorkOrderStatus.REPAIR_IN_PROGRESS,
    }
)

# Still at or before the appointment milestone; replayed appointment events may move these
REPLAYABLE_STATUSES = PRELIMINARY_STATUSES | TRANSITIONAL_STATUSES

# Work orders a service writer has to act on next
ACTION_NEEDED_STATUSES = (
    WorkOrderStatus.APPOINTMENT_COMPLETE,
    WorkOrderStatus.INSPECTION_COMPLETE,
    WorkOrderStatus.PARTS_RECEIVED,
    WorkOrderStatus.AWAITING_PAYMENT,
    WorkOrderStatus.ON_HOLD,
)

# Labels from the pre-migration workflow that still arrive from older clients
LEGACY_STATUS_ALIASES = {
    "Created": WorkOrderStatus.CREATED,
    "Scheduled": WorkOrderStatus.APPOINTMENT_SCHEDULED,
    "Inspection/Diag Scheduled": WorkOrderStatus.APPOINTMENT_SCHEDULED,
    "Repair Scheduled": WorkOrderStatus.APPOINTMENT_SCHEDULED,
    "Inspected/Parts Ordered": WorkOrderStatus.INSPECTION_COMPLETE,
    "Completed - Awaiting Payment": WorkOrderStatus.AWAITING_PAYMENT,
    "Invoiced": WorkOrderStatus.INVOICED,
}

HOLD_REASONS = (
    "Waiting for Parts",
    "Waiting for Customer Approval",
    "Waiting for Insurance",
    "Customer Requested Delay",
    "Shop Capacity",
    "Backordered Parts",
    "Vehicle Storage",
    "Other",
)


class SyncEvent:
    """Events that can move a work order's status"""

    APPOINTMENT_COMPLETED = "appointment_completed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    DIRECT_EDIT = "direct_edit"
    SWEEP_TIMEOUT = "sweep_timeout"

    ALL = (
        APPOINTMENT_COMPLETED,
        APPOINTMENT_CANCELLED,
        APPOINTMENT_SCHEDULED,
        DIRECT_EDIT,
        SWEEP_TIMEOUT,
    )


def normalize_work_order_status(status: str) -> Optional[str]:
    """Return the canonical label for a status (legacy aliases included), or None if unknown"""
    if status in WorkOrderStatus.ALL:
        return status
    return LEGACY_STATUS_ALIASES.get(status)


def event_for_appointment_status(status: str) -> Optional[str]:
    """Map an appointment status to the sync event it raises, if any"""
    if status == AppointmentStatus.COMPLETED:
        return SyncEvent.APPOINTMENT_COMPLETED
    if status == AppointmentStatus.CANCELLED:
        return SyncEvent.APPOINTMENT_CANCELLED
    if status in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
        return SyncEvent.APPOINTMENT_SCHEDULED
    return None


def decide_status(
    current_status: str, event: str, requested_status: Optional[str] = None
) -> Optional[str]:
    """
    Decide the new work order status for an event.

    Args:
        current_status: The work order's status right now
        event: One of SyncEvent
        requested_status: The status a user picked (DIRECT_EDIT only)

    Returns:
        The new status, or None when nothing should change

    Raises:
        ValueError: Unknown event, or a direct edit without a legal status
    """
    if event == SyncEvent.DIRECT_EDIT:
        target = normalize_work_order_status(requested_status) if requested_status else None
        if target is None:
            raise ValueError(f"Invalid work order status: {requested_status!r}")
        return None if target == current_status else target

    if event == SyncEvent.APPOINTMENT_COMPLETED:
        target = WorkOrderStatus.APPOINTMENT_COMPLETE
    elif event == SyncEvent.APPOINTMENT_CANCELLED:
        # TODO: decide whether billed work orders (Invoiced) should be exempt from this cascade
        target = WorkOrderStatus.CANCELLED
    elif event == SyncEvent.APPOINTMENT_SCHEDULED:
        if current_status not in PRELIMINARY_STATUSES:
            return None
        target = WorkOrderStatus.APPOINTMENT_SCHEDULED
    elif event == SyncEvent.SWEEP_TIMEOUT:
        if current_status not in TRANSITIONAL_STATUSES:
            return None
        target = WorkOrderStatus.APPOINTMENT_COMPLETE
    else:
        raise ValueError(f"Unknown sync event: {event!r}")

    return None if target == current_status else target
