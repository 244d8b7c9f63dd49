import pytest

from shopflow.domain.workorders.status_sync import (
    PRELIMINARY_STATUSES,
    TRANSITIONAL_STATUSES,
    AppointmentStatus,
    SyncEvent,
    WorkOrderStatus,
    decide_status,
    event_for_appointment_status,
    normalize_work_order_status,
)

LATER_THAN_SCHEDULED = [
    WorkOrderStatus.APPOINTMENT_COMPLETE,
    WorkOrderStatus.INSPECTION_IN_PROGRESS,
    WorkOrderStatus.INSPECTION_COMPLETE,
    WorkOrderStatus.PARTS_ORDERED,
    WorkOrderStatus.PARTS_RECEIVED,
    WorkOrderStatus.REPAIR_IN_PROGRESS,
    WorkOrderStatus.AWAITING_PAYMENT,
    WorkOrderStatus.INVOICED,
    WorkOrderStatus.CANCELLED,
]


@pytest.mark.parametrize("status", sorted(PRELIMINARY_STATUSES))
def test_scheduled_event_moves_preliminary_work_orders(status):
    assert (
        decide_status(status, SyncEvent.APPOINTMENT_SCHEDULED)
        == WorkOrderStatus.APPOINTMENT_SCHEDULED
    )


@pytest.mark.parametrize("status", LATER_THAN_SCHEDULED)
def test_scheduled_event_never_regresses(status):
    assert decide_status(status, SyncEvent.APPOINTMENT_SCHEDULED) is None


@pytest.mark.parametrize("status", sorted(TRANSITIONAL_STATUSES))
def test_sweep_completes_transitional_work_orders(status):
    assert decide_status(status, SyncEvent.SWEEP_TIMEOUT) == WorkOrderStatus.APPOINTMENT_COMPLETE


@pytest.mark.parametrize(
    "status",
    [
        WorkOrderStatus.CREATED,
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.APPOINTMENT_COMPLETE,
        WorkOrderStatus.PARTS_ORDERED,
        WorkOrderStatus.INVOICED,
        WorkOrderStatus.CANCELLED,
    ],
)
def test_sweep_leaves_other_statuses_alone(status):
    assert decide_status(status, SyncEvent.SWEEP_TIMEOUT) is None


def test_completion_is_unconditional():
    assert (
        decide_status(WorkOrderStatus.REPAIR_IN_PROGRESS, SyncEvent.APPOINTMENT_COMPLETED)
        == WorkOrderStatus.APPOINTMENT_COMPLETE
    )
    assert (
        decide_status(WorkOrderStatus.CREATED, SyncEvent.APPOINTMENT_COMPLETED)
        == WorkOrderStatus.APPOINTMENT_COMPLETE
    )


def test_cancellation_forces_cancelled_even_when_invoiced():
    assert (
        decide_status(WorkOrderStatus.INVOICED, SyncEvent.APPOINTMENT_CANCELLED)
        == WorkOrderStatus.CANCELLED
    )


def test_same_status_is_no_change():
    assert decide_status(WorkOrderStatus.CANCELLED, SyncEvent.APPOINTMENT_CANCELLED) is None
    assert (
        decide_status(
            WorkOrderStatus.PARTS_ORDERED, SyncEvent.DIRECT_EDIT, WorkOrderStatus.PARTS_ORDERED
        )
        is None
    )


def test_direct_edit_bypasses_guards():
    assert (
        decide_status(
            WorkOrderStatus.REPAIR_IN_PROGRESS,
            SyncEvent.DIRECT_EDIT,
            WorkOrderStatus.APPOINTMENT_SCHEDULED,
        )
        == WorkOrderStatus.APPOINTMENT_SCHEDULED
    )
    assert (
        decide_status(WorkOrderStatus.INVOICED, SyncEvent.DIRECT_EDIT, WorkOrderStatus.QUOTE)
        == WorkOrderStatus.QUOTE
    )


def test_direct_edit_accepts_legacy_labels():
    assert (
        decide_status(WorkOrderStatus.CREATED, SyncEvent.DIRECT_EDIT, "Invoiced")
        == WorkOrderStatus.INVOICED
    )


@pytest.mark.parametrize("requested", [None, "", "Finished"])
def test_direct_edit_requires_a_legal_status(requested):
    with pytest.raises(ValueError):
        decide_status(WorkOrderStatus.CREATED, SyncEvent.DIRECT_EDIT, requested)


def test_unknown_event():
    with pytest.raises(ValueError):
        decide_status(WorkOrderStatus.CREATED, "appointment_rescheduled")


def test_normalize_work_order_status():
    assert normalize_work_order_status("Parts Ordered") == "Parts Ordered"
    assert normalize_work_order_status("Repair Scheduled") == "Appointment Scheduled"
    assert normalize_work_order_status("Completed - Awaiting Payment") == (
        "Repair Complete - Awaiting Payment"
    )
    assert normalize_work_order_status("Done") is None


def test_event_for_appointment_status():
    assert event_for_appointment_status(AppointmentStatus.COMPLETED) == (
        SyncEvent.APPOINTMENT_COMPLETED
    )
    assert event_for_appointment_status(AppointmentStatus.CANCELLED) == (
        SyncEvent.APPOINTMENT_CANCELLED
    )
    assert event_for_appointment_status(AppointmentStatus.SCHEDULED) == (
        SyncEvent.APPOINTMENT_SCHEDULED
    )
    assert event_for_appointment_status(AppointmentStatus.CONFIRMED) == (
        SyncEvent.APPOINTMENT_SCHEDULED
    )
    assert event_for_appointment_status(AppointmentStatus.IN_PROGRESS) is None
    assert event_for_appointment_status(AppointmentStatus.NO_SHOW) is None
