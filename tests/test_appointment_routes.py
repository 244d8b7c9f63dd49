import asyncio

from fastapi import BackgroundTasks

from shopflow.domain.scheduling.router import create_appointment
from shopflow.domain.scheduling.schemas import AppointmentCreate
from shopflow.domain.scheduling.service import AppointmentService
from shopflow.models import WorkOrder


def book(client, customer, start, end, **extra):
    payload = {
        "customer": customer.id,
        "serviceType": "Brake inspection",
        "startTime": start,
        "endTime": end,
    }
    payload.update(extra)
    return client.post("/appointments", json=payload)


def test_double_booking_scenario(client, customer, technician):
    tech = technician.id
    a = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", technician=tech)
    b = book(client, customer, "2024-01-10T09:30:00", "2024-01-10T10:30:00", technician=tech)

    assert a.status_code == 201
    assert b.status_code == 201
    assert a.json()["hasConflicts"] is False
    assert b.json()["hasConflicts"] is True
    assert [c["id"] for c in b.json()["conflicts"]] == [a.json()["id"]]

    response = client.post(
        "/appointments/check-conflicts",
        json={
            "startTime": "2024-01-10T09:30:00",
            "endTime": "2024-01-10T10:30:00",
            "technician": technician.id,
            "appointmentId": b.json()["id"],
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["hasConflicts"] is True
    assert data["results"] == 1
    assert data["conflicts"][0]["id"] == a.json()["id"]
    assert data["conflicts"][0]["customerName"] == customer.name


def test_created_appointment_is_fully_resolved(client, customer, vehicle, technician):
    response = book(
        client,
        customer,
        "2024-07-15T09:00:00",
        "2024-07-15T10:30:00",
        vehicle=vehicle.id,
        technician=technician.id,
        createWorkOrder=True,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["customer"]["name"] == customer.name
    assert data["vehicle"]["make"] == "Honda"
    assert data["technician"]["id"] == technician.id
    assert data["workOrder"]["status"] == "Appointment Scheduled"
    assert data["workOrders"] == [data["workOrder"]["id"]]
    assert data["durationHours"] == 1.5
    # July in New York is UTC-4
    assert data["startTime"].startswith("2024-07-15T13:00:00")


def test_validation_errors_name_the_field(client, customer):
    response = book(client, customer, "2024-01-10T10:00:00", "2024-01-10T09:00:00")

    assert response.status_code == 400
    assert response.json()["error"] == "validation"
    assert response.json()["field"] == "endTime"


def test_not_found_errors(client, customer):
    response = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", vehicle=404)

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    assert response.json()["field"] == "vehicle"

    assert client.get("/appointments/999").status_code == 404
    assert client.patch("/appointments/999", json={"notes": "x"}).status_code == 404


def test_malformed_body_is_422(client, customer):
    response = client.post(
        "/appointments", json={"customer": customer.id, "startTime": "2024-01-10T09:00:00"}
    )
    assert response.status_code == 422


def test_patch_completes_linked_work_order(client, db, customer, make_work_order):
    work_order = make_work_order(customer, status="Repair In Progress")
    created = book(
        client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", workOrder=work_order.id
    ).json()

    response = client.patch(f"/appointments/{created['id']}", json={"status": "Completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "Completed"
    assert response.json()["workOrder"]["status"] == "Appointment Complete"
    db.expire_all()
    assert db.get(WorkOrder, work_order.id).status == "Appointment Complete"


def test_patch_rejects_unknown_status(client, customer):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    response = client.patch(f"/appointments/{created['id']}", json={"status": "Done"})

    assert response.status_code == 422


def test_patch_rejects_blank_service_type(client, customer):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    response = client.patch(f"/appointments/{created['id']}", json={"serviceType": "   "})

    assert response.status_code == 422
    assert client.get(f"/appointments/{created['id']}").json()["serviceType"] == "Brake inspection"


def test_patch_trims_service_type(client, customer):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    response = client.patch(f"/appointments/{created['id']}", json={"serviceType": "  Alignment "})

    assert response.json()["serviceType"] == "Alignment"


def test_delete_returns_no_content(client, db, customer):
    created = book(
        client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", createWorkOrder=True
    ).json()
    work_order_id = created["workOrder"]["id"]

    response = client.delete(f"/appointments/{created['id']}")

    assert response.status_code == 204
    assert client.get(f"/appointments/{created['id']}").status_code == 404
    db.expire_all()
    work_order = db.get(WorkOrder, work_order_id)
    assert work_order.primary_appointment_id is None
    assert work_order.appointment_ids == []


def test_date_range_route(client, customer):
    book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00")
    book(client, customer, "2024-01-12T09:00:00", "2024-01-12T10:00:00")
    book(client, customer, "2024-01-13T09:00:00", "2024-01-13T10:00:00")

    response = client.get("/appointments/date-range/2024-01-10/2024-01-12")

    assert response.status_code == 200
    assert len(response.json()) == 2

    assert client.get("/appointments/date-range/2024-01-12/2024-01-10").status_code == 400


def test_customer_and_vehicle_listings(client, customer, vehicle):
    book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", vehicle=vehicle.id)
    book(client, customer, "2024-01-11T09:00:00", "2024-01-11T10:00:00")

    assert len(client.get(f"/appointments/customer/{customer.id}").json()) == 2
    assert len(client.get(f"/appointments/vehicle/{vehicle.id}").json()) == 1
    assert client.get("/appointments/customer/999").status_code == 404


def test_list_filters(client, customer, make_technician):
    marco = make_technician("Marco")
    book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00", technician=marco.id)
    book(client, customer, "2024-01-10T11:00:00", "2024-01-10T12:00:00")

    assert len(client.get("/appointments").json()) == 2
    assert len(client.get("/appointments", params={"technician": marco.id}).json()) == 1
    assert len(client.get("/appointments", params={"status": "Confirmed"}).json()) == 0
    assert client.get("/appointments", params={"status": "Nope"}).status_code == 400


def test_create_work_order_route(client, customer):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    response = client.post(f"/appointments/{created['id']}/create-work-order")

    assert response.status_code == 201
    data = response.json()
    assert data["appointment"]["workOrder"]["id"] == data["workOrder"]["id"]
    assert data["workOrder"]["primaryAppointment"] == created["id"]

    again = client.post(f"/appointments/{created['id']}/create-work-order")
    assert again.status_code == 400


def test_send_reminder_route(client, customer):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    response = client.post(f"/appointments/{created['id']}/send-reminder")

    assert response.status_code == 200
    assert response.json()["delivery"]["sent"] is True
    assert response.json()["appointment"]["reminderSent"] is True


def test_sweep_route_returns_counts(client):
    response = client.post("/appointments/sweep/run")

    assert response.status_code == 200
    assert response.json() == {"transitioned": 0, "failed": 0}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_booking_confirmation_is_delivered(client, customer, spy_notifier):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    assert spy_notifier.sent == [("confirmation", created["id"], "Scheduled")]


def test_booking_returns_before_confirmation_is_sent(db, spy_cache, spy_notifier, customer):
    background_tasks = BackgroundTasks()
    service = AppointmentService(db, spy_cache, spy_notifier)
    data = AppointmentCreate(
        customer=customer.id,
        serviceType="Brake inspection",
        startTime="2024-01-10T09:00:00",
        endTime="2024-01-10T10:00:00",
    )

    response = asyncio.run(create_appointment(data, background_tasks, service))

    assert response.id is not None
    assert spy_notifier.sent == []
    assert len(background_tasks.tasks) == 1
    assert service.outbox == []

    asyncio.run(background_tasks())

    assert spy_notifier.sent == [("confirmation", response.id, "Scheduled")]


def test_status_change_notification_is_delivered(client, customer, spy_notifier):
    created = book(client, customer, "2024-01-10T09:00:00", "2024-01-10T10:00:00").json()

    client.patch(f"/appointments/{created['id']}", json={"status": "Confirmed"})

    assert spy_notifier.sent[-1] == ("status_update", created["id"], "Confirmed")
