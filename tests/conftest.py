import fnmatch
import os

# Settings are read at import time; pin them before shopflow is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SHOP_TIMEZONE", "America/New_York")
os.environ.setdefault("CONFLICT_POLICY", "advisory")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopflow import models
from shopflow.cache import Cache, get_cache
from shopflow.database import Base, get_db
from shopflow.main import app
from shopflow.services.notification_service import (
    DeliveryResult,
    NotificationDispatcher,
    get_notifier,
)
from shopflow.shared.timeutils import to_storage


class FakeRedis:
    """Just enough of redis.Redis for the response cache"""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match="*", count=None):
        return [k for k in list(self.store) if fnmatch.fnmatch(k, match)]

    def ping(self):
        return True


class SpyCache(Cache):
    """Real Cache over FakeRedis that remembers which namespaces were invalidated"""

    def __init__(self):
        super().__init__(client=FakeRedis())
        self.invalidated = []

    def invalidate_namespace(self, prefix: str) -> int:
        self.invalidated.append(prefix)
        return super().invalidate_namespace(prefix)


class SpyNotifier(NotificationDispatcher):
    """Records dispatches instead of talking to Twilio/Resend"""

    def __init__(self):
        super().__init__()
        self.sent = []
        self.fail = False

    async def deliver(self, notification):
        self.sent.append((notification.kind, notification.appointment_id, notification.status))
        result = DeliveryResult(
            kind=notification.kind,
            appointment_id=notification.appointment_id,
            channel=notification.channel,
            sent=notification.channel is not None and not self.fail,
            error="Twilio API error" if self.fail else None,
        )
        self.results.append(result)
        return result


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def spy_cache():
    return SpyCache()


@pytest.fixture
def spy_notifier():
    return SpyNotifier()


@pytest.fixture
def client(db, spy_cache, spy_notifier):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_cache] = lambda: spy_cache
    app.dependency_overrides[get_notifier] = lambda: spy_notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_customer(db):
    def _make(name="Dana Whitfield", phone="+15555550100", email="dana@example.com", **kwargs):
        kwargs.setdefault("communication_preference", "SMS")
        customer = models.Customer(name=name, phone=phone, email=email, **kwargs)
        db.add(customer)
        db.commit()
        return customer

    return _make


@pytest.fixture
def make_vehicle(db):
    def _make(customer, year=2018, make="Honda", model="Civic", **kwargs):
        vehicle = models.Vehicle(
            customer_id=customer.id, year=year, make=make, model=model, **kwargs
        )
        db.add(vehicle)
        db.commit()
        return vehicle

    return _make


@pytest.fixture
def make_technician(db):
    def _make(name="Marco Reyes", **kwargs):
        technician = models.Technician(name=name, **kwargs)
        db.add(technician)
        db.commit()
        return technician

    return _make


@pytest.fixture
def make_work_order(db):
    def _make(customer, status="Work Order Created", vehicle=None, **kwargs):
        kwargs.setdefault("services", [{"description": "Oil change"}])
        kwargs.setdefault("parts", [])
        kwargs.setdefault("labor", [])
        kwargs.setdefault("attachments", [])
        work_order = models.WorkOrder(
            customer_id=customer.id,
            vehicle_id=vehicle.id if vehicle else None,
            status=status,
            **kwargs,
        )
        db.add(work_order)
        db.commit()
        return work_order

    return _make


@pytest.fixture
def make_appointment(db):
    """Insert an appointment directly; start/end are shop-local wall-clock times"""

    def _make(customer, start, end, technician=None, status="Scheduled", **kwargs):
        kwargs.setdefault("service_type", "Oil change")
        appointment = models.Appointment(
            customer_id=customer.id,
            start_time=to_storage(start),
            end_time=to_storage(end),
            technician_id=technician.id if technician else None,
            status=status,
            **kwargs,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def vehicle(make_vehicle, customer):
    return make_vehicle(customer)


@pytest.fixture
def technician(make_technician):
    return make_technician()
