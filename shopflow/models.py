"""
Shop records used by the scheduling core

All DateTime columns hold naive UTC values; conversion to and from the
shop time zone happens at the API boundary (see shared/timeutils.py).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .domain.workorders.status_sync import AppointmentStatus, WorkOrderStatus

# The "all linked" list for both sides of the appointment <-> work order link.
# Primary pointers live on each row and are maintained by domain/scheduling/linkage.py
work_order_appointments = Table(
    "work_order_appointments",
    Base.metadata,
    Column("work_order_id", Integer, ForeignKey("work_orders.id"), primary_key=True),
    Column("appointment_id", Integer, ForeignKey("appointments.id"), primary_key=True),
)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    # SMS, Email, Phone, None
    communication_preference = Column(String(20), default="SMS", nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    vehicles = relationship("Vehicle", back_populates="customer")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    year = Column(Integer, nullable=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    vin = Column(String(17), nullable=True)
    license_plate = Column(String(20), nullable=True)

    customer = relationship("Customer", back_populates="vehicles")

    @property
    def display_name(self) -> str:
        return " ".join(str(p) for p in (self.year, self.make, self.model) if p)


class Technician(Base):
    __tablename__ = "technicians"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    # A work order may exist before a vehicle is assigned
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    current_mileage = Column(Integer, nullable=True)
    date = Column(DateTime, server_default=func.now(), index=True)
    # Low, Normal, High, Urgent
    priority = Column(String(20), default="Normal", nullable=False)

    status = Column(String(50), default=WorkOrderStatus.CREATED, nullable=False, index=True)
    status_changed_at = Column(DateTime, server_default=func.now())
    hold_reason = Column(String(50), nullable=True)
    hold_reason_other = Column(Text, nullable=True)

    # [{"description": "..."}]; service_requested is the newline-joined legacy copy
    services = Column(JSON, nullable=False, default=list)
    service_requested = Column(Text, nullable=True)
    diagnostic_notes = Column(Text, nullable=True)

    # [{"name", "part_number", "quantity", "price", "cost", "ordered", "received", "vendor"}]
    parts = Column(JSON, nullable=False, default=list)
    # [{"description", "hours", "rate"}]
    labor = Column(JSON, nullable=False, default=list)
    # [{"type", "file_url", "file_name", "notes"}]
    attachments = Column(JSON, nullable=False, default=list)

    total_estimate = Column(Float, default=0, nullable=False)
    total_actual = Column(Float, default=0, nullable=False)

    # Legacy one-to-one pointer; set once, cleared only when that appointment is unlinked
    primary_appointment_id = Column(Integer, nullable=True, index=True)
    assigned_technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")
    assigned_technician = relationship("Technician")
    appointments = relationship(
        "Appointment",
        secondary=work_order_appointments,
        back_populates="work_orders",
        order_by="Appointment.start_time",
    )

    @property
    def appointment_ids(self) -> list[int]:
        return [a.id for a in self.appointments]


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    service_type = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    # Unassigned is valid
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True, index=True)
    notes = Column(Text, nullable=True)

    # Scheduled → Confirmed → In Progress → Completed, or Cancelled / No-Show
    status = Column(String(20), default=AppointmentStatus.SCHEDULED, nullable=False, index=True)

    # Legacy one-to-one pointer; set once and not overwritten by later links
    work_order_id = Column(Integer, nullable=True, index=True)

    reminder_sent = Column(Boolean, default=False, nullable=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    follow_up_sent = Column(Boolean, default=False, nullable=False)
    follow_up_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")
    technician = relationship("Technician")
    work_orders = relationship(
        "WorkOrder",
        secondary=work_order_appointments,
        back_populates="appointments",
        order_by="WorkOrder.id",
    )

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600

    @property
    def work_order_ids(self) -> list[int]:
        return [w.id for w in self.work_orders]
