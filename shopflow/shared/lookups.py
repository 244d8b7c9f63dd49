"""Reference checks shared by appointment and work order writes"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import Customer, Technician, Vehicle
from .exceptions import NotFoundError, ValidationError


def require_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer", customer_id, field="customer")
    return customer


def require_vehicle_for_customer(
    db: Session, vehicle_id: Optional[int], customer: Customer
) -> Optional[Vehicle]:
    """Vehicle is optional; when given it must exist and belong to the customer"""
    if vehicle_id is None:
        return None
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle", vehicle_id, field="vehicle")
    if vehicle.customer_id != customer.id:
        raise ValidationError("The vehicle does not belong to this customer", field="vehicle")
    return vehicle


def require_technician(db: Session, technician_id: Optional[int]) -> Optional[Technician]:
    if technician_id is None:
        return None
    technician = db.get(Technician, technician_id)
    if technician is None:
        raise NotFoundError("Technician", technician_id, field="technician")
    return technician
