from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .shared.timeutils import from_storage


class MessageResponse(BaseModel):
    message: str


class CustomerSummary(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    communicationPreference: Optional[str] = None

    @classmethod
    def from_model(cls, customer) -> Optional["CustomerSummary"]:
        if customer is None:
            return None
        return cls(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            email=customer.email,
            communicationPreference=customer.communication_preference,
        )


class VehicleSummary(BaseModel):
    id: int
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    vin: Optional[str] = None

    @classmethod
    def from_model(cls, vehicle) -> Optional["VehicleSummary"]:
        if vehicle is None:
            return None
        return cls(
            id=vehicle.id, year=vehicle.year, make=vehicle.make, model=vehicle.model, vin=vehicle.vin
        )


class TechnicianSummary(BaseModel):
    id: int
    name: str
    isActive: bool = True

    @classmethod
    def from_model(cls, technician) -> Optional["TechnicianSummary"]:
        if technician is None:
            return None
        return cls(id=technician.id, name=technician.name, isActive=bool(technician.is_active))


def aware(value: Optional[datetime]) -> Optional[datetime]:
    """Stored naive UTC -> aware UTC for responses"""
    return from_storage(value)
