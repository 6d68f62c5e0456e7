# app/models/vehicle.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.models.document import EmbeddedDocument
from app.models.enums import FuelType, VehicleStatus


class VehicleDocuments(BaseModel):
    registration_certificate: Optional[EmbeddedDocument] = None
    permit: Optional[EmbeddedDocument] = None
    pollution_certificate: Optional[EmbeddedDocument] = None


class VehicleBase(BaseModel):
    registration_number: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    seating_capacity: int = Field(..., gt=0)
    fuel_type: FuelType
    status: VehicleStatus = VehicleStatus.INACTIVE


class VehicleCreate(VehicleBase):
    documents: Optional[VehicleDocuments] = None


class VehicleUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    registration_number: Optional[str] = None
    model: Optional[str] = None
    seating_capacity: Optional[int] = Field(default=None, gt=0)
    fuel_type: Optional[FuelType] = None
    status: Optional[VehicleStatus] = None


class AssignDriverRequest(BaseModel):
    driver_id: str


class VehicleOut(VehicleBase):
    vehicle_id: str
    vendor_id: str
    assigned_driver_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
