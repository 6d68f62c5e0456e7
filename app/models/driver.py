from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime

from app.models.document import EmbeddedDocument
from app.models.enums import DriverStatus


class DriverDocuments(BaseModel):
    driving_license: Optional[EmbeddedDocument] = None
    address_proof: Optional[EmbeddedDocument] = None
    identity_proof: Optional[EmbeddedDocument] = None


# ---------------------------
# Driver Base Schema
# ---------------------------
class DriverBase(BaseModel):
    name: str = Field(..., min_length=1, description="Full name of the driver")
    email: EmailStr
    phone: str = Field(..., min_length=8, description="Contact number")
    status: DriverStatus = DriverStatus.INACTIVE


# ---------------------------
# Create Schema
# ---------------------------
class DriverCreate(DriverBase):
    documents: Optional[DriverDocuments] = None


# ---------------------------
# Update Schema
# ---------------------------
class DriverUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    status: Optional[DriverStatus] = None


class DriverRatingUpdate(BaseModel):
    rating: float = Field(..., ge=0, le=5)
    completed_trip: bool = False


class AssignVehicleRequest(BaseModel):
    vehicle_id: str


# Output schema
class DriverOut(DriverBase):
    driver_id: str
    vendor_id: str
    assigned_vehicle_id: Optional[str] = None
    rating: float = 0
    total_trips: int = 0
    created_at: datetime
    updated_at: datetime
