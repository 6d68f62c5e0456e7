from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

from app.models.enums import Permission, VendorType, VerificationStatus


class OperatingArea(BaseModel):
    city: Optional[str] = None
    zones: List[str] = Field(default_factory=list)
    pincodes: List[str] = Field(default_factory=list)

    @field_validator("city", mode="before")
    @classmethod
    def strip_city(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("zones", "pincodes", mode="before")
    @classmethod
    def strip_items(cls, v):
        if isinstance(v, list):
            return [item.strip() for item in v if isinstance(item, str) and item.strip()]
        return v


# ---------------------------
# Registration
# ---------------------------
class VendorRegister(BaseModel):
    name: str = Field(..., min_length=1, description="Vendor display name")
    email: EmailStr
    password: str = Field(..., min_length=6)
    vendor_type: VendorType = VendorType.SUPER
    parent_vendor_id: Optional[str] = None
    permissions: List[Permission] = Field(default_factory=lambda: [Permission.ALL])
    operating_area: OperatingArea = Field(default_factory=OperatingArea)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ChildVendorRegister(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    parent_vendor_id: str
    permissions: List[Permission] = Field(default_factory=list)
    operating_area: OperatingArea = Field(default_factory=OperatingArea)


class VendorLogin(BaseModel):
    email: EmailStr
    password: str


# ---------------------------
# Updates
# ---------------------------
class VendorProfileUpdate(BaseModel):
    # vendor_type / parent_vendor_id are rejected by extra="forbid"
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    permissions: Optional[List[Permission]] = None


class VendorStatusUpdate(BaseModel):
    status: Literal["ACTIVE", "INACTIVE"]


class VendorPermissionsUpdate(BaseModel):
    permissions: List[Permission]


class VendorTransfer(BaseModel):
    new_parent_id: str


class VendorDocumentVerify(BaseModel):
    document_type: str
    status: VerificationStatus = VerificationStatus.VERIFIED
    remarks: Optional[str] = None


class BulkNotification(BaseModel):
    vendor_ids: List[str] = Field(..., min_length=1)
    subject: str
    message: str


# ---------------------------
# Output
# ---------------------------
class VendorOut(BaseModel):
    vendor_id: str
    name: str
    email: str
    vendor_type: VendorType
    parent_vendor_id: Optional[str] = None
    permissions: List[Permission] = Field(default_factory=list)
    operating_area: OperatingArea = Field(default_factory=OperatingArea)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
