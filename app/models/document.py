from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.models.enums import VerificationStatus


class DocumentUpload(BaseModel):
    document_type: str = Field(..., description="e.g. registration_certificate, permit, driving_license")
    document_number: str
    document_url: str
    expiry_date: Optional[datetime] = None


class DocumentVerify(BaseModel):
    status: VerificationStatus = VerificationStatus.VERIFIED
    remarks: Optional[str] = None


class EntityDocumentVerify(DocumentVerify):
    document_type: str


class EmbeddedDocument(BaseModel):
    """Document details supplied inline when a vehicle or driver is registered."""
    number: str
    document_url: str
    expiry_date: Optional[datetime] = None


class DocumentOut(BaseModel):
    document_id: str
    entity_type: str
    entity_id: str
    document_type: str
    document_number: str
    document_url: str
    expiry_date: Optional[datetime] = None
    is_verified: bool = False
    verification_remarks: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    vendor_id: str
    uploaded_by: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
