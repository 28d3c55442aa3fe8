from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from app.models.property import (
    PropertyType, TransactionType, PricePeriod, VerificationStatus, Visibility
)


# ─── Evidence Schemas ─────────────────────────────────────────────────────────

class PropertyLocationResponse(BaseModel):
    id: UUID
    property_id: UUID
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    gps_timestamp: Optional[datetime] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PropertyMediaResponse(BaseModel):
    id: UUID
    property_id: UUID
    file_path: str
    file_type: str
    file_size: int
    mime_type: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class PropertyDocumentResponse(BaseModel):
    id: UUID
    property_id: UUID
    file_path: str
    document_type: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}


# ─── Property ─────────────────────────────────────────────────────────────────

class PropertyBase(BaseModel):
    title: str
    description: Optional[str] = None
    property_type: PropertyType
    transaction_type: TransactionType
    price: Optional[float] = None
    price_period: Optional[PricePeriod] = None
    security_deposit: Optional[float] = None


class PropertyResponse(PropertyBase):
    id: UUID
    agent_id: UUID
    agent_email: Optional[str] = None
    verification_status: VerificationStatus
    visibility: Visibility
    admin_feedback: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    locations: List[PropertyLocationResponse] = []
    media: List[PropertyMediaResponse] = []
    documents: List[PropertyDocumentResponse] = []

    model_config = {"from_attributes": True}


# ─── Dashboard ────────────────────────────────────────────────────────────────

class DashboardStats(BaseModel):
    total_properties: int
    active_agents: int
    pending_approvals: int
    approved_properties: int
