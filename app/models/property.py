from sqlalchemy import Column, String, Float, Text, Enum, ForeignKey, DateTime, BigInteger, Uuid
from sqlalchemy.orm import relationship
from app.models.base import BaseModel, utcnow
import enum

class PropertyType(str, enum.Enum):
    APARTMENT = "APARTMENT"
    HOUSE = "HOUSE"
    CONDO = "CONDO"
    VILLA = "VILLA"
    LAND = "LAND"
    COMMERCIAL = "COMMERCIAL"
    OTHER = "OTHER"

class TransactionType(str, enum.Enum):
    SALE = "SALE"
    RENT = "RENT"
    LEASE = "LEASE"

class PricePeriod(str, enum.Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"

class VerificationStatus(str, enum.Enum):
    RED = "RED"          # initial / rejected
    YELLOW = "YELLOW"    # under review
    GREEN = "GREEN"      # approved

class Visibility(str, enum.Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"

# Backend defaults for a freshly submitted listing
DEFAULT_VERIFICATION_STATUS = VerificationStatus.RED
DEFAULT_VISIBILITY = Visibility.PRIVATE

class Property(BaseModel):
    __tablename__ = "properties"

    # Basic Info
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    property_type = Column(Enum(PropertyType), nullable=False)
    transaction_type = Column(Enum(TransactionType), nullable=False)

    # Pricing
    price = Column(Float, nullable=True)
    price_period = Column(Enum(PricePeriod), nullable=True)
    security_deposit = Column(Float, nullable=True)

    # Trust fields (administrator-owned)
    verification_status = Column(Enum(VerificationStatus), default=DEFAULT_VERIFICATION_STATUS, nullable=False)
    visibility = Column(Enum(Visibility), default=DEFAULT_VISIBILITY, nullable=False)
    admin_feedback = Column(Text, nullable=True)

    # Ownership, set once on creation
    agent_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    agent = relationship("User", back_populates="properties", foreign_keys=[agent_id])

    # Evidence
    locations = relationship(
        "PropertyLocation", back_populates="property",
        cascade="all, delete-orphan", order_by="PropertyLocation.created_at",
    )
    media = relationship(
        "PropertyMedia", back_populates="property",
        cascade="all, delete-orphan", order_by="PropertyMedia.uploaded_at",
    )
    documents = relationship(
        "PropertyDocument", back_populates="property",
        cascade="all, delete-orphan", order_by="PropertyDocument.uploaded_at",
    )

    @property
    def agent_email(self):
        return self.agent.email if self.agent is not None else None

class PropertyLocation(BaseModel):
    __tablename__ = "property_locations"

    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id"), nullable=False)

    # Both or neither
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    # Device clock at fix time, not record creation time
    gps_timestamp = Column(DateTime, nullable=True)

    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True, index=True)
    postal_code = Column(String(20), nullable=True)

    property = relationship("Property", back_populates="locations")

class PropertyMedia(BaseModel):
    __tablename__ = "property_media"

    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id"), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_type = Column(String(20), nullable=False)      # "image"
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    property = relationship("Property", back_populates="media")

class PropertyDocument(BaseModel):
    __tablename__ = "property_documents"

    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id"), nullable=False)
    file_path = Column(String(500), nullable=False)
    document_type = Column(String(100), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    property = relationship("Property", back_populates="documents")
