from sqlalchemy import Column, String, Boolean, JSON
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

AGENT_CAPABILITIES = ["create_listing"]
ADMIN_CAPABILITIES = ["create_listing", "admin_access"]

class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(100), unique=True, index=True, nullable=False)
    phone_number = Column(String(20), unique=True, index=True, nullable=True)
    full_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)

    capabilities = Column(JSON, default=lambda: list(AGENT_CAPABILITIES))
    is_active = Column(Boolean, default=True)

    from app.models.property import Property
    properties = relationship(
        "Property",
        back_populates="agent",
        foreign_keys="Property.agent_id"
    )

    @property
    def is_admin(self):
        return "admin_access" in (self.capabilities or [])
