"""
Verification state machine.

`verification_status` is a flat, re-assignable enum: an administrator may move
a listing between RED, YELLOW and GREEN in any direction. `visibility` is a
second, independent flag with its own action. Each mutation touches exactly
one property, exactly one of the two flags, and bumps `updated_at`.
"""

from datetime import timedelta
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from app.core.logging import get_logger
from app.models.base import utcnow
from app.models.property import Property, VerificationStatus, Visibility
from app.models.user import User

logger = get_logger(__name__)


def get_property_or_404(db: Session, property_id: UUID) -> Property:
    prop = db.query(Property).filter(Property.id == property_id).first()
    if not prop:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found.")
    return prop


def _bump_updated_at(prop: Property) -> None:
    # Strictly increasing, even when two mutations land within one clock tick
    now = utcnow()
    if prop.updated_at is not None and now <= prop.updated_at:
        now = prop.updated_at + timedelta(microseconds=1)
    prop.updated_at = now


def set_verification_status(
    db: Session,
    property_id: UUID,
    new_status: VerificationStatus,
    admin_feedback: str,
    admin: User,
) -> Property:
    """Assign a verification status and replace the feedback (empty clears it)."""
    prop = get_property_or_404(db, property_id)
    previous = prop.verification_status

    prop.verification_status = new_status
    prop.admin_feedback = admin_feedback
    _bump_updated_at(prop)

    db.commit()
    db.refresh(prop)
    logger.info(
        "Property %s status %s -> %s by admin %s",
        prop.id, previous.value if previous else None, new_status.value, admin.id,
    )
    return prop


def set_visibility(
    db: Session,
    property_id: UUID,
    visibility: Visibility,
    admin: User,
) -> Property:
    """Flip public exposure without touching the verification status."""
    prop = get_property_or_404(db, property_id)
    previous = prop.visibility

    prop.visibility = visibility
    _bump_updated_at(prop)

    db.commit()
    db.refresh(prop)
    logger.info(
        "Property %s visibility %s -> %s by admin %s",
        prop.id, previous.value if previous else None, visibility.value, admin.id,
    )
    return prop
