import json
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status, Query, Form, UploadFile, File
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.base import utcnow
from app.models.property import (
    Property, PropertyType, TransactionType, PricePeriod,
    VerificationStatus, Visibility, PropertyLocation, PropertyMedia, PropertyDocument,
)
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.property import PropertyResponse
from app.api.deps import get_current_user, require_agent
from app.services.queue import paginate
from app.utils.file_storage import save_property_images, save_property_documents, delete_stored_file
from typing import List, Optional
from uuid import UUID

router = APIRouter(prefix="/properties", tags=["Properties"])
logger = get_logger(__name__)

DEFAULT_DOCUMENT_TYPE = "SUPPORTING_DOCUMENT"


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _parse_document_types(raw: Optional[str]) -> List[str]:
    """Parse the 'document_types' JSON array string. Returns [] on failure."""
    if not raw:
        return []
    try:
        result = json.loads(raw)
        if not isinstance(result, list):
            return []
        return [item.strip() if isinstance(item, str) else "" for item in result]
    except (json.JSONDecodeError, TypeError):
        return []


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def _is_publicly_listed(prop: Property) -> bool:
    return prop.verification_status == VerificationStatus.GREEN and prop.visibility == Visibility.PUBLIC


# ─── CREATE: Multipart form + evidence uploads ────────────────────────────────

@router.post("", response_model=ApiResponse[PropertyResponse], status_code=status.HTTP_201_CREATED)
async def create_property(
    # ── Required text fields ──────────────────────────────────────────────────
    title: str = Form(...),
    property_type: PropertyType = Form(...),
    transaction_type: TransactionType = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),

    # ── Optional text fields ──────────────────────────────────────────────────
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    price_period: Optional[PricePeriod] = Form(None),
    security_deposit: Optional[float] = Form(None),
    gps_timestamp: Optional[datetime] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    postal_code: Optional[str] = Form(None),
    document_types: Optional[str] = Form(None),       # JSON array aligned with documents

    # ── Evidence files ────────────────────────────────────────────────────────
    images: List[UploadFile] = File(...),
    documents: List[UploadFile] = File(...),

    # ── Auth / DB ─────────────────────────────────────────────────────────────
    db: Session = Depends(get_db),
    current_user: User = Depends(require_agent),
):
    """
    Submit a new listing with its evidence.
    Verification status and visibility start at the backend defaults;
    only an administrator can change them afterwards.
    """

    # ── Validate ──────────────────────────────────────────────────────────────
    if not title.strip():
        raise _bad_request("Title is required.")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise _bad_request("Latitude/longitude out of range.")
    real_images = [f for f in images if f and f.filename]
    real_documents = [f for f in documents if f and f.filename]
    if not real_images:
        raise _bad_request("At least one property image is required.")
    if not real_documents:
        raise _bad_request("At least one supporting document is required.")

    parsed_document_types = _parse_document_types(document_types)

    # ── Save uploaded files to disk ───────────────────────────────────────────
    stored_images = await save_property_images(real_images)
    try:
        stored_documents = await save_property_documents(real_documents)
    except Exception:
        for stored in stored_images:
            delete_stored_file(stored.file_path)
        raise

    # ── Persist property ──────────────────────────────────────────────────────
    now = utcnow()
    property_obj = Property(
        title=title.strip(),
        description=_blank_to_none(description),
        property_type=property_type,
        transaction_type=transaction_type,
        price=price,
        price_period=price_period,
        security_deposit=security_deposit,
        agent_id=current_user.id,
        created_at=now,
        updated_at=now,
    )
    property_obj.locations.append(PropertyLocation(
        latitude=latitude,
        longitude=longitude,
        gps_timestamp=_as_naive_utc(gps_timestamp),
        address=_blank_to_none(address),
        city=_blank_to_none(city),
        state=_blank_to_none(state),
        country=_blank_to_none(country),
        postal_code=_blank_to_none(postal_code),
    ))
    for stored in stored_images:
        property_obj.media.append(PropertyMedia(
            file_path=stored.file_path,
            file_type="image",
            file_size=stored.file_size,
            mime_type=stored.mime_type,
            uploaded_at=now,
        ))
    for idx, stored in enumerate(stored_documents):
        doc_type = parsed_document_types[idx] if idx < len(parsed_document_types) else None
        property_obj.documents.append(PropertyDocument(
            file_path=stored.file_path,
            document_type=doc_type or DEFAULT_DOCUMENT_TYPE,
            file_name=stored.file_name,
            file_size=stored.file_size,
            mime_type=stored.mime_type,
            uploaded_at=now,
        ))

    try:
        db.add(property_obj)
        db.commit()
    except Exception:
        db.rollback()
        for stored in stored_images + stored_documents:
            delete_stored_file(stored.file_path)
        raise
    db.refresh(property_obj)

    logger.info(
        "Property %s submitted by agent %s with %d image(s), %d document(s)",
        property_obj.id, current_user.id, len(stored_images), len(stored_documents),
    )
    return ApiResponse(
        message="Property submitted successfully",
        data=PropertyResponse.model_validate(property_obj),
    )


# ─── LIST (public) ────────────────────────────────────────────────────────────

@router.get("", response_model=ApiResponse[List[PropertyResponse]])
async def list_properties(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    city: Optional[str] = Query(None),
    property_type: Optional[PropertyType] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None),
):
    """Approved, public listings only."""
    query = db.query(Property).filter(
        Property.verification_status == VerificationStatus.GREEN,
        Property.visibility == Visibility.PUBLIC,
    )
    if city and city.strip():
        query = query.filter(Property.locations.any(PropertyLocation.city.ilike(city.strip())))
    if property_type:
        query = query.filter(Property.property_type == property_type)
    if transaction_type:
        query = query.filter(Property.transaction_type == transaction_type)

    items, meta = paginate(query, page, page_size)
    return ApiResponse(
        message="Properties retrieved successfully",
        data=[PropertyResponse.model_validate(p) for p in items],
        meta=meta.model_dump(),
    )


# ─── LIST (agent's own) ───────────────────────────────────────────────────────

@router.get("/mine", response_model=ApiResponse[List[PropertyResponse]])
async def list_my_properties(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_agent),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    """Every listing the caller submitted, whatever its status."""
    query = db.query(Property).filter(Property.agent_id == current_user.id)
    items, meta = paginate(query, page, page_size)
    return ApiResponse(
        message="Properties retrieved successfully",
        data=[PropertyResponse.model_validate(p) for p in items],
        meta=meta.model_dump(),
    )


# ─── GET single property ──────────────────────────────────────────────────────

@router.get("/{property_id}", response_model=ApiResponse[PropertyResponse])
async def get_property(
    property_id: UUID,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user),
):
    """Public when approved and public; otherwise only its agent or an administrator."""
    prop = db.query(Property).filter(Property.id == property_id).first()
    can_see = prop is not None and (
        _is_publicly_listed(prop)
        or (current_user is not None and (current_user.is_admin or prop.agent_id == current_user.id))
    )
    if not can_see:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found.")

    return ApiResponse(message="Property retrieved successfully", data=PropertyResponse.model_validate(prop))
