from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from app.api.deps import require_admin
from app.core.config import settings
from app.core.database import get_db
from app.models.property import Property, VerificationStatus, Visibility
from app.models.user import User
from app.schemas.activity import ActivityItem
from app.schemas.common import ApiResponse
from app.schemas.property import DashboardStats, PropertyResponse
from app.schemas.verification import (
    AllPropertiesFilter, StatusUpdateRequest, VerificationQueueFilter, VisibilityUpdateRequest,
)
from app.services import queue, verification
from app.services.activity import project_recent_activity

router = APIRouter(tags=["Admin"])


def _build_filter(filter_cls, **fields):
    try:
        return filter_cls(**fields)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="; ".join(err["msg"] for err in e.errors()),
        )


def _list_response(items: List[Property], meta, message: str) -> ApiResponse:
    return ApiResponse(
        message=message,
        data=[PropertyResponse.model_validate(p) for p in items],
        meta=meta.model_dump(),
    )


# ─── Review queue ─────────────────────────────────────────────────────────────

@router.get("/verification-queue", response_model=ApiResponse[List[PropertyResponse]])
async def get_verification_queue(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    agent_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
):
    """Listings awaiting a decision, newest first."""
    filters = _build_filter(
        VerificationQueueFilter,
        page=page, page_size=page_size, agent_id=agent_id,
        date_from=date_from, date_to=date_to, city=city, country=country,
    )
    items, meta = queue.verification_queue(db, filters)
    return _list_response(items, meta, "Verification queue retrieved successfully")


@router.get("/properties", response_model=ApiResponse[List[PropertyResponse]])
async def get_all_properties(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    agent_id: Optional[UUID] = Query(None),
    verification_status: Optional[VerificationStatus] = Query(None),
    visibility: Optional[Visibility] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
):
    filters = _build_filter(
        AllPropertiesFilter,
        page=page, page_size=page_size, agent_id=agent_id,
        verification_status=verification_status, visibility=visibility,
        date_from=date_from, date_to=date_to, city=city, country=country,
    )
    items, meta = queue.all_properties(db, filters)
    return _list_response(items, meta, "Properties retrieved successfully")


# ─── Mutations ────────────────────────────────────────────────────────────────

@router.patch("/properties/{property_id}/status", response_model=ApiResponse[PropertyResponse])
async def update_property_status(
    property_id: UUID,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Set RED / YELLOW / GREEN. Any transition is allowed; feedback is always replaced."""
    prop = verification.set_verification_status(
        db, property_id, body.status, body.admin_feedback, current_user
    )
    return ApiResponse(
        message=f"Property status updated to {prop.verification_status.value}",
        data=PropertyResponse.model_validate(prop),
    )


@router.patch("/properties/{property_id}/visibility", response_model=ApiResponse[PropertyResponse])
async def update_property_visibility(
    property_id: UUID,
    body: VisibilityUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    prop = verification.set_visibility(db, property_id, body.visibility, current_user)
    return ApiResponse(
        message=f"Property visibility updated to {prop.visibility.value}",
        data=PropertyResponse.model_validate(prop),
    )


# ─── Dashboard ────────────────────────────────────────────────────────────────

@router.get("/dashboard/stats", response_model=ApiResponse[DashboardStats])
async def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    users = db.query(User).filter(User.is_active.is_(True)).all()
    stats = DashboardStats(
        total_properties=db.query(Property).count(),
        active_agents=sum(1 for u in users if "create_listing" in (u.capabilities or []) and not u.is_admin),
        pending_approvals=db.query(Property).filter(
            Property.verification_status != VerificationStatus.GREEN
        ).count(),
        approved_properties=db.query(Property).filter(
            Property.verification_status == VerificationStatus.GREEN
        ).count(),
    )
    return ApiResponse(message="Dashboard statistics retrieved successfully", data=stats)


@router.get("/dashboard/recent-activity", response_model=ApiResponse[List[ActivityItem]])
async def get_recent_activity(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    limit: int = Query(5, ge=1, le=50),
):
    """Best-effort feed; an empty list rather than an error when sources fail."""
    activities = project_recent_activity(db, limit=limit)
    return ApiResponse(message="Recent activity retrieved successfully", data=activities)
