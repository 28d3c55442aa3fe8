"""Filtered, paginated views over properties for the admin portal."""

from datetime import datetime, time, timedelta
from typing import List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Query, Session
from app.models.property import Property, PropertyLocation, VerificationStatus
from app.schemas.common import PaginationMeta
from app.schemas.verification import AllPropertiesFilter, VerificationQueueFilter


def apply_filters(query: Query, filters: VerificationQueueFilter) -> Query:
    if filters.agent_id:
        query = query.filter(Property.agent_id == filters.agent_id)

    # Calendar dates, inclusive on both ends
    if filters.date_from:
        query = query.filter(Property.created_at >= datetime.combine(filters.date_from, time.min))
    if filters.date_to:
        next_day = filters.date_to + timedelta(days=1)
        query = query.filter(Property.created_at < datetime.combine(next_day, time.min))

    if filters.city:
        query = query.filter(Property.locations.any(
            func.lower(PropertyLocation.city) == filters.city.lower()
        ))
    if filters.country:
        query = query.filter(Property.locations.any(
            func.lower(PropertyLocation.country) == filters.country.lower()
        ))

    if isinstance(filters, AllPropertiesFilter):
        if filters.verification_status:
            query = query.filter(Property.verification_status == filters.verification_status)
        if filters.visibility:
            query = query.filter(Property.visibility == filters.visibility)

    return query


def paginate(query: Query, page: int, page_size: int) -> Tuple[List[Property], PaginationMeta]:
    total = query.order_by(None).count()
    total_pages = -(-total // page_size)
    # Out-of-range pages land on the last page
    page = min(page, max(total_pages, 1))

    items = (
        query.order_by(Property.created_at.desc(), Property.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, PaginationMeta.build(total=total, page=page, page_size=page_size, count=len(items))


def verification_queue(db: Session, filters: VerificationQueueFilter) -> Tuple[List[Property], PaginationMeta]:
    """Listings still awaiting an approval decision (RED or YELLOW)."""
    query = db.query(Property).filter(Property.verification_status != VerificationStatus.GREEN)
    return paginate(apply_filters(query, filters), filters.page, filters.page_size)


def all_properties(db: Session, filters: AllPropertiesFilter) -> Tuple[List[Property], PaginationMeta]:
    query = db.query(Property)
    return paginate(apply_filters(query, filters), filters.page, filters.page_size)
