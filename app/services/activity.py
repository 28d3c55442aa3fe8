"""
Recent-activity feed for the admin dashboard.

Derived, read-only and best-effort: each source is queried on its own and a
failing source contributes nothing. `project_recent_activity` never raises.
"""

from datetime import datetime
from typing import Callable, Iterable, List, Optional
from sqlalchemy.orm import Session
from app.core.logging import get_logger
from app.models.base import utcnow
from app.models.property import Property, VerificationStatus
from app.models.user import User
from app.schemas.activity import ActivityItem

logger = get_logger(__name__)

ActivitySource = Callable[[Session, int, datetime], List[ActivityItem]]


def relative_time(timestamp: datetime, now: datetime) -> str:
    seconds = int((now - timestamp).total_seconds())
    if seconds < 60:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {unit}{'s' if amount != 1 else ''} ago"
    return "just now"


def recent_submissions(db: Session, limit: int, now: datetime) -> List[ActivityItem]:
    properties = db.query(Property).order_by(Property.created_at.desc()).limit(limit).all()
    return [
        ActivityItem(
            id=f"submission-{p.id}",
            type="submission",
            message=f'New property "{p.title}" submitted for verification',
            timestamp=p.created_at,
            time=relative_time(p.created_at, now),
            user=p.agent_email,
        )
        for p in properties
    ]


def recent_status_changes(db: Session, limit: int, now: datetime) -> List[ActivityItem]:
    # Transitions are inferred: the record moved after creation and sits on a
    # terminal colour.
    properties = (
        db.query(Property)
        .filter(
            Property.updated_at != Property.created_at,
            Property.verification_status.in_([VerificationStatus.GREEN, VerificationStatus.RED]),
        )
        .order_by(Property.updated_at.desc())
        .limit(limit)
        .all()
    )
    items = []
    for p in properties:
        approved = p.verification_status == VerificationStatus.GREEN
        items.append(ActivityItem(
            id=f"{'approval' if approved else 'rejection'}-{p.id}",
            type="approval" if approved else "rejection",
            message=f'Property "{p.title}" {"approved" if approved else "rejected"}',
            timestamp=p.updated_at,
            time=relative_time(p.updated_at, now),
            user=p.agent_email,
        ))
    return items


def recent_agent_registrations(db: Session, limit: int, now: datetime) -> List[ActivityItem]:
    # Capabilities live in a JSON column; over-fetch and filter here.
    users = db.query(User).order_by(User.created_at.desc()).limit(limit * 3).all()
    agents = [u for u in users if "create_listing" in (u.capabilities or []) and not u.is_admin]
    return [
        ActivityItem(
            id=f"user-{u.id}",
            type="user",
            message=f"New agent {u.full_name} registered",
            timestamp=u.created_at,
            time=relative_time(u.created_at, now),
            user=u.email,
        )
        for u in agents[:limit]
    ]


DEFAULT_SOURCES = (recent_submissions, recent_status_changes, recent_agent_registrations)


def project_recent_activity(
    db: Session,
    limit: int = 5,
    sources: Iterable[ActivitySource] = DEFAULT_SOURCES,
    now: Optional[datetime] = None,
) -> List[ActivityItem]:
    """Interleave all sources newest first and keep the first `limit` items."""
    try:
        if limit <= 0:
            return []
        now = now or utcnow()
        items: List[ActivityItem] = []
        for source in sources:
            try:
                items.extend(source(db, limit, now))
            except Exception:
                logger.warning("Activity source %s failed", getattr(source, "__name__", source), exc_info=True)
                # A failed query can leave the transaction unusable for the next source
                db.rollback()
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items[:limit]
    except Exception:
        logger.exception("Activity projection failed")
        return []
