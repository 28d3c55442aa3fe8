"""
Admin portal calls: review queue, full property list, status and
visibility mutations, plus the review actions behind the portal's buttons.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Union
from uuid import UUID
from pydantic import ValidationError as PydanticValidationError
from app.client.api_client import ApiClient
from app.client.errors import ServerError, ValidationError
from app.core.logging import get_logger
from app.models.property import VerificationStatus, Visibility
from app.schemas.common import ApiResponse, PaginationMeta
from app.schemas.property import PropertyResponse
from app.schemas.verification import AllPropertiesFilter, VerificationQueueFilter

if TYPE_CHECKING:
    from app.client.queue import PropertyQueue

logger = get_logger(__name__)

QUEUE_ENDPOINT = "/api/v1/admin/verification-queue"
ALL_PROPERTIES_ENDPOINT = "/api/v1/admin/properties"

APPROVED_FEEDBACK = "Approved"
UNDER_REVIEW_FEEDBACK = "Property moved to YELLOW (under review)."

PropertyId = Union[str, UUID]


@dataclass(frozen=True)
class QueueResult:
    properties: List[PropertyResponse]
    meta: PaginationMeta


def _queue_result(envelope: ApiResponse, what: str) -> QueueResult:
    if envelope.meta is None:
        raise ServerError(f"Missing pagination metadata in {what} response")
    try:
        meta = PaginationMeta.model_validate(envelope.meta)
        properties = [PropertyResponse.model_validate(item) for item in envelope.data or []]
    except PydanticValidationError as exc:
        raise ServerError(f"Invalid {what} response: {exc.error_count()} malformed field(s)") from exc
    return QueueResult(properties=properties, meta=meta)


async def fetch_verification_queue(client: ApiClient, filters: VerificationQueueFilter) -> QueueResult:
    envelope = await client.get(QUEUE_ENDPOINT, params=filters.query_params())
    return _queue_result(envelope, "verification queue")


async def fetch_all_properties(client: ApiClient, filters: AllPropertiesFilter) -> QueueResult:
    envelope = await client.get(ALL_PROPERTIES_ENDPOINT, params=filters.query_params())
    return _queue_result(envelope, "properties")


def _record(envelope: ApiResponse, fallback: str) -> PropertyResponse:
    if envelope.data is None:
        raise ServerError(envelope.message or fallback)
    return PropertyResponse.model_validate(envelope.data)


async def update_property_status(
    client: ApiClient,
    property_id: PropertyId,
    status: VerificationStatus,
    admin_feedback: Optional[str] = None,
) -> PropertyResponse:
    """Set the verification status. ``admin_feedback`` replaces the stored text; None clears it."""
    envelope = await client.patch(
        f"{ALL_PROPERTIES_ENDPOINT}/{property_id}/status",
        json={"status": VerificationStatus(status).value, "admin_feedback": admin_feedback or ""},
    )
    return _record(envelope, "Failed to update property status")


async def update_property_visibility(
    client: ApiClient, property_id: PropertyId, visibility: Visibility
) -> PropertyResponse:
    envelope = await client.patch(
        f"{ALL_PROPERTIES_ENDPOINT}/{property_id}/visibility",
        json={"visibility": Visibility(visibility).value},
    )
    return _record(envelope, "Failed to update property visibility")


class ReviewActions:
    """
    The review buttons of the portal. Status actions share one in-flight
    flag and visibility has its own: a click that arrives while the same
    kind of mutation is outstanding is ignored and returns None.

    When a ``PropertyQueue`` is attached, every successful mutation drops its
    cached pages and reloads the current one.
    """

    def __init__(self, client: ApiClient, queue: Optional["PropertyQueue"] = None):
        self._client = client
        self._queue = queue
        self.status_updating = False
        self.visibility_updating = False

    async def _change_status(
        self, property_id: PropertyId, status: VerificationStatus, feedback: str
    ) -> Optional[PropertyResponse]:
        if self.status_updating:
            logger.debug("Ignoring status change for %s: another is in flight", property_id)
            return None
        self.status_updating = True
        try:
            updated = await update_property_status(self._client, property_id, status, feedback)
        finally:
            self.status_updating = False
        logger.info("Property %s set to %s", property_id, updated.verification_status.value)
        await self._reload()
        return updated

    async def _reload(self) -> None:
        if self._queue is None:
            return
        self._queue.cache.invalidate()
        await self._queue.refresh()

    async def approve(self, property_id: PropertyId, notes: str = "") -> Optional[PropertyResponse]:
        return await self._change_status(
            property_id, VerificationStatus.GREEN, notes.strip() or APPROVED_FEEDBACK
        )

    async def mark_under_review(self, property_id: PropertyId) -> Optional[PropertyResponse]:
        return await self._change_status(property_id, VerificationStatus.YELLOW, UNDER_REVIEW_FEEDBACK)

    async def reject(self, property_id: PropertyId, reason: str) -> Optional[PropertyResponse]:
        """The reason is stored as feedback so the agent knows what to fix."""
        if not reason or not reason.strip():
            raise ValidationError("reason", "A rejection reason is required")
        return await self._change_status(property_id, VerificationStatus.RED, reason.strip())

    async def toggle_visibility(self, record: PropertyResponse) -> Optional[PropertyResponse]:
        """Flip PUBLIC/PRIVATE. Offered for approved listings only."""
        if record.verification_status != VerificationStatus.GREEN or self.visibility_updating:
            return None
        target = Visibility.PRIVATE if record.visibility == Visibility.PUBLIC else Visibility.PUBLIC
        self.visibility_updating = True
        try:
            updated = await update_property_visibility(self._client, record.id, target)
        finally:
            self.visibility_updating = False
        logger.info("Property %s is now %s", record.id, updated.visibility.value)
        await self._reload()
        return updated
