"""Verification status lookup for the agent app, as an explicit tagged result."""

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID
from app.client.api_client import ApiClient
from app.client.errors import AuthError, NetworkError, NotFoundError, ServerError
from app.core.logging import get_logger
from app.models.property import VerificationStatus, Visibility

logger = get_logger(__name__)


@dataclass(frozen=True)
class Ok:
    status: VerificationStatus
    visibility: Visibility
    admin_feedback: Optional[str] = None


@dataclass(frozen=True)
class NotSubmitted:
    """The server has no record of this listing."""


@dataclass(frozen=True)
class Unavailable:
    """The status exists or may exist, but could not be read right now."""
    reason: str


StatusResult = Union[Ok, NotSubmitted, Unavailable]


async def fetch_verification_status(client: ApiClient, property_id: Union[str, UUID]) -> StatusResult:
    try:
        envelope = await client.get(f"/api/v1/properties/{property_id}")
    except NotFoundError:
        return NotSubmitted()
    except AuthError as exc:
        return Unavailable(f"Not authorised: {exc.message}")
    except (NetworkError, ServerError) as exc:
        logger.warning("Status lookup for %s failed: %s", property_id, exc.message)
        return Unavailable(exc.message)

    data = envelope.data if isinstance(envelope.data, dict) else {}
    try:
        return Ok(
            status=VerificationStatus(data.get("verification_status")),
            visibility=Visibility(data.get("visibility")),
            admin_feedback=data.get("admin_feedback"),
        )
    except ValueError:
        return Unavailable("Invalid status in response")
