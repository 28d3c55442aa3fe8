"""
Submission assembler.

Validates a property draft in a fixed order, then serialises it and its
evidence into one multipart request. Validation failures never reach the
network. The call is fire-once: resubmitting is the caller's decision.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple, Union
from app.capture.evidence import EvidenceFile
from app.capture.location import CapturedLocation
from app.client.api_client import ApiClient
from app.client.errors import ServerError, ValidationError
from app.core.logging import get_logger
from app.models.property import PricePeriod, PropertyType, TransactionType
from app.schemas.property import PropertyResponse
from app.utils.mime import DOCUMENT_MIME_TYPES, IMAGE_MIME_TYPES, sniff_mime_type

logger = get_logger(__name__)

CREATE_ENDPOINT = "/api/v1/properties"

Number = Union[int, float]


@dataclass
class PropertyDraft:
    # Required
    title: str = ""
    property_type: Optional[PropertyType] = None
    transaction_type: Optional[TransactionType] = None
    latitude: Optional[Number] = None
    longitude: Optional[Number] = None
    images: List[EvidenceFile] = field(default_factory=list)
    documents: List[EvidenceFile] = field(default_factory=list)

    # Optional
    description: Optional[str] = None
    price: Optional[Number] = None
    price_period: Optional[PricePeriod] = None
    security_deposit: Optional[Number] = None
    gps_timestamp: Optional[Union[str, datetime]] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    def apply_location(self, location: CapturedLocation) -> None:
        """Use a GPS fix as the listing's coordinates; supersedes any previous fix."""
        self.latitude = location.latitude
        self.longitude = location.longitude
        self.gps_timestamp = location.gps_timestamp

    def evidence(self) -> List[EvidenceFile]:
        return [*self.images, *self.documents]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _decimal_text(value: Number) -> str:
    if isinstance(value, int):
        return str(value)
    return format(Decimal(repr(float(value))), "f")


def _check_evidence(files: List[EvidenceFile], field_name: str, allowed: set) -> None:
    for item in files:
        if item.size != len(item.content):
            raise ValidationError(
                field_name,
                f"'{item.file_name}' declares {item.size} bytes but contains {len(item.content)}",
            )
        if item.mime_type not in allowed:
            raise ValidationError(field_name, f"'{item.file_name}' has unsupported type '{item.mime_type}'")
        actual = sniff_mime_type(item.content)
        if actual != item.mime_type:
            raise ValidationError(
                field_name,
                f"'{item.file_name}' is declared as '{item.mime_type}' but contains '{actual or 'unknown data'}'",
            )


def _check_choice(enum_cls, value, field_name: str, label: str) -> None:
    try:
        enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field_name, f"{label} must be one of: {allowed}") from None


def validate_draft(draft: PropertyDraft) -> None:
    """Raise ValidationError for the first violated requirement."""
    if not draft.title or not draft.title.strip():
        raise ValidationError("title", "Title is required")
    if not draft.property_type:
        raise ValidationError("property_type", "Property type is required")
    _check_choice(PropertyType, draft.property_type, "property_type", "Property type")
    if not draft.transaction_type:
        raise ValidationError("transaction_type", "Transaction type is required")
    _check_choice(TransactionType, draft.transaction_type, "transaction_type", "Transaction type")
    # A submission needs the full coordinate pair
    if not _is_number(draft.latitude):
        raise ValidationError("latitude", "Valid latitude and longitude are required")
    if not _is_number(draft.longitude):
        raise ValidationError("longitude", "Valid latitude and longitude are required")
    if not draft.images:
        raise ValidationError("images", "At least one image is required")
    if not draft.documents:
        raise ValidationError("documents", "At least one document is required")
    _check_evidence(draft.images, "images", IMAGE_MIME_TYPES)
    _check_evidence(draft.documents, "documents", DOCUMENT_MIME_TYPES)

    for key in ("price", "security_deposit"):
        value = getattr(draft, key)
        if value is not None and not _is_number(value):
            raise ValidationError(key, f"{key.replace('_', ' ').capitalize()} must be a finite number")
    if draft.price_period:
        _check_choice(PricePeriod, draft.price_period, "price_period", "Price period")


def _iso(value: Union[str, datetime]) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


def build_multipart(draft: PropertyDraft) -> Tuple[dict, list]:
    """Text parts and repeated `images` / `documents` file parts."""
    data = {
        "title": draft.title.strip(),
        "property_type": PropertyType(draft.property_type).value,
        "transaction_type": TransactionType(draft.transaction_type).value,
        "latitude": _decimal_text(draft.latitude),
        "longitude": _decimal_text(draft.longitude),
    }

    optional_text = {
        "description": draft.description.strip() if draft.description else None,
        "gps_timestamp": _iso(draft.gps_timestamp) if draft.gps_timestamp else None,
        "address": draft.address,
        "city": draft.city,
        "state": draft.state,
        "country": draft.country,
        "postal_code": draft.postal_code,
        "price_period": PricePeriod(draft.price_period).value if draft.price_period else None,
    }
    data.update({key: value for key, value in optional_text.items() if value})

    for key in ("price", "security_deposit"):
        value = getattr(draft, key)
        if value is not None:
            data[key] = _decimal_text(value)

    document_types = [doc.document_type for doc in draft.documents]
    if any(document_types):
        data["document_types"] = json.dumps(document_types)

    files = [("images", (img.file_name, img.content, img.mime_type)) for img in draft.images]
    files += [("documents", (doc.file_name, doc.content, doc.mime_type)) for doc in draft.documents]
    return data, files


def discard_draft(draft: PropertyDraft) -> None:
    """User cancelled: free every preview handle the draft holds."""
    for item in draft.evidence():
        item.release_preview()


async def submit_property(client: ApiClient, draft: PropertyDraft) -> PropertyResponse:
    """Validate, send once, and return the record the server created."""
    validate_draft(draft)
    data, files = build_multipart(draft)
    # The request owns the bytes now; previews are no longer needed
    discard_draft(draft)

    logger.info(
        "Submitting property '%s' with %d image(s), %d document(s)",
        data["title"], len(draft.images), len(draft.documents),
    )
    envelope = await client.post(CREATE_ENDPOINT, data=data, files=files)
    if envelope.data is None:
        raise ServerError(envelope.message or "Property submission failed")
    return PropertyResponse.model_validate(envelope.data)
