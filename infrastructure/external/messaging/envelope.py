"""Header names and envelope construction for payment domain events."""
from __future__ import annotations

from typing import Dict, Optional

from domain.payment.events import DomainEvent

from .base import Envelope


H_EVENT_ID = "x-event-id"
H_EVENT_TYPE = "x-event-type"
H_SUBJECT = "x-subject"
H_CORR_ID = "x-corr-id"
H_VERSION = "x-version"
H_CONTENT_TYPE = "content-type"


def get_header(headers: Dict[str, bytes], key: str) -> Optional[str]:
    v = headers.get(key)
    return v.decode("utf-8") if v is not None else None


def envelope_for_event(event: DomainEvent, *, correlation_id: Optional[str] = None) -> Envelope:
    """Keyed by transaction id so one payment's events stay ordered within a partition."""
    headers = {
        H_EVENT_ID: event.event_id.encode("utf-8"),
        H_EVENT_TYPE: event.event_type.value.encode("utf-8"),
        H_SUBJECT: event.subject.encode("utf-8"),
        H_VERSION: b"v1",
        H_CONTENT_TYPE: b"application/json",
    }
    if correlation_id:
        headers[H_CORR_ID] = correlation_id.encode("utf-8")
    return Envelope(
        payload=event.to_dict(),
        key=event.transaction_id.encode("utf-8"),
        headers=headers,
        timestamp=event.occurred_at,
    )
