"""
Module: envelope.py
Description: Event envelope model for the delivery pipeline.

Defines the EventEnvelope model, the unit of data a producer wants
delivered to the Bento API. Envelopes are validated before anything
is queued: an envelope that fails here is a permanent, local rejection
and never becomes a retryable failure.

Key Components:
- EventEnvelope: type, email, optional fields and details
- is_valid_email(): RFC 5322 style address format check
- MAX_PAYLOAD_BYTES: ceiling on the serialized envelope

Dependencies: pydantic, re, typing
"""

import re
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PAYLOAD_BYTES = 1024 * 1024
MAX_EMAIL_LENGTH = 254

_EMAIL_PATTERN = re.compile(
    r"^(?P<local>[A-Za-z0-9!#$%&'*+/=?^_`{|}~.-]{1,64})"
    r"@(?P<domain>[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+)$"
)


def is_valid_email(email: str) -> bool:
    """
    Check an address against an RFC 5322 style format.

    Quoted local parts and IP literal domains are not accepted.

    Args:
        email: Address to check

    Returns:
        True if the address is well formed
    """
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False

    match = _EMAIL_PATTERN.match(email)
    if not match:
        return False

    local = match.group('local')
    if local.startswith('.') or local.endswith('.') or '..' in local:
        return False

    # Top-level domain must not be all digits
    return not match.group('domain').rsplit('.', 1)[-1].isdigit()


class EventEnvelope(BaseModel):
    """
    Event submitted by a producer for delivery.

    Attributes:
        type: Event type identifier (e.g. 'user_registration', '$purchase')
        email: Subscriber e-mail address the event is tied to
        fields: Subscriber fields to set alongside the event
        details: Event-specific details, arbitrarily nested
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="ignore"
    )

    type: str = Field(..., min_length=1, description="Event type identifier")
    email: str = Field(..., min_length=1, description="Subscriber e-mail address")
    fields: Dict[str, str] = Field(default_factory=dict, description="Subscriber fields")
    details: Dict[str, Any] = Field(default_factory=dict, description="Event details")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate e-mail format."""
        if not is_valid_email(v):
            raise ValueError("email must be a valid e-mail address")
        return v

    @field_validator('fields', 'details', mode='before')
    @classmethod
    def default_empty_maps(cls, v: Any) -> Any:
        """Treat explicit null as an empty map."""
        return {} if v is None else v

    @model_validator(mode='after')
    def validate_payload_size(self) -> 'EventEnvelope':
        """Reject envelopes whose serialized form exceeds MAX_PAYLOAD_BYTES."""
        size = len(self.model_dump_json().encode('utf-8'))
        if size > MAX_PAYLOAD_BYTES:
            raise ValueError(
                f"event payload is {size} bytes (max: {MAX_PAYLOAD_BYTES})"
            )
        return self
