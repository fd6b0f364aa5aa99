# src/errorrelay/relay/requests.py
"""Payload shapes exchanged between peers and the authority.

Peer payloads are untrusted input: the authority validates them with these
models and drops anything malformed instead of raising into the transport.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from errorrelay.contracts.enums import Severity
from errorrelay.core.config import validate_metadata


def _parse_severity(value: Any) -> Severity:
    # InvalidSeverityError is a ValueError, so pydantic reports it as a ValidationError
    return Severity.parse(value)


class SetMetadataRequest(BaseModel):
    """SET_METADATA payload: {metadata}."""

    model_config = {"frozen": True}

    metadata: dict[str, Any]

    @field_validator("metadata", mode="before")
    @classmethod
    def validate_metadata_not_empty(cls, v: Any) -> dict[str, Any]:
        return validate_metadata(v, operation="set_metadata")


class LogEventRequest(BaseModel):
    """LOG_EVENT payload: {message, severity, manual}."""

    model_config = {"frozen": True}

    message: str
    severity: Severity
    manual: bool = Field(default=False)

    @field_validator("message", mode="before")
    @classmethod
    def stringify_message(cls, v: Any) -> str:
        if v is None:
            raise ValueError("message is required")
        return str(v)

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return _parse_severity(v)


class GetTotalRequest(BaseModel):
    """GET_TOTAL payload: {severity}."""

    model_config = {"frozen": True}

    severity: Severity

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return _parse_severity(v)


class TotalReply(BaseModel):
    """TOTAL reply payload: {severity, total}."""

    model_config = {"frozen": True}

    severity: Severity
    total: int = Field(ge=0)

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return _parse_severity(v)
