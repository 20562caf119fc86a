"""Pydantic schemas for wallet pass API endpoints."""

import typing as t
from datetime import datetime

from ninja import Schema
from pydantic import Field


class DeviceRegistrationPayload(Schema):
    """Payload sent by device when registering for pass updates."""

    pushToken: str = Field(
        ...,
        min_length=1,
        max_length=255,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Push token for sending notifications",
    )


class SerialNumbersResponse(Schema):
    """Response containing list of updated pass serial numbers."""

    serialNumbers: list[str] = Field(default_factory=list)
    lastUpdated: str = Field(..., description="Tag to send as passesUpdatedSince on the next poll")


class LogPayload(Schema):
    """Payload for device error logging."""

    logs: list[str] = Field(default_factory=list)


class IssuePassPayload(Schema):
    """Optional initial content for a newly issued pass."""

    payload: dict[str, t.Any] = Field(default_factory=dict)


class WalletPassSchema(Schema):
    serial_number: str
    pass_type_id: str
    is_voided: bool
    payload: dict[str, t.Any]
    created_at: datetime
    updated_at: datetime
