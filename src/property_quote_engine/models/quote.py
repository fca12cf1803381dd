from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ..dictionaries import DEFAULT_CLIENT_NAME, QUOTE_VALIDITY_DAYS
from ..errors import InvalidQuoteTransitionError


class PropertyType(str, Enum):
    residential = "residential"
    commercial = "commercial"
    industrial = "industrial"


class PropertyCondition(str, Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"
    needs_renovation = "needs_renovation"


class QuoteStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


QUOTE_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.draft: frozenset(
        {QuoteStatus.sent, QuoteStatus.accepted, QuoteStatus.rejected, QuoteStatus.expired}
    ),
    QuoteStatus.sent: frozenset(
        {QuoteStatus.accepted, QuoteStatus.rejected, QuoteStatus.expired}
    ),
    QuoteStatus.accepted: frozenset(),
    QuoteStatus.rejected: frozenset(),
    QuoteStatus.expired: frozenset(),
}


class PropertySize(BaseModel):
    square_meters: float | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    floors: int | None = Field(default=None, ge=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PropertyDetails(BaseModel):
    address: str = ""
    property_type: PropertyType
    size: PropertySize | None = None
    year_built: int | None = None
    condition: PropertyCondition

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    @field_validator("address", mode="before")
    @classmethod
    def _missing_address(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("property_type", "condition", mode="before")
    @classmethod
    def _normalise_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value


class ServiceItem(BaseModel):
    id: str | None = None
    category: str = "General"
    description: str
    quantity: float = Field(ge=0)
    unit: str
    unit_price: float = Field(ge=0)
    total_price: float = 0.0
    notes: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        validate_assignment = True


def default_valid_until(today: date | None = None) -> date:
    return (today or datetime.now(timezone.utc).date()) + timedelta(days=QUOTE_VALIDITY_DAYS)


class QuoteData(BaseModel):
    id: str
    client_name: str = DEFAULT_CLIENT_NAME
    client_email: str = ""
    client_phone: str = ""
    property: PropertyDetails
    services: list[ServiceItem] = Field(default_factory=list)
    subtotal: float = 0.0
    gst: float = 0.0
    total: float = 0.0
    valid_until: date = Field(default_factory=default_valid_until)
    notes: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: QuoteStatus = QuoteStatus.draft

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "Q-20250301093000-4F2A1C",
                "clientName": "Jane Smith",
                "clientEmail": "jane@example.com",
                "property": {
                    "address": "12 Harbour St, Sydney NSW",
                    "propertyType": "residential",
                    "size": {"squareMeters": 180, "bedrooms": 3, "bathrooms": 2, "floors": 1},
                    "yearBuilt": 1995,
                    "condition": "fair",
                },
                "services": [
                    {
                        "id": "S-1A2B3C4D",
                        "category": "Electrical",
                        "description": "Replace switchboard",
                        "quantity": 1,
                        "unit": "item",
                        "unitPrice": 1100,
                        "totalPrice": 1100,
                    }
                ],
                "subtotal": 1100.0,
                "gst": 110.0,
                "total": 1210.0,
                "validUntil": "2025-03-31",
                "status": "draft",
            }
        }

    @field_validator("valid_until", mode="before")
    @classmethod
    def _drop_time_component(cls, value: Any) -> Any:
        if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
            return value[:10]
        if isinstance(value, datetime):
            return value.date()
        return value

    def is_expired(self, today: date | None = None) -> bool:
        today = today or datetime.now(timezone.utc).date()
        return today > self.valid_until

    def transition(self, target: QuoteStatus) -> None:
        if target not in QUOTE_TRANSITIONS[self.status]:
            raise InvalidQuoteTransitionError(
                f"Quote {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target


class QuoteGenerationRequest(BaseModel):
    transcript: str
    client_name: str | None = None
    client_email: EmailStr | None = None
    additional_notes: str | None = None
    property_address: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def context_notes(self) -> str:
        """Additional notes with the property address folded in."""
        parts = [self.additional_notes]
        if self.property_address:
            parts.append(f"Property address: {self.property_address}")
        return "\n".join(part for part in parts if part)


__all__ = [
    "PropertyType",
    "PropertyCondition",
    "QuoteStatus",
    "PropertySize",
    "PropertyDetails",
    "ServiceItem",
    "QuoteData",
    "QuoteGenerationRequest",
    "default_valid_until",
]
