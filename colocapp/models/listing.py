"""Listing models: the in-memory wizard draft and the persisted record."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


SERVICE_KEYS = (
    "wifi",
    "handicapAccess",
    "kitchenware",
    "microwave",
    "laundry",
    "bikeParking",
    "linens",
    "washingMachine",
    "tv",
    "doubleBed",
    "elevator",
    "parking",
)


def default_services() -> dict[str, bool]:
    return {key: False for key in SERVICE_KEYS}


class PropertyType(str, Enum):
    """Kinds of property a listing can describe."""
    APARTMENT = "apartment"
    HOUSE = "house"
    STUDIO = "studio"


class ListingStatus(str, Enum):
    """Moderation status. Records are created PENDING; moderators flip them."""
    PENDING = "pending"
    ACTIVE = "active"
    BLOCKED = "blocked"


class CamelModel(BaseModel):
    """Python attributes in snake_case, documents in the backend's camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinates(CamelModel):
    lat: float
    lng: float


# Draft sections hold raw text exactly as typed; parsing happens at submission.

class DraftLocation(CamelModel):
    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""
    coordinates: Optional[Coordinates] = None


class DraftHousing(CamelModel):
    total_roommates: str = ""
    bathrooms: str = ""
    private_area: str = ""


class DraftDetails(CamelModel):
    property_type: str = ""
    total_area: str = ""
    rooms: str = ""
    floor: str = ""
    furnished: bool = False
    available_date: str = Field(default_factory=lambda: date.today().isoformat())
    rent: str = ""
    title: str = ""
    description: str = ""


class DraftContact(CamelModel):
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: str = ""
    accept_terms: bool = False


class PhotoRef(CamelModel):
    """A photo in the draft: a device URI pending upload, or an already durable URL."""
    uri: str
    durable: bool = False


class ListingDraft(CamelModel):
    """Listing being composed by the wizard. Lives only in memory."""
    location: DraftLocation = Field(default_factory=DraftLocation)
    housing: DraftHousing = Field(default_factory=DraftHousing)
    details: DraftDetails = Field(default_factory=DraftDetails)
    photos: list[PhotoRef] = Field(default_factory=list)
    services: dict[str, bool] = Field(default_factory=default_services)
    contact: DraftContact = Field(default_factory=DraftContact)
    current_step: int = Field(1, ge=1, le=6, description="Active wizard step (1-6)")
    validation_error: Optional[str] = None
    completed_steps: set[int] = Field(default_factory=set)
    listing_id: Optional[str] = Field(None, description="Record being edited, None for a new listing")


# Persisted record

class Location(CamelModel):
    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""
    coordinates: Optional[Coordinates] = None


class Housing(CamelModel):
    total_roommates: int = 0
    bathrooms: int = 0
    private_area: float = 0


class Details(CamelModel):
    property_type: str = ""
    total_area: float = 0
    rooms: int = 0
    floor: int = 0
    furnished: bool = False
    available_date: Optional[str] = None
    rent: float = 0
    title: str = ""
    description: str = ""


class Contact(CamelModel):
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: str = ""


def _coerce_timestamp(value: Any) -> Any:
    """Accept ISO strings, epoch seconds and document-store timestamp objects."""
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return value


class ListingMetadata(CamelModel):
    user_id: str = ""
    user_name: Optional[str] = None
    user_photo_url: Optional[str] = Field(None, alias="userPhotoURL")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        return _coerce_timestamp(value)


class ListingReport(CamelModel):
    user_id: str
    user_name: Optional[str] = None
    reason: str = "Inappropriate content"
    reported_at: Optional[str] = None


class ListingRecord(CamelModel):
    """Submitted listing as stored by the backend."""
    id: Optional[str] = Field(None, description="Document id (not part of the stored body)")
    location: Location = Field(default_factory=Location)
    housing: Housing = Field(default_factory=Housing)
    details: Details = Field(default_factory=Details)
    photos: list[str] = Field(default_factory=list, description="Durable photo URLs")
    services: dict[str, bool] = Field(default_factory=default_services)
    contact: Contact = Field(default_factory=Contact)
    status: ListingStatus = ListingStatus.PENDING
    is_visible: bool = True
    metadata: ListingMetadata = Field(default_factory=ListingMetadata)
    reports: list[ListingReport] = Field(default_factory=list)

    def to_document(self) -> dict:
        """Serialize to the camelCase document body written to the store."""
        return self.model_dump(by_alias=True, mode="json", exclude={"id"})
