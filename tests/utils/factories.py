"""Test data factories using Faker."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from faker import Faker

from colocapp.models.listing import (
    DraftContact,
    DraftDetails,
    DraftHousing,
    DraftLocation,
    ListingDraft,
    PhotoRef,
    default_services,
)

fake = Faker("fr_FR")

BASE_TIME = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)


def create_listing_document(
    listing_id: Optional[str] = None,
    status: str = "active",
    is_visible: bool = True,
    rent: float = 600,
    total_area: float = 40,
    property_type: str = "studio",
    furnished: bool = True,
    services: Optional[dict] = None,
    city: Optional[str] = None,
    user_id: str = "owner-1",
    age_minutes: int = 0,
    coordinates: Optional[dict] = None,
) -> dict:
    """Listing document as the backend stores it (camelCase)."""
    all_services = default_services()
    all_services.update(services or {})
    created = BASE_TIME - timedelta(minutes=age_minutes)
    document = {
        "location": {
            "street": fake.street_address(),
            "postalCode": fake.postcode(),
            "city": city or fake.city(),
            "country": "France",
        },
        "housing": {"totalRoommates": 3, "bathrooms": 1, "privateArea": 12},
        "details": {
            "propertyType": property_type,
            "totalArea": total_area,
            "rooms": 3,
            "floor": 2,
            "furnished": furnished,
            "availableDate": "2025-01-01",
            "rent": rent,
            "title": fake.sentence(nb_words=4),
            "description": fake.text(max_nb_chars=120),
        },
        "photos": ["https://cdn.test/cover.jpg"],
        "services": all_services,
        "contact": {
            "contactName": fake.name(),
            "contactPhone": "06 12 34 56 78",
            "contactEmail": fake.email(),
        },
        "status": status,
        "isVisible": is_visible,
        "metadata": {
            "userId": user_id,
            "userName": fake.name(),
            "userPhotoURL": None,
            "createdAt": created.isoformat(),
            "updatedAt": created.isoformat(),
        },
    }
    if coordinates is not None:
        document["location"]["coordinates"] = coordinates
    if listing_id is not None:
        document["id"] = listing_id
    return document


def create_listing_documents(count: int, prefix: str = "L", **kwargs) -> list[dict]:
    """``count`` documents with ids ``L000``, ``L001``... newest first."""
    return [
        create_listing_document(listing_id=f"{prefix}{i:03d}", age_minutes=i, **kwargs)
        for i in range(count)
    ]


def create_complete_draft(current_step: int = 6, photos: Optional[list[str]] = None) -> ListingDraft:
    """Draft whose six steps all pass, positioned on ``current_step``."""
    return ListingDraft(
        location=DraftLocation(street="10 Rue de France", postal_code="06000", city="Nice", country="France"),
        housing=DraftHousing(total_roommates="3", bathrooms="1", private_area="12.5"),
        details=DraftDetails(
            property_type="studio",
            total_area="40",
            rooms="2",
            floor="",
            furnished=True,
            available_date="2025-01-01",
            rent="600",
            title="Sunny room near the sea",
            description="Quiet flatshare five minutes from the beach.",
        ),
        photos=[PhotoRef(uri=uri) for uri in (photos if photos is not None else ["file:///photos/a.jpg"])],
        contact=DraftContact(
            contact_name="Camille Martin",
            contact_phone="0612345678",
            contact_email="camille@example.com",
            accept_terms=True,
        ),
        current_step=current_step,
        completed_steps=set(range(1, current_step)),
    )
