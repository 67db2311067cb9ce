"""Tests for owner and viewer listing operations."""

import pytest

from colocapp.models.listing import ListingRecord
from colocapp.services.auth_client import Session
from colocapp.services.listing_manager import (
    contact_link,
    delete_listing,
    fetch_listing_detail,
    fetch_my_listings,
    report_listing,
    share_message,
)
from colocapp.models.user import UserProfile
from colocapp.utils.errors import AuthorizationError, NotFoundError
from tests.utils.factories import create_listing_document


@pytest.mark.unit
@pytest.mark.asyncio
async def test_my_listings_include_every_status(session, store):
    store.seed("listings", "mine-old", create_listing_document(user_id="user-123", status="active", age_minutes=5))
    store.seed("listings", "mine-new", create_listing_document(user_id="user-123", status="pending"))
    store.seed("listings", "theirs", create_listing_document(user_id="other"))

    records = await fetch_my_listings(session, store)

    assert [r.id for r in records] == ["mine-new", "mine-old"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_own_listing(session, store):
    store.seed("listings", "L1", create_listing_document(user_id="user-123"))

    await delete_listing(session, store, "L1")

    with pytest.raises(NotFoundError):
        await store.get("listings", "L1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_other_users_listing_rejected(session, store):
    store.seed("listings", "L1", create_listing_document(user_id="other"))

    with pytest.raises(AuthorizationError) as exc_info:
        await delete_listing(session, store, "L1")

    assert exc_info.value.reason == "not_owner"
    assert store.writes == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blocked_listing_hidden_except_for_admins(session, store):
    store.seed("listings", "L1", create_listing_document(status="blocked"))

    with pytest.raises(NotFoundError):
        await fetch_listing_detail(store, "L1")
    with pytest.raises(NotFoundError):
        await fetch_listing_detail(store, "L1", session)

    store.seed("users", "user-123", {"isAdmin": True})
    record = await fetch_listing_detail(store, "L1", session)
    assert record.id == "L1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_report_once_per_user(session, store):
    store.seed("listings", "L1", create_listing_document())

    assert await report_listing(session, store, "L1", reason="Scam") is True
    assert await report_listing(session, store, "L1") is False

    other = Session(UserProfile(id="user-456", display_name="Noa"), "tok")
    assert await report_listing(other, store, "L1") is True

    document = await store.get("listings", "L1")
    assert [(r["userId"], r["reason"]) for r in document["reports"]] == [
        ("user-123", "Scam"),
        ("user-456", "Inappropriate content"),
    ]


@pytest.mark.unit
def test_contact_link_prefers_phone():
    record = ListingRecord.model_validate(create_listing_document())
    assert contact_link(record) == "tel:0612345678"

    record.contact.contact_phone = ""
    record.contact.contact_email = "owner@example.com"
    assert contact_link(record) == "mailto:owner@example.com"

    record.contact.contact_email = ""
    assert contact_link(record) is None


@pytest.mark.unit
def test_share_message():
    record = ListingRecord.model_validate(create_listing_document(rent=600, city="Nice"))
    record.details.title = "Sunny room"

    assert share_message(record) == "Check out this flatshare: Sunny room - 600€/month in Nice"
