"""Owner and viewer operations on single listings."""

from datetime import datetime, timezone
from typing import Optional

from colocapp.models.listing import ListingRecord, ListingReport, ListingStatus
from colocapp.services.accounts import get_user_document
from colocapp.services.auth_client import Session
from colocapp.services.listing_sources import parse_records
from colocapp.services.record_store import OrderBy, Predicate, RecordStore
from colocapp.utils.errors import AuthorizationError, NotFoundError
from colocapp.utils.logging import get_structured_logger, mask_user_id, timed

logger = get_structured_logger(__name__)

LISTINGS_COLLECTION = "listings"
DEFAULT_REPORT_REASON = "Inappropriate content"


@timed("fetch_my_listings", logger=logger)
async def fetch_my_listings(session: Session, store: RecordStore) -> list[ListingRecord]:
    """Every listing owned by the session user, any status, newest first."""
    user = session.require_user()
    documents = await store.query(
        LISTINGS_COLLECTION,
        predicates=[Predicate("metadata.userId", user.id)],
        order=OrderBy("metadata.createdAt", descending=True),
    )
    return parse_records(documents)


async def _load(store: RecordStore, listing_id: str) -> ListingRecord:
    return ListingRecord.model_validate(await store.get(LISTINGS_COLLECTION, listing_id))


async def delete_listing(session: Session, store: RecordStore, listing_id: str) -> None:
    user = session.require_user()
    record = await _load(store, listing_id)
    if record.metadata.user_id != user.id:
        raise AuthorizationError("You can only delete your own listings.", reason="not_owner")
    await store.delete(LISTINGS_COLLECTION, listing_id)
    logger.info("Listing deleted", listing_id=listing_id, user_id=mask_user_id(user.id))


async def fetch_listing_detail(
    store: RecordStore,
    listing_id: str,
    session: Optional[Session] = None,
) -> ListingRecord:
    """Load one listing. Blocked listings are hidden from everyone but admins."""
    record = await _load(store, listing_id)
    if record.status == ListingStatus.BLOCKED:
        is_admin = False
        if session is not None and session.active:
            is_admin = (await get_user_document(store, session.user.id)).is_admin
        if not is_admin:
            raise NotFoundError(f"Listing {listing_id} is blocked")
    return record


def has_reported(record: ListingRecord, user_id: str) -> bool:
    return any(report.user_id == user_id for report in record.reports)


async def report_listing(
    session: Session,
    store: RecordStore,
    listing_id: str,
    reason: str = DEFAULT_REPORT_REASON,
) -> bool:
    """Append a report for moderation. Returns False when the user already reported it."""
    user = session.require_user()
    record = await _load(store, listing_id)
    if has_reported(record, user.id):
        return False

    report = ListingReport(
        user_id=user.id,
        user_name=user.display_name or user.email,
        reason=reason,
        reported_at=datetime.now(timezone.utc).isoformat(),
    )
    reports = [r.model_dump(by_alias=True) for r in record.reports] + [report.model_dump(by_alias=True)]
    await store.update(LISTINGS_COLLECTION, listing_id, {"reports": reports})
    logger.info("Listing reported", listing_id=listing_id, user_id=mask_user_id(user.id))
    return True


def contact_link(record: ListingRecord) -> Optional[str]:
    """Messaging entry point: call the advertiser, or mail them when no phone is given."""
    phone = record.contact.contact_phone.strip()
    if phone:
        return "tel:" + "".join(ch for ch in phone if ch.isdigit() or ch == "+")
    email = record.contact.contact_email.strip()
    if email:
        return f"mailto:{email}"
    return None


def share_message(record: ListingRecord) -> str:
    rent = int(record.details.rent) if float(record.details.rent).is_integer() else record.details.rent
    return f"Check out this flatshare: {record.details.title} - {rent}€/month in {record.location.city}"
