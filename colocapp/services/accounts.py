"""User profile documents: sign-up, profile editing, verification gate and favorites."""

from datetime import datetime, timezone
from typing import Optional

from colocapp.models.listing import ListingRecord
from colocapp.models.user import ProfileUpdate, UserDocument
from colocapp.services.auth_client import AuthClient, Session
from colocapp.services.listing_sources import parse_records
from colocapp.services.media_upload import MediaUploader
from colocapp.services.record_store import RecordStore
from colocapp.utils.errors import AuthorizationError, NotFoundError, ProfileIncompleteError
from colocapp.utils.logging import get_structured_logger, mask_user_id, timed

logger = get_structured_logger(__name__)

USERS_COLLECTION = "users"
LISTINGS_COLLECTION = "listings"
VERIFICATION_PENDING = "pending"


async def sign_up(
    auth: AuthClient,
    store: RecordStore,
    email: str,
    password: str,
    display_name: Optional[str] = None,
) -> Session:
    """Create the auth account and its (unverified) profile document."""
    session = await auth.sign_up(email, password, display_name)
    profile = UserDocument(display_name=display_name, email=email)
    await store.create(USERS_COLLECTION, profile.model_dump(by_alias=True, mode="json"), record_id=session.user.id)
    return session


async def get_user_document(store: RecordStore, user_id: str) -> UserDocument:
    """Profile document for a user; a missing document reads as an unverified profile."""
    try:
        document = await store.get(USERS_COLLECTION, user_id)
    except NotFoundError:
        return UserDocument()
    return UserDocument.model_validate(document)


async def require_verified(session: Optional[Session], store: RecordStore) -> UserDocument:
    """Gate for the listing wizard: signed in and verified by an administrator."""
    if session is None or not session.active:
        raise AuthorizationError("Please sign in to publish a listing.", reason="unauthenticated")
    profile = await get_user_document(store, session.user.id)
    if not profile.is_verified:
        logger.info("Unverified user blocked from publishing", user_id=mask_user_id(session.user.id))
        raise AuthorizationError(
            "Your student card is awaiting verification. You can publish once it is approved.",
            reason="unverified",
        )
    return profile


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _patch_profile(store: RecordStore, user_id: str, patch: dict) -> None:
    """Merge ``patch`` into the profile document, creating it when missing."""
    try:
        await store.update(USERS_COLLECTION, user_id, patch)
    except NotFoundError:
        document = UserDocument().model_dump(by_alias=True, mode="json")
        document.update(patch)
        await store.create(USERS_COLLECTION, document, record_id=user_id)


async def upload_profile_photo(session: Session, store: RecordStore, uploader: MediaUploader, local_ref: str) -> str:
    user = session.require_user()
    url = await uploader.upload(local_ref)
    await _patch_profile(store, user.id, {"photoURL": url, "updatedAt": _now()})
    logger.info("Profile photo updated", user_id=mask_user_id(user.id))
    return url


async def upload_student_card(session: Session, store: RecordStore, uploader: MediaUploader, local_ref: str) -> str:
    """Upload the student card and queue the profile for administrator verification."""
    user = session.require_user()
    url = await uploader.upload(local_ref)
    await _patch_profile(store, user.id, {
        "studentCardURL": url,
        "status": VERIFICATION_PENDING,
        "updatedAt": _now(),
    })
    logger.info("Student card submitted for verification", user_id=mask_user_id(user.id))
    return url


async def update_profile(session: Session, store: RecordStore, update: ProfileUpdate) -> UserDocument:
    """Save the profile screen details; a student card must have been uploaded first."""
    user = session.require_user()
    profile = await get_user_document(store, user.id)
    if not profile.student_card_url:
        raise ProfileIncompleteError("Please upload your student card.")
    await store.update(USERS_COLLECTION, user.id, {**update.model_dump(by_alias=True), "updatedAt": _now()})
    logger.info("Profile updated", user_id=mask_user_id(user.id))
    return await get_user_document(store, user.id)


async def is_favorite(session: Session, store: RecordStore, listing_id: str) -> bool:
    user = session.require_user()
    profile = await get_user_document(store, user.id)
    return listing_id in profile.favorites


async def toggle_favorite(session: Session, store: RecordStore, listing_id: str) -> bool:
    """Add or remove a listing from the user's favorites. Returns the new state."""
    user = session.require_user()
    profile = await get_user_document(store, user.id)
    if listing_id in profile.favorites:
        favorites = [f for f in profile.favorites if f != listing_id]
        now_favorite = False
    else:
        favorites = [*profile.favorites, listing_id]
        now_favorite = True

    await _patch_profile(store, user.id, {"favorites": favorites})

    logger.info("Favorite toggled", user_id=mask_user_id(user.id), listing_id=listing_id, favorite=now_favorite)
    return now_favorite


@timed("list_favorites", logger=logger)
async def list_favorites(session: Session, store: RecordStore) -> list[ListingRecord]:
    """Favorite listings in the order they were added; deleted listings are skipped."""
    user = session.require_user()
    profile = await get_user_document(store, user.id)
    documents = []
    for listing_id in profile.favorites:
        try:
            documents.append(await store.get(LISTINGS_COLLECTION, listing_id))
        except NotFoundError:
            logger.debug("Favorite listing no longer exists", listing_id=listing_id)
    return parse_records(documents)
