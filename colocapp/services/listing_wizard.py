"""Listing creation wizard: drives the draft reducer and the two-phase submission."""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Optional

from colocapp.models.listing import (
    Contact,
    Details,
    DraftContact,
    DraftDetails,
    DraftHousing,
    DraftLocation,
    Housing,
    ListingDraft,
    ListingMetadata,
    ListingRecord,
    ListingStatus,
    Location,
    PhotoRef,
)
from colocapp.models.user import UserProfile
from colocapp.services.address_lookup import AddressResolver
from colocapp.services.auth_client import Session
from colocapp.services.draft_reducer import (
    Action,
    AddPhoto,
    EditField,
    NextStep,
    PreviousStep,
    RemovePhoto,
    SetService,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
    WizardPhase,
    WizardState,
    first_invalid_step,
    reduce,
    validate_step,
)
from colocapp.services.media_upload import MediaUploader
from colocapp.services.places import PlacesClient
from colocapp.services.record_store import RecordStore
from colocapp.utils.errors import (
    AuthorizationError,
    NotFoundError,
    RecordStoreError,
    StepValidationError,
    UploadError,
    friendly_message,
)
from colocapp.utils.logging import generate_operation_id, get_structured_logger, log_timing, mask_user_id, operation_context

logger = get_structured_logger(__name__)

LISTINGS_COLLECTION = "listings"
RECORD_SAVE_FAILED = "Your listing could not be saved. Please try again."


def parse_int(text: Any) -> int:
    """Parse user-typed text to int; unparseable input becomes 0."""
    if isinstance(text, bool):
        return 0
    if isinstance(text, int):
        return text
    try:
        return int(str(text).strip())
    except (TypeError, ValueError):
        value = parse_float(text)
        return int(value)


def parse_float(text: Any) -> float:
    """Parse user-typed text to float (comma decimals accepted); unparseable input becomes 0."""
    if isinstance(text, bool):
        return 0.0
    try:
        value = float(str(text).strip().replace(",", "."))
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def build_listing_record(
    draft: ListingDraft,
    photo_urls: list[str],
    user: UserProfile,
    now: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
) -> ListingRecord:
    """Assemble the record persisted for a draft: parsed numbers, pending status, stamped metadata."""
    invalid = first_invalid_step(draft)
    if invalid is not None:
        raise StepValidationError(invalid, validate_step(draft, invalid).message)
    now = now or datetime.now(timezone.utc)
    return ListingRecord(
        id=draft.listing_id,
        location=Location(
            street=draft.location.street.strip(),
            postal_code=draft.location.postal_code.strip(),
            city=draft.location.city.strip(),
            country=draft.location.country.strip(),
            coordinates=draft.location.coordinates,
        ),
        housing=Housing(
            total_roommates=parse_int(draft.housing.total_roommates),
            bathrooms=parse_int(draft.housing.bathrooms),
            private_area=parse_float(draft.housing.private_area),
        ),
        details=Details(
            property_type=draft.details.property_type.strip().lower(),
            total_area=parse_float(draft.details.total_area),
            rooms=parse_int(draft.details.rooms),
            floor=parse_int(draft.details.floor) if draft.details.floor else 0,
            furnished=bool(draft.details.furnished),
            available_date=draft.details.available_date,
            rent=parse_float(draft.details.rent),
            title=draft.details.title.strip(),
            description=draft.details.description.strip(),
        ),
        photos=list(photo_urls),
        services=dict(draft.services),
        contact=Contact(
            contact_name=draft.contact.contact_name.strip(),
            contact_phone=draft.contact.contact_phone.strip(),
            contact_email=draft.contact.contact_email.strip(),
        ),
        status=ListingStatus.PENDING,
        is_visible=True,
        metadata=ListingMetadata(
            user_id=user.id,
            user_name=user.display_name or draft.contact.contact_name,
            user_photo_url=user.photo_url,
            created_at=created_at or now,
            updated_at=now,
        ),
    )


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def draft_from_record(record: ListingRecord) -> ListingDraft:
    """Open an existing record for editing. Its photos are already durable."""
    return ListingDraft(
        location=DraftLocation(**record.location.model_dump()),
        housing=DraftHousing(
            total_roommates=_text(record.housing.total_roommates),
            bathrooms=_text(record.housing.bathrooms),
            private_area=_text(record.housing.private_area),
        ),
        details=DraftDetails(
            property_type=record.details.property_type,
            total_area=_text(record.details.total_area),
            rooms=_text(record.details.rooms),
            floor=_text(record.details.floor),
            furnished=record.details.furnished,
            available_date=record.details.available_date or "",
            rent=_text(record.details.rent),
            title=record.details.title,
            description=record.details.description,
        ),
        photos=[PhotoRef(uri=url, durable=True) for url in record.photos],
        services=dict(record.services),
        contact=DraftContact(**record.contact.model_dump()),
        listing_id=record.id,
    )


async def upload_photos(uploader: MediaUploader, photos: list[PhotoRef]) -> list[str]:
    """Upload pending photos concurrently; durable ones pass through.

    The result keeps the draft's photo order. Any failure raises one UploadError
    counting the failed photos; the underlying errors are only logged.
    """
    pending = [(i, p) for i, p in enumerate(photos) if not p.durable]
    results = await asyncio.gather(*(uploader.upload(p.uri) for _, p in pending), return_exceptions=True)

    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        for failure in failures:
            if not isinstance(failure, Exception):
                raise failure
        for failure in failures:
            logger.warning("Photo upload failed", error=str(failure), error_type=type(failure).__name__)
        raise UploadError(
            f"{len(failures)} of {len(pending)} photo(s) could not be uploaded. "
            "Your listing was not published."
        )

    urls = [p.uri for p in photos]
    for (index, _), url in zip(pending, results):
        urls[index] = url
    return urls


class ListingWizard:
    """One listing creation (or edit) session.

    State changes go through ``dispatch`` and the pure reducer. ``submit``
    uploads media then persists the record, guarded against reentry.
    """

    def __init__(
        self,
        session: Session,
        uploader: MediaUploader,
        store: RecordStore,
        places: Optional[PlacesClient] = None,
        draft: Optional[ListingDraft] = None,
        collection: str = LISTINGS_COLLECTION,
        country_bias: Optional[str] = None,
        address_debounce_seconds: float = 0.3,
        address_min_chars: int = 3,
    ):
        user = session.require_user()
        if draft is None:
            draft = ListingDraft(contact=DraftContact(
                contact_name=user.display_name or "",
                contact_email=user.email or "",
            ))
        self.session = session
        self.uploader = uploader
        self.store = store
        self.collection = collection
        self.state = WizardState(draft=draft)
        self.wizard_id = generate_operation_id("wizard")
        self._log = logger.bind(wizard_id=self.wizard_id)
        self._submitting = False
        self._alive = True
        self._existing_created_at: Optional[datetime] = None
        self.address: Optional[AddressResolver] = None
        if places is not None:
            self.address = AddressResolver(
                places,
                self.dispatch,
                country_bias=country_bias,
                debounce_seconds=address_debounce_seconds,
                min_chars=address_min_chars,
            )

    @classmethod
    async def for_existing(
        cls,
        session: Session,
        uploader: MediaUploader,
        store: RecordStore,
        listing_id: str,
        **kwargs: Any,
    ) -> "ListingWizard":
        """Open a wizard on a listing owned by the session user."""
        user = session.require_user()
        collection = kwargs.get("collection", LISTINGS_COLLECTION)
        document = await store.get(collection, listing_id)
        record = ListingRecord.model_validate(document)
        if record.metadata.user_id != user.id:
            raise AuthorizationError("You can only edit your own listings.", reason="not_owner")
        wizard = cls(session, uploader, store, draft=draft_from_record(record), **kwargs)
        wizard._existing_created_at = record.metadata.created_at
        return wizard

    @property
    def draft(self) -> ListingDraft:
        return self.state.draft

    @property
    def phase(self) -> WizardPhase:
        return self.state.phase

    @property
    def alive(self) -> bool:
        return self._alive

    def dispatch(self, action: Action) -> WizardState:
        if not self._alive:
            self._log.debug("Action ignored after close", action=type(action).__name__)
            return self.state
        self.state = reduce(self.state, action)
        return self.state

    def edit(self, path: str, value: Any) -> WizardState:
        state = self.dispatch(EditField(path, value))
        if path == "location.street" and self.address is not None and self._alive:
            self.address.on_street_changed(value)
        return state

    def add_photo(self, uri: str) -> WizardState:
        return self.dispatch(AddPhoto(uri))

    def remove_photo(self, index: int) -> WizardState:
        return self.dispatch(RemovePhoto(index))

    def set_service(self, key: str, enabled: bool) -> WizardState:
        return self.dispatch(SetService(key, enabled))

    def next(self) -> WizardState:
        if self._submitting:
            return self.state
        return self.dispatch(NextStep())

    def previous(self) -> WizardState:
        if self._submitting:
            return self.state
        return self.dispatch(PreviousStep())

    def close(self) -> None:
        """Discard the wizard; pending continuations will not touch its state."""
        self._alive = False
        if self.address is not None:
            self.address.close()

    async def submit(self) -> WizardState:
        """Upload pending photos, then create (or update) the listing record."""
        if self._submitting:
            self._log.info("Submission already in flight, ignoring")
            return self.state

        self.dispatch(SubmitStarted())
        if self.state.phase != WizardPhase.SUBMITTING:
            return self.state

        self._submitting = True
        try:
            with operation_context(self.wizard_id):
                await self._run_submission()
        except asyncio.CancelledError:
            self._log.warning("Submission cancelled")
            if self._alive:
                self.dispatch(SubmitFailed("Your listing was not published. Please try again."))
            raise
        finally:
            self._submitting = False
        return self.state

    async def _run_submission(self) -> None:
        draft = self.state.draft
        user = self.session.require_user()

        try:
            with log_timing("upload_listing_photos", logger=self._log, photo_count=len(draft.photos)):
                photo_urls = await upload_photos(self.uploader, draft.photos)
        except UploadError as e:
            self._log.warning("Photo upload failed, submission aborted", error=str(e))
            if self._alive:
                self.dispatch(SubmitFailed(friendly_message(e)))
            return

        if not self._alive:
            self._log.info("Wizard closed during upload, listing not persisted")
            return

        try:
            record = build_listing_record(draft, photo_urls, user, created_at=self._existing_created_at)
        except StepValidationError as e:
            # Only reachable when the wizard was seeded with a draft whose completed steps are stale
            self._log.warning("Draft invalid at persist time", step=e.step)
            self.dispatch(SubmitFailed(str(e)))
            return

        try:
            with log_timing("persist_listing", logger=self._log):
                if draft.listing_id:
                    await self.store.update(self.collection, draft.listing_id, record.to_document())
                    listing_id = draft.listing_id
                else:
                    listing_id = await self.store.create(self.collection, record.to_document())
        except (RecordStoreError, NotFoundError) as e:
            self._log.error("Listing could not be persisted", error=str(e), user_id=mask_user_id(user.id))
            if self._alive:
                self.dispatch(SubmitFailed(f"{friendly_message(e)} ({e})"))
            return
        except Exception as e:
            self._log.exception("Unexpected error while persisting listing", error_type=type(e).__name__)
            if self._alive:
                self.dispatch(SubmitFailed(friendly_message(e, default=RECORD_SAVE_FAILED)))
            return

        self._log.info(
            "Listing submitted for moderation",
            listing_id=listing_id,
            user_id=mask_user_id(user.id),
            photo_count=len(photo_urls),
            edited=bool(draft.listing_id),
        )
        if self._alive:
            self.dispatch(SubmitSucceeded(listing_id))
