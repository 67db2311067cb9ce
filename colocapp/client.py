"""Application wiring: builds adapters from ClientConfig and hands out workflows."""

from typing import Optional

from colocapp.config import ClientConfig
from colocapp.services import accounts
from colocapp.services.auth_client import AuthClient, FirebaseAuthClient, Session
from colocapp.services.listing_sources import RecordStoreSource, RemoteApiSource
from colocapp.services.listing_wizard import ListingWizard
from colocapp.services.listings_pipeline import ListingsPipeline
from colocapp.services.local_cache import JsonFileStorage, KeyValueStorage, ListingsCache
from colocapp.services.media_upload import CloudinaryUploader, MediaUploader
from colocapp.services.places import GooglePlacesClient, PlacesClient
from colocapp.services.record_store import RecordStore, SupabaseRecordStore
from colocapp.services.remote_api import ListingsApiClient
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class ColocClient:
    """Entry point for a front end. Collaborators can be injected for tests."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        auth: Optional[AuthClient] = None,
        store: Optional[RecordStore] = None,
        uploader: Optional[MediaUploader] = None,
        places: Optional[PlacesClient] = None,
        api: Optional[ListingsApiClient] = None,
        storage: Optional[KeyValueStorage] = None,
    ):
        self.config = config or ClientConfig.from_env()
        cfg = self.config
        # HTTP adapters built here, closed by aclose
        self._owned: list = []
        self._auth = auth
        self._store = store
        self._uploader = uploader
        self.places = places
        if self.places is None and cfg.places_api_key:
            self.places = GooglePlacesClient(cfg.places_api_key)
            self._owned.append(self.places)
        self.api = api
        if self.api is None:
            self.api = ListingsApiClient(cfg.api_base_url, timeout=cfg.api_timeout_seconds)
            self._owned.append(self.api)
        self.storage = storage or JsonFileStorage(cfg.cache_path)

    @property
    def auth(self) -> AuthClient:
        if self._auth is None:
            self._auth = FirebaseAuthClient(self.config.firebase_api_key or "")
            self._owned.append(self._auth)
        return self._auth

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            self._store = SupabaseRecordStore(url=self.config.supabase_url, key=self.config.supabase_key)
        return self._store

    @property
    def uploader(self) -> MediaUploader:
        if self._uploader is None:
            cfg = self.config
            self._uploader = CloudinaryUploader(
                cfg.cloudinary_upload_url or "",
                cfg.cloudinary_upload_preset,
                api_key=cfg.cloudinary_api_key,
            )
            self._owned.append(self._uploader)
        return self._uploader

    async def aclose(self) -> None:
        """Close the HTTP connection pools of every adapter this client built."""
        owned, self._owned = self._owned, []
        for adapter in owned:
            await adapter.aclose()
        logger.debug("Client adapters closed", count=len(owned))

    async def __aenter__(self) -> "ColocClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def sign_in(self, email: str, password: str) -> Session:
        return await self.auth.sign_in(email, password)

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        return await accounts.sign_up(self.auth, self.store, email, password, display_name)

    def sign_out(self, session: Session) -> None:
        session.end()
        # The next user must not see the previous user's cached page
        ListingsCache(self.storage).clear()

    def _wizard_options(self) -> dict:
        cfg = self.config
        return {
            "places": self.places,
            "collection": cfg.listings_collection,
            "country_bias": cfg.places_country_bias,
            "address_debounce_seconds": cfg.address_debounce_ms / 1000,
            "address_min_chars": cfg.address_min_chars,
        }

    async def start_listing_wizard(self, session: Optional[Session]) -> ListingWizard:
        """New listing wizard; raises AuthorizationError for unverified or signed-out users."""
        await accounts.require_verified(session, self.store)
        return ListingWizard(session, self.uploader, self.store, **self._wizard_options())

    async def edit_listing_wizard(self, session: Optional[Session], listing_id: str) -> ListingWizard:
        await accounts.require_verified(session, self.store)
        return await ListingWizard.for_existing(
            session, self.uploader, self.store, listing_id, **self._wizard_options()
        )

    def listings_pipeline(self, session: Optional[Session] = None) -> ListingsPipeline:
        """Fresh pipeline for one listings screen mount."""
        cfg = self.config
        sources = [
            RemoteApiSource(self.api, session, timeout=cfg.api_timeout_seconds),
            RecordStoreSource(self.store, cfg.listings_collection),
        ]
        cache = ListingsCache(self.storage, ttl_seconds=cfg.cache_ttl_seconds)
        return ListingsPipeline(sources, cache=cache, page_size=cfg.page_size)
