"""Auth client: explicit session objects over the Firebase Identity Toolkit REST API."""

import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from colocapp.models.user import UserProfile
from colocapp.utils.errors import AuthError, AuthorizationError, NetworkError, RequestTimeoutError
from colocapp.utils.logging import get_structured_logger, mask_sensitive_data, mask_user_id

logger = get_structured_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh slightly before the provider's expiry
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class Session:
    """Signed-in session. Created at sign-in, torn down at sign-out.

    Passed explicitly to the wizard and the listings pipeline.
    """

    def __init__(
        self,
        user: UserProfile,
        id_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[float] = None,
        auth: Optional["AuthClient"] = None,
    ):
        self.user = user
        self._id_token = id_token
        self._refresh_token = refresh_token
        self._expires_at = expires_at
        self._auth = auth
        self.active = True

    def current_user(self) -> Optional[UserProfile]:
        return self.user if self.active else None

    def require_user(self) -> UserProfile:
        if not self.active:
            raise AuthorizationError("Please sign in to continue.", reason="unauthenticated")
        return self.user

    def _expired(self) -> bool:
        return self._expires_at is not None and time.time() >= self._expires_at - TOKEN_EXPIRY_MARGIN_SECONDS

    async def get_token(self) -> str:
        """Return a bearer token, refreshing it through the auth client when expired."""
        self.require_user()
        if self._expired() and self._auth is not None and self._refresh_token:
            id_token, refresh_token, expires_at = await self._auth.refresh(self._refresh_token)
            self._id_token, self._refresh_token, self._expires_at = id_token, refresh_token, expires_at
            logger.debug("Session token refreshed", user_id=mask_user_id(self.user.id))
        return self._id_token

    def end(self) -> None:
        """Tear the session down (sign-out)."""
        if self.active:
            logger.info("Session ended", user_id=mask_user_id(self.user.id))
        self.active = False
        self._id_token = ""
        self._refresh_token = None


class AuthClient(ABC):
    """Authentication provider interface."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        ...

    @abstractmethod
    async def refresh(self, refresh_token: str) -> tuple[str, str, float]:
        """Exchange a refresh token for (id_token, refresh_token, expires_at)."""
        ...


class FirebaseAuthClient(AuthClient):
    """Firebase email/password auth over REST."""

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        if not api_key:
            raise AuthError("FIREBASE_API_KEY must be set")
        self.api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, url: str, payload: dict) -> dict:
        try:
            response = await self._http.post(url, params={"key": self.api_key}, json=payload)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Auth request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Auth request failed: {e}") from e

        data = response.json() if response.content else {}
        if response.status_code >= 400:
            # Identity Toolkit reports e.g. INVALID_PASSWORD / EMAIL_EXISTS here
            code = (data.get("error") or {}).get("message", f"HTTP {response.status_code}")
            logger.warning("Auth request rejected", error_code=code, status_code=response.status_code)
            raise AuthError(code)
        return data

    def _session_from(self, data: dict, display_name: Optional[str] = None) -> Session:
        user = UserProfile(
            id=data["localId"],
            display_name=data.get("displayName") or display_name,
            email=data.get("email"),
            photo_url=data.get("photoUrl"),
        )
        return Session(
            user=user,
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_at=time.time() + int(data.get("expiresIn", 3600)),
            auth=self,
        )

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        session = self._session_from(data)
        logger.info(
            "User signed in",
            user_id=mask_user_id(session.user.id),
            email=mask_sensitive_data(email),
        )
        return session

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        if display_name:
            await self._post(
                f"{IDENTITY_TOOLKIT_URL}/accounts:update",
                {"idToken": data["idToken"], "displayName": display_name, "returnSecureToken": False},
            )
        session = self._session_from(data, display_name=display_name)
        logger.info("User signed up", user_id=mask_user_id(session.user.id))
        return session

    async def refresh(self, refresh_token: str) -> tuple[str, str, float]:
        try:
            response = await self._http.post(
                SECURE_TOKEN_URL,
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Token refresh failed: {e}") from e
        if response.status_code >= 400:
            raise AuthError("Session expired, please sign in again")
        data = response.json()
        return data["id_token"], data["refresh_token"], time.time() + int(data.get("expires_in", 3600))

    async def aclose(self) -> None:
        await self._http.aclose()
