"""
Google OAuth Session Manager - sign-in, sign-out, profile and token refresh.
"""
import httpx
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from call_analyzer.core.config import Settings, get_settings
from call_analyzer.core.errors import ConfigurationMissing, NotSignedIn
from call_analyzer.models.session import GoogleServicesStatus, GoogleUserProfile

logger = logging.getLogger(__name__)

DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"

# The consent screen reports a closed/declined prompt this way
USER_CANCELLED_ERROR = "access_denied"

INIT_FAILED_MESSAGE = (
    "Could not initialize Google services. "
    "Please check your connection and API key settings."
)


class GoogleAuthManager:
    """
    Manages the Google sign-in session of the (single) analyzer user.

    Must be initialized with `initialize()` before use; until then, and when
    OAuth credentials are not configured, the manager reports not-ready.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.google_redirect_uri
        self.scopes = settings.google_scopes
        self.timeout = settings.http_timeout_seconds
        self.configured = settings.google_oauth_configured
        self._transport = transport

        self.status = GoogleServicesStatus(ready=False)
        self._endpoints: dict = {}

        # In-memory session
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._profile: Optional[GoogleUserProfile] = None
        self._pending_state: Optional[str] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @property
    def ready(self) -> bool:
        return self.status.ready

    @property
    def is_signed_in(self) -> bool:
        return self._access_token is not None and self._profile is not None

    @property
    def current_profile(self) -> Optional[GoogleUserProfile]:
        return self._profile if self.is_signed_in else None

    async def initialize(self) -> GoogleServicesStatus:
        """Load Google's OAuth endpoints; the result says whether sign-in can be offered."""
        if not self.configured:
            logger.info("Google OAuth not configured - sign-in and sheet write-back disabled")
            self.status = GoogleServicesStatus(ready=False)
            return self.status

        try:
            async with self._client() as client:
                response = await client.get(DISCOVERY_URL)
                response.raise_for_status()
                document = response.json()

            self._endpoints = {
                "authorization": document["authorization_endpoint"],
                "token": document["token_endpoint"],
                "userinfo": document["userinfo_endpoint"],
                "revocation": document.get("revocation_endpoint", "https://oauth2.googleapis.com/revoke"),
            }
            self.status = GoogleServicesStatus(ready=True)
            logger.info("Google services initialized")
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Error initializing Google services: {e}")
            self.status = GoogleServicesStatus(ready=False, error=INIT_FAILED_MESSAGE)

        return self.status

    def authorization_url(self, state: Optional[str] = None) -> str:
        """URL of the Google consent screen for the sign-in redirect."""
        if not self.ready:
            raise ConfigurationMissing("Google sign-in is not available. Check GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.")

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scopes,
            "access_type": "offline",  # Needed to receive a refresh_token
            "prompt": "consent",
            "include_granted_scopes": "true",
        }
        if state:
            params["state"] = state
        return f"{self._endpoints['authorization']}?{urlencode(params)}"

    def begin_sign_in(self) -> str:
        """Issue a fresh single-use `state` and return the consent screen URL carrying it."""
        state = secrets.token_urlsafe(32)
        url = self.authorization_url(state=state)
        self._pending_state = state
        return url

    async def handle_callback(
        self,
        code: Optional[str],
        error: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Optional[GoogleUserProfile]:
        """
        Complete the redirect from the consent screen.

        Only a callback echoing the `state` issued by begin_sign_in() is
        accepted, and each issued state is accepted once.
        """
        expected_state, self._pending_state = self._pending_state, None
        if error == USER_CANCELLED_ERROR:
            # User closed or declined the prompt; nothing went wrong
            logger.info("Google sign-in cancelled by user")
            return None
        if error:
            logger.error(f"Error during login: {error}")
            return None
        if not expected_state or not state or not secrets.compare_digest(state, expected_state):
            logger.error("Error during login: callback state does not match a pending sign-in")
            return None
        if not code:
            logger.error("Error during login: callback carried no authorization code")
            return None
        return await self.sign_in(code)

    async def sign_in(self, code: str) -> Optional[GoogleUserProfile]:
        """
        Exchange an authorization code for tokens and load the user profile.

        Failures are logged and leave the user signed out.
        """
        if not self.ready:
            logger.error("Error during login: Google services are not initialized")
            return None

        try:
            async with self._client() as client:
                response = await client.post(
                    self._endpoints["token"],
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                response.raise_for_status()
                tokens = response.json()
                self._store_tokens(tokens)

                profile_response = await client.get(
                    self._endpoints["userinfo"],
                    headers={"Authorization": f"Bearer {self._access_token}"},
                )
                profile_response.raise_for_status()
                info = profile_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Error during login: {e}")
            self._clear()
            return None

        self._profile = GoogleUserProfile(
            name=info.get("name", ""),
            email=info.get("email", ""),
            image_url=info.get("picture", ""),
        )
        logger.info(f"Signed in to Google as {self._profile.email}")
        return self._profile

    async def sign_out(self) -> None:
        """Revoke the current token and forget the session."""
        token = self._refresh_token or self._access_token
        if token and self._endpoints.get("revocation"):
            try:
                async with self._client() as client:
                    response = await client.post(
                        self._endpoints["revocation"],
                        data={"token": token},
                    )
                    response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Error during logout: {e}")
        self._clear()
        logger.info("Signed out of Google")

    async def get_access_token(self) -> str:
        """
        Get a valid access token, refreshing if needed.

        Raises:
            NotSignedIn if there is no session or the refresh fails
        """
        if not self.is_signed_in:
            raise NotSignedIn()

        if self._token_expires_at and datetime.utcnow() < self._token_expires_at - timedelta(minutes=5):
            logger.debug("Using cached Google access token")
            return self._access_token

        if not self._refresh_token:
            # No way to renew; let the caller try the token it has
            return self._access_token

        logger.info("Refreshing Google access token...")
        await self._refresh_access_token()
        return self._access_token

    def force_refresh(self) -> None:
        """Force token refresh on next get_access_token() call."""
        self._token_expires_at = None

    async def _refresh_access_token(self) -> None:
        try:
            async with self._client() as client:
                response = await client.post(
                    self._endpoints["token"],
                    data={
                        "refresh_token": self._refresh_token,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "refresh_token",
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"HTTP error refreshing Google access token: {e}")
            self._clear()
            raise NotSignedIn("Your Google session has expired. Please sign in again.")

        if "access_token" not in data:
            logger.error(f"No access_token in refresh response: {data}")
            self._clear()
            raise NotSignedIn("Your Google session has expired. Please sign in again.")

        self._store_tokens(data)
        logger.info(
            f"Google access token refreshed, expires at "
            f"{self._token_expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}"
        )

    def _store_tokens(self, data: dict) -> None:
        self._access_token = data["access_token"]
        if data.get("refresh_token"):
            self._refresh_token = data["refresh_token"]
        expires_in = data.get("expires_in", 3600)  # Default 1 hour
        self._token_expires_at = datetime.utcnow() + timedelta(seconds=expires_in)

    def _clear(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self._token_expires_at = None
        self._profile = None
