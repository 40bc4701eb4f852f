"""Bluesky session management: login and background token refresh."""

import threading
from dataclasses import dataclass, field

import httpx

from bsky_stream.errors import AuthError, ErrorChannel
from bsky_stream.logger import setup_logger
from bsky_stream.scheduler import PeriodicTask

logger = setup_logger()

# cf. https://docs.bsky.app/docs/category/http-reference
BLUESKY_API_BASE_URL = "https://bsky.social/xrpc/"
LOGIN_ENDPOINT = "com.atproto.server.createSession"
REFRESH_ENDPOINT = "com.atproto.server.refreshSession"

REQUEST_TIMEOUT = 30.0  # seconds

# accessJwt expires after a few minutes, so refreshing every two minutes
# keeps it valid
SESSION_REFRESH_INTERVAL = 120.0  # seconds


def create_http_client(base_url: str = BLUESKY_API_BASE_URL) -> httpx.Client:
    """Create the HTTP client shared by session and search calls."""
    return httpx.Client(base_url=base_url, timeout=REQUEST_TIMEOUT)


@dataclass(frozen=True)
class Credential:
    """Bluesky identity and app password."""

    identifier: str
    password: str = field(repr=False)


@dataclass
class Session:
    """Live token pair. The access token rotates on every refresh."""

    access_jwt: str
    refresh_jwt: str = field(repr=False)


class SessionManager:
    """Owns the Bluesky session and keeps its access token fresh."""

    def __init__(
        self,
        credential: Credential,
        http_client: httpx.Client | None = None,
        errors: ErrorChannel | None = None,
        refresh_interval: float = SESSION_REFRESH_INTERVAL,
    ):
        """Initialize session manager.

        Args:
            credential: Identity and app password to log in with
            http_client: Client to send requests with. Defaults to a new client
                pointed at the Bluesky API.
            errors: Channel that refresh failures are recorded in
            refresh_interval: Seconds between background token refreshes
        """
        self.credential = credential
        self._owns_client = http_client is None
        self.http_client = http_client or create_http_client()
        self.errors = errors or ErrorChannel()
        self.refresh_interval = refresh_interval
        self._lock = threading.Lock()
        self._session: Session | None = None
        self._refresh_task: PeriodicTask | None = None

    @property
    def session(self) -> Session | None:
        with self._lock:
            return self._session

    def login(self) -> Session:
        """Create a session and start refreshing it in the background.

        Raises:
            AuthError: If the login request fails or is rejected
        """
        logger.info(f"Logging into Bluesky as {self.credential.identifier}")
        payload = {
            "identifier": self.credential.identifier,
            "password": self.credential.password,
        }
        try:
            response = self.http_client.post(LOGIN_ENDPOINT, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failure during login: {e}")
            raise AuthError("Failed to log in to Bluesky") from e

        if response.status_code != 200:
            logger.error(f"Failed to log in - http {response.status_code}")
            raise AuthError(
                f"Failed to log in to Bluesky - response code {response.status_code}"
            )

        try:
            data = response.json()
            session = Session(
                access_jwt=data["accessJwt"], refresh_jwt=data["refreshJwt"]
            )
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError("Unexpected login response from Bluesky") from e

        with self._lock:
            self._session = session

        logger.debug("Starting background task to refresh session jwt")
        self._stop_refresh()
        self._refresh_task = PeriodicTask(
            "bluesky-session-refresher",
            self.refresh,
            period=self.refresh_interval,
            initial_delay=self.refresh_interval,
        )
        self._refresh_task.start()
        return session

    def refresh(self):
        """Swap in a new access token, recording any failure.

        Runs on the refresh thread. On failure the previous access token is
        kept and the error is left for the consumer to pick up.
        """
        with self._lock:
            session = self._session
        if session is None:
            return

        logger.debug("Refreshing Bluesky login session")
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {session.refresh_jwt}",
        }
        try:
            response = self.http_client.post(REFRESH_ENDPOINT, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failure during session refresh: {e}")
            self.errors.record(AuthError("Failed to refresh Bluesky session"))
            return

        if response.status_code != 200:
            logger.error(f"Failed to refresh session - http {response.status_code}")
            self.errors.record(
                AuthError(
                    "Failed to refresh Bluesky session - response code "
                    f"{response.status_code}"
                )
            )
            return

        try:
            access_jwt = response.json()["accessJwt"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unexpected session refresh response: {e}")
            self.errors.record(AuthError("Unexpected session refresh response"))
            return

        logger.debug("Storing new Bluesky access jwt")
        with self._lock:
            if self._session is not None:
                self._session.access_jwt = access_jwt

    def current_access_token(self) -> str | None:
        """Most recent access token, or None when logged out."""
        with self._lock:
            return self._session.access_jwt if self._session else None

    def _stop_refresh(self):
        if self._refresh_task is not None:
            self._refresh_task.stop()
            self._refresh_task = None

    def logout(self):
        """Stop refreshing and discard both tokens."""
        self._stop_refresh()
        with self._lock:
            self._session = None

    def close(self):
        """Log out, and close the HTTP client if this manager created it."""
        self.logout()
        if self._owns_client:
            self.http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
