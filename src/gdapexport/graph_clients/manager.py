"""Microsoft Graph client utilities for gdapexport."""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import msal
import requests
from rich.console import Console

from .exceptions import AuthenticationError, ConfigurationError, GraphAPIError

logger = logging.getLogger(__name__)
console = Console()

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant}"
APP_SCOPES = ["https://graph.microsoft.com/.default"]
DELEGATED_SCOPES = [
    "DelegatedAdminRelationship.Read.All",
    "RoleManagement.Read.Directory",
]
DEFAULT_TIMEOUT = 30
DEFAULT_PAGE_SIZE = 100
TOKEN_REFRESH_BUFFER_SECS = 300

AUTH_MODE_APP = "app"
AUTH_MODE_DEVICE_CODE = "device_code"
AUTH_MODES = (AUTH_MODE_APP, AUTH_MODE_DEVICE_CODE)


def _print_device_code_message(message: str) -> None:
    console.print(f"[bold blue]{message}[/bold blue]")


class GraphClientManager:
    """Manages the authenticated Microsoft Graph session used for read operations.

    Token acquisition is delegated to MSAL. Two modes are supported:

    - ``app``: client-credentials flow with a client secret
    - ``device_code``: delegated sign-in through the device-code flow

    Usage:
        manager = GraphClientManager(tenant_id, client_id, client_secret)
        manager.connect()
        relationships = manager.get_all("/tenantRelationships/delegatedAdminRelationships")
    """

    def __init__(
        self,
        tenant_id: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str] = None,
        auth_mode: str = AUTH_MODE_APP,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        msal_app: Optional[Any] = None,
        device_code_callback: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the Graph client manager.

        Args:
            tenant_id: Partner tenant id (or domain) used as the MSAL authority
            client_id: App registration client id
            client_secret: Client secret, required for ``app`` mode
            auth_mode: ``app`` or ``device_code``
            base_url: Graph API root, including the version segment
            timeout: Per-request timeout in seconds passed to requests
            session: Optional pre-built requests session shared by all threads
            msal_app: Optional pre-built MSAL application
            device_code_callback: Receives the device-code sign-in instructions
        """
        if auth_mode not in AUTH_MODES:
            raise ConfigurationError(
                f"Invalid auth mode '{auth_mode}'. Valid modes: {', '.join(AUTH_MODES)}"
            )

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_mode = auth_mode
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._msal_app = msal_app
        self._device_code_callback = device_code_callback or _print_device_code_message

        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0
        self._scopes: List[str] = []
        self._token_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """Get the HTTP session of the calling thread, creating it if needed.

        requests sessions are not safe to share between threads, so each worker
        thread gets its own. A session passed to the constructor is used as is.
        """
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    @property
    def default_scopes(self) -> List[str]:
        """Scopes requested when connect() is called without explicit scopes."""
        if self.auth_mode == AUTH_MODE_APP:
            return list(APP_SCOPES)
        return list(DELEGATED_SCOPES)

    @property
    def msal_app(self):
        """Get the MSAL application, creating it if needed."""
        if self._msal_app is None:
            self._validate_settings()
            authority = AUTHORITY_TEMPLATE.format(tenant=self.tenant_id)
            if self.auth_mode == AUTH_MODE_APP:
                self._msal_app = msal.ConfidentialClientApplication(
                    self.client_id,
                    authority=authority,
                    client_credential=self.client_secret,
                )
            else:
                self._msal_app = msal.PublicClientApplication(self.client_id, authority=authority)
        return self._msal_app

    def _validate_settings(self) -> None:
        missing = []
        if not self.tenant_id:
            missing.append("tenant_id")
        if not self.client_id:
            missing.append("client_id")
        if self.auth_mode == AUTH_MODE_APP and not self.client_secret:
            missing.append("client_secret")
        if missing:
            raise ConfigurationError(
                f"Missing Microsoft Graph settings: {', '.join(missing)}. "
                "Use 'gdapexport config set' or the GDAP_* environment variables."
            )

    def is_connected(self) -> bool:
        """Check whether a non-expired access token is held."""
        return bool(self._access_token) and time.time() < self._token_expires_at

    def connect(self, scopes: Optional[Sequence[str]] = None) -> None:
        """
        Acquire an access token for the given permission scopes.

        Args:
            scopes: Graph permission scopes; defaults to default_scopes

        Raises:
            AuthenticationError: If MSAL does not return an access token
            ConfigurationError: If required settings are missing
        """
        self._scopes = list(scopes) if scopes else self.default_scopes
        with self._token_lock:
            self._acquire_token()
        logger.info(f"Connected to Microsoft Graph ({self.auth_mode} auth)")

    def disconnect(self) -> None:
        """Drop the cached token and close every HTTP session."""
        self._access_token = None
        self._token_expires_at = 0
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def _acquire_token(self) -> None:
        app = self.msal_app
        result: Optional[Dict[str, Any]] = None

        if self.auth_mode == AUTH_MODE_APP:
            result = app.acquire_token_for_client(scopes=self._scopes)
        else:
            accounts = app.get_accounts()
            if accounts:
                result = app.acquire_token_silent(self._scopes, account=accounts[0])
            if not result:
                flow = app.initiate_device_flow(scopes=self._scopes)
                if "user_code" not in flow:
                    raise AuthenticationError(
                        f"Could not start device code flow: {flow.get('error_description', flow)}"
                    )
                self._device_code_callback(flow["message"])
                result = app.acquire_token_by_device_flow(flow)

        if not result or "access_token" not in result:
            error = (result or {}).get("error_description") or (result or {}).get(
                "error", "no token returned"
            )
            raise AuthenticationError(f"Token acquisition failed: {error}")

        self._access_token = result["access_token"]
        expires_in = int(result.get("expires_in", 3600))
        self._token_expires_at = time.time() + expires_in - TOKEN_REFRESH_BUFFER_SECS
        logger.debug(f"Access token acquired, expires in {expires_in}s")

    def _auth_headers(self) -> Dict[str, str]:
        """Return headers with a valid bearer token, refreshing it if needed."""
        with self._token_lock:
            if not self.is_connected():
                if not self._scopes:
                    self._scopes = self.default_scopes
                self._acquire_token()
            token = self._access_token
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def _build_url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GET request and return the decoded JSON body.

        Args:
            path: API path relative to base_url, or an absolute URL
            params: Query parameters

        Returns:
            Decoded JSON response

        Raises:
            GraphAPIError: On transport failure or non-2xx status
        """
        url = self._build_url(path)
        headers = self._auth_headers()

        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise GraphAPIError(0, str(e), url) from e

        self._handle_error(resp, url)
        try:
            return resp.json()
        except ValueError as e:
            raise GraphAPIError(resp.status_code, f"Invalid JSON response: {e}", url) from e

    def get_all(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        key: str = "value",
    ) -> List[Dict[str, Any]]:
        """
        Retrieve every item of a list endpoint by following ``@odata.nextLink``.

        Args:
            path: API path of the collection
            params: Query parameters for the first page
            key: JSON key holding the items

        Returns:
            All items across all pages
        """
        results: List[Dict[str, Any]] = []
        next_url: Optional[str] = path
        page_params = dict(params) if params else None
        pages = 0

        while next_url:
            data = self.get(next_url, params=page_params)
            results.extend(data.get(key, []))
            pages += 1
            next_url = data.get("@odata.nextLink")
            # nextLink already carries the query string
            page_params = None

        logger.debug(f"Retrieved {len(results)} items from {path} in {pages} page(s)")
        return results

    def _handle_error(self, resp: requests.Response, url: str) -> None:
        if resp.status_code < 400:
            return

        message = resp.text
        try:
            body = resp.json()
            error = body.get("error", {}) if isinstance(body, dict) else {}
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
                if error.get("code"):
                    message = f"{error['code']}: {message}"
        except ValueError:
            pass

        raise GraphAPIError(resp.status_code, message, url)
