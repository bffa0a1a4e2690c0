"""
OCM API client module: token resolution, authenticated sessions and cluster lookup.
"""
import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import quote, urlsplit

import requests

from .. import __version__
from ..config import Config
from ..utils import redact_sensitive_data

# Configure logger at module level
logger = logging.getLogger(__name__)

CLUSTERS_PATH = "/api/clusters_mgmt/v1/clusters"

TOKEN_NOT_SET = (
    "OCM token not set. Please configure by using the OCM_TOKEN "
    "environment variable or the ocm cli"
)

# Custom exceptions
class OCMError(Exception):
    """Base exception for OCM client errors."""
    pass

class OCMAuthenticationError(OCMError):
    """Exception raised for authentication errors."""
    pass

class OCMConnectionError(OCMError):
    """Exception raised for connection errors."""
    pass

class OCMObjectNotFoundError(OCMError):
    """Exception raised when a requested object is not found."""
    pass


def get_ocm_token(
    env: Optional[Mapping[str, str]] = None,
    runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
) -> str:
    """
    Resolve the bearer token used to talk to OCM.

    OCM_TOKEN wins when it is set; otherwise the locally configured ocm cli
    is asked for one with `ocm token`.

    Raises:
        OCMAuthenticationError: If no token can be obtained
    """
    env = os.environ if env is None else env
    runner = runner or subprocess.run
    token = env.get("OCM_TOKEN", "").strip()
    if token:
        logger.debug("Using OCM token from OCM_TOKEN")
        return token

    cmd = [Config.OCM_CLI, "token"]
    try:
        result = runner(cmd, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug(f"'{' '.join(cmd)}' failed: {e}")
        raise OCMAuthenticationError(TOKEN_NOT_SET) from e

    token = (result.stdout or "").strip()
    if not token:
        raise OCMAuthenticationError(TOKEN_NOT_SET)
    logger.debug(f"Using OCM token from '{' '.join(cmd)}'")
    return token


@dataclass
class Cluster:
    """A cluster record as returned by the clusters_mgmt API."""
    id: str
    name: str = ""
    external_id: str = ""
    state: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cluster":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            external_id=data.get("external_id", ""),
            state=data.get("state", ""),
            raw=dict(data),
        )


def _describe_error(response: requests.Response) -> str:
    """Build a readable message out of an OCM error response."""
    message = f"status is {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return message
    if not isinstance(body, dict):
        return message
    if body.get("code"):
        message += f", code is '{body['code']}'"
    if body.get("reason"):
        message += f": {body['reason']}"
    return message


class OCMConnection:
    """Authenticated connection to the OCM API.

    Use it as a context manager so the underlying session is released on
    every exit path:

        with OCMConnection(token) as connection:
            cluster = connection.get_cluster(cluster_id)
    """

    def __init__(
        self,
        token: str,
        url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the connection.

        Args:
            token: OCM bearer token
            url: API base URL (defaults to Config.OCM_URL)
            timeout: Per-request timeout in seconds (defaults to Config.API_TIMEOUT)
            session: Pre-built session to use instead of a new requests.Session
        """
        if not token or not token.isascii() or any(c.isspace() for c in token):
            raise OCMConnectionError("Can't build connection: token is empty or malformed")

        self.url = (url or Config.OCM_URL).rstrip("/")
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise OCMConnectionError(f"Can't build connection: invalid API URL '{self.url}'")

        self.timeout = Config.API_TIMEOUT if timeout is None else timeout
        self.logger = logging.getLogger(f"{__name__}.OCMConnection")
        self._closed = False
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": f"supportctl/{__version__}",
        })
        self.logger.debug(
            f"Built connection to {self.url} with headers "
            f"{redact_sensitive_data(dict(self._session.headers))}"
        )

    def __enter__(self) -> "OCMConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the underlying session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._session.close()
        self.logger.debug(f"Closed connection to {self.url}")

    def _request(self, method: str, path: str, params=None) -> requests.Response:
        if self._closed:
            raise OCMConnectionError("connection is closed")
        url = f"{self.url}{path}"
        self.logger.debug(f"{method} {url} params={params}")
        response = self._session.request(method, url, params=params, timeout=self.timeout)
        self.logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def get_cluster(self, cluster_id: str) -> Cluster:
        """
        Fetch a cluster by its internal ID.

        Raises:
            OCMConnectionError: If the request could not be sent
            OCMAuthenticationError: If OCM rejected the token
            OCMObjectNotFoundError: If no cluster has this ID
            OCMError: For any other failure
        """
        path = f"{CLUSTERS_PATH}/{quote(cluster_id, safe='')}"
        try:
            response = self._request("GET", path)
        except requests.RequestException as e:
            raise OCMConnectionError(f"Can't retrieve cluster: {e}") from e

        if response.status_code in (401, 403):
            raise OCMAuthenticationError(f"Can't retrieve cluster: {_describe_error(response)}")
        if response.status_code == 404:
            raise OCMObjectNotFoundError(f"Can't retrieve cluster: {_describe_error(response)}")
        if not 200 <= response.status_code < 300:
            raise OCMError(f"Can't retrieve cluster: {_describe_error(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise OCMError(f"Can't retrieve cluster: invalid JSON in response: {e}") from e
        if not isinstance(body, dict) or not body.get("id"):
            raise OCMError("Can't retrieve cluster: response has no cluster ID")

        cluster = Cluster.from_dict(body)
        self.logger.debug(f"Found cluster {cluster.id} ({cluster.name})")
        return cluster

    def send(self, request) -> requests.Response:
        """
        Send a prepared request (anything with method, path and params).

        Raises:
            OCMConnectionError: If the request could not be sent
        """
        try:
            return self._request(request.method, request.path, params=request.params or None)
        except requests.RequestException as e:
            raise OCMConnectionError(f"{request.method} {request.path} failed: {e}") from e
