"""Remote catalog fetcher"""

import logging
from pathlib import Path
from typing import Callable, Optional, Protocol
from urllib.parse import urlparse

import requests

from plugctl.core.extensions.exceptions import AuthError, NetworkError, StorageError
from plugctl.core.storage import paths
from plugctl.core.utils.atomic_write import write_atomic

logger = logging.getLogger(__name__)

USER_AGENT = "plugctl-extension-fetcher/1.0"

# Endpoint that returns the per-account distribution base URL
DISTRIBUTION_ENDPOINT = "extensions/distribution"


def trace_response(response: requests.Response, *args, **kwargs) -> None:
    """requests response hook: log timing and identity of every remote call"""
    request_id = response.headers.get("Request-Id") or response.headers.get("X-Request-Id")
    logger.debug(
        f"{response.request.method} {response.url} -> {response.status_code} "
        f"in {response.elapsed.total_seconds() * 1000:.1f}ms"
        + (f" (request id {request_id})" if request_id else "")
    )


def new_traced_session() -> requests.Session:
    """Session with the tracing hook installed and no retry adapter"""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    session.hooks["response"].append(trace_response)
    return session


def validate_url(url: str) -> None:
    """
    Validate URL format and scheme

    Raises:
        NetworkError: If URL is not http(s) or has no host
    """
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise NetworkError(f"Invalid URL scheme: {parsed.scheme!r}. Only http/https allowed.")
    if not parsed.netloc:
        raise NetworkError(f"Invalid URL: missing hostname in {url!r}")


def join_url(base: str, name: str) -> str:
    return f"{base.rstrip('/')}/{name.lstrip('/')}"


class DistributionResolver(Protocol):
    """Maps an account credential to the base URL its extensions are served from"""

    def resolve(self, base_url: str, api_key: str) -> str:
        ...


class ApiDistributionResolver:
    """Asks the API origin for the account's distribution base URL"""

    def __init__(self, session: requests.Session, timeout: Optional[float] = None):
        self.session = session
        self.timeout = timeout

    def resolve(self, base_url: str, api_key: str) -> str:
        """
        Resolve the distribution base URL

        Raises:
            AuthError: Credential rejected
            NetworkError: Transport failure or unexpected response
        """
        url = join_url(base_url, DISTRIBUTION_ENDPOINT)
        validate_url(url)

        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Failed to resolve extension distribution URL: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"API key rejected while resolving extension distribution URL "
                f"(HTTP {response.status_code})"
            )

        try:
            response.raise_for_status()
            distribution_url = response.json()["extension_base_url"]
        except requests.HTTPError as e:
            raise NetworkError(f"Failed to resolve extension distribution URL: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise NetworkError(f"Unexpected distribution response from {url}: {e}") from e

        logger.debug(f"Extension distribution base URL: {distribution_url}")
        return distribution_url


class RemoteCatalogFetcher:
    """Downloads the published catalog document and stores it locally"""

    def __init__(
        self,
        credential_provider: Callable[[], Optional[str]],
        base_url: str,
        target_path: Optional[Path] = None,
        catalog_filename: str = paths.CATALOG_FILENAME,
        session: Optional[requests.Session] = None,
        resolver: Optional[DistributionResolver] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize fetcher

        Args:
            credential_provider: Returns the API key; may raise
            base_url: API origin (e.g., 'https://api.example/v1')
            target_path: Where the catalog is written (default: <config dir>/plugins.toml)
            catalog_filename: Well-known name of the catalog on the distribution server
            session: HTTP session (default: a traced session owned by the fetcher)
            resolver: Distribution URL resolver (default: ApiDistributionResolver)
            timeout: Request timeout in seconds; None disables it
        """
        self.credential_provider = credential_provider
        self.base_url = base_url
        self.target_path = target_path or paths.default_catalog_path()
        self.catalog_filename = catalog_filename
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or new_traced_session()
        self.resolver = resolver or ApiDistributionResolver(self.session, timeout=timeout)

    def _get_api_key(self) -> str:
        try:
            api_key = self.credential_provider()
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Could not read API key: {e}") from e

        if not api_key:
            raise AuthError(
                "No API key configured. Set PLUGCTL_API_KEY or add api_key to the settings file."
            )
        return api_key

    def fetch_remote_resource(self, url: str) -> bytes:
        """
        GET a URL and return the whole body

        Raises:
            NetworkError: Transport failure or non-2xx status
        """
        validate_url(url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Failed to fetch {url}: {e}") from e
        return response.content

    def catalog_url(self, base_url: Optional[str] = None) -> str:
        """Resolve the catalog document URL for the configured account"""
        api_key = self._get_api_key()
        distribution_url = self.resolver.resolve(base_url or self.base_url, api_key)
        return join_url(distribution_url, self.catalog_filename)

    def refresh(self, base_url: Optional[str] = None, target_path: Optional[Path] = None) -> Path:
        """
        Download the latest catalog and overwrite the local copy

        One attempt only; callers decide whether to retry.

        Args:
            base_url: API origin override
            target_path: Destination override

        Returns:
            Path the catalog was written to

        Raises:
            AuthError: Credential missing or rejected
            NetworkError: Transport failure
            StorageError: Local write failure
        """
        target_path = target_path or self.target_path
        url = self.catalog_url(base_url)

        logger.info(f"Fetching extension catalog from: {url}")
        body = self.fetch_remote_resource(url)

        try:
            write_atomic(target_path, body, mode=0o644)
        except OSError as e:
            raise StorageError(f"Failed to write catalog {target_path}: {e}") from e

        logger.info(f"Extension catalog saved to: {target_path} ({len(body)} bytes)")
        return target_path

    def close(self):
        """Close the session if the fetcher created it"""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
