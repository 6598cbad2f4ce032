"""HTTP download helpers for the CISA KEV catalog.

All network I/O is isolated here: the rest of the package works with
``CatalogRecord`` instances and raw bytes.
"""

import requests
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import __version__
from .errors import DecodeError, TransportError
from .log import get_logger
from .models import CatalogRecord

CISA_KEV_URL = "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json"

DEFAULT_HTTP_TIMEOUT = (10, 120)  # (connect, read)

logger = get_logger(__name__)


def requests_session() -> requests.Session:
    """Create a requests session with the KEV Feed User-Agent.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": f"kevfeed/{__version__}",
            "Accept": "application/json",
        }
    )
    return s


def parse_catalog(body: bytes | str) -> CatalogRecord:
    """Decode an upstream (or cached) body into a ``CatalogRecord``.

    Args:
        body: Raw JSON document.

    Returns:
        Parsed catalog snapshot.

    Raises:
        DecodeError: If the body is not JSON or does not match the catalog shape.
    """
    try:
        return CatalogRecord.model_validate_json(body)
    except ValidationError as e:
        if any(err["type"] == "json_invalid" for err in e.errors()):
            raise DecodeError("Catalog body is not valid JSON") from e
        raise DecodeError(f"Catalog body does not match the expected shape ({e.error_count()} error(s))") from e


class CatalogFetcher:
    """Fetches the KEV catalog from a fixed upstream URL.

    Attributes:
        session: Requests session used for the GET.
        url: Upstream catalog URL.
        timeout: ``(connect, read)`` timeout passed to requests.
        attempts: Total attempts per fetch; ``1`` disables retrying.
        backoff: Multiplier for the exponential wait between attempts.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        url: str = CISA_KEV_URL,
        timeout: tuple[float, float] = DEFAULT_HTTP_TIMEOUT,
        attempts: int = 1,
        backoff: float = 1.0,
    ):
        self.session = session or requests_session()
        self.url = url
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.backoff = backoff

    def _get_once(self) -> bytes:
        try:
            r = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e
        if not r.ok:
            raise TransportError(f"Upstream answered HTTP {r.status_code} for {self.url}", status=r.status_code)
        return r.content

    def fetch_body(self) -> bytes:
        """Download the raw upstream JSON body.

        Returns:
            Response body exactly as served upstream.

        Raises:
            TransportError: On connection failure, timeout or non-2xx status.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, max=30),
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        )
        return retrying(self._get_once)

    def fetch_catalog(self) -> CatalogRecord:
        """Download and decode the catalog.

        Raises:
            TransportError: If the upstream cannot be reached.
            DecodeError: If the body is not a valid catalog.
        """
        body = self.fetch_body()
        catalog = parse_catalog(body)
        logger.info(
            "Fetched KEV catalog %s (%d entries, released %s)",
            catalog.catalog_version,
            len(catalog.vulnerabilities),
            catalog.date_released,
        )
        return catalog

