"""HTTP client for the Google Books API."""
import requests
from typing import Optional, Dict, Any
import logging

from catalog.errors import ExternalUnavailableError

logger = logging.getLogger(__name__)


class GoogleBooksClient:
    """Client for Google Books volume search.

    Each search is a single attempt bounded by ``timeout``. There is no
    retry: any failure is reported as ``ExternalUnavailableError``.
    """

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    MAX_RESULTS_LIMIT = 40

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Google Books API client.

        Args:
            api_key: Optional API key (increases rate limits)
            timeout: Request timeout in seconds
            session: Optional pre-built session (connection pooling)
        """
        self.api_key = api_key
        self.timeout = timeout

        # Create session for connection pooling
        self.session = session or requests.Session()

    def search(self, query: str, max_results: int = 10) -> Dict[str, Any]:
        """
        Search for volumes.

        Args:
            query: Search query string
            max_results: Maximum results to return (capped at 40)

        Returns:
            Decoded API response JSON

        Raises:
            ExternalUnavailableError: on timeout, connection failure,
                non-200 status or an undecodable body
        """
        params = {
            "q": query,
            "maxResults": max(1, min(max_results, self.MAX_RESULTS_LIMIT)),  # API limit
            "printType": "books",
            "projection": "lite",
        }

        if self.api_key:
            params["key"] = self.api_key

        return self._make_request(self.BASE_URL, params)

    def _make_request(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            logger.info(f"Request: {url} q={params.get('q')!r}")
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Timeout after {self.timeout}s")
            raise ExternalUnavailableError(f"Google Books timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Connection error: {e}")
            raise ExternalUnavailableError(f"Google Books request failed: {e}")

        if response.status_code != 200:
            logger.error(f"Unexpected status ({response.status_code}): {response.text[:200]}")
            raise ExternalUnavailableError(f"Google Books returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Malformed response body: {e}")
            raise ExternalUnavailableError("Google Books returned a malformed body")

        logger.info(f"Success: {response.status_code}")
        return data

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
