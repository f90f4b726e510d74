"""Book suggestions from the external metadata provider."""
from typing import List, Optional
import logging

from catalog.client import GoogleBooksClient
from catalog.errors import ExternalUnavailableError
from catalog.models import BookSuggestion
from catalog.parse import parse_suggestions_response

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
MAX_RESULTS = 40


class SuggestionService:
    """Turns a free-text query into a list of BookSuggestion records.

    Provider failures never reach the caller: they are logged and the
    search degrades to an empty list.
    """

    def __init__(
        self,
        client: GoogleBooksClient,
        min_query_length: int = MIN_QUERY_LENGTH,
        max_results: int = MAX_RESULTS
    ):
        self.client = client
        self.min_query_length = min_query_length
        self.max_results = max_results

    def search(self, query: Optional[str], max_results: int = 10) -> List[BookSuggestion]:
        """
        Search the provider for suggestions.

        Args:
            query: Free-text query; trimmed before use
            max_results: Requested count, capped at ``self.max_results``

        Returns:
            Suggestions, or an empty list for short queries and failures
        """
        query = (query or "").strip()
        if len(query) < self.min_query_length:
            logger.info(f"Query {query!r} shorter than {self.min_query_length} characters, skipping lookup")
            return []

        limit = max(1, min(max_results, self.max_results))

        try:
            response = self.client.search(query, limit)
        except ExternalUnavailableError as e:
            logger.warning(f"Suggestion search degraded to empty result: {e}")
            return []

        suggestions = parse_suggestions_response(response)
        logger.info(f"Found {len(suggestions)} suggestions for {query!r}")
        return suggestions
