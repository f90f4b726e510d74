"""Parse and normalize Google Books API responses."""
from typing import Dict, Any, List, Optional
import logging

from catalog.models import BookSuggestion

logger = logging.getLogger(__name__)

# imageLinks key -> BookSuggestion attribute
IMAGE_SIZES = {
    "smallThumbnail": "small_thumbnail",
    "thumbnail": "thumbnail",
    "small": "small_image",
    "medium": "medium_image",
    "large": "large_image",
}


def _join(values: Any) -> Optional[str]:
    """Join a list of names with ", ", or None when there is nothing to join."""
    if not isinstance(values, list):
        return None
    names = [str(v) for v in values if v]
    return ", ".join(names) if names else None


def _first_identifier(identifiers: Any, kind: str) -> Optional[str]:
    if not isinstance(identifiers, list):
        return None
    for entry in identifiers:
        if isinstance(entry, dict) and entry.get("type") == kind:
            return entry.get("identifier")
    return None


def parse_suggestion(item: Dict[str, Any]) -> Optional[BookSuggestion]:
    """
    Flatten a single volume item from Google Books.

    Args:
        item: Single item from Google Books API response

    Returns:
        BookSuggestion, or None when the item has no volumeInfo
    """
    if not isinstance(item, dict):
        return None

    volume_info = item.get("volumeInfo")
    if not isinstance(volume_info, dict):
        return None

    image_links = volume_info.get("imageLinks")
    if not isinstance(image_links, dict):
        image_links = {}

    page_count = volume_info.get("pageCount")
    if not isinstance(page_count, int) or isinstance(page_count, bool):
        page_count = None

    suggestion = BookSuggestion(
        google_id=item.get("id"),
        title=volume_info.get("title"),
        subtitle=volume_info.get("subtitle"),
        authors=_join(volume_info.get("authors")),
        publisher=volume_info.get("publisher"),
        published_date=volume_info.get("publishedDate"),
        description=volume_info.get("description"),
        isbn_10=_first_identifier(volume_info.get("industryIdentifiers"), "ISBN_10"),
        isbn_13=_first_identifier(volume_info.get("industryIdentifiers"), "ISBN_13"),
        page_count=page_count,
        categories=_join(volume_info.get("categories")),
        language=volume_info.get("language"),
        preview_link=volume_info.get("previewLink"),
        info_link=volume_info.get("infoLink"),
    )
    for key, attr in IMAGE_SIZES.items():
        setattr(suggestion, attr, image_links.get(key))

    return suggestion


def parse_suggestions_response(response_json: Dict[str, Any]) -> List[BookSuggestion]:
    """
    Parse a full Google Books search response.

    Args:
        response_json: Complete API response JSON

    Returns:
        List of suggestions (empty if no usable items were found)
    """
    if not isinstance(response_json, dict):
        logger.warning(f"Ignoring non-object response: {type(response_json).__name__}")
        return []

    items = response_json.get("items") or []
    if not isinstance(items, list):
        logger.warning("Ignoring response with non-list 'items'")
        return []

    suggestions = []
    for item in items:
        suggestion = parse_suggestion(item)
        if suggestion:
            suggestions.append(suggestion)

    return suggestions
