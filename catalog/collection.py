"""Personal collections: merging suggestions into the catalog."""
from datetime import date, datetime
from typing import Optional, List
import logging

from catalog.errors import AuthRequiredError, NotFoundError, ValidationError
from catalog.models import Book, BookSuggestion, User

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"


def parse_published_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a Google Books published date.

    "1999" is read as 1999-01-01, "1999-06" as 1999-06-01 and anything
    else as a full YYYY-MM-DD date. Unparseable values give None.
    """
    if not value:
        return None
    if len(value) == 4:
        fmt = "%Y"
    elif len(value) == 7:
        fmt = "%Y-%m"
    elif len(value) == 10:
        fmt = "%Y-%m-%d"
    else:
        # strptime accepts unpadded fields such as "1999-6-5"
        logger.debug(f"Ignoring unparseable published date {value!r}")
        return None
    try:
        return datetime.strptime(value, fmt).date()
    except ValueError:
        logger.debug(f"Ignoring unparseable published date {value!r}")
        return None


def book_from_suggestion(suggestion: BookSuggestion, author_id: int) -> Book:
    """Build an unsaved Book from a suggestion."""
    page_count = suggestion.page_count
    if page_count is not None and page_count <= 0:
        page_count = None

    return Book(
        title=suggestion.title,
        author_id=author_id,
        published_at=parse_published_date(suggestion.published_date),
        google_books_id=suggestion.google_id or None,
        publisher=suggestion.publisher,
        description=suggestion.description,
        language=suggestion.language,
        page_count=page_count,
        small_thumbnail=suggestion.small_thumbnail,
        thumbnail=suggestion.thumbnail,
        medium_image=suggestion.medium_image,
    )


class CollectionService:
    """Adds books to users' collections and answers membership questions."""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _require_user(store, username: Optional[str]) -> User:
        if username is None or not username.strip():
            raise AuthRequiredError("Authentication required")
        user = store.get_user_by_username(username)
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        return user

    def add_suggestion_to_collection(self, username: Optional[str], suggestion: BookSuggestion) -> Book:
        """
        Find or create the Book behind a suggestion and add it to the user's collection.

        The Book is matched by Google Books id first, then by exact title
        and author string. Adding a book the user already owns changes
        nothing. Runs as a single transaction.

        Returns:
            The resolved or newly created Book
        """
        with self.db.transaction() as store:
            user = self._require_user(store, username)
            book = self._resolve_book(store, suggestion)

            if book.id in store.collection_book_ids(user.id):
                logger.info(f"Book {book.id} already in {user.username}'s collection")
            else:
                store.add_to_collection(user.id, book.id)
                logger.info(f"Added book {book.id} to {user.username}'s collection")

            return book

    def _resolve_book(self, store, suggestion: BookSuggestion) -> Book:
        author_name = suggestion.authors or UNKNOWN_AUTHOR

        book = None
        if suggestion.google_id:
            book = store.find_book_by_google_id(suggestion.google_id)
        if book is None and suggestion.title:
            book = store.find_book_by_title_and_author(suggestion.title, author_name)
        if book is not None:
            return book

        if not suggestion.title or not suggestion.title.strip():
            raise ValidationError("Suggestion has no title")

        author = store.find_author_by_name(author_name)
        if author is None:
            author = store.create_author(author_name)

        book = book_from_suggestion(suggestion, author.id)
        for isbn in (suggestion.isbn_13, suggestion.isbn_10):
            if isbn and store.find_book_by_isbn(isbn) is None:
                book.isbn = isbn
                break

        if not suggestion.google_id:
            book = store.insert_book(book)
        else:
            book = store.insert_book_if_absent(book)
        logger.info(f"Resolved suggestion {suggestion.google_id} to book {book.id}")
        return book

    def is_book_in_collection(self, username: Optional[str], google_id: str) -> bool:
        """True iff the user exists and owns a book with this Google Books id."""
        if not username or not google_id:
            return False
        with self.db.transaction(read_only=True) as store:
            user = store.get_user_by_username(username)
            if user is None:
                return False
            return store.collection_has_google_id(user.id, google_id)

    def list_collection(self, username: Optional[str]) -> List[Book]:
        with self.db.transaction(read_only=True) as store:
            user = self._require_user(store, username)
            return store.list_collection(user.id)

    def remove_from_collection(self, username: Optional[str], book_id: int):
        with self.db.transaction() as store:
            user = self._require_user(store, username)
            if store.get_book(book_id) is None:
                raise NotFoundError(f"Book not found: {book_id}")
            if store.remove_from_collection(user.id, book_id):
                logger.info(f"Removed book {book_id} from {user.username}'s collection")
