"""Catalog CRUD and query services for authors, categories and books."""
from datetime import date
from typing import Optional, List, Iterable
import logging

from catalog.errors import NotFoundError, ValidationError
from catalog.models import Author, Category, Book

logger = logging.getLogger(__name__)


def _required(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AuthorService:
    """Authors: list, get, create, update, delete."""

    def __init__(self, db):
        self.db = db

    def list_authors(self) -> List[Author]:
        with self.db.transaction(read_only=True) as store:
            return store.list_authors()

    def get_author(self, author_id: int) -> Author:
        with self.db.transaction(read_only=True) as store:
            author = store.get_author(author_id)
        if author is None:
            raise NotFoundError(f"Author not found with id: {author_id}")
        return author

    def create_author(self, name: str, bio: Optional[str] = None) -> Author:
        name = _required(name, "Name")
        with self.db.transaction() as store:
            author = store.create_author(name, _blank_to_none(bio))
        logger.info(f"Created author {author.id}: {author.name}")
        return author

    def update_author(self, author_id: int, name: str, bio: Optional[str] = None) -> Author:
        name = _required(name, "Name")
        with self.db.transaction() as store:
            if not store.update_author(author_id, name, _blank_to_none(bio)):
                raise NotFoundError(f"Author not found with id: {author_id}")
            return store.get_author(author_id)

    def delete_author(self, author_id: int):
        """Delete an author. Books still pointing at it make this a ValidationError."""
        with self.db.transaction() as store:
            if not store.delete_author(author_id):
                raise NotFoundError(f"Author not found with id: {author_id}")
        logger.info(f"Deleted author {author_id}")


class CategoryService:
    """Categories: list, get, create, update, delete."""

    def __init__(self, db):
        self.db = db

    def list_categories(self) -> List[Category]:
        with self.db.transaction(read_only=True) as store:
            return store.list_categories()

    def get_category(self, category_id: int) -> Category:
        with self.db.transaction(read_only=True) as store:
            category = store.get_category(category_id)
        if category is None:
            raise NotFoundError(f"Category not found with id: {category_id}")
        return category

    def create_category(self, name: str) -> Category:
        name = _required(name, "Name")
        with self.db.transaction() as store:
            category = store.create_category(name)
        logger.info(f"Created category {category.id}: {category.name}")
        return category

    def update_category(self, category_id: int, name: str) -> Category:
        name = _required(name, "Name")
        with self.db.transaction() as store:
            if not store.update_category(category_id, name):
                raise NotFoundError(f"Category not found with id: {category_id}")
            return store.get_category(category_id)

    def delete_category(self, category_id: int):
        with self.db.transaction() as store:
            if not store.delete_category(category_id):
                raise NotFoundError(f"Category not found with id: {category_id}")
        logger.info(f"Deleted category {category_id}")


class BookService:
    """Book CRUD plus the filtered catalog search."""

    def __init__(self, db):
        self.db = db

    # Queries

    def search_books(
        self,
        q: Optional[str] = None,
        author_id: Optional[int] = None,
        category_id: Optional[int] = None
    ) -> List[Book]:
        """
        Filter the catalog. Each predicate is optional; absent ones match everything.

        Args:
            q: Case-insensitive title substring
            author_id: Author id the book must reference
            category_id: Category id the book must carry

        Returns:
            Matching books ordered by id
        """
        with self.db.transaction(read_only=True) as store:
            return store.find_books(q=q, author_id=author_id, category_id=category_id)

    def find_by_author(self, fragment: str) -> List[Book]:
        with self.db.transaction(read_only=True) as store:
            return store.find_books_by_author(fragment)

    def find_by_title(self, fragment: str) -> List[Book]:
        with self.db.transaction(read_only=True) as store:
            return store.find_books_by_title(fragment)

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        with self.db.transaction(read_only=True) as store:
            return store.find_book_by_isbn(isbn)

    def get_book(self, book_id: int) -> Book:
        with self.db.transaction(read_only=True) as store:
            book = store.get_book(book_id)
        if book is None:
            raise NotFoundError(f"Book not found with id: {book_id}")
        return book

    # Writes

    def create_book(
        self,
        title: str,
        author_id: Optional[int],
        isbn: Optional[str] = None,
        published_at: Optional[date] = None,
        category_ids: Optional[Iterable[int]] = None
    ) -> Book:
        book = Book(
            title=_required(title, "Title"),
            author_id=author_id,
            isbn=_blank_to_none(isbn),
            published_at=published_at,
            category_ids=list(category_ids or []),
        )
        with self.db.transaction() as store:
            self._check_references(store, book)
            book = store.insert_book(book)
        logger.info(f"Created book {book.id}: {book.title}")
        return book

    def update_book(
        self,
        book_id: int,
        title: str,
        author_id: Optional[int],
        isbn: Optional[str] = None,
        published_at: Optional[date] = None,
        category_ids: Optional[Iterable[int]] = None
    ) -> Book:
        title = _required(title, "Title")
        with self.db.transaction() as store:
            book = store.get_book(book_id)
            if book is None:
                raise NotFoundError(f"Book not found with id: {book_id}")
            book.title = title
            book.author_id = author_id
            book.isbn = _blank_to_none(isbn)
            book.published_at = published_at
            book.category_ids = list(category_ids or [])
            self._check_references(store, book)
            store.update_book(book)
            return store.get_book(book_id)

    def delete_book(self, book_id: int):
        with self.db.transaction() as store:
            if not store.delete_book(book_id):
                raise NotFoundError(f"Book not found with id: {book_id}")
        logger.info(f"Deleted book {book_id}")

    @staticmethod
    def _check_references(store, book: Book):
        if book.author_id is None:
            raise ValidationError("Author ID is required")
        if store.get_author(book.author_id) is None:
            raise NotFoundError(f"Author not found with id: {book.author_id}")
        for category_id in book.category_ids:
            if store.get_category(category_id) is None:
                raise NotFoundError(f"Category not found with id: {category_id}")
