"""Data models for the catalog."""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from werkzeug.security import generate_password_hash, check_password_hash


class Role(str, Enum):
    """Access role attached to a user."""
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass
class Author:
    """Catalog author."""
    name: str
    bio: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Category:
    """Catalog category."""
    name: str
    id: Optional[int] = None


@dataclass
class Book:
    """Catalog book.

    Relations are carried as ids: ``author_id`` references an Author and
    ``category_ids`` the linked Categories. ``author_name`` is filled in
    by the store on reads for display and lookups.
    """
    title: str
    author_id: Optional[int] = None
    isbn: Optional[str] = None
    published_at: Optional[date] = None
    category_ids: List[int] = field(default_factory=list)
    google_books_id: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    page_count: Optional[int] = None
    small_thumbnail: Optional[str] = None
    thumbnail: Optional[str] = None
    medium_image: Optional[str] = None
    id: Optional[int] = None
    author_name: Optional[str] = None


@dataclass
class User:
    """Registered user. The collection lives in the ``user_books`` table."""
    username: str
    email: Optional[str]
    password_hash: str
    role: Role = Role.USER
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


@dataclass
class BookSuggestion:
    """Flattened Google Books volume, not persisted."""
    google_id: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    authors: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    description: Optional[str] = None
    isbn_10: Optional[str] = None
    isbn_13: Optional[str] = None
    page_count: Optional[int] = None
    categories: Optional[str] = None
    language: Optional[str] = None
    small_thumbnail: Optional[str] = None
    thumbnail: Optional[str] = None
    small_image: Optional[str] = None
    medium_image: Optional[str] = None
    large_image: Optional[str] = None
    preview_link: Optional[str] = None
    info_link: Optional[str] = None

    @property
    def authors_str(self) -> str:
        """Authors for display."""
        return self.authors or "Unknown"

    @property
    def categories_str(self) -> str:
        """Categories for display."""
        return self.categories or "None"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
