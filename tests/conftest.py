"""Shared fixtures: an in-memory stand-in for the PostgreSQL catalog."""
import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

import pytest

from catalog.errors import ValidationError
from catalog.accounts import AccountService
from catalog.models import Author, Category, Role


class InMemoryStore:
    """Mirrors CatalogStore over plain dicts, including its constraints."""

    def __init__(self, state, read_only=False):
        self.state = state
        self.read_only = read_only

    def _next_id(self, table):
        self.state["seq"][table] += 1
        return self.state["seq"][table]

    def _write(self):
        if self.read_only:
            raise RuntimeError("cannot execute in a read-only transaction")

    def _book(self, book):
        book = replace(book, category_ids=sorted(self.state["book_categories"].get(book.id, set())))
        book.author_name = self.state["authors"][book.author_id].name
        return book

    # Authors

    def create_author(self, name, bio=None):
        self._write()
        author = Author(id=self._next_id("authors"), name=name, bio=bio, created_at=datetime.now())
        self.state["authors"][author.id] = author
        return replace(author)

    def get_author(self, author_id):
        author = self.state["authors"].get(author_id)
        return replace(author) if author else None

    def list_authors(self):
        return [replace(a) for _, a in sorted(self.state["authors"].items())]

    def find_author_by_name(self, name):
        return next((replace(a) for _, a in sorted(self.state["authors"].items()) if a.name == name), None)

    def update_author(self, author_id, name, bio):
        self._write()
        author = self.state["authors"].get(author_id)
        if author is None:
            return False
        author.name, author.bio = name, bio
        return True

    def delete_author(self, author_id):
        self._write()
        if author_id not in self.state["authors"]:
            return False
        if any(b.author_id == author_id for b in self.state["books"].values()):
            raise ValidationError("Constraint violation: author is still referenced from table \"books\"")
        del self.state["authors"][author_id]
        return True

    # Categories

    def create_category(self, name):
        self._write()
        category = Category(id=self._next_id("categories"), name=name)
        self.state["categories"][category.id] = category
        return replace(category)

    def get_category(self, category_id):
        category = self.state["categories"].get(category_id)
        return replace(category) if category else None

    def list_categories(self):
        return [replace(c) for _, c in sorted(self.state["categories"].items())]

    def update_category(self, category_id, name):
        self._write()
        category = self.state["categories"].get(category_id)
        if category is None:
            return False
        category.name = name
        return True

    def delete_category(self, category_id):
        self._write()
        if category_id not in self.state["categories"]:
            return False
        if any(category_id in ids for ids in self.state["book_categories"].values()):
            raise ValidationError("Constraint violation: category is still referenced from table \"book_categories\"")
        del self.state["categories"][category_id]
        return True

    # Books

    def _check_unique(self, book):
        for other in self.state["books"].values():
            if other.id == book.id:
                continue
            if book.isbn is not None and other.isbn == book.isbn:
                raise ValidationError(f"Constraint violation: Key (isbn)=({book.isbn}) already exists.")
            if book.google_books_id is not None and other.google_books_id == book.google_books_id:
                raise ValidationError(
                    f"Constraint violation: Key (google_books_id)=({book.google_books_id}) already exists."
                )

    def insert_book(self, book):
        self._write()
        if book.author_id not in self.state["authors"]:
            raise ValidationError("Constraint violation: author does not exist")
        stored = replace(book, id=self._next_id("books"), author_name=None, category_ids=[])
        self._check_unique(stored)
        self.state["books"][stored.id] = stored
        self.set_book_categories(stored.id, book.category_ids)
        return self.get_book(stored.id)

    def insert_book_if_absent(self, book):
        self._write()
        existing = next(
            (b for b in self.state["books"].values() if b.google_books_id == book.google_books_id), None
        )
        if book.google_books_id is not None and existing is not None:
            return self.get_book(existing.id)
        return self.insert_book(book)

    def update_book(self, book):
        self._write()
        if book.id not in self.state["books"]:
            return False
        self._check_unique(book)
        self.state["books"][book.id] = replace(book, author_name=None, category_ids=[])
        self.set_book_categories(book.id, book.category_ids)
        return True

    def set_book_categories(self, book_id, category_ids):
        self._write()
        self.state["book_categories"][book_id] = set(category_ids or [])

    def delete_book(self, book_id):
        self._write()
        if book_id not in self.state["books"]:
            return False
        del self.state["books"][book_id]
        self.state["book_categories"].pop(book_id, None)
        for owned in self.state["user_books"].values():
            owned.discard(book_id)
        return True

    def get_book(self, book_id):
        book = self.state["books"].get(book_id)
        return self._book(book) if book else None

    def find_books(self, q=None, author_id=None, category_id=None):
        books = [self._book(b) for _, b in sorted(self.state["books"].items())]
        if q is not None:
            books = [b for b in books if q.lower() in b.title.lower()]
        if author_id is not None:
            books = [b for b in books if b.author_id == author_id]
        if category_id is not None:
            books = [b for b in books if category_id in b.category_ids]
        return books

    def find_book_by_isbn(self, isbn):
        return next((b for b in self.find_books() if b.isbn == isbn), None)

    def find_book_by_google_id(self, google_id):
        return next((b for b in self.find_books() if b.google_books_id == google_id), None)

    def find_book_by_title_and_author(self, title, author_name):
        return next((b for b in self.find_books() if b.title == title and b.author_name == author_name), None)

    def find_books_by_author(self, fragment):
        return [b for b in self.find_books() if fragment.lower() in b.author_name.lower()]

    def find_books_by_title(self, fragment):
        return self.find_books(q=fragment)

    # Users

    def insert_user(self, user):
        self._write()
        if any(u.username == user.username for u in self.state["users"].values()):
            raise ValidationError(f"Constraint violation: Key (username)=({user.username}) already exists.")
        stored = replace(user, id=self._next_id("users"), created_at=datetime.now())
        self.state["users"][stored.id] = stored
        self.state["user_books"][stored.id] = set()
        return replace(stored)

    def get_user_by_username(self, username):
        return next((replace(u) for u in self.state["users"].values() if u.username == username), None)

    def list_users(self):
        return [replace(u) for _, u in sorted(self.state["users"].items())]

    def has_admin(self):
        return any(u.role == Role.ADMIN for u in self.state["users"].values())

    # Collections

    def collection_book_ids(self, user_id):
        return sorted(self.state["user_books"].get(user_id, set()))

    def add_to_collection(self, user_id, book_id):
        self._write()
        owned = self.state["user_books"].setdefault(user_id, set())
        if book_id in owned:
            return False
        owned.add(book_id)
        return True

    def remove_from_collection(self, user_id, book_id):
        self._write()
        owned = self.state["user_books"].get(user_id, set())
        if book_id not in owned:
            return False
        owned.discard(book_id)
        return True

    def list_collection(self, user_id):
        return [self.get_book(book_id) for book_id in self.collection_book_ids(user_id)]

    def collection_has_google_id(self, user_id, google_id):
        return any(b.google_books_id == google_id for b in self.list_collection(user_id))

    def count_rows(self):
        return {
            "books": len(self.state["books"]),
            "authors": len(self.state["authors"]),
            "categories": len(self.state["categories"]),
            "users": len(self.state["users"]),
            "user_books": sum(len(ids) for ids in self.state["user_books"].values()),
        }


class InMemoryDatabase:
    """Database double: each transaction works on a copy kept only on success."""

    def __init__(self):
        self.state = {
            "seq": {"authors": 0, "categories": 0, "books": 0, "users": 0},
            "authors": {},
            "categories": {},
            "books": {},
            "book_categories": {},
            "users": {},
            "user_books": {},
        }
        self.transactions = []

    @contextmanager
    def transaction(self, read_only=False):
        self.transactions.append("read" if read_only else "write")
        working = copy.deepcopy(self.state)
        yield InMemoryStore(working, read_only=read_only)
        self.state = working

    def get_stats(self):
        with self.transaction(read_only=True) as store:
            return store.count_rows()

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def make_user(db):
    """Register a user with password 's3cret'."""
    def _make(username="alice", role=Role.USER):
        return AccountService(db).register(username, f"{username}@example.com", "s3cret", role)
    return _make
