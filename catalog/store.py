"""SQL access to the catalog tables within one transaction."""
import psycopg2
from typing import Optional, List, Dict, Any, Sequence
import logging

from catalog.errors import ValidationError
from catalog.models import Author, Category, Book, User, Role

logger = logging.getLogger(__name__)


BOOK_SELECT = """
    SELECT b.id, b.title, b.isbn, b.published_at, b.author_id, a.name,
           ARRAY(
               SELECT bc.category_id FROM book_categories bc
               WHERE bc.book_id = b.id ORDER BY bc.category_id
           ),
           b.google_books_id, b.publisher, b.description, b.language,
           b.page_count, b.small_thumbnail, b.thumbnail, b.medium_image
    FROM books b
    JOIN authors a ON a.id = b.author_id
"""

USER_SELECT = """
    SELECT id, username, email, password_hash, role, created_at FROM users
"""


def _like_pattern(fragment: str) -> str:
    """Wrap a fragment for ILIKE, escaping its wildcards."""
    escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _row_to_book(row: Sequence[Any]) -> Book:
    return Book(
        id=row[0],
        title=row[1],
        isbn=row[2],
        published_at=row[3],
        author_id=row[4],
        author_name=row[5],
        category_ids=list(row[6] or []),
        google_books_id=row[7],
        publisher=row[8],
        description=row[9],
        language=row[10],
        page_count=row[11],
        small_thumbnail=row[12],
        thumbnail=row[13],
        medium_image=row[14],
    )


def _row_to_user(row: Sequence[Any]) -> User:
    return User(
        id=row[0],
        username=row[1],
        email=row[2],
        password_hash=row[3],
        role=Role(row[4]),
        created_at=row[5],
    )


class CatalogStore:
    """Catalog reads and writes bound to a single cursor.

    Instances are handed out by ``Database.transaction()``; commit and
    rollback are the transaction's business, not the store's. Lookups
    return ``None`` for missing rows and writes report whether a row was
    touched, leaving NOT_FOUND decisions to the services. Constraint
    violations are raised as ``ValidationError``.
    """

    def __init__(self, cursor):
        self.cur = cursor

    def _execute(self, query: str, params: Sequence[Any] = ()):
        try:
            self.cur.execute(query, params)
        except psycopg2.IntegrityError as e:
            detail = getattr(getattr(e, "diag", None), "message_detail", None) or str(e).strip()
            logger.warning(f"Constraint violation: {detail}")
            raise ValidationError(f"Constraint violation: {detail}")

    # Authors

    def create_author(self, name: str, bio: Optional[str] = None) -> Author:
        self._execute(
            "INSERT INTO authors (name, bio) VALUES (%s, %s) RETURNING id, created_at",
            (name, bio),
        )
        author_id, created_at = self.cur.fetchone()
        return Author(id=author_id, name=name, bio=bio, created_at=created_at)

    def get_author(self, author_id: int) -> Optional[Author]:
        self._execute("SELECT id, name, bio, created_at FROM authors WHERE id = %s", (author_id,))
        row = self.cur.fetchone()
        return Author(id=row[0], name=row[1], bio=row[2], created_at=row[3]) if row else None

    def list_authors(self) -> List[Author]:
        self._execute("SELECT id, name, bio, created_at FROM authors ORDER BY id")
        return [Author(id=r[0], name=r[1], bio=r[2], created_at=r[3]) for r in self.cur.fetchall()]

    def find_author_by_name(self, name: str) -> Optional[Author]:
        self._execute(
            "SELECT id, name, bio, created_at FROM authors WHERE name = %s ORDER BY id LIMIT 1",
            (name,),
        )
        row = self.cur.fetchone()
        return Author(id=row[0], name=row[1], bio=row[2], created_at=row[3]) if row else None

    def update_author(self, author_id: int, name: str, bio: Optional[str]) -> bool:
        self._execute("UPDATE authors SET name = %s, bio = %s WHERE id = %s", (name, bio, author_id))
        return self.cur.rowcount > 0

    def delete_author(self, author_id: int) -> bool:
        self._execute("DELETE FROM authors WHERE id = %s", (author_id,))
        return self.cur.rowcount > 0

    # Categories

    def create_category(self, name: str) -> Category:
        self._execute("INSERT INTO categories (name) VALUES (%s) RETURNING id", (name,))
        return Category(id=self.cur.fetchone()[0], name=name)

    def get_category(self, category_id: int) -> Optional[Category]:
        self._execute("SELECT id, name FROM categories WHERE id = %s", (category_id,))
        row = self.cur.fetchone()
        return Category(id=row[0], name=row[1]) if row else None

    def list_categories(self) -> List[Category]:
        self._execute("SELECT id, name FROM categories ORDER BY id")
        return [Category(id=r[0], name=r[1]) for r in self.cur.fetchall()]

    def update_category(self, category_id: int, name: str) -> bool:
        self._execute("UPDATE categories SET name = %s WHERE id = %s", (name, category_id))
        return self.cur.rowcount > 0

    def delete_category(self, category_id: int) -> bool:
        self._execute("DELETE FROM categories WHERE id = %s", (category_id,))
        return self.cur.rowcount > 0

    # Books

    def insert_book(self, book: Book) -> Book:
        """Insert a book with its category links and return the stored row."""
        self._execute("""
            INSERT INTO books (
                title, isbn, published_at, author_id, google_books_id,
                publisher, description, language, page_count,
                small_thumbnail, thumbnail, medium_image
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """, (
            book.title, book.isbn, book.published_at, book.author_id,
            book.google_books_id, book.publisher, book.description,
            book.language, book.page_count, book.small_thumbnail,
            book.thumbnail, book.medium_image
        ))
        book_id = self.cur.fetchone()[0]
        self.set_book_categories(book_id, book.category_ids)
        return self.get_book(book_id)

    def insert_book_if_absent(self, book: Book) -> Book:
        """
        Insert a book keyed by its google_books_id.

        When a concurrent transaction already committed a book with the same
        id, nothing is inserted and that book is returned instead.
        """
        self._execute("""
            INSERT INTO books (
                title, isbn, published_at, author_id, google_books_id,
                publisher, description, language, page_count,
                small_thumbnail, thumbnail, medium_image
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (google_books_id) DO NOTHING
            RETURNING id
        """, (
            book.title, book.isbn, book.published_at, book.author_id,
            book.google_books_id, book.publisher, book.description,
            book.language, book.page_count, book.small_thumbnail,
            book.thumbnail, book.medium_image
        ))
        row = self.cur.fetchone()
        if row is None:
            logger.info(f"Book {book.google_books_id} was stored concurrently, reusing it")
            return self.find_book_by_google_id(book.google_books_id)
        self.set_book_categories(row[0], book.category_ids)
        return self.get_book(row[0])

    def update_book(self, book: Book) -> bool:
        self._execute("""
            UPDATE books SET
                title = %s, isbn = %s, published_at = %s, author_id = %s,
                google_books_id = %s, publisher = %s, description = %s,
                language = %s, page_count = %s, small_thumbnail = %s,
                thumbnail = %s, medium_image = %s
            WHERE id = %s
        """, (
            book.title, book.isbn, book.published_at, book.author_id,
            book.google_books_id, book.publisher, book.description,
            book.language, book.page_count, book.small_thumbnail,
            book.thumbnail, book.medium_image, book.id
        ))
        if self.cur.rowcount == 0:
            return False
        self.set_book_categories(book.id, book.category_ids)
        return True

    def set_book_categories(self, book_id: int, category_ids: Sequence[int]):
        self._execute("DELETE FROM book_categories WHERE book_id = %s", (book_id,))
        for category_id in sorted(set(category_ids or [])):
            self._execute(
                "INSERT INTO book_categories (book_id, category_id) VALUES (%s, %s)",
                (book_id, category_id),
            )

    def delete_book(self, book_id: int) -> bool:
        self._execute("DELETE FROM books WHERE id = %s", (book_id,))
        return self.cur.rowcount > 0

    def get_book(self, book_id: int) -> Optional[Book]:
        self._execute(BOOK_SELECT + " WHERE b.id = %s", (book_id,))
        row = self.cur.fetchone()
        return _row_to_book(row) if row else None

    def find_books(
        self,
        q: Optional[str] = None,
        author_id: Optional[int] = None,
        category_id: Optional[int] = None
    ) -> List[Book]:
        """
        Filtered book search. Predicates are AND-combined; ``None`` skips one.

        Args:
            q: Case-insensitive title substring
            author_id: Exact author id
            category_id: Category the book must be linked to
        """
        clauses: List[str] = []
        params: List[Any] = []

        if q is not None:
            clauses.append("b.title ILIKE %s")
            params.append(_like_pattern(q))
        if author_id is not None:
            clauses.append("b.author_id = %s")
            params.append(author_id)
        if category_id is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM book_categories bc"
                " WHERE bc.book_id = b.id AND bc.category_id = %s)"
            )
            params.append(category_id)

        query = BOOK_SELECT
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY b.id"

        self._execute(query, params)
        return [_row_to_book(row) for row in self.cur.fetchall()]

    def find_book_by_isbn(self, isbn: str) -> Optional[Book]:
        self._execute(BOOK_SELECT + " WHERE b.isbn = %s", (isbn,))
        row = self.cur.fetchone()
        return _row_to_book(row) if row else None

    def find_book_by_google_id(self, google_id: str) -> Optional[Book]:
        self._execute(BOOK_SELECT + " WHERE b.google_books_id = %s", (google_id,))
        row = self.cur.fetchone()
        return _row_to_book(row) if row else None

    def find_book_by_title_and_author(self, title: str, author_name: str) -> Optional[Book]:
        self._execute(
            BOOK_SELECT + " WHERE b.title = %s AND a.name = %s ORDER BY b.id LIMIT 1",
            (title, author_name),
        )
        row = self.cur.fetchone()
        return _row_to_book(row) if row else None

    def find_books_by_author(self, fragment: str) -> List[Book]:
        self._execute(BOOK_SELECT + " WHERE a.name ILIKE %s ORDER BY b.id", (_like_pattern(fragment),))
        return [_row_to_book(row) for row in self.cur.fetchall()]

    def find_books_by_title(self, fragment: str) -> List[Book]:
        return self.find_books(q=fragment)

    # Users

    def insert_user(self, user: User) -> User:
        self._execute("""
            INSERT INTO users (username, email, password_hash, role)
            VALUES (%s, %s, %s, %s)
            RETURNING id, created_at
        """, (user.username, user.email, user.password_hash, user.role.value))
        user_id, created_at = self.cur.fetchone()
        return User(
            id=user_id,
            username=user.username,
            email=user.email,
            password_hash=user.password_hash,
            role=user.role,
            created_at=created_at,
        )

    def get_user_by_username(self, username: str) -> Optional[User]:
        self._execute(USER_SELECT + " WHERE username = %s", (username,))
        row = self.cur.fetchone()
        return _row_to_user(row) if row else None

    def list_users(self) -> List[User]:
        self._execute(USER_SELECT + " ORDER BY id")
        return [_row_to_user(row) for row in self.cur.fetchall()]

    def has_admin(self) -> bool:
        self._execute("SELECT EXISTS (SELECT 1 FROM users WHERE role = %s)", (Role.ADMIN.value,))
        return self.cur.fetchone()[0]

    # Collections

    def collection_book_ids(self, user_id: int) -> List[int]:
        self._execute("SELECT book_id FROM user_books WHERE user_id = %s ORDER BY book_id", (user_id,))
        return [row[0] for row in self.cur.fetchall()]

    def add_to_collection(self, user_id: int, book_id: int) -> bool:
        self._execute("""
            INSERT INTO user_books (user_id, book_id) VALUES (%s, %s)
            ON CONFLICT (user_id, book_id) DO NOTHING
        """, (user_id, book_id))
        return self.cur.rowcount > 0

    def remove_from_collection(self, user_id: int, book_id: int) -> bool:
        self._execute("DELETE FROM user_books WHERE user_id = %s AND book_id = %s", (user_id, book_id))
        return self.cur.rowcount > 0

    def list_collection(self, user_id: int) -> List[Book]:
        self._execute(
            BOOK_SELECT + " JOIN user_books ub ON ub.book_id = b.id WHERE ub.user_id = %s ORDER BY b.id",
            (user_id,),
        )
        return [_row_to_book(row) for row in self.cur.fetchall()]

    def collection_has_google_id(self, user_id: int, google_id: str) -> bool:
        self._execute("""
            SELECT EXISTS (
                SELECT 1 FROM user_books ub
                JOIN books b ON b.id = ub.book_id
                WHERE ub.user_id = %s AND b.google_books_id = %s
            )
        """, (user_id, google_id))
        return bool(self.cur.fetchone()[0])

    # Stats

    def count_rows(self) -> Dict[str, int]:
        counts = {}
        for table in ("books", "authors", "categories", "users", "user_books"):
            self._execute(f"SELECT COUNT(*) FROM {table}")
            counts[table] = self.cur.fetchone()[0]
        return counts
