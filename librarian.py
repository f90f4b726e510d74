#!/usr/bin/env python3
"""Librarian CLI - catalog management and Google Books collections."""
import argparse
import getpass
import json
import os
import sys
from datetime import date
from tabulate import tabulate
from catalog.accounts import AccountService
from catalog.client import GoogleBooksClient
from catalog.collection import CollectionService
from catalog.config import Config
from catalog.database import Database
from catalog.errors import CatalogError
from catalog.models import Role
from catalog.services import AuthorService, CategoryService, BookService
from catalog.suggestions import SuggestionService
import logging

logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Configure root logging once for the CLI."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def setup_database(config: Config) -> Database:
    """Open the connection pool."""
    return Database(config.DATABASE_URL, config.DB_MIN_CONN, config.DB_MAX_CONN)


def make_suggestion_service(config: Config) -> SuggestionService:
    client = GoogleBooksClient(
        api_key=config.GOOGLE_BOOKS_API_KEY,
        timeout=config.DEFAULT_TIMEOUT
    )
    return SuggestionService(
        client,
        min_query_length=config.SUGGESTION_MIN_QUERY_LENGTH,
        max_results=config.SUGGESTION_MAX_RESULTS
    )


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def truncate(text, width: int) -> str:
    text = "" if text is None else str(text)
    return text[:width] + "..." if len(text) > width else text


# Display

def display_books(books, format_type: str = "table"):
    """Display catalog books in the specified format."""
    if format_type == "json":
        print(json.dumps([
            {
                "id": book.id,
                "title": book.title,
                "author_id": book.author_id,
                "author": book.author_name,
                "isbn": book.isbn,
                "published_at": book.published_at.isoformat() if book.published_at else None,
                "category_ids": book.category_ids,
                "google_books_id": book.google_books_id,
                "publisher": book.publisher,
                "language": book.language,
                "page_count": book.page_count,
            }
            for book in books
        ], indent=2))
        return

    headers = ["ID", "Title", "Author", "ISBN", "Published", "Categories"]
    rows = [
        [
            book.id,
            truncate(book.title, 50),
            truncate(book.author_name, 30),
            book.isbn or "",
            book.published_at or "Unknown",
            ", ".join(str(c) for c in book.category_ids)
        ]
        for book in books
    ]
    print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))


def display_suggestions(suggestions, format_type: str):
    """Display suggestions in the specified format."""
    if format_type == "table":
        headers = ["#", "Google ID", "Title", "Authors", "Published", "Pages", "Categories"]
        rows = [
            [
                i,
                s.google_id,
                truncate(s.title, 50),
                truncate(s.authors_str, 30),
                s.published_date or "Unknown",
                s.page_count or "N/A",
                truncate(s.categories_str, 30)
            ]
            for i, s in enumerate(suggestions, 1)
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([s.to_dict() for s in suggestions], indent=2))

    elif format_type == "compact":
        for i, s in enumerate(suggestions, 1):
            print(f"{i}. {s.title} - {s.authors_str}")


def display_rows(rows, headers):
    print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))


# Authentication

def authenticated_username(args, db: Database):
    """
    Resolve the acting username for collection and user commands.

    Returns None when no --user was given so that the service reports
    AUTH_REQUIRED. A wrong password ends the command.
    """
    if not args.user:
        return None
    password = args.password or os.getenv("LIBRARY_PASSWORD")
    if password is None:
        password = getpass.getpass(f"Password for {args.user}: ")
    if not AccountService(db).authenticate(args.user, password):
        logger.error("Invalid username or password")
        sys.exit(5)
    return args.user


# Commands

def cmd_init_db(args, config: Config):
    with setup_database(config) as db:
        db.init_schema()


def cmd_stats(args, config: Config):
    with setup_database(config) as db:
        stats = db.get_stats()

    print("\n" + "=" * 50)
    print("CATALOG STATISTICS")
    print("=" * 50)
    print(f"Books: {stats['books']}")
    print(f"Authors: {stats['authors']}")
    print(f"Categories: {stats['categories']}")
    print(f"Users: {stats['users']}")
    print(f"Collection entries: {stats['user_books']}")
    print("=" * 50 + "\n")


def cmd_authors(args, config: Config):
    with setup_database(config) as db:
        service = AuthorService(db)
        if args.action == "list":
            display_rows(
                [[a.id, a.name, truncate(a.bio, 40), a.created_at] for a in service.list_authors()],
                ["ID", "Name", "Bio", "Created"]
            )
        elif args.action == "get":
            a = service.get_author(args.id)
            display_rows([[a.id, a.name, a.bio or "", a.created_at]], ["ID", "Name", "Bio", "Created"])
        elif args.action == "add":
            author = service.create_author(args.name, args.bio)
            print(f"Created author {author.id}")
        elif args.action == "update":
            author = service.update_author(args.id, args.name, args.bio)
            print(f"Updated author {author.id}")
        elif args.action == "delete":
            service.delete_author(args.id)
            print(f"Deleted author {args.id}")


def cmd_categories(args, config: Config):
    with setup_database(config) as db:
        service = CategoryService(db)
        if args.action == "list":
            display_rows([[c.id, c.name] for c in service.list_categories()], ["ID", "Name"])
        elif args.action == "get":
            c = service.get_category(args.id)
            display_rows([[c.id, c.name]], ["ID", "Name"])
        elif args.action == "add":
            category = service.create_category(args.name)
            print(f"Created category {category.id}")
        elif args.action == "update":
            category = service.update_category(args.id, args.name)
            print(f"Updated category {category.id}")
        elif args.action == "delete":
            service.delete_category(args.id)
            print(f"Deleted category {args.id}")


def cmd_books(args, config: Config):
    with setup_database(config) as db:
        service = BookService(db)
        if args.action == "list":
            books = service.search_books(q=args.q, author_id=args.author_id, category_id=args.category_id)
            display_books(books, args.format)
        elif args.action == "find":
            if args.isbn:
                book = service.find_by_isbn(args.isbn)
                books = [book] if book else []
            elif args.author:
                books = service.find_by_author(args.author)
            else:
                books = service.find_by_title(args.title or "")
            display_books(books, args.format)
        elif args.action == "get":
            display_books([service.get_book(args.id)], args.format)
        elif args.action == "add":
            book = service.create_book(
                args.title, args.author_id, isbn=args.isbn,
                published_at=args.published_at, category_ids=args.category_id
            )
            print(f"Created book {book.id}")
        elif args.action == "update":
            book = service.update_book(
                args.id, args.title, args.author_id, isbn=args.isbn,
                published_at=args.published_at, category_ids=args.category_id
            )
            print(f"Updated book {book.id}")
        elif args.action == "delete":
            service.delete_book(args.id)
            print(f"Deleted book {args.id}")


def cmd_users(args, config: Config):
    with setup_database(config) as db:
        service = AccountService(db)
        acting_username = authenticated_username(args, db)
        if args.action == "list":
            display_rows(
                [[u.id, u.username, u.email or "", u.role.value, u.created_at]
                 for u in service.list_users(acting_username)],
                ["ID", "Username", "Email", "Role", "Created"]
            )
        elif args.action == "register":
            password = args.new_password or getpass.getpass(f"Password for {args.username}: ")
            role = Role.ADMIN if args.admin else Role.USER
            user = service.register(args.username, args.email, password, role, acting_username)
            print(f"Registered {user.username} ({user.role.value})")


def cmd_suggest(args, config: Config):
    service = make_suggestion_service(config)
    with service.client:
        suggestions = service.search(args.query, args.limit)
    logger.info(f"Found {len(suggestions)} suggestions")
    display_suggestions(suggestions, args.format)


def cmd_collection(args, config: Config):
    with setup_database(config) as db:
        username = authenticated_username(args, db)
        service = CollectionService(db)

        if args.action == "add":
            # The provider call happens before any transaction is opened
            suggestion_service = make_suggestion_service(config)
            with suggestion_service.client:
                suggestions = suggestion_service.search(args.query, max(args.pick, 10))
            if len(suggestions) < args.pick:
                logger.error(f"No suggestion #{args.pick} for {args.query!r} ({len(suggestions)} found)")
                sys.exit(3)
            book = service.add_suggestion_to_collection(username, suggestions[args.pick - 1])
            print(f"Book {book.id} ({book.title}) is in your collection")

        elif args.action == "list":
            display_books(service.list_collection(username), args.format)

        elif args.action == "check":
            in_collection = service.is_book_in_collection(username, args.google_id)
            print(json.dumps({"google_id": args.google_id, "in_collection": in_collection}))

        elif args.action == "remove":
            service.remove_from_collection(username, args.book_id)
            print(f"Book {args.book_id} removed from your collection")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Librarian - library catalog and Google Books collections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the tables
  %(prog)s init-db

  # Catalog management
  %(prog)s authors add "Ursula K. Le Guin"
  %(prog)s books add "The Dispossessed" --author-id 1 --isbn 9780061054884
  %(prog)s books list --q dispossessed

  # Google Books suggestions and personal collections
  %(prog)s suggest "left hand of darkness" --limit 5
  %(prog)s collection add "left hand of darkness" --pick 1 --user alice

  # User management (the first admin needs no --user)
  %(prog)s users register root --admin
  %(prog)s users --user root list
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("stats", help="Show catalog statistics")

    # Authors
    authors = subparsers.add_parser("authors", help="Manage authors").add_subparsers(dest="action", required=True)
    authors.add_parser("list", help="List authors")
    authors.add_parser("get", help="Show an author").add_argument("id", type=int)
    p = authors.add_parser("add", help="Create an author")
    p.add_argument("name")
    p.add_argument("--bio")
    p = authors.add_parser("update", help="Update an author")
    p.add_argument("id", type=int)
    p.add_argument("name")
    p.add_argument("--bio")
    authors.add_parser("delete", help="Delete an author").add_argument("id", type=int)

    # Categories
    categories = subparsers.add_parser("categories", help="Manage categories").add_subparsers(dest="action", required=True)
    categories.add_parser("list", help="List categories")
    categories.add_parser("get", help="Show a category").add_argument("id", type=int)
    categories.add_parser("add", help="Create a category").add_argument("name")
    p = categories.add_parser("update", help="Rename a category")
    p.add_argument("id", type=int)
    p.add_argument("name")
    categories.add_parser("delete", help="Delete a category").add_argument("id", type=int)

    # Books
    books = subparsers.add_parser("books", help="Manage books").add_subparsers(dest="action", required=True)
    p = books.add_parser("list", help="Filter the catalog")
    p.add_argument("--q", help="Title fragment (case-insensitive)")
    p.add_argument("--author-id", type=int)
    p.add_argument("--category-id", type=int)
    p.add_argument("--format", choices=["table", "json"], default="table")
    p = books.add_parser("find", help="Single-field lookup")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--author", help="Author name fragment")
    group.add_argument("--title", help="Title fragment")
    group.add_argument("--isbn", help="Exact ISBN")
    p.add_argument("--format", choices=["table", "json"], default="table")
    p = books.add_parser("get", help="Show a book")
    p.add_argument("id", type=int)
    p.add_argument("--format", choices=["table", "json"], default="table")
    for action in ("add", "update"):
        p = books.add_parser(action, help=f"{action.capitalize()} a book")
        if action == "update":
            p.add_argument("id", type=int)
        p.add_argument("title")
        p.add_argument("--author-id", type=int, required=True)
        p.add_argument("--isbn")
        p.add_argument("--published-at", type=parse_date, help="YYYY-MM-DD")
        p.add_argument("--category-id", type=int, action="append", help="Repeat for several categories")
    books.add_parser("delete", help="Delete a book").add_argument("id", type=int)

    # Users
    users_parser = subparsers.add_parser("users", help="Manage users (listing and admins need an admin)")
    users_parser.add_argument("--user", help="Acting admin username")
    users_parser.add_argument("--password", help="Password (or LIBRARY_PASSWORD, or prompt)")
    users = users_parser.add_subparsers(dest="action", required=True)
    users.add_parser("list", help="List users")
    p = users.add_parser("register", help="Register a user")
    p.add_argument("username")
    p.add_argument("--email")
    p.add_argument("--new-password", help="The new user's password, prompted for when omitted")
    p.add_argument("--admin", action="store_true", help="Grant the ADMIN role")

    # Suggestions
    suggest = subparsers.add_parser("suggest", help="Search Google Books")
    suggest.add_argument("query", help="Search query (at least 3 characters)")
    suggest.add_argument("--limit", type=int, default=10, help="Max results (default: 10, capped at 40)")
    suggest.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Collections
    collection = subparsers.add_parser("collection", help="Manage your collection")
    collection.add_argument("--user", help="Acting username")
    collection.add_argument("--password", help="Password (or LIBRARY_PASSWORD, or prompt)")
    actions = collection.add_subparsers(dest="action", required=True)
    p = actions.add_parser("add", help="Add a Google Books suggestion to your collection")
    p.add_argument("query")
    p.add_argument("--pick", type=positive_int, default=1, help="Which suggestion to add (1-based)")
    p = actions.add_parser("list", help="List your collection")
    p.add_argument("--format", choices=["table", "json"], default="table")
    actions.add_parser("check", help="Is a Google Books volume in your collection").add_argument("google_id")
    actions.add_parser("remove", help="Remove a book from your collection").add_argument("book_id", type=int)

    return parser


COMMANDS = {
    "init-db": cmd_init_db,
    "stats": cmd_stats,
    "authors": cmd_authors,
    "categories": cmd_categories,
    "books": cmd_books,
    "users": cmd_users,
    "suggest": cmd_suggest,
    "collection": cmd_collection,
}


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    setup_logging(config)

    try:
        COMMANDS[args.command](args, config)

    except CatalogError as e:
        logger.error(f"{e.kind}: {e.message}")
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
