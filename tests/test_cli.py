"""Tests for the librarian command line."""
import json

import pytest

import librarian
from catalog.models import Role
from catalog.services import AuthorService
from helpers import StubClient, volume


@pytest.fixture
def cli_db(monkeypatch, db):
    monkeypatch.setattr(librarian, "setup_database", lambda config: db)
    monkeypatch.setattr(librarian, "setup_logging", lambda config: None)
    return db


@pytest.fixture
def stub_client(monkeypatch):
    client = StubClient({"items": [volume("vol-1"), volume("vol-2", title="Dune Messiah")]})

    def make_service(config):
        return librarian.SuggestionService(client)

    monkeypatch.setattr(librarian, "make_suggestion_service", make_service)
    return client


def run(*argv):
    """Run the CLI, returning the exit code (0 when it returns normally)."""
    try:
        librarian.main(list(argv))
    except SystemExit as e:
        return e.code
    return 0


def test_books_add_and_list(cli_db, capsys):
    author = AuthorService(cli_db).create_author("Frank Herbert")

    assert run("books", "add", "Dune", "--author-id", str(author.id), "--published-at", "1965-08-01") == 0
    capsys.readouterr()
    assert run("books", "list", "--q", "dune", "--format", "json") == 0

    books = json.loads(capsys.readouterr().out)
    assert books[0]["title"] == "Dune"
    assert books[0]["author"] == "Frank Herbert"
    assert books[0]["published_at"] == "1965-08-01"


def test_not_found_exit_code(cli_db):
    assert run("books", "delete", "42") == 3


def test_validation_exit_code(cli_db):
    assert run("authors", "add", "   ") == 4


def test_collection_requires_user(cli_db, stub_client):
    assert run("collection", "add", "dune") == 5


def test_collection_add_and_check(cli_db, stub_client, capsys):
    librarian.AccountService(cli_db).register("alice", None, "s3cret", Role.USER)

    assert run("collection", "--user", "alice", "--password", "s3cret", "add", "dune", "--pick", "2") == 0
    capsys.readouterr()
    assert run("collection", "--user", "alice", "--password", "s3cret", "check", "vol-2") == 0

    assert json.loads(capsys.readouterr().out) == {"google_id": "vol-2", "in_collection": True}
    assert stub_client.calls == [("dune", 10)]


def test_collection_wrong_password(cli_db, stub_client):
    librarian.AccountService(cli_db).register("alice", None, "s3cret", Role.USER)

    assert run("collection", "--user", "alice", "--password", "nope", "list") == 5
    assert stub_client.calls == []


def test_suggest_short_query(stub_client, capsys):
    assert run("suggest", "du", "--format", "json") == 0

    assert json.loads(capsys.readouterr().out) == []
    assert stub_client.calls == []


def test_no_command_prints_help(capsys):
    assert run() == 1


@pytest.mark.parametrize("pick", ["0", "-1", "two"])
def test_collection_add_rejects_bad_pick(cli_db, stub_client, pick):
    librarian.AccountService(cli_db).register("alice", None, "s3cret", Role.USER)

    assert run("collection", "--user", "alice", "--password", "s3cret", "add", "dune", "--pick", pick) == 2
    assert stub_client.calls == []
    assert librarian.CollectionService(cli_db).list_collection("alice") == []


def test_users_list_requires_user(cli_db):
    librarian.AccountService(cli_db).register("root", None, "rootpw", Role.ADMIN)

    assert run("users", "list") == 5


def test_users_list_forbidden_for_non_admin(cli_db, capsys):
    librarian.AccountService(cli_db).register("root", None, "rootpw", Role.ADMIN)
    librarian.AccountService(cli_db).register("alice", None, "s3cret", Role.USER)

    assert run("users", "--user", "alice", "--password", "s3cret", "list") == 6
    assert "alice" not in capsys.readouterr().out


def test_users_list_as_admin(cli_db, capsys):
    librarian.AccountService(cli_db).register("root", None, "rootpw", Role.ADMIN)
    librarian.AccountService(cli_db).register("alice", "alice@example.com", "s3cret", Role.USER)

    assert run("users", "--user", "root", "--password", "rootpw", "list") == 0

    out = capsys.readouterr().out
    assert "alice@example.com" in out
    assert "ADMIN" in out


def test_users_register_admin_requires_admin(cli_db):
    librarian.AccountService(cli_db).register("root", None, "rootpw", Role.ADMIN)
    librarian.AccountService(cli_db).register("alice", None, "s3cret", Role.USER)

    assert run("users", "register", "eve", "--new-password", "pw", "--admin") == 5
    assert run("users", "--user", "alice", "--password", "s3cret",
               "register", "eve", "--new-password", "pw", "--admin") == 6
    assert run("users", "--user", "root", "--password", "rootpw",
               "register", "ops", "--new-password", "pw", "--admin") == 0
    assert not librarian.AccountService(cli_db).authenticate("eve", "pw")
    assert librarian.AccountService(cli_db).authenticate("ops", "pw")
