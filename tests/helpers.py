"""Test doubles and payload builders shared across test modules."""


class StubClient:
    """GoogleBooksClient stand-in recording each search."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {"items": []}
        self.error = error
        self.calls = []

    def search(self, query, max_results=10):
        self.calls.append((query, max_results))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def volume(google_id="vol-1", **info):
    """Build a Google Books item; volumeInfo defaults to Dune by Frank Herbert."""
    volume_info = {"title": "Dune", "authors": ["Frank Herbert"]}
    volume_info.update(info)
    return {"id": google_id, "volumeInfo": volume_info}
