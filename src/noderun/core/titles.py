"""Resolution of project (book) and page display names.

Artifact directories are named after the titles, not the ids. Graph
persistence is owned elsewhere; this module only reads.
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, select
from sqlalchemy.engine import Engine

ROOT_PROJECT_NAME = "root"


@runtime_checkable
class TitleResolver(Protocol):
    """Lookup of display titles by id.

    Implementations raise LookupError for unknown ids.
    """

    def book_title(self, book_id: int) -> str:
        """Title of a project (book)."""
        ...

    def page_title(self, page_id: int) -> str:
        """Title of a page."""
        ...


def project_name_for(resolver: TitleResolver, project_id: int | None) -> str:
    """Project directory name; runs without a project go under "root"."""
    if project_id is None:
        return ROOT_PROJECT_NAME
    return resolver.book_title(project_id)


class StaticTitleResolver:
    """In-memory titles, for embedding callers and tests."""

    def __init__(
        self,
        books: Mapping[int, str] | None = None,
        pages: Mapping[int, str] | None = None,
    ) -> None:
        self._books = dict(books or {})
        self._pages = dict(pages or {})

    def book_title(self, book_id: int) -> str:
        try:
            return self._books[book_id]
        except KeyError:
            raise LookupError(f"Book not found: {book_id}") from None

    def page_title(self, page_id: int) -> str:
        try:
            return self._pages[page_id]
        except KeyError:
            raise LookupError(f"Page not found: {page_id}") from None


_metadata = MetaData()

book_table = Table(
    "Book",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String, nullable=False),
)

page_table = Table(
    "Page",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String, nullable=False),
)


class GraphStoreTitleResolver:
    """Read titles from the workflow graph store via SQLAlchemy Core.

    Only the Book and Page tables' id/title columns are read; the schema
    itself is created and owned by the graph store.
    """

    def __init__(self, url: str) -> None:
        """Initialize resolver.

        Args:
            url: SQLAlchemy URL, e.g. "sqlite:///path/to/graph.db"
        """
        self.url = url
        self._engine: Engine | None = create_engine(url, echo=False)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Title resolver is closed")
        return self._engine

    def _title(self, table: Table, row_id: int, label: str) -> str:
        query = select(table.c.title).where(table.c.id == row_id)
        with self.engine.connect() as conn:
            title = conn.execute(query).scalar_one_or_none()
        if title is None:
            raise LookupError(f"{label} not found: {row_id}")
        return str(title)

    def book_title(self, book_id: int) -> str:
        return self._title(book_table, book_id, "Book")

    def page_title(self, page_id: int) -> str:
        return self._title(page_table, page_id, "Page")

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
