"""Book catalogue service.

Books are stored as flat hashes under Book:<id> and read back through the
books index: point lookups are a tag match on ``id``, searches pass a raw
RediSearch query string straight through with sort and paging applied.

See https://redis.io/docs/latest/develop/interact/search-and-query/ for the
query syntax accepted by ``search`` and ``paginate_books``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
import logging

import redis.asyncio as redis
from redis.commands.search import AsyncSearch
from redis.commands.search.document import Document
from redis.commands.search.query import Query

from bookstore.models import Book
from bookstore.stores import keys
from bookstore.stores.indexes import (
    IndexSchema,
    book_index_schema,
    document_fields,
    recreate_index,
    tag_query,
)
from bookstore.stores.mapping import book_from_fields, book_to_fields

logger = logging.getLogger("uvicorn.error")

SORT_DIRECTIONS = ("ASC", "DESC")


def _book_from_document(doc: Document) -> Book:
    return book_from_fields(document_fields(doc), book_id=keys.id_from_key(keys.BOOK, doc.id))


class BookService:
    """Create, look up and search books."""

    def __init__(self, client: redis.Redis, index_name: str | None = None) -> None:
        self._redis = client
        self.schema: IndexSchema = book_index_schema(index_name)

    @property
    def _index(self) -> AsyncSearch:
        return self._redis.ft(self.schema.name)

    async def create_index(self) -> None:
        """Drop and recreate the books index."""
        await recreate_index(self._redis, self.schema)

    async def get(self, book_id: str) -> Book | None:
        """Get a single book via the index, or None if no book has this id."""
        query = Query(tag_query(id=book_id)).paging(0, 1)
        result = await self._index.search(query)
        if result.total == 0 or not result.docs:
            return None
        return _book_from_document(result.docs[0])

    async def create(self, book: Book) -> Book | None:
        """Write a single book and read it back through the index."""
        await self._replace(book)
        return await self.get(book.id)

    async def create_bulk(self, books: Iterable[Book]) -> int:
        """Write many books concurrently (one transaction each, no cross-book atomicity).

        The first failing write is raised once all writes have been issued.

        Returns:
            Number of books written.
        """
        writes = [self._replace(book) for book in books]
        await asyncio.gather(*writes)
        logger.info(f"Bulk-created {len(writes)} books")
        return len(writes)

    async def _replace(self, book: Book) -> None:
        """Overwrite Book:<id> so fields the new version lacks do not linger."""
        key = keys.book_key(book.id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=book_to_fields(book))
            await pipe.execute()

    async def get_bulk(self, ids: Iterable[str]) -> list[str]:
        """Return the ids, among ``ids``, that have a stored book (input order)."""
        ids = list(ids)
        found = await asyncio.gather(
            *(self._redis.hget(keys.book_key(book_id), "id") for book_id in ids)
        )
        return [value for value in found if value is not None]

    async def search(
        self,
        query: str,
        sort_by: str | None = None,
        direction: str = "ASC",
        limit: int | None = None,
    ) -> list[Book]:
        """Search books with a raw RediSearch query.

        Without ``limit`` the server default window (first 10 hits) applies.
        """
        q = self._build_query(query, sort_by, direction)
        if limit is not None:
            q = q.paging(0, limit)
        result = await self._index.search(q)
        return [_book_from_document(doc) for doc in result.docs]

    async def paginate_books(
        self,
        query: str,
        page: int,
        sort_by: str = "title",
        direction: str = "ASC",
        page_size: int = 10,
    ) -> list[Book]:
        """Return one zero-based page of books matching ``query``."""
        if page < 0:
            raise ValueError("page must be >= 0")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        q = self._build_query(query, sort_by, direction).paging(page * page_size, page_size)
        result = await self._index.search(q)
        logger.debug(f"Book page {page} for {query!r}: {len(result.docs)}/{result.total}")
        return [_book_from_document(doc) for doc in result.docs]

    def _build_query(self, query: str, sort_by: str | None, direction: str) -> Query:
        direction = direction.upper()
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"direction must be one of {SORT_DIRECTIONS}, got {direction!r}")
        q = Query(query)
        if sort_by:
            if self.schema.field(sort_by) is None:
                raise ValueError(f"Cannot sort books by {sort_by!r}: not in {self.schema.name}")
            q = q.sort_by(sort_by, asc=direction == "ASC")
        return q
