"""RediSearch index definitions and (re)creation.

Each entity type that is queried through the search index gets one index,
bound to its key prefix so it only covers that type's hashes:
- books-idx  -> Book:*  (full-text + sort on title/price, tag on id)
- cart-idx   -> Cart:*  (tags on UserId/Closed for the open-cart lookup)

There is no "create if not exists" primitive, so indexes are always dropped
(documents are kept) and created again. Dropping an index that does not exist
yet is expected on a fresh store and is not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Any

import redis.asyncio as redis
from redis.commands.search.document import Document
from redis.commands.search.field import Field, NumericField, TagField, TextField
from redis.commands.search.index_definition import IndexDefinition, IndexType
from redis.exceptions import ResponseError

from bookstore.settings import get_settings
from bookstore.stores import keys
from bookstore.stores.mapping import author_field

logger = logging.getLogger("uvicorn.error")

# Author positions beyond this bound are stored but not searchable
MAX_INDEXED_AUTHORS = 7

_UNKNOWN_INDEX_MARKERS = ("unknown index name", "no such index", "unknown: index name")

# Characters with a meaning in the RediSearch query syntax
_TAG_SPECIAL_CHARS = re.compile(r"([,.<>{}\[\]\"':;!@#$%^&*()\-+=~|/\\\s])")


class IndexKind(str, Enum):
    TEXT = "text"
    SORTABLE_TEXT = "sortable_text"
    NUMERIC = "numeric"
    SORTABLE_NUMERIC = "sortable_numeric"
    TAG = "tag"


@dataclass(frozen=True)
class IndexedField:
    name: str
    kind: IndexKind

    def to_redis(self) -> Field:
        if self.kind is IndexKind.TEXT:
            return TextField(self.name)
        if self.kind is IndexKind.SORTABLE_TEXT:
            return TextField(self.name, sortable=True)
        if self.kind is IndexKind.NUMERIC:
            return NumericField(self.name)
        if self.kind is IndexKind.SORTABLE_NUMERIC:
            return NumericField(self.name, sortable=True)
        return TagField(self.name)


@dataclass(frozen=True)
class IndexSchema:
    """An index name, the key prefix it covers and its fields."""

    name: str
    prefix: str
    fields: tuple[IndexedField, ...]

    def field(self, name: str) -> IndexedField | None:
        return next((f for f in self.fields if f.name == name), None)

    @property
    def sortable_fields(self) -> list[str]:
        return [
            f.name
            for f in self.fields
            if f.kind in (IndexKind.SORTABLE_TEXT, IndexKind.SORTABLE_NUMERIC)
        ]

    def definition(self) -> IndexDefinition:
        return IndexDefinition(prefix=[self.prefix], index_type=IndexType.HASH)


def book_index_schema(name: str | None = None) -> IndexSchema:
    """Schema of the book index."""
    fields = [
        IndexedField("title", IndexKind.SORTABLE_TEXT),
        IndexedField("subtitle", IndexKind.TEXT),
        IndexedField("description", IndexKind.TEXT),
        IndexedField("price", IndexKind.SORTABLE_NUMERIC),
        IndexedField("id", IndexKind.TAG),
    ]
    fields += [
        IndexedField(author_field(position), IndexKind.TEXT)
        for position in range(MAX_INDEXED_AUTHORS)
    ]
    return IndexSchema(
        name=name or get_settings().book_index_name,
        prefix=keys.key_prefix(keys.BOOK),
        fields=tuple(fields),
    )


def cart_index_schema(name: str | None = None) -> IndexSchema:
    """Schema of the cart index: exact match on owner and closed flag."""
    return IndexSchema(
        name=name or get_settings().cart_index_name,
        prefix=keys.key_prefix(keys.CART),
        fields=(
            IndexedField("UserId", IndexKind.TAG),
            IndexedField("Closed", IndexKind.TAG),
        ),
    )


def is_unknown_index_error(error: ResponseError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _UNKNOWN_INDEX_MARKERS)


async def drop_index(client: redis.Redis, name: str) -> bool:
    """Drop an index, keeping its documents.

    Returns:
        True if an index was dropped, False if none existed.
    """
    try:
        await client.ft(name).dropindex(delete_documents=False)
    except ResponseError as e:
        if is_unknown_index_error(e):
            logger.info(f"Index {name} did not exist, nothing to drop")
            return False
        raise
    return True


async def recreate_index(client: redis.Redis, schema: IndexSchema) -> None:
    """Drop ``schema.name`` if present, then create it from scratch."""
    await drop_index(client, schema.name)
    await client.ft(schema.name).create_index(
        [f.to_redis() for f in schema.fields],
        definition=schema.definition(),
    )
    logger.info(
        f"Index {schema.name} created on prefix {schema.prefix!r} "
        f"({len(schema.fields)} fields)"
    )


def escape_tag(value: str) -> str:
    """Escape a value for use inside a ``@field:{...}`` tag query."""
    return _TAG_SPECIAL_CHARS.sub(r"\\\1", value)


def tag_query(**tags: str) -> str:
    """Build an exact-match query over one or more tag fields.

    Example:
        >>> tag_query(UserId="u-1", Closed="false")
        "@UserId:{u\\-1} @Closed:{false}"
    """
    return " ".join(f"@{name}:{{{escape_tag(value)}}}" for name, value in tags.items())


def document_fields(doc: Document) -> dict[str, Any]:
    """Hash fields carried by a search result document."""
    return {k: v for k, v in vars(doc).items() if k not in ("id", "payload")}
