"""Shared fixtures: an in-memory stand-in for the async Redis client.

``InMemoryRedis`` implements the commands the services issue (hashes, sets,
INCR, EXISTS, MULTI/EXEC pipelines) and the slice of the search API they use:
tag matches (``@field:{value}``), ``*``, SORTBY, LIMIT and NOCONTENT.
Indexes follow their key prefix and see writes immediately, like RediSearch
does for hashes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import pytest
from redis.commands.search.document import Document
from redis.commands.search.field import NumericField
from redis.commands.search.query import Query
from redis.exceptions import ResponseError

from bookstore.services import BookService, CartService, UserService

_TAG_TERM = re.compile(r"@([\w.\[\]]+):\{((?:\\.|[^}\\])*)\}")
_UNESCAPE = re.compile(r"\\(.)")


@dataclass
class SearchResult:
    total: int
    docs: list[Document]


@dataclass
class _Index:
    prefixes: list[str]
    numeric_fields: set[str] = field(default_factory=set)


class InMemorySearch:
    def __init__(self, store: "InMemoryRedis", name: str) -> None:
        self._store = store
        self._name = name

    async def create_index(self, fields, definition=None, **kwargs) -> str:
        if self._name in self._store.indexes:
            raise ResponseError("Index already exists")
        args = list(definition.args) if definition is not None else []
        prefixes: list[str] = []
        if "PREFIX" in args:
            at = args.index("PREFIX")
            prefixes = [str(p) for p in args[at + 2 : at + 2 + int(args[at + 1])]]
        numeric = {f.name for f in fields if isinstance(f, NumericField)}
        self._store.indexes[self._name] = _Index(prefixes=prefixes, numeric_fields=numeric)
        return "OK"

    async def dropindex(self, delete_documents: bool = False) -> str:
        if self._name not in self._store.indexes:
            raise ResponseError("Unknown Index name")
        del self._store.indexes[self._name]
        return "OK"

    async def search(self, query: Query) -> SearchResult:
        index = self._store.indexes.get(self._name)
        if index is None:
            raise ResponseError(f"{self._name}: no such index")
        args = query.get_args()
        query_string = str(args[0]).strip()
        terms = [(name, _UNESCAPE.sub(r"\1", value)) for name, value in _TAG_TERM.findall(query_string)]
        if query_string != "*" and not terms:
            raise NotImplementedError(f"Unsupported query in tests: {query_string!r}")

        hits: list[tuple[str, dict[str, str]]] = []
        for key, value in self._store.data.items():
            if not isinstance(value, dict):
                continue
            if not any(key.startswith(p) for p in index.prefixes):
                continue
            if all(value.get(name, "").lower() == tag.lower() for name, tag in terms):
                hits.append((key, value))

        if "SORTBY" in args:
            at = args.index("SORTBY")
            sort_field, direction = args[at + 1], args[at + 2]

            def sort_key(hit: tuple[str, dict[str, str]]) -> tuple[int, Any]:
                raw = hit[1].get(sort_field)
                if raw is None:
                    return (1, 0)
                return (0, float(raw) if sort_field in index.numeric_fields else raw.lower())

            hits.sort(key=sort_key, reverse=direction == "DESC")

        at = args.index("LIMIT")
        offset, num = int(args[at + 1]), int(args[at + 2])
        window = hits[offset : offset + num]
        if "NOCONTENT" in args:
            docs = [Document(key) for key, _ in window]
        else:
            docs = [
                Document(key, payload=None, **{k: v for k, v in value.items() if k != "id"})
                for key, value in window
            ]
        return SearchResult(total=len(hits), docs=docs)


class InMemoryPipeline:
    def __init__(self, store: "InMemoryRedis") -> None:
        self._store = store
        self._queued: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "InMemoryPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._queued.clear()

    def __getattr__(self, name: str):
        def queue(*args, **kwargs) -> "InMemoryPipeline":
            self._queued.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        results = []
        for name, args, kwargs in self._queued:
            results.append(await getattr(self._store, name)(*args, **kwargs))
        self._queued.clear()
        self._store.transactions += 1
        return results


class InMemoryRedis:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.indexes: dict[str, _Index] = {}
        self.transactions = 0

    def ft(self, index_name: str = "idx") -> InMemorySearch:
        return InMemorySearch(self, index_name)

    def pipeline(self, transaction: bool = True) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    async def hset(self, name: str, key: str | None = None, value: Any = None, mapping=None) -> int:
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        if not items:
            raise ValueError("'hset' with no key value pairs")
        h = self.data.setdefault(name, {})
        added = sum(1 for k in items if k not in h)
        h.update({str(k): str(v) for k, v in items.items()})
        return added

    async def hget(self, name: str, key: str) -> str | None:
        return self.data.get(name, {}).get(key)

    async def hgetall(self, name: str) -> dict[str, str]:
        return dict(self.data.get(name, {}))

    async def hdel(self, name: str, *keys: str) -> int:
        h = self.data.get(name, {})
        removed = sum(1 for k in keys if h.pop(k, None) is not None)
        if name in self.data and not h:
            del self.data[name]
        return removed

    async def delete(self, *names: str) -> int:
        return sum(1 for n in names if self.data.pop(n, None) is not None)

    async def sadd(self, name: str, *values: str) -> int:
        if not values:
            raise ResponseError("wrong number of arguments for 'sadd' command")
        s = self.data.setdefault(name, set())
        added = sum(1 for v in values if v not in s)
        s.update(values)
        return added

    async def smembers(self, name: str) -> set[str]:
        return set(self.data.get(name, set()))

    async def exists(self, *names: str) -> int:
        return sum(1 for n in names if n in self.data)

    async def incr(self, name: str, amount: int = 1) -> int:
        value = int(self.data.get(name, 0)) + amount
        self.data[name] = str(value)
        return value


@pytest.fixture
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
async def book_service(redis_client: InMemoryRedis) -> BookService:
    service = BookService(redis_client, index_name="books-idx")
    await service.create_index()
    return service


@pytest.fixture
def user_service(redis_client: InMemoryRedis) -> UserService:
    return UserService(redis_client, work_factor=4)


@pytest.fixture
async def cart_service(redis_client: InMemoryRedis, user_service: UserService) -> CartService:
    service = CartService(redis_client, user_service, index_name="cart-idx")
    await service.create_index()
    return service
