"""User service.

Users are split over two keys:
- User:<id>        hash with Id and the bcrypt password hash
- User:<id>:Books  set of owned isbns (append-only, grown by add_books/checkout)

Passwords are hashed with bcrypt at write time. The cost comes from
``BCRYPT_WORK_FACTOR`` (default 11); bulk-loading many users at that cost is
slow, so demos and tests lower it (e.g. 4). Never do that in production.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
import logging

import bcrypt
import redis.asyncio as redis

from bookstore.models import User
from bookstore.settings import get_settings
from bookstore.stores import keys
from bookstore.stores.mapping import user_from_fields, user_to_fields

logger = logging.getLogger("uvicorn.error")


class UserService:
    """Create users, grant them books and read them back."""

    def __init__(self, client: redis.Redis, work_factor: int | None = None) -> None:
        self._redis = client
        self.work_factor = work_factor or get_settings().bcrypt_work_factor

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.work_factor)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    async def create(self, user: User) -> User:
        """Create (or overwrite) a user.

        Initial books are added to the owned-books set before the scalar hash
        is written; they never appear in the hash itself.

        Returns:
            The stored user: hashed password, same books.
        """
        hashed = await asyncio.to_thread(self.hash_password, user.password)
        stored = user.model_copy(update={"password": hashed})
        if stored.books:
            await self._redis.sadd(keys.user_books_key(stored.id), *stored.books)
        await self._redis.hset(keys.user_key(stored.id), mapping=user_to_fields(stored))
        return stored

    async def create_bulk(self, users: Iterable[User]) -> list[User]:
        """Create many users concurrently.

        Each user is hashed and written independently; the first failure is
        raised after all creations have been started.
        """
        created = await asyncio.gather(*(self.create(user) for user in users))
        logger.info(f"Bulk-created {len(created)} users")
        return list(created)

    async def add_books(self, user_id: str, *isbns: str) -> int:
        """Add isbns to the user's owned books (duplicates are ignored).

        Returns:
            Number of isbns that were not owned before.
        """
        if not isbns:
            return 0
        return await self._redis.sadd(keys.user_books_key(user_id), *isbns)

    async def exists(self, user_id: str) -> bool:
        return bool(await self._redis.exists(keys.user_key(user_id)))

    async def check_bulk(self, ids: Iterable[str]) -> list[str]:
        """Return the ids of existing users, in input order."""
        ids = list(ids)
        found = await asyncio.gather(*(self.exists(user_id) for user_id in ids))
        return [user_id for user_id, ok in zip(ids, found) if ok]

    async def read(self, user_id: str) -> User | None:
        """Read a user with their owned books, or None if the user does not exist."""
        fields, books = await asyncio.gather(
            self._redis.hgetall(keys.user_key(user_id)),
            self._redis.smembers(keys.user_books_key(user_id)),
        )
        if not fields:
            logger.debug(f"User {user_id} not found")
            return None
        return user_from_fields(fields, books)

    async def verify_password(self, user_id: str, password: str) -> bool:
        """Check a plaintext password against the stored hash."""
        hashed = await self._redis.hget(keys.user_key(user_id), "Password")
        if not hashed:
            return False
        if isinstance(hashed, str):
            hashed = hashed.encode("utf-8")
        return await asyncio.to_thread(bcrypt.checkpw, password.encode("utf-8"), hashed)
