"""Cart service.

Flow:
1. create(user_id) reuses the user's open cart or allocates a new id (INCR Cart:id)
2. add_to_cart / remove_from_cart upsert or delete one item's three fields
3. checkout grants the items to the user and closes the cart

Carts live in one hash per cart (Cart:<id>). Line items are flattened into it
as items:<isbn>:Isbn|Price|Quantity, so an isbn appears at most once and a
second add for it overwrites the first.

"At most one open cart per user" relies on looking the open cart up before
creating one. Two concurrent create() calls for the same user can both miss
and both allocate a cart; callers must treat the invariant as best-effort.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.commands.search import AsyncSearch
from redis.commands.search.query import Query

from bookstore.errors import CartClosedError, EntityNotFoundError, InvalidFieldNameError
from bookstore.models import Cart, CartItem
from bookstore.services.users import UserService
from bookstore.stores import keys
from bookstore.stores.indexes import IndexSchema, cart_index_schema, recreate_index, tag_query
from bookstore.stores.mapping import (
    CLOSED_FIELD,
    cart_from_fields,
    cart_item_to_fields,
    cart_to_fields,
    decode_closed,
    encode_closed,
)

logger = logging.getLogger("uvicorn.error")


class CartService:
    """Open, fill and check out carts."""

    def __init__(
        self,
        client: redis.Redis,
        user_service: UserService,
        index_name: str | None = None,
    ) -> None:
        self._redis = client
        self._users = user_service
        self.schema: IndexSchema = cart_index_schema(index_name)

    @property
    def _index(self) -> AsyncSearch:
        return self._redis.ft(self.schema.name)

    async def create_index(self) -> None:
        """Drop and recreate the cart index."""
        await recreate_index(self._redis, self.schema)

    async def get(self, cart_id: str) -> Cart | None:
        """Get a cart with its items, or None if it does not exist."""
        fields = await self._redis.hgetall(keys.cart_key(cart_id))
        if not fields:
            return None
        return cart_from_fields(fields)

    async def get_cart_for_user(self, user_id: str) -> Cart | None:
        """Return the user's open cart, if there is one."""
        query = (
            Query(tag_query(UserId=user_id, Closed=encode_closed(False)[CLOSED_FIELD]))
            .no_content()
            .paging(0, 1)
        )
        result = await self._index.search(query)
        if not result.docs:
            return None
        return await self.get(keys.id_from_key(keys.CART, result.docs[0].id))

    async def create(self, user_id: str) -> str:
        """Return the id of the user's open cart, creating one if needed.

        Raises:
            EntityNotFoundError: If the user does not exist.
        """
        current = await self.get_cart_for_user(user_id)
        if current is not None:
            return current.id

        if not await self._users.exists(user_id):
            raise EntityNotFoundError("User", user_id)

        # Shared counter so ids stay unique across service instances
        cart_id = str(await self._redis.incr(keys.CART_ID_COUNTER))
        cart = Cart(id=cart_id, user_id=user_id)
        await self._redis.hset(keys.cart_key(cart_id), mapping=cart_to_fields(cart))
        logger.info(f"Cart {cart_id} opened for user {user_id}")
        return cart_id

    async def add_to_cart(self, cart_id: str, item: CartItem) -> None:
        """Add an item, replacing any item with the same isbn.

        Raises:
            CartClosedError: If the cart was checked out (nothing is written).
            EntityNotFoundError: If the cart does not exist.
            InvalidFieldNameError: If the isbn contains the ":" delimiter.
        """
        fields = cart_item_to_fields(item)
        await self._ensure_open(cart_id)
        await self._redis.hset(keys.cart_key(cart_id), mapping=fields)

    async def remove_from_cart(self, cart_id: str, isbn: str) -> bool:
        """Remove the item with ``isbn``.

        Returns:
            True if an item was removed, False if the cart did not hold it.
        """
        await self._ensure_open(cart_id)
        try:
            item_fields = keys.cart_item_fields(isbn)
        except InvalidFieldNameError:
            # Writes reject such isbns, so the cart cannot hold one
            return False
        removed = await self._redis.hdel(keys.cart_key(cart_id), *item_fields)
        return removed > 0

    async def checkout(self, cart_id: str) -> Cart:
        """Grant the cart's books to its owner and close the cart.

        Both writes go out in one MULTI/EXEC transaction, so the books are
        never granted without the cart being closed (or the reverse).

        The cart is read before the transaction and not WATCHed: an item added
        between that read and EXEC stays in the closed cart without being
        granted.

        Returns:
            The closed cart.
        """
        cart = await self.get(cart_id)
        if cart is None:
            raise EntityNotFoundError("Cart", cart_id)
        if cart.closed:
            raise CartClosedError(cart_id)

        isbns = [item.isbn for item in cart.items]
        async with self._redis.pipeline(transaction=True) as pipe:
            if isbns:
                pipe.sadd(keys.user_books_key(cart.user_id), *isbns)
            pipe.hset(keys.cart_key(cart_id), mapping=encode_closed(True))
            await pipe.execute()

        logger.info(f"Cart {cart_id} checked out: {len(isbns)} books granted to {cart.user_id}")
        return cart.model_copy(update={"closed": True})

    async def _ensure_open(self, cart_id: str) -> None:
        raw = await self._redis.hget(keys.cart_key(cart_id), CLOSED_FIELD)
        if raw is None:
            raise EntityNotFoundError("Cart", cart_id)
        if decode_closed(raw):
            logger.warning(f"Rejected change to closed cart {cart_id}")
            raise CartClosedError(cart_id)
