"""Errors raised by the store layer and the services built on it.

Reads signal absence by returning ``None``. The exceptions below cover the
remaining cases: a mutation that needs an entity which is not there, a
mutation on a closed cart, stored data that cannot be decoded and field
names that would break the flattened cart encoding.

Redis transport and command errors are not wrapped; they propagate as
``redis.exceptions.RedisError`` subclasses.
"""


class BookstoreError(RuntimeError):
    pass


class EntityNotFoundError(BookstoreError):
    """A mutation referenced an entity that does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id!r} not found")
        self.entity = entity
        self.entity_id = entity_id


class CartClosedError(BookstoreError):
    """The cart has been checked out and can no longer change."""

    def __init__(self, cart_id: str) -> None:
        super().__init__(f"Cart {cart_id!r} has already been closed out")
        self.cart_id = cart_id


class EntityDecodeError(BookstoreError):
    """Stored hash data could not be turned back into an entity."""

    def __init__(self, entity: str, field: str, value: object, reason: str) -> None:
        super().__init__(f"Cannot decode {entity}.{field} from {value!r}: {reason}")
        self.entity = entity
        self.field = field
        self.value = value


class InvalidFieldNameError(BookstoreError, ValueError):
    """A value that becomes part of a hash field name contains the delimiter."""
