"""Redis key naming.

Key formats (kept bit-exact for existing deployments):
- User:<id>            hash of user scalar fields
- User:<id>:Books      set of owned isbns
- Book:<id>            hash of book fields
- Cart:<id>            hash of cart fields + flattened items
- Cart:id              counter used to allocate cart ids

Cart line items are *field names* inside the Cart:<id> hash
(items:<isbn>:Isbn|Price|Quantity), not keys of their own.

Ids are not checked for the ":" delimiter. Isbns are, because they end up
in cart field names that are split on read.
"""

from bookstore.errors import InvalidFieldNameError

DELIMITER = ":"

USER = "User"
BOOK = "Book"
CART = "Cart"

USER_BOOKS_SUFFIX = "Books"
CART_ID_COUNTER = f"{CART}{DELIMITER}id"

CART_ITEMS_PREFIX = "items"
CART_ITEM_ATTRIBUTES = ("Isbn", "Price", "Quantity")


def entity_key(type_name: str, entity_id: str) -> str:
    """Build the storage key for an entity.

    Example:
        >>> entity_key("Book", "b1")
        "Book:b1"
    """
    return f"{type_name}{DELIMITER}{entity_id}"


def sub_key(parent_key: str, suffix: str) -> str:
    """Build the key of a collection owned by another key."""
    return f"{parent_key}{DELIMITER}{suffix}"


def key_prefix(type_name: str) -> str:
    """Prefix shared by every key of an entity type (used by index definitions)."""
    return f"{type_name}{DELIMITER}"


def id_from_key(type_name: str, key: str) -> str:
    """Recover an entity id from its storage key.

    Raises:
        ValueError: If the key does not belong to ``type_name``.
    """
    prefix = key_prefix(type_name)
    if not key.startswith(prefix):
        raise ValueError(f"Key {key!r} is not a {type_name} key")
    return key[len(prefix):]


def user_key(user_id: str) -> str:
    return entity_key(USER, user_id)


def user_books_key(user_id: str) -> str:
    return sub_key(user_key(user_id), USER_BOOKS_SUFFIX)


def book_key(book_id: str) -> str:
    return entity_key(BOOK, book_id)


def cart_key(cart_id: str) -> str:
    return entity_key(CART, cart_id)


def validate_isbn(isbn: str) -> str:
    """Reject isbns that cannot be embedded in a cart field name."""
    if not isbn:
        raise InvalidFieldNameError("Cart item isbn must not be empty")
    if DELIMITER in isbn:
        raise InvalidFieldNameError(
            f"Cart item isbn {isbn!r} must not contain {DELIMITER!r}"
        )
    return isbn


def cart_item_prefix(isbn: str) -> str:
    """Field name prefix for one cart line item: ``items:<isbn>:``."""
    return f"{CART_ITEMS_PREFIX}{DELIMITER}{validate_isbn(isbn)}{DELIMITER}"


def cart_item_field(isbn: str, attribute: str) -> str:
    """Field name of one attribute of a cart line item."""
    return f"{cart_item_prefix(isbn)}{attribute}"


def cart_item_fields(isbn: str) -> list[str]:
    """All field names owned by one cart line item."""
    return [cart_item_field(isbn, attr) for attr in CART_ITEM_ATTRIBUTES]


def parse_cart_item_field(field: str) -> tuple[str, str] | None:
    """Split ``items:<isbn>:<attribute>`` into ``(isbn, attribute)``.

    Returns None for fields that are not cart item fields.
    """
    parts = field.split(DELIMITER)
    if len(parts) != 3 or parts[0] != CART_ITEMS_PREFIX or not parts[1]:
        return None
    return parts[1], parts[2]
