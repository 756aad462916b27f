"""Entity <-> Redis hash mapping.

Each entity has a small declarative table of ``FieldSpec`` rows that pairs a
hash field name with a model attribute and the codec used for its value.
Nothing is discovered by reflection: a model attribute that is not listed
here is not stored.

Layout:
- User: Id, Password (owned books live in a separate set, never in the hash)
- Book: id, title, subtitle, description, price, optional catalogue fields,
  plus one ``authors.[N]`` field per author
- Cart: Id, UserId, Closed, plus ``items:<isbn>:Isbn|Price|Quantity`` per item

Values read back from Redis are strings (or bytes when the client does not
decode responses). Anything that fails to parse raises ``EntityDecodeError``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
import re
from typing import Any

from pydantic import BaseModel

from bookstore.errors import EntityDecodeError
from bookstore.models import Book, Cart, CartItem, User
from bookstore.stores import keys

RawFields = Mapping[Any, Any] | Iterable[tuple[Any, Any]]


# ============================================================
# Value codecs
# ============================================================


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


def _encode_str(value: Any) -> str:
    return str(value)


def _encode_float(value: Any) -> str:
    return repr(float(value))


def _encode_int(value: Any) -> str:
    return str(int(value))


def _encode_bool(value: Any) -> str:
    return "true" if value else "false"


def _decode_float(raw: str) -> float:
    return float(raw)


def _decode_int(raw: str) -> int:
    return int(raw)


def _decode_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValueError("expected true/false")


@dataclass(frozen=True)
class FieldSpec:
    """One row of an entity's field table."""

    name: str
    attr: str
    encode: Callable[[Any], str] = _encode_str
    decode: Callable[[str], Any] = str
    required: bool = False


# ============================================================
# Field tables
# ============================================================

USER_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("Id", "id", required=True),
    FieldSpec("Password", "password"),
)

BOOK_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("id", "id", required=True),
    FieldSpec("title", "title"),
    FieldSpec("subtitle", "subtitle"),
    FieldSpec("description", "description"),
    FieldSpec("price", "price", _encode_float, _decode_float),
    FieldSpec("language", "language"),
    FieldSpec("pageCount", "page_count", _encode_int, _decode_int),
    FieldSpec("thumbnail", "thumbnail"),
    FieldSpec("currency", "currency"),
    FieldSpec("infoLink", "info_link"),
)

CLOSED_FIELD = "Closed"

CART_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("Id", "id", required=True),
    FieldSpec("UserId", "user_id", required=True),
    FieldSpec(CLOSED_FIELD, "closed", _encode_bool, _decode_bool),
)

CART_ITEM_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("Isbn", "isbn", required=True),
    FieldSpec("Price", "price", _encode_float, _decode_float, required=True),
    FieldSpec("Quantity", "quantity", _encode_int, _decode_int, required=True),
)

AUTHOR_FIELD_TEMPLATE = "authors.[{}]"
_AUTHOR_FIELD_RE = re.compile(r"^authors\.\[(\d+)\]$")


def author_field(position: int) -> str:
    return AUTHOR_FIELD_TEMPLATE.format(position)


# ============================================================
# Generic encode/decode
# ============================================================


def normalize_fields(fields: RawFields) -> dict[str, str]:
    """Turn a raw HGETALL reply (or search document) into ``dict[str, str]``."""
    pairs = fields.items() if isinstance(fields, Mapping) else fields
    return {_text(name): _text(value) for name, value in pairs if value is not None}


def encode_fields(
    entity: BaseModel, specs: Iterable[FieldSpec], prefix: str = ""
) -> dict[str, str]:
    out: dict[str, str] = {}
    for spec in specs:
        value = getattr(entity, spec.attr)
        if value is None:
            continue
        out[f"{prefix}{spec.name}"] = spec.encode(value)
    return out


def decode_fields(
    entity_name: str,
    fields: Mapping[str, str],
    specs: Iterable[FieldSpec],
    prefix: str = "",
) -> dict[str, Any]:
    """Decode the fields in ``specs`` into model constructor kwargs.

    Missing optional fields are left out so the model default applies.
    """
    values: dict[str, Any] = {}
    for spec in specs:
        raw = fields.get(f"{prefix}{spec.name}")
        if raw is None:
            if spec.required:
                raise EntityDecodeError(entity_name, spec.name, None, "field is missing")
            continue
        try:
            values[spec.attr] = spec.decode(raw)
        except (TypeError, ValueError) as e:
            raise EntityDecodeError(entity_name, spec.name, raw, str(e)) from e
    return values


# ============================================================
# User
# ============================================================


def user_to_fields(user: User) -> dict[str, str]:
    """Scalar user fields. Owned books are stored under User:<id>:Books."""
    return encode_fields(user, USER_FIELDS)


def user_from_fields(fields: RawFields, books: Iterable[Any] | None = None) -> User:
    values = decode_fields("User", normalize_fields(fields), USER_FIELDS)
    values["books"] = sorted(_text(b) for b in books or ())
    return User(**values)


# ============================================================
# Book
# ============================================================


def book_to_fields(book: Book) -> dict[str, str]:
    out = encode_fields(book, BOOK_FIELDS)
    for position, author in enumerate(book.authors):
        out[author_field(position)] = author
    return out


def book_from_fields(fields: RawFields, book_id: str | None = None) -> Book:
    """Rebuild a Book.

    ``book_id`` is used when the ``id`` field is not part of ``fields``
    (search documents carry the id as the document key instead).
    """
    flat = normalize_fields(fields)
    if book_id is not None:
        flat.setdefault("id", book_id)
    values = decode_fields("Book", flat, BOOK_FIELDS)

    authors: list[tuple[int, str]] = []
    for name, value in flat.items():
        match = _AUTHOR_FIELD_RE.match(name)
        if match:
            authors.append((int(match.group(1)), value))
    values["authors"] = [author for _, author in sorted(authors)]
    return Book(**values)


# ============================================================
# Cart
# ============================================================


def cart_item_to_fields(item: CartItem, prefix: str | None = None) -> dict[str, str]:
    """Fields of one line item, namespaced under ``items:<isbn>:``."""
    if prefix is None:
        prefix = keys.cart_item_prefix(item.isbn)
    return encode_fields(item, CART_ITEM_FIELDS, prefix=prefix)


def cart_to_fields(
    cart: Cart, item_prefix: Callable[[str], str] = keys.cart_item_prefix
) -> dict[str, str]:
    out = encode_fields(cart, CART_FIELDS)
    for item in cart.items:
        out.update(cart_item_to_fields(item, prefix=item_prefix(item.isbn)))
    return out


def cart_items_from_fields(fields: Mapping[str, str]) -> list[CartItem]:
    """Group ``items:<isbn>:*`` fields by isbn into one CartItem per isbn."""
    isbns: dict[str, None] = {}
    for name in fields:
        parsed = keys.parse_cart_item_field(name)
        if parsed is not None:
            isbns.setdefault(parsed[0], None)

    items: list[CartItem] = []
    for isbn in isbns:
        prefix = f"{keys.CART_ITEMS_PREFIX}{keys.DELIMITER}{isbn}{keys.DELIMITER}"
        values = decode_fields("CartItem", fields, CART_ITEM_FIELDS, prefix=prefix)
        if values["isbn"] != isbn:
            raise EntityDecodeError(
                "CartItem", f"{prefix}Isbn", values["isbn"], "isbn does not match field name"
            )
        items.append(CartItem(**values))
    return items


def cart_from_fields(fields: RawFields) -> Cart:
    flat = normalize_fields(fields)
    values = decode_fields("Cart", flat, CART_FIELDS)
    values["items"] = cart_items_from_fields(flat)
    return Cart(**values)


def encode_closed(closed: bool) -> dict[str, str]:
    """The single field written when a cart is opened or closed."""
    return {CLOSED_FIELD: _encode_bool(closed)}


def decode_closed(raw: Any) -> bool:
    try:
        return _decode_bool(_text(raw))
    except ValueError as e:
        raise EntityDecodeError("Cart", CLOSED_FIELD, raw, str(e)) from e
