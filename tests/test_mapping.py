"""Tests for the entity <-> hash mapping."""

import pytest

from bookstore.errors import EntityDecodeError
from bookstore.models import Book, Cart, CartItem, User
from bookstore.stores import mapping


def _book() -> Book:
    return Book(
        id="b1",
        title="Foo",
        subtitle="A subtitle",
        description="About foo",
        price=9.99,
        authors=["A", "B"],
        page_count=320,
        currency="USD",
    )


def test_book_fields_layout():
    fields = mapping.book_to_fields(_book())
    assert fields["id"] == "b1"
    assert fields["price"] == "9.99"
    assert fields["authors.[0]"] == "A"
    assert fields["authors.[1]"] == "B"
    assert fields["pageCount"] == "320"
    # Unset optional fields are not written
    assert "language" not in fields
    assert "infoLink" not in fields


def test_book_round_trip():
    book = _book()
    assert mapping.book_from_fields(mapping.book_to_fields(book)) == book


def test_book_authors_ordered_by_position():
    fields = {"id": "b2", "authors.[10]": "K", "authors.[2]": "C", "authors.[0]": "A"}
    assert mapping.book_from_fields(fields).authors == ["A", "C", "K"]


def test_book_id_taken_from_document_key_when_field_missing():
    book = mapping.book_from_fields({"title": "Foo", "price": "1.5"}, book_id="b9")
    assert book.id == "b9"
    assert book.price == 1.5


def test_book_bad_price_raises_decode_error():
    with pytest.raises(EntityDecodeError) as exc_info:
        mapping.book_from_fields({"id": "b1", "price": "cheap"})
    assert exc_info.value.field == "price"


def test_user_fields_exclude_books():
    user = User(id="u1", password="hash", books=["b1"])
    assert mapping.user_to_fields(user) == {"Id": "u1", "Password": "hash"}


def test_user_round_trip_with_books():
    user = User(id="u1", password="hash", books=["b1", "b2"])
    fields = mapping.user_to_fields(user)
    assert mapping.user_from_fields(fields, {"b2", "b1"}) == user


def test_fields_from_bytes_are_decoded():
    user = mapping.user_from_fields({b"Id": b"u1", b"Password": b"h"}, [b"b1"])
    assert user == User(id="u1", password="h", books=["b1"])


def test_cart_fields_layout():
    cart = Cart(id="3", user_id="u1", items=[CartItem(isbn="111", price=5.0, quantity=2)])
    assert mapping.cart_to_fields(cart) == {
        "Id": "3",
        "UserId": "u1",
        "Closed": "false",
        "items:111:Isbn": "111",
        "items:111:Price": "5.0",
        "items:111:Quantity": "2",
    }


def test_cart_round_trip():
    cart = Cart(
        id="3",
        user_id="u1",
        closed=True,
        items=[
            CartItem(isbn="111", price=5.0, quantity=2),
            CartItem(isbn="222", price=12.5, quantity=1),
        ],
    )
    assert mapping.cart_from_fields(mapping.cart_to_fields(cart)) == cart


def test_cart_item_prefix_generator_is_used():
    cart = Cart(id="3", user_id="u1", items=[CartItem(isbn="111", price=1.0)])
    fields = mapping.cart_to_fields(cart, item_prefix=lambda isbn: f"items:{isbn}:")
    assert "items:111:Quantity" in fields


def test_cart_items_grouped_one_per_isbn():
    fields = {
        "Id": "1",
        "UserId": "u1",
        "Closed": "False",
        "items:111:Quantity": "3",
        "items:222:Isbn": "222",
        "items:111:Isbn": "111",
        "items:111:Price": "4.5",
        "items:222:Price": "1",
        "items:222:Quantity": "1",
    }
    cart = mapping.cart_from_fields(fields)
    assert cart.closed is False
    assert sorted((i.isbn, i.price, i.quantity) for i in cart.items) == [
        ("111", 4.5, 3),
        ("222", 1.0, 1),
    ]


def test_cart_item_missing_attribute_raises():
    fields = {"Id": "1", "UserId": "u1", "items:111:Isbn": "111", "items:111:Price": "4.5"}
    with pytest.raises(EntityDecodeError):
        mapping.cart_from_fields(fields)


def test_cart_item_isbn_mismatch_raises():
    fields = {
        "Id": "1",
        "UserId": "u1",
        "items:111:Isbn": "999",
        "items:111:Price": "4.5",
        "items:111:Quantity": "1",
    }
    with pytest.raises(EntityDecodeError):
        mapping.cart_from_fields(fields)


@pytest.mark.parametrize(
    "field,value",
    [("Closed", "maybe"), ("items:111:Quantity", "two"), ("items:111:Price", "")],
)
def test_cart_malformed_values_raise(field: str, value: str):
    fields = {
        "Id": "1",
        "UserId": "u1",
        "Closed": "false",
        "items:111:Isbn": "111",
        "items:111:Price": "4.5",
        "items:111:Quantity": "1",
    }
    fields[field] = value
    with pytest.raises(EntityDecodeError):
        mapping.cart_from_fields(fields)


@pytest.mark.parametrize("raw,expected", [("true", True), ("True", True), ("1", True), ("0", False)])
def test_decode_closed(raw: str, expected: bool):
    assert mapping.decode_closed(raw) is expected
