"""Domain models.

Models are plain pydantic objects; how they are laid out in Redis lives in
``bookstore.stores.mapping``:
- User: scalar hash + owned-books set
- Book: flat hash, authors spread over ``authors.[N]`` fields
- Cart: scalar hash with line items flattened into ``items:<isbn>:*`` fields
"""

from bookstore.models.book import Book
from bookstore.models.cart import Cart, CartItem
from bookstore.models.user import User

__all__ = ["Book", "Cart", "CartItem", "User"]
