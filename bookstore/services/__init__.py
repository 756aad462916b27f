"""Query services.

Services combine key naming, entity mapping and the search indexes into the
operations callers use. They receive their Redis client explicitly.
"""

from bookstore.services.books import BookService
from bookstore.services.carts import CartService
from bookstore.services.users import UserService

__all__ = ["BookService", "CartService", "UserService"]
