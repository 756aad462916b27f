"""Redis persistence and search layer for a small bookstore (users, books, carts)."""
