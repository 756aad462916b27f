#!/usr/bin/env python3
"""Seed Redis with books and users.

Loads:
- Books from a JSON file, or every *.json file in a directory
  (each file holds a list of book objects in the catalogue format below)
- Users from a JSON file holding a list of {"id", "password", "books"?}

Then recreates the books and cart indexes. Writes are upserts, so the script
can be re-run; users get freshly salted password hashes each time.

Book objects:
    {"id": "...", "title": "...", "subtitle": "...", "description": "...",
     "price": "9.99", "authors": ["..."], "language": "en", "pageCount": 320,
     "thumbnail": "...", "currency": "USD", "infoLink": "..."}

Usage:
    python -m scripts.seed

Optional env vars:
  SEED_BOOKS_PATH=data/books
  SEED_USERS_PATH=data/users/users.json
  BCRYPT_WORK_FACTOR=4   (much faster for large demo user sets)
"""

import asyncio
import json
import os
from pathlib import Path
import sys
from typing import Any

# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv  # noqa: E402

from bookstore.models import Book, User  # noqa: E402
from bookstore.services import BookService, CartService, UserService  # noqa: E402
from bookstore.stores.redis import close_redis, init_redis  # noqa: E402

load_dotenv()

# Catalogue JSON key -> Book attribute
BOOK_JSON_KEYS = {
    "id": "id",
    "title": "title",
    "subtitle": "subtitle",
    "description": "description",
    "price": "price",
    "authors": "authors",
    "language": "language",
    "pageCount": "page_count",
    "thumbnail": "thumbnail",
    "currency": "currency",
    "infoLink": "info_link",
}


def _json_files(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted(path.glob("*.json"))
    return [path] if path.exists() else []


def _load_list(path: Path) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for file in _json_files(path):
        data = json.loads(file.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{file} must contain a JSON list")
        out.extend(data)
    return out


def book_from_json(data: dict[str, Any]) -> Book:
    values = {attr: data[key] for key, attr in BOOK_JSON_KEYS.items() if data.get(key) is not None}
    return Book(**values)


def user_from_json(data: dict[str, Any]) -> User:
    return User(id=data["id"], password=data["password"], books=data.get("books") or [])


async def seed(books_path: Path, users_path: Path) -> dict[str, int]:
    client = await init_redis()
    try:
        books = BookService(client)
        users = UserService(client)
        carts = CartService(client, users)

        book_rows = [book_from_json(b) for b in _load_list(books_path)]
        user_rows = [user_from_json(u) for u in _load_list(users_path)]

        await books.create_bulk(book_rows)
        await users.create_bulk(user_rows)
        await books.create_index()
        await carts.create_index()
        return {"books": len(book_rows), "users": len(user_rows)}
    finally:
        await close_redis()


async def main() -> None:
    books_path = Path(os.getenv("SEED_BOOKS_PATH", "data/books"))
    users_path = Path(os.getenv("SEED_USERS_PATH", "data/users/users.json"))
    totals = await seed(books_path, users_path)
    print({"ok": True, **totals})


if __name__ == "__main__":
    asyncio.run(main())
