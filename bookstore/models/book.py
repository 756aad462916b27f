"""Book model."""

from pydantic import BaseModel, Field


class Book(BaseModel):
    """A catalogue entry, keyed by isbn."""

    id: str
    title: str = ""
    subtitle: str = ""
    description: str = ""
    price: float = 0.0
    authors: list[str] = Field(default_factory=list)

    # Optional catalogue details (not indexed)
    language: str | None = None
    page_count: int | None = None
    thumbnail: str | None = None
    currency: str | None = None
    info_link: str | None = None
