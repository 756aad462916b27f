"""User model."""

from pydantic import BaseModel, Field


class User(BaseModel):
    """A store user.

    ``password`` holds plaintext only until the user is created; what is
    persisted and read back is the bcrypt hash.
    """

    id: str
    password: str = ""

    # Owned isbns, persisted in the User:<id>:Books set
    books: list[str] = Field(default_factory=list)
