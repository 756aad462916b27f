"""Cart and cart line item models."""

from pydantic import BaseModel, Field


class CartItem(BaseModel):
    """A line item. Price is captured when the item is added."""

    isbn: str
    price: float
    quantity: int = 1


class Cart(BaseModel):
    """A user's cart. Open while ``closed`` is False."""

    id: str
    user_id: str
    closed: bool = False
    items: list[CartItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def item(self, isbn: str) -> CartItem | None:
        return next((i for i in self.items if i.isbn == isbn), None)
