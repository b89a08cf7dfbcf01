"""
Remote cart models.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CartLineItem(BaseModel):
    """One product line in the remote cart."""
    product_id: str = Field(validation_alias=AliasChoices("product_id", "productId", "id"))
    name: str = ""
    quantity: int = 1
    unit_price: float = Field(default=0.0, validation_alias=AliasChoices("unit_price", "price"))
    line_total: Optional[float] = Field(default=None, validation_alias=AliasChoices("line_total", "total"))

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("product_id", mode="before")
    @classmethod
    def id_as_text(cls, v):
        return str(v)

    def model_post_init(self, __context) -> None:
        if self.line_total is None:
            self.line_total = round(self.unit_price * self.quantity, 2)


class CartSnapshot(BaseModel):
    """
    Point-in-time view of the remote cart.

    Snapshots are never cached past one loop round; callers re-fetch.
    """
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "cartId", "cart_id"))
    items: List[CartLineItem] = Field(default_factory=list)
    subtotal: float = 0.0
    delivery_fee: float = Field(default=0.0, validation_alias=AliasChoices("delivery_fee", "deliveryFee"))
    taxes: float = 0.0
    total: float = 0.0
    item_count: Optional[int] = Field(default=None, validation_alias=AliasChoices("item_count", "itemCount"))

    model_config = ConfigDict(populate_by_name=True)

    def model_post_init(self, __context) -> None:
        if self.item_count is None:
            self.item_count = sum(i.quantity for i in self.items)

    def product_ids(self) -> List[str]:
        return [i.product_id for i in self.items]

    def to_tool_payload(self) -> dict:
        return {
            "id": self.id,
            "items": [
                {
                    "productId": i.product_id,
                    "name": i.name,
                    "quantity": i.quantity,
                    "price": i.unit_price,
                    "total": i.line_total,
                }
                for i in self.items
            ],
            "subtotal": self.subtotal,
            "deliveryFee": self.delivery_fee,
            "taxes": self.taxes,
            "total": self.total,
            "itemCount": self.item_count,
        }
