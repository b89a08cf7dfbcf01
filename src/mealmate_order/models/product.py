"""
Product models for Instamart search results.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Product(BaseModel):
    """Single product returned by a catalog search."""
    product_id: str = Field(validation_alias=AliasChoices("product_id", "productId", "id"))
    name: str
    price: float
    mrp: Optional[float] = None
    unit: str = ""
    in_stock: bool = Field(default=True, validation_alias=AliasChoices("in_stock", "inStock"))
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("product_id", mode="before")
    @classmethod
    def id_as_text(cls, v):
        return str(v)

    @field_validator("price")
    @classmethod
    def check_non_negative(cls, v):
        if v < 0:
            raise ValueError("Price must be non-negative")
        return v

    def to_tool_payload(self) -> dict:
        """Shape handed back to the reasoning agent."""
        return {
            "id": self.product_id,
            "name": self.name,
            "price": self.price,
            "mrp": self.mrp,
            "unit": self.unit,
            "inStock": self.in_stock,
            "description": self.description,
        }
