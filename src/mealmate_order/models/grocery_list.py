"""
Grocery list related models.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GroceryCategory(str, Enum):
    """Aisle a grocery item belongs to."""
    VEGETABLES = "vegetables"
    FRUITS = "fruits"
    DAIRY = "dairy"
    PROTEIN = "protein"
    GRAINS = "grains"
    SPICES = "spices"
    PANTRY = "pantry"
    OTHER = "other"


class GroceryItem(BaseModel):
    """Item from the user's meal-plan grocery list."""
    name: str = Field(min_length=1)
    quantity: str = "1"
    unit: str = ""
    category: GroceryCategory = GroceryCategory.OTHER
    source_recipes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Item name must not be blank")
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def quantity_as_text(cls, v):
        if v is None:
            return "1"
        return str(v)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        if isinstance(v, GroceryCategory):
            return v
        try:
            return GroceryCategory(str(v).lower())
        except ValueError:
            return GroceryCategory.OTHER

    def describe(self) -> str:
        """Render as `name: qty unit`, e.g. `milk: 1 liter`."""
        amount = f"{self.quantity} {self.unit}".strip()
        return f"{self.name}: {amount}"
