"""
Cart builder interface shared by the agent loop and the scripted builder.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.state import CartBuildRequest, CartBuildResult


class CartBuilder(ABC):
    """Fills the remote cart from a grocery list."""

    @abstractmethod
    def build(self, request: CartBuildRequest, session_id: Optional[str] = None) -> CartBuildResult:
        """
        Build the cart for `request`.

        Raises:
            SessionError: the Swiggy login was rejected mid-build
        """


def match_item_name(query: str, item_names: List[str]) -> str:
    """Map a search query back to the grocery item it was for."""
    lowered = query.strip().lower()
    for name in item_names:
        if name.lower() == lowered:
            return name
    for name in item_names:
        if name.lower() in lowered or lowered in name.lower():
            return name
    return query.strip()


def dedupe(names: List[str]) -> List[str]:
    seen = set()
    unique = []
    for name in names:
        key = name.lower()
        if key not in seen:
            seen.add(key)
            unique.append(name)
    return unique
