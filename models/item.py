"""
Catalog item models.

The upstream API returns one row per size variant in snake_case. These
models translate rows into camelCase-facing dataclasses and group the rows
of one product (same name + education level) into an ItemGroup whose stock
is the sum of its variants.

Thread Safety:
    - Item and ItemGroup are frozen dataclasses (immutable)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


ALL_EDUCATION_LEVELS = ("all education levels", "general")
"""Education level labels meaning "orderable by every student"."""

UNISEX = "Unisex"

LIMITED_STOCK_THRESHOLD = 20

NO_SIZE = "N/A"


class StockStatus(Enum):
    """Stock status derived from the stock count."""

    OUT_OF_STOCK = "out_of_stock"
    LIMITED_STOCK = "limited_stock"
    IN_STOCK = "in_stock"

    @classmethod
    def from_stock(cls, stock: int) -> "StockStatus":
        if stock <= 0:
            return cls.OUT_OF_STOCK
        if stock < LIMITED_STOCK_THRESHOLD:
            return cls.LIMITED_STOCK
        return cls.IN_STOCK


def _to_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def is_all_education_levels(education_level: Optional[str]) -> bool:
    """Whether an education level label means "every student"."""
    return (education_level or "").strip().lower() in ALL_EDUCATION_LEVELS


@dataclass(frozen=True)
class Item:
    """
    One catalog row: a product in a single size.
    """

    id: str
    """Inventory row UUID."""

    name: str
    """Display name (e.g. 'Jogging Pants (Elementary)')."""

    education_level: str = "General"
    """Education level the item belongs to."""

    item_type: str = "Uniform"
    """Item type (Uniform, Accessories, ...)."""

    stock: int = 0
    """Units on hand for this size."""

    size: str = NO_SIZE
    """Size label, 'N/A' for size-less items."""

    for_gender: str = UNISEX
    """Target gender: Unisex, Male or Female."""

    price: float = 0.0
    """Unit price."""

    image: Optional[str] = None
    category: str = "General"

    @property
    def status(self) -> StockStatus:
        return StockStatus.from_stock(self.stock)

    @property
    def is_for_all_education_levels(self) -> bool:
        return is_all_education_levels(self.education_level)

    @property
    def has_size(self) -> bool:
        return bool(self.size) and self.size.strip().upper() != NO_SIZE

    @property
    def requires_size(self) -> bool:
        return self.has_size

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape the student UI consumes."""
        return {
            "id": self.id,
            "name": self.name,
            "educationLevel": self.education_level,
            "itemType": self.item_type,
            "stock": self.stock,
            "size": self.size,
            "forGender": self.for_gender,
            "price": self.price,
            "image": self.image,
            "category": self.category,
            "status": self.status.value,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Item":
        """
        Create an Item from an upstream row.

        Accepts snake_case (upstream) and camelCase (already translated)
        keys; a missing gender means Unisex.
        """
        size = (data.get("size") or NO_SIZE).strip() or NO_SIZE
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "Unknown Item",
            education_level=(
                data.get("education_level") or data.get("educationLevel") or "General"
            ),
            item_type=data.get("item_type") or data.get("itemType") or "Uniform",
            stock=_to_int(data.get("stock")),
            size=size,
            for_gender=(
                (data.get("for_gender") or data.get("forGender") or UNISEX).strip() or UNISEX
            ),
            price=_to_float(data.get("price")),
            image=data.get("image"),
            category=data.get("category") or "General",
        )


@dataclass(frozen=True)
class ItemGroup:
    """
    All size variants of one product (same name + education level).

    Stock is summed across variants. Representative fields (type, gender,
    price, image) come from the first variant that defines them.
    """

    name: str
    education_level: str
    variations: Tuple[Item, ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return self.variations[0].id if self.variations else ""

    @property
    def item_type(self) -> str:
        return self.variations[0].item_type if self.variations else "Uniform"

    @property
    def for_gender(self) -> str:
        return self.variations[0].for_gender if self.variations else UNISEX

    @property
    def price(self) -> float:
        return self.variations[0].price if self.variations else 0.0

    @property
    def image(self) -> Optional[str]:
        for variation in self.variations:
            if variation.image:
                return variation.image
        return None

    @property
    def stock(self) -> int:
        return sum(v.stock for v in self.variations)

    @property
    def status(self) -> StockStatus:
        return StockStatus.from_stock(self.stock)

    @property
    def is_for_all_education_levels(self) -> bool:
        return is_all_education_levels(self.education_level)

    @property
    def requires_size(self) -> bool:
        """Whether ordering needs a size pick (any variant has a real size)."""
        return any(v.has_size for v in self.variations)

    @property
    def sizes(self) -> List[str]:
        return [v.size for v in self.variations]

    def variation_for_size(self, size: Optional[str]) -> Optional[Item]:
        """Find the variant for a size label (case-insensitive)."""
        if not size:
            return None
        wanted = size.strip().lower()
        for variation in self.variations:
            if variation.size.strip().lower() == wanted:
                return variation
        return None

    def variation_by_id(self, item_id: str) -> Optional[Item]:
        for variation in self.variations:
            if variation.id == item_id:
                return variation
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "educationLevel": self.education_level,
            "itemType": self.item_type,
            "forGender": self.for_gender,
            "price": self.price,
            "image": self.image,
            "stock": self.stock,
            "status": self.status.value,
            "requiresSize": self.requires_size,
            "variations": [v.to_dict() for v in self.variations],
        }


def group_items(items: List[Item]) -> List[ItemGroup]:
    """
    Group size rows by (name, education level).

    Group order follows first appearance; variants inside a group are
    sorted by size label.

    Args:
        items: Item rows as returned by the items endpoint

    Returns:
        One ItemGroup per product
    """
    grouped: Dict[Tuple[str, str], List[Item]] = {}
    for item in items:
        grouped.setdefault((item.name, item.education_level), []).append(item)

    return [
        ItemGroup(
            name=name,
            education_level=education_level,
            variations=tuple(sorted(rows, key=lambda v: v.size)),
        )
        for (name, education_level), rows in grouped.items()
    ]
