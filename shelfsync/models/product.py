# shelfsync/models/product.py

"""Product data model shared by the client, store and view layers."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Rating:
    """Aggregate customer rating for a product."""

    rate: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class Product:
    """A single catalog entry as served by the remote API.

    Instances are never patched; a refresh replaces the whole catalog.
    """

    id: int
    title: str
    price: float
    category: str = ""
    description: str = ""
    image: str = ""
    rating: Rating = field(default_factory=Rating)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        """Build a Product from the API / cache JSON shape.

        Raises ``KeyError``, ``TypeError`` or ``ValueError`` when a
        required field is missing or has the wrong type.
        """
        raw_rating = data.get("rating") or {}
        if not isinstance(raw_rating, dict):
            raise TypeError(f"rating must be an object, got {raw_rating!r}")
        raw_id = data["id"]
        if isinstance(raw_id, bool):
            raise TypeError("id must be an integer")
        if isinstance(raw_id, float) and not raw_id.is_integer():
            raise ValueError(f"id must be integral, got {raw_id!r}")
        return cls(
            id=int(raw_id),
            title=str(data["title"]),
            price=float(data["price"]),
            category=str(data.get("category", "")),
            description=str(data.get("description", "")),
            image=str(data.get("image", "")),
            rating=Rating(
                rate=float(raw_rating.get("rate", 0.0)),
                count=int(raw_rating.get("count", 0)),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the same JSON shape the API returns."""
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "description": self.description,
            "category": self.category,
            "image": self.image,
            "rating": {
                "rate": self.rating.rate,
                "count": self.rating.count,
            },
        }
