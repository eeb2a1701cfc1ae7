from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Catalog entry. Updates replace the record instead of mutating it."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: str = ""
    price: float
    in_stock: bool = True
    features: List[str] = []
    specifications: Dict[str, Any] = {}
    tags: List[str] = []

    @property
    def searchable_content(self) -> str:
        return " ".join(
            [
                self.name,
                self.description,
                self.category,
                " ".join(self.features),
                " ".join(self.tags),
            ]
        )

    @property
    def stock_label(self) -> str:
        return "In Stock" if self.in_stock else "Out of Stock"


class ProductEmbedding(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    vector: List[float]
    metadata: Dict[str, Any] = {}

    @property
    def dimensions(self) -> int:
        return len(self.vector)


def build_embedding_metadata(product: Product) -> Dict[str, Any]:
    """Denormalized product fields stored next to the vector."""
    return {
        "product_id": product.id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price": product.price,
        "in_stock": product.in_stock,
        "features": list(product.features),
        "tags": list(product.tags),
        "specifications": dict(product.specifications),
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


def product_from_metadata(metadata: Dict[str, Any]) -> Product:
    return Product(
        id=str(metadata["product_id"]),
        name=metadata.get("name") or "",
        description=metadata.get("description") or "",
        category=metadata.get("category") or "",
        price=float(metadata.get("price") or 0.0),
        in_stock=bool(metadata.get("in_stock", True)),
        features=list(metadata.get("features") or []),
        specifications=dict(metadata.get("specifications") or {}),
        tags=list(metadata.get("tags") or []),
    )


class EmbeddingInfo(BaseModel):
    exists: bool
    dimensions: int | None = None
    created_at: str | None = None


class ProductCreate(BaseModel):
    id: str | None = None
    name: str = Field(..., min_length=1)
    description: str = ""
    category: str = ""
    price: float = Field(..., ge=0)
    in_stock: bool = True
    features: List[str] = []
    specifications: Dict[str, Any] = {}
    tags: List[str] = []
