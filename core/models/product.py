# =============================================================================
# core/models/product.py - Catalog Schemas
# =============================================================================
# These models define catalog products:
# - ProductCategory: Enum of the four catalog sections
# - Product: A sellable file stored in object storage
# - ProductCreate / ProductUpdate: Admin write payloads
#
# A product is immutable except through admin edits and is soft-deleted by
# clearing `is_active`.
# =============================================================================

from datetime import datetime
from enum import Enum
from posixpath import basename

from pydantic import BaseModel, Field


class ProductCategory(str, Enum):
    """
    Catalog sections.

    The category is also the top-level folder of a product's storage key
    (templates/temp1.zip).
    """
    TEMPLATES = "templates"
    PLUGINS = "plugins"
    RESOURCES = "resources"
    DOCS = "docs"


# Display name and description shown by GET /categories
CATEGORY_LABELS: dict[ProductCategory, tuple[str, str]] = {
    ProductCategory.TEMPLATES: ("Templates", "Modèles prêts à l'emploi"),
    ProductCategory.PLUGINS: ("Plugins", "Extensions et modules"),
    ProductCategory.RESOURCES: ("Ressources", "Ressources graphiques et médias"),
    ProductCategory.DOCS: ("Documentation", "Guides et documentation"),
}


class Product(BaseModel):
    """
    A catalog product backed by one object in storage.

    Example:
        {
            "id": "temp1",
            "name": "Landing Page Template",
            "category": "templates",
            "storage_key": "templates/temp1.zip",
            "size_bytes": 10485760,
            "price_minor_units": 500,
            "is_active": true
        }
    """

    id: str = Field(..., min_length=1, description="Unique product identifier")

    name: str = Field(..., min_length=1, description="Display name")

    description: str | None = Field(default=None, description="Product description")

    category: ProductCategory = Field(..., description="Catalog section")

    storage_key: str = Field(..., min_length=1, description="Object key of the product file")

    size_bytes: int = Field(default=0, ge=0, description="File size in bytes")

    price_minor_units: int = Field(default=0, ge=0, description="Price in cents")

    is_active: bool = Field(default=True, description="False once soft-deleted")

    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @property
    def file_name(self) -> str:
        """Last path segment of the storage key."""
        return basename(self.storage_key)


class ProductCreate(BaseModel):
    """Admin payload for registering a product."""

    id: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Optional id; generated from the category when omitted"
    )
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category: ProductCategory
    storage_key: str = Field(..., min_length=1)
    size_bytes: int = Field(default=0, ge=0)
    price_minor_units: int = Field(..., ge=0)
    is_active: bool = True


class ProductUpdate(BaseModel):
    """Admin payload for editing a product. Only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category: ProductCategory | None = None
    storage_key: str | None = Field(default=None, min_length=1)
    size_bytes: int | None = Field(default=None, ge=0)
    price_minor_units: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
