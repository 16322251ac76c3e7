# =============================================================================
# app/routers/catalog.py - Public Catalog Endpoints
# =============================================================================
# Read-only catalog for the storefront. No authentication.
# =============================================================================

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from core.models.product import ProductCategory
from core.services.catalog_service import CatalogService

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class CatalogFile(BaseModel):
    """One selectable file in a category."""
    id: str = Field(..., example="temp1")
    name: str = Field(..., example="Landing page template")
    size: str = Field(..., example="10.00 MB")
    sizeBytes: int = Field(..., example=10485760)
    price: int = Field(..., example=1500, description="Price in cents")


class CatalogCategory(BaseModel):
    """A category with its active files."""
    id: str = Field(..., example="templates")
    name: str
    description: str
    files: list[CatalogFile]


class CategoriesResponse(BaseModel):
    categories: list[CatalogCategory]


class ProductsResponse(BaseModel):
    """Flat catalog keyed by category."""
    success: bool = True
    catalog: dict[str, list[dict[str, Any]]]
    stats: dict[str, int]


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/categories", response_model=CategoriesResponse)
async def list_categories():
    """
    List categories with their active files.

    Every category is returned, including empty ones.
    """
    return CategoriesResponse(categories=CatalogService.list_categories())


@router.get("/products", response_model=ProductsResponse)
async def list_products(
    category: ProductCategory | None = Query(default=None, description="Restrict to one category"),
):
    """Active products grouped by category, with counts."""
    summary = CatalogService.catalog_summary(category)
    return ProductsResponse(catalog=summary["catalog"], stats=summary["stats"])
