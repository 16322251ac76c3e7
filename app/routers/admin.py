# =============================================================================
# app/routers/admin.py - Admin Endpoints
# =============================================================================
# File uploads, bucket listings, catalog management and shop statistics.
# Every endpoint requires the admin shared secret.
# =============================================================================

import logging
from posixpath import basename
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile
from pydantic import BaseModel, Field

from app.auth import require_admin
from app.config import settings
from app.exceptions import FileTooLargeError, InvalidFileTypeError, ValidationError
from core.models.product import Product, ProductCategory, ProductCreate, ProductUpdate
from core.services.catalog_service import CatalogService
from core.services.order_service import OrderService
from core.services.pack_service import PackService
from core.services.storage_service import StorageService
from lib.supabase_client import PRODUCTS_TABLE, SupabaseClient

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

CSV_EXTENSIONS = [".csv"]


# =============================================================================
# Response Models
# =============================================================================

class UploadedFile(BaseModel):
    key: str = Field(..., example="templates/landing.zip")
    name: str
    size: int
    category: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str = "Fichier uploadé avec succès"
    file: UploadedFile
    replaced: bool = Field(default=False, description="An object already existed under the key")
    product: Product | None = None


class StatsResponse(BaseModel):
    products_active: int
    orders_paid: int
    orders_completed: int
    orders_failed: int
    revenue_minor_units: int
    currency: str
    packs_active: int


# =============================================================================
# Files
# =============================================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Annotated[UploadFile, File(description="Product file")],
    category: Annotated[ProductCategory, Form(description="Target category folder")],
    register: Annotated[bool, Form(description="Also register a catalog product")] = False,
    price: Annotated[int, Form(ge=0, description="Price in cents when registering")] = 0,
    name: Annotated[str | None, Form(description="Product name when registering")] = None,
):
    """
    Upload a product file to {category}/{filename}.

    An existing object under the same key is replaced.
    """
    filename = basename((file.filename or "").replace("\\", "/")).strip()
    if not filename or filename.startswith("."):
        raise ValidationError("Veuillez sélectionner un fichier", code="NO_FILE")

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise FileTooLargeError(len(content) / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)

    target_key = f"{category.value}/{filename}"
    replaced = StorageService.exists(target_key)
    if replaced:
        logger.info(f"Admin upload replaces existing object {target_key}")

    key = StorageService.put(content, target_key, file.content_type)
    logger.info(f"Admin upload: {key} ({len(content)} bytes)")

    product = None
    if register:
        product = CatalogService.create_product(ProductCreate(
            name=name or filename.rsplit(".", 1)[0],
            category=category,
            storage_key=key,
            size_bytes=len(content),
            price_minor_units=price,
        ))

    return UploadResponse(
        file=UploadedFile(key=key, name=filename, size=len(content), category=category.value),
        replaced=replaced,
        product=product,
    )


@router.get("/files")
async def list_files(
    category: ProductCategory | None = Query(default=None, description="Restrict to one folder"),
) -> dict[str, Any]:
    """List stored files per category with size and modification time."""
    categories = [category] if category else list(ProductCategory)

    files = {c.value: StorageService.list_objects(c.value) for c in categories}
    return {
        "success": True,
        "files": files,
        "total": sum(len(items) for items in files.values()),
    }


@router.get("/stats", response_model=StatsResponse)
async def shop_stats():
    """Catalog, order and pack counters."""
    revenue = OrderService.revenue_summary()
    return StatsResponse(
        products_active=SupabaseClient.count_rows(PRODUCTS_TABLE, is_active=True),
        currency=settings.CURRENCY,
        packs_active=PackService.active_pack_count(),
        **revenue,
    )


# =============================================================================
# Catalog
# =============================================================================

@router.get("/products", response_model=list[Product])
async def list_products():
    """All products, inactive ones included."""
    return CatalogService.list_all_products()


@router.post("/products", response_model=Product, status_code=201)
async def create_product(request: ProductCreate):
    """Register a product for an already uploaded file."""
    return CatalogService.create_product(request)


@router.patch("/products/{product_id}", response_model=Product)
async def update_product(
    product_id: Annotated[str, Path(description="Product id")],
    request: ProductUpdate,
):
    """Edit a product. Only the provided fields change."""
    return CatalogService.update_product(product_id, request)


@router.delete("/products/{product_id}", response_model=Product)
async def delete_product(
    product_id: Annotated[str, Path(description="Product id")],
):
    """Soft-delete a product. Existing orders keep their files."""
    return CatalogService.deactivate_product(product_id)


@router.post("/catalog/import")
async def import_catalog(
    file: Annotated[UploadFile, File(description="products.csv")],
) -> dict[str, Any]:
    """Bulk import products from a CSV file."""
    filename = file.filename or "products.csv"
    if not any(filename.lower().endswith(ext) for ext in CSV_EXTENSIONS):
        raise InvalidFileTypeError(filename, CSV_EXTENSIONS)

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise FileTooLargeError(len(content) / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)

    result = CatalogService.import_csv(content)
    return {"success": True, **result}
