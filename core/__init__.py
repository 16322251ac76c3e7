# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the shop's business logic:
# - models/: Pydantic schemas for products, orders and packs
# - services/: Catalog, order lifecycle, pack assembly and delivery,
#   payment and email clients
#
# Code in this package should NOT import from FastAPI routers or Celery
# tasks directly; the one exception is enqueueing assembly.
# =============================================================================
