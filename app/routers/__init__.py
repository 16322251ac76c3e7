# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - catalog.py: Public catalog (categories, products)
# - orders.py: Payment intents, orders, payment confirmation, pack status
# - packs.py: Pack generation and download redirects
# - admin.py: Uploads, file listings, catalog management, stats
#
# Each router is mounted in main.py, at the root and under /api.
# =============================================================================

from . import health
from . import catalog
from . import orders
from . import packs
from . import admin

__all__ = [
    "health",
    "catalog",
    "orders",
    "packs",
    "admin",
]
