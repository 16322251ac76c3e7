# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the PackShop API:
# - test_models.py: Pydantic model validation and shared utilities
# - test_catalog_service.py: Catalog reads, admin writes, CSV import
# - test_order_lifecycle.py: Order state machine and assembly claim
# - test_pack_assembler.py: ZIP assembly from object storage
# - test_pack_service.py: Generation, download and expiry sweep
# - test_providers.py: Payment and email HTTP clients
# - test_api.py: Endpoint scenarios through the FastAPI TestClient
#
# Run tests with: pytest
# =============================================================================
