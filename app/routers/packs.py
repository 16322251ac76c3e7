# =============================================================================
# app/routers/packs.py - Pack Generation and Download Endpoints
# =============================================================================

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from core.services.pack_service import PackService
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


class GeneratePackResponse(BaseModel):
    """packId is null while an earlier request's assembly is still running."""
    packId: str | None = Field(..., example="pack_3f9a1c0e5b7d2a44")
    status: str = Field(..., example="processing")


@router.post("/generate-pack/{purchase_id}", response_model=GeneratePackResponse)
async def generate_pack(
    purchase_id: Annotated[UUID, Path(description="Purchase id of a paid order")],
):
    """
    Start pack assembly for a paid order.

    Safe to call repeatedly: only the first call on a paid order starts an
    assembly; later calls report the existing pack or the running job.
    """
    result = PackService.request_generation(normalize_uuid(purchase_id))
    return GeneratePackResponse(**result)


@router.get("/download/{reference}")
async def download_pack(
    reference: Annotated[str, Path(description="Download token or pack id")],
):
    """
    Redirect to a fresh signed URL for the pack archive.

    - 404 if the token / pack id is unknown
    - 410 once the pack has expired
    """
    pack = PackService.get_pack(reference)
    url = PackService.issue_download_url(pack)
    return RedirectResponse(url=url, status_code=307)
