"""
services/pnr/router.py
PNR prefill for the booking form.
"""

from fastapi import APIRouter, Depends, Path

from services.pnr.lookup import PNRLookup
from shared.schemas.schemas import PNR_PATTERN, PNRResponse

router = APIRouter(prefix="/pnr", tags=["PNR"])


def get_pnr_lookup() -> PNRLookup:
    return PNRLookup()


@router.get("/{pnr}", response_model=PNRResponse)
async def get_pnr_status(
    pnr: str = Path(..., pattern=PNR_PATTERN),
    lookup: PNRLookup = Depends(get_pnr_lookup),
):
    """`source` is "fallback" when the live provider could not be used."""
    return await lookup.lookup(pnr)
