# gabinete/routers/cep.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..clients.viacep import PostalLookupError, ViaCepClient
from ..config import settings
from ..schemas import PostalAddressOut

router = APIRouter(tags=["cep"])


def get_cep_client() -> ViaCepClient:
    return ViaCepClient()


@router.get("/cep", response_model=PostalAddressOut)
def lookup_cep(cep: str = Query(default=""), client: ViaCepClient = Depends(get_cep_client)):
    try:
        address = client.lookup(cep)
    except PostalLookupError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    return JSONResponse(
        status_code=200,
        content=address.as_dict(),
        headers={"Cache-Control": f"public, max-age={settings.postal_lookup_cache_seconds}"},
    )
