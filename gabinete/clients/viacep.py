# gabinete/clients/viacep.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import settings

log = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_CEP = re.compile(r"^\d{8}$")


@dataclass(frozen=True)
class PostalAddress:
    cep: str
    logradouro: Optional[str]
    bairro: Optional[str]
    cidade: Optional[str]
    estado: Optional[str]

    def as_dict(self) -> dict[str, Any]:
        return {
            "cep": self.cep,
            "logradouro": self.logradouro,
            "bairro": self.bairro,
            "cidade": self.cidade,
            "estado": self.estado,
        }


class PostalLookupError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def normalize_cep(raw: str) -> str:
    return _NON_DIGITS.sub("", raw or "")


class ViaCepClient:
    """
    Brazilian postal-code lookup.

    Errors surface as PostalLookupError with the HTTP status the route should
    answer with: 400 bad format, 404 unknown code, 503 upstream unreachable,
    500 anything else.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = (base_url or settings.postal_lookup_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.postal_lookup_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def lookup(self, raw: str) -> PostalAddress:
        cep = normalize_cep(raw)
        if not _CEP.match(cep):
            raise PostalLookupError(400, "Invalid postal code. It must have 8 digits.")

        url = f"{self.base}/{cep}/json/"
        try:
            with self._client() as client:
                r = client.get(url)
                if r.status_code < 200 or r.status_code >= 300:
                    log.warning("postal lookup upstream error", extra={"context": f"status={r.status_code}"})
                    raise PostalLookupError(503, "Postal code lookup failed. Please try again.")
                data = r.json()
        except PostalLookupError:
            raise
        except httpx.TransportError as e:
            log.warning("postal lookup unreachable", extra={"context": str(e)})
            raise PostalLookupError(503, "Postal code service unavailable. Please try again.") from e
        except Exception as e:
            log.exception("postal lookup failed", extra={"context": cep})
            raise PostalLookupError(500, "Internal error while looking up the postal code.") from e

        if not isinstance(data, dict) or data.get("erro"):
            raise PostalLookupError(404, "Postal code not found.")

        return PostalAddress(
            cep=str(data.get("cep") or cep),
            logradouro=data.get("logradouro") or None,
            bairro=data.get("bairro") or None,
            cidade=data.get("localidade") or None,
            estado=data.get("uf") or None,
        )
