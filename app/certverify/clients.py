"""HTTP clients for the certificate service and the university registry.

Both services answer with a ``{"success": bool, "data": {...}}`` envelope.
Lookups enforce:
- Timeout: LOOKUP_TIMEOUT_SECONDS per call
- 404 or an envelope without data → NOT_FOUND
- Network errors, non-404 HTTP errors, malformed bodies → TRANSPORT_ERROR
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import (
    CERTIFICATE_SERVICE_URL,
    LOOKUP_TIMEOUT_SECONDS,
    UNIVERSITY_SERVICE_URL,
)

from .api_models import AuthorityRecord, CertificateRecord
from .exceptions import CollaboratorError, MalformedResponseError, TransportError
from .lookup import LookupResult

log = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class ServiceClient:
    """Base client for one collaborator service.

    A fresh httpx.AsyncClient is opened per call so no connection state is
    shared between verifications. ``transport`` lets tests inject an
    httpx.MockTransport.
    """

    service_name = "collaborator"

    def __init__(
        self,
        base_url: str,
        timeout: float = LOOKUP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _fetch_data(self, path: str) -> Optional[Dict[str, Any]]:
        """GET ``path`` and unwrap the ``data`` member of the envelope.

        Returns:
            The data object, or None when the collaborator reports not found.

        Raises:
            TransportError: Timeout, connection failure, or non-404 HTTP error.
            MalformedResponseError: Body is not a JSON envelope with an object.
        """
        try:
            async with self._client() as client:
                response = await client.get(path)
                log.debug(f"{self.service_name} GET {path} -> {response.status_code}")

                if response.status_code == 404:
                    return None

                response.raise_for_status()
                body = response.json()

        except httpx.TimeoutException:
            raise TransportError(
                self.service_name, f"Timeout after {self.timeout}s fetching {path}"
            )
        except httpx.HTTPStatusError as e:
            raise TransportError(
                self.service_name,
                f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
            )
        except httpx.RequestError as e:
            raise TransportError(self.service_name, f"Request failed: {e}")
        except ValueError as e:
            raise MalformedResponseError(self.service_name, f"Invalid JSON body: {e}")

        if not isinstance(body, dict):
            raise MalformedResponseError(
                self.service_name, f"Expected JSON object, got {type(body).__name__}"
            )

        data = body.get("data")
        if not body.get("success", True) or data is None:
            return None
        if not isinstance(data, dict):
            raise MalformedResponseError(
                self.service_name, f"Expected data object, got {type(data).__name__}"
            )
        return data

    def _parse(self, model: Type[R], data: Dict[str, Any]) -> R:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                self.service_name, f"Invalid {model.__name__}: {e.error_count()} field error(s)"
            )

    async def _lookup(self, path: str, model: Type[R]) -> LookupResult[R]:
        try:
            data = await self._fetch_data(path)
            if data is None:
                return LookupResult.not_found()
            return LookupResult.found(self._parse(model, data))
        except CollaboratorError as e:
            log.warning(f"{self.service_name} lookup failed: {e.message}")
            return LookupResult.transport_error(e.message)

    async def is_reachable(self) -> bool:
        """Readiness check: True if the service answers /health below 500."""
        try:
            async with self._client() as client:
                response = await client.get("/health")
                return response.status_code < 500
        except httpx.HTTPError as e:
            log.warning(f"{self.service_name} unreachable: {e}")
            return False


class CertificateServiceClient(ServiceClient):
    """Certificate lookups against the certificate service."""

    service_name = "certificate-service"

    async def by_id(self, certificate_id: str) -> LookupResult[CertificateRecord]:
        return await self._lookup(
            f"/api/certificates/{quote(certificate_id, safe='')}", CertificateRecord
        )

    async def by_code(self, verification_code: str) -> LookupResult[CertificateRecord]:
        return await self._lookup(
            f"/api/certificates/code/{quote(verification_code, safe='')}", CertificateRecord
        )


class UniversityServiceClient(ServiceClient):
    """Issuing authority lookups against the university registry."""

    service_name = "university-service"

    async def by_id(self, authority_id: str) -> LookupResult[AuthorityRecord]:
        return await self._lookup(
            f"/api/universities/{quote(authority_id, safe='')}", AuthorityRecord
        )


# Module-level singletons
_certificate_client: Optional[CertificateServiceClient] = None
_university_client: Optional[UniversityServiceClient] = None


def get_certificate_client() -> CertificateServiceClient:
    """Get or create the certificate service client singleton."""
    global _certificate_client
    if _certificate_client is None:
        _certificate_client = CertificateServiceClient(CERTIFICATE_SERVICE_URL)
    return _certificate_client


def get_university_client() -> UniversityServiceClient:
    """Get or create the university service client singleton."""
    global _university_client
    if _university_client is None:
        _university_client = UniversityServiceClient(UNIVERSITY_SERVICE_URL)
    return _university_client
