"""Collaborator lookup contracts.

The verifier depends on two read-only services: the certificate service and
the university registry. Each lookup answers with a tagged LookupResult so
callers can tell a genuine "not found" apart from a transport failure without
catching exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Protocol, TypeVar

from .api_models import AuthorityRecord, CertificateRecord

T = TypeVar("T")


class LookupStatus(str, Enum):
    """Outcome tag for a collaborator lookup."""
    FOUND = "FOUND"                      # Record returned
    NOT_FOUND = "NOT_FOUND"              # Collaborator says it does not exist
    TRANSPORT_ERROR = "TRANSPORT_ERROR"  # Collaborator unreachable or answered garbage


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """Result of one keyed lookup."""
    status: LookupStatus
    record: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, record: T) -> "LookupResult[T]":
        return cls(status=LookupStatus.FOUND, record=record)

    @classmethod
    def not_found(cls) -> "LookupResult[T]":
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def transport_error(cls, error: str) -> "LookupResult[T]":
        return cls(status=LookupStatus.TRANSPORT_ERROR, error=error)


class CertificateLookup(Protocol):
    """Read-only access to issued certificates."""

    async def by_id(self, certificate_id: str) -> LookupResult[CertificateRecord]:
        ...

    async def by_code(self, verification_code: str) -> LookupResult[CertificateRecord]:
        ...


class AuthorityLookup(Protocol):
    """Read-only access to registered issuing universities."""

    async def by_id(self, authority_id: str) -> LookupResult[AuthorityRecord]:
        ...
