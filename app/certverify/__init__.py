"""Certificate verification core.

Signature verification, collaborator lookups, single and bulk orchestration.
"""

from .api_models import (
    AuthorityRecord,
    BulkItemResult,
    BulkOutcome,
    CertificateRecord,
    CertificateStatus,
    Reason,
    SignatureCheckOutcome,
    VerificationMethod,
    VerificationOutcome,
)
from .bulk import BulkCoordinator, get_bulk_coordinator
from .clients import CertificateServiceClient, UniversityServiceClient
from .exceptions import (
    BulkLimitExceededError,
    CertVerifyError,
    CollaboratorError,
    MalformedResponseError,
    RateLimitExceededError,
    TransportError,
)
from .lookup import AuthorityLookup, CertificateLookup, LookupResult, LookupStatus
from .rate_limit import SlidingWindowLimiter, rate_limit_bulk, rate_limit_verify
from .signature import SignatureScheme, SignatureVerifier, parse_public_key, verify_signature
from .verify import VerificationOrchestrator, get_orchestrator

__all__ = [
    # Models
    "AuthorityRecord",
    "BulkItemResult",
    "BulkOutcome",
    "CertificateRecord",
    "CertificateStatus",
    "Reason",
    "SignatureCheckOutcome",
    "VerificationMethod",
    "VerificationOutcome",
    # Exceptions
    "BulkLimitExceededError",
    "CertVerifyError",
    "CollaboratorError",
    "MalformedResponseError",
    "RateLimitExceededError",
    "TransportError",
    # Lookups
    "AuthorityLookup",
    "CertificateLookup",
    "LookupResult",
    "LookupStatus",
    "CertificateServiceClient",
    "UniversityServiceClient",
    # Verification
    "SignatureScheme",
    "SignatureVerifier",
    "parse_public_key",
    "verify_signature",
    "VerificationOrchestrator",
    "BulkCoordinator",
    "get_bulk_coordinator",
    "get_orchestrator",
    # Rate limiting
    "SlidingWindowLimiter",
    "rate_limit_bulk",
    "rate_limit_verify",
]
