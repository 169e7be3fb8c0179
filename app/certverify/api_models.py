"""
Certificate verifier API models.

Wire format is camelCase to match the certificate and university services;
Python attributes stay snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.core.config import (
    CERTIFICATE_HASH_PATTERN,
    CERTIFICATE_ID_PATTERN,
    MAX_BULK_VERIFICATION,
    VERIFICATION_CODE_PATTERN,
)

from .signature import decode_signature


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Enumerations
# =============================================================================

class CertificateStatus(str, Enum):
    """Certificate lifecycle status as reported by the certificate service"""
    ACTIVE = "active"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


class VerificationMethod(str, Enum):
    """How the certificate was located"""
    ID = "id"
    CODE = "code"


# =============================================================================
# Reasons and Error Codes
# =============================================================================

class Reason:
    """Human-readable reasons attached to invalid outcomes"""
    CERTIFICATE_NOT_FOUND = "Certificate not found"
    CERTIFICATE_NOT_FOUND_BY_CODE = "Certificate not found with provided verification code"
    CERTIFICATE_REVOKED = "Certificate has been revoked. Reason: {reason}"
    CERTIFICATE_SUSPENDED = "Certificate is currently suspended"
    AUTHORITY_NOT_FOUND = "Issuing authority not found"
    AUTHORITY_NOT_REGISTERED = "Issuing authority is not registered"
    SIGNATURE_INVALID = "Digital signature verification failed"
    INTERNAL_ERROR = "Verification failed due to internal error"
    IDENTIFIER_MISSING = "Either certificateId or verificationCode must be provided"

    @staticmethod
    def revoked(revocation_reason: Optional[str]) -> str:
        return Reason.CERTIFICATE_REVOKED.format(reason=revocation_reason or "Not specified")


class ErrorCode:
    """Error code registry for request and collaborator failures"""
    # Request layer
    VALIDATION_FAILED = "VALIDATION_FAILED"
    BULK_LIMIT_EXCEEDED = "BULK_LIMIT_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Collaborator layer
    CERTIFICATE_SERVICE_UNAVAILABLE = "CERTIFICATE_SERVICE_UNAVAILABLE"
    UNIVERSITY_SERVICE_UNAVAILABLE = "UNIVERSITY_SERVICE_UNAVAILABLE"
    COLLABORATOR_RESPONSE_INVALID = "COLLABORATOR_RESPONSE_INVALID"

    # Verifier layer
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Collaborator Records
# =============================================================================

class CertificateRecord(CamelModel):
    """Certificate as returned by the certificate service.

    Only the fields the verifier reasons about are typed. Descriptive fields
    (student name, course, grade, dates, ...) pass through untouched so the
    outcome can show them.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    verification_code: Optional[str] = None
    university_id: str
    certificate_hash: str
    digital_signature: str
    status: CertificateStatus
    revocation_reason: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class AuthorityRecord(CamelModel):
    """Issuing university as returned by the university service.

    ``verified`` is the registry's registration flag.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    name: str
    public_key: str
    verified: bool = False


# =============================================================================
# Request Models
# =============================================================================

class VerificationRequest(CamelModel):
    """Single verification request: exactly one of id or code"""
    certificate_id: Optional[str] = Field(default=None, pattern=CERTIFICATE_ID_PATTERN)
    verification_code: Optional[str] = Field(default=None, pattern=VERIFICATION_CODE_PATTERN)

    @field_validator("certificate_id", "verification_code", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _exactly_one_identifier(self) -> "VerificationRequest":
        if (self.certificate_id is None) == (self.verification_code is None):
            raise ValueError(Reason.IDENTIFIER_MISSING)
        return self


class BulkVerificationRequest(CamelModel):
    """Bulk verification request (1..MAX_BULK_VERIFICATION items)"""
    certificates: List[VerificationRequest]

    @field_validator("certificates")
    @classmethod
    def _check_size(cls, value: List[VerificationRequest]) -> List[VerificationRequest]:
        if not value:
            raise ValueError("Certificates list cannot be empty")
        if len(value) > MAX_BULK_VERIFICATION:
            raise ValueError(
                f"Maximum {MAX_BULK_VERIFICATION} certificates can be verified at once"
            )
        return value


class SignatureVerificationRequest(CamelModel):
    """Direct signature check against a university's key on record"""
    certificate_hash: str = Field(pattern=CERTIFICATE_HASH_PATTERN)
    digital_signature: str = Field(min_length=1)
    university_id: str = Field(pattern=CERTIFICATE_ID_PATTERN)

    @field_validator("digital_signature")
    @classmethod
    def _strict_base64(cls, value: str) -> str:
        try:
            raw = decode_signature(value)
        except ValueError:
            raw = b""
        if not raw:
            raise ValueError("Digital signature must be valid base64")
        return value


# =============================================================================
# Outcome Models
# =============================================================================

class VerificationOutcome(CamelModel):
    """Verdict for one verification request.

    ``certificate`` and ``authority`` are populated wherever the lookup
    succeeded, even for invalid outcomes.
    """
    valid: bool
    certificate: Optional[CertificateRecord] = None
    authority: Optional[AuthorityRecord] = Field(default=None, alias="university")
    verification_method: VerificationMethod
    timestamp: datetime
    reason: Optional[str] = None


class BulkItemResult(CamelModel):
    """Per-item bulk result echoing both identifiers the caller supplied"""
    certificate_id: Optional[str] = None
    verification_code: Optional[str] = None
    valid: bool
    reason: Optional[str] = None


class BulkOutcome(CamelModel):
    """Aggregate bulk result; results follow input order"""
    total_requested: int
    valid_certificates: int
    invalid_certificates: int
    results: List[BulkItemResult] = Field(default_factory=list)


class SignatureCheckOutcome(CamelModel):
    """Result of a direct signature check"""
    valid: bool
    authority_name: Optional[str] = Field(default=None, alias="universityName")
    reason: Optional[str] = None

