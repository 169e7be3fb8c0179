"""Certificate verification orchestration.

Composes the certificate lookup, the university lookup and the signature
verifier into a single VerificationOutcome:

1. Locate the certificate (by id or by verification code)
2. Reject revoked/suspended certificates (no signature check)
3. Locate the issuing university and require it to be registered
4. Verify the digital signature against the university's public key

The orchestrator is the last line of defense: transport failures, timeouts
and unexpected exceptions all become an invalid outcome with
Reason.INTERNAL_ERROR and never propagate to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.core.config import VERIFICATION_TIMEOUT_SECONDS

from .api_models import (
    AuthorityRecord,
    CertificateRecord,
    CertificateStatus,
    Reason,
    SignatureCheckOutcome,
    VerificationMethod,
    VerificationOutcome,
)
from .clients import get_certificate_client, get_university_client
from .lookup import AuthorityLookup, CertificateLookup, LookupStatus
from .signature import SignatureVerifier

log = logging.getLogger(__name__)


# =============================================================================
# Outcome Builder
# =============================================================================


@dataclass
class OutcomeBuilder:
    """Accumulates the snapshots gathered while verifying one certificate.

    Use valid() or invalid() to create the final VerificationOutcome.
    """

    method: VerificationMethod
    certificate: Optional[CertificateRecord] = None
    authority: Optional[AuthorityRecord] = None

    def valid(self) -> VerificationOutcome:
        return self._build(True, None)

    def invalid(self, reason: str) -> VerificationOutcome:
        return self._build(False, reason)

    def _build(self, valid: bool, reason: Optional[str]) -> VerificationOutcome:
        return VerificationOutcome(
            valid=valid,
            certificate=self.certificate,
            authority=self.authority,
            verification_method=self.method,
            timestamp=datetime.now(timezone.utc),
            reason=reason,
        )


def internal_error_outcome(method: VerificationMethod) -> VerificationOutcome:
    """Outcome for any failure that is not a business verdict.

    Carries no certificate or university snapshot.
    """
    return OutcomeBuilder(method).invalid(Reason.INTERNAL_ERROR)


# =============================================================================
# Orchestrator
# =============================================================================


class VerificationOrchestrator:
    """Verifies certificates against their issuing university's key."""

    def __init__(
        self,
        certificates: CertificateLookup,
        authorities: AuthorityLookup,
        verifier: Optional[SignatureVerifier] = None,
        timeout: float = VERIFICATION_TIMEOUT_SECONDS,
    ):
        self._certificates = certificates
        self._authorities = authorities
        self._verifier = verifier or SignatureVerifier()
        self._timeout = timeout

    async def verify_by_id(self, certificate_id: str) -> VerificationOutcome:
        """Verify the certificate with stable identifier ``certificate_id``."""
        log.info(f"Verifying certificate by ID: {certificate_id}")
        return await self._guarded(VerificationMethod.ID, certificate_id)

    async def verify_by_code(self, verification_code: str) -> VerificationOutcome:
        """Verify the certificate with short code ``verification_code``."""
        log.info(f"Verifying certificate by code: {verification_code}")
        return await self._guarded(VerificationMethod.CODE, verification_code)

    async def _guarded(self, method: VerificationMethod, key: str) -> VerificationOutcome:
        try:
            return await asyncio.wait_for(
                self._resolve_and_verify(method, key), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            log.error(
                f"Verification by {method.value} timed out after {self._timeout}s: {key}"
            )
            return internal_error_outcome(method)
        except Exception:
            log.exception(f"Verification by {method.value} failed unexpectedly: {key}")
            return internal_error_outcome(method)

    async def _resolve_and_verify(
        self, method: VerificationMethod, key: str
    ) -> VerificationOutcome:
        builder = OutcomeBuilder(method)

        if method == VerificationMethod.ID:
            lookup = await self._certificates.by_id(key)
            not_found_reason = Reason.CERTIFICATE_NOT_FOUND
        else:
            lookup = await self._certificates.by_code(key)
            not_found_reason = Reason.CERTIFICATE_NOT_FOUND_BY_CODE

        if lookup.status == LookupStatus.TRANSPORT_ERROR:
            log.error(f"Certificate lookup failed for {key}: {lookup.error}")
            return internal_error_outcome(method)
        if lookup.status == LookupStatus.NOT_FOUND:
            log.info(f"Certificate not found: {key}")
            return builder.invalid(not_found_reason)

        builder.certificate = lookup.record
        return await self._verify_certificate(builder)

    async def _verify_certificate(self, builder: OutcomeBuilder) -> VerificationOutcome:
        certificate = builder.certificate

        # Status short-circuits before any authority or signature work
        if certificate.status == CertificateStatus.REVOKED:
            return builder.invalid(Reason.revoked(certificate.revocation_reason))
        if certificate.status != CertificateStatus.ACTIVE:
            return builder.invalid(Reason.CERTIFICATE_SUSPENDED)

        authority_lookup = await self._authorities.by_id(certificate.university_id)
        if authority_lookup.status == LookupStatus.TRANSPORT_ERROR:
            log.error(
                f"University lookup failed for {certificate.university_id}: "
                f"{authority_lookup.error}"
            )
            return internal_error_outcome(builder.method)
        if authority_lookup.status == LookupStatus.NOT_FOUND:
            log.warning(f"University not found: {certificate.university_id}")
            return builder.invalid(Reason.AUTHORITY_NOT_FOUND)

        authority = authority_lookup.record
        builder.authority = authority
        if not authority.verified:
            log.warning(f"University not registered: {authority.id}")
            return builder.invalid(Reason.AUTHORITY_NOT_REGISTERED)

        if not self._verifier.verify(
            certificate.certificate_hash,
            certificate.digital_signature,
            authority.public_key,
        ):
            log.warning(f"Signature verification failed for certificate {certificate.id}")
            return builder.invalid(Reason.SIGNATURE_INVALID)

        log.info(f"Certificate {certificate.id} verified (issuer={authority.id})")
        return builder.valid()

    async def verify_signature(
        self, certificate_hash: str, digital_signature: str, authority_id: str
    ) -> SignatureCheckOutcome:
        """Check a signature directly against a university's key on record."""
        log.info(f"Verifying detached signature for university: {authority_id}")
        try:
            lookup = await asyncio.wait_for(
                self._authorities.by_id(authority_id), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            log.error(f"University lookup timed out after {self._timeout}s: {authority_id}")
            return SignatureCheckOutcome(valid=False, reason=Reason.INTERNAL_ERROR)
        except Exception:
            log.exception(f"University lookup failed unexpectedly: {authority_id}")
            return SignatureCheckOutcome(valid=False, reason=Reason.INTERNAL_ERROR)

        if lookup.status == LookupStatus.TRANSPORT_ERROR:
            log.error(f"University lookup failed for {authority_id}: {lookup.error}")
            return SignatureCheckOutcome(valid=False, reason=Reason.INTERNAL_ERROR)
        if lookup.status == LookupStatus.NOT_FOUND:
            return SignatureCheckOutcome(valid=False, reason=Reason.AUTHORITY_NOT_FOUND)

        authority = lookup.record
        valid = self._verifier.verify(certificate_hash, digital_signature, authority.public_key)
        return SignatureCheckOutcome(
            valid=valid,
            authority_name=authority.name,
            reason=None if valid else Reason.SIGNATURE_INVALID,
        )


# Module-level singleton, built from the configured HTTP clients
_orchestrator: Optional[VerificationOrchestrator] = None


def get_orchestrator() -> VerificationOrchestrator:
    """Get or create the orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = VerificationOrchestrator(
            certificates=get_certificate_client(),
            authorities=get_university_client(),
            verifier=SignatureVerifier(),
        )
    return _orchestrator


def reset_orchestrator() -> None:
    """Drop the singleton (tests and config reloads)."""
    global _orchestrator
    _orchestrator = None
