"""Shared fixtures: RSA test keys, signed certificates, in-memory collaborators."""

import asyncio
import base64
import hashlib
import json
import uuid

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from app.certverify.api_models import AuthorityRecord, CertificateRecord
from app.certverify.lookup import LookupResult


# =============================================================================
# Keys and Signing
# =============================================================================


@pytest.fixture(scope="session")
def rsa_private_key():
    """2048-bit RSA key shared by the whole session (generation is slow)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key():
    """A second, unrelated RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key):
    """SubjectPublicKeyInfo PEM for rsa_private_key."""
    return rsa_private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture(scope="session")
def sign(rsa_private_key):
    """Sign a content hash the way the issuer does (SHA256withRSA, base64)."""

    def _sign(content_hash: str, key=None) -> str:
        signer = key or rsa_private_key
        signature = signer.sign(
            content_hash.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256()
        )
        return base64.b64encode(signature).decode()

    return _sign


def content_hash_for(fields: dict) -> str:
    """Hex SHA-256 over sorted-key JSON of the certificate fields."""
    return hashlib.sha256(json.dumps(fields, sort_keys=True).encode()).hexdigest()


# =============================================================================
# Records
# =============================================================================


UNIVERSITY_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


@pytest.fixture
def make_authority(public_key_pem):
    def _make(**overrides) -> AuthorityRecord:
        data = {
            "id": UNIVERSITY_ID,
            "name": "University of Testing",
            "publicKey": public_key_pem,
            "verified": True,
        }
        data.update(overrides)
        return AuthorityRecord.model_validate(data)

    return _make


@pytest.fixture
def make_certificate(sign):
    """Build a correctly signed certificate; override any wire field."""
    counter = {"n": 0}

    def _make(**overrides) -> CertificateRecord:
        counter["n"] += 1
        certificate_id = overrides.pop("id", str(uuid.uuid4()))
        fields = {
            "studentName": "Ada Lovelace",
            "courseName": "Analytical Engines",
            "grade": "A",
            "issueDate": "2024-06-30",
            "certificateNumber": f"CERT-{counter['n']:05d}",
        }
        content_hash = content_hash_for({**fields, "id": certificate_id})
        data = {
            "id": certificate_id,
            "verificationCode": f"ABC{counter['n']:04d}"[:8],
            "universityId": UNIVERSITY_ID,
            "certificateHash": content_hash,
            "digitalSignature": sign(content_hash),
            "status": "active",
            **fields,
        }
        data.update(overrides)
        return CertificateRecord.model_validate(data)

    return _make


# =============================================================================
# In-memory Collaborators
# =============================================================================


class FakeCertificateLookup:
    """In-memory certificate service.

    ``failing`` keys answer TRANSPORT_ERROR, ``raising`` keys raise,
    ``delay`` seconds are slept before every answer.
    """

    def __init__(self, certificates=(), delay: float = 0.0):
        self.by_id_map = {c.id: c for c in certificates}
        self.by_code_map = {c.verification_code: c for c in certificates if c.verification_code}
        self.failing = set()
        self.raising = set()
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, certificate):
        self.by_id_map[certificate.id] = certificate
        if certificate.verification_code:
            self.by_code_map[certificate.verification_code] = certificate

    async def _answer(self, key, table):
        self.calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if key in self.raising:
                raise RuntimeError(f"boom: {key}")
            if key in self.failing:
                return LookupResult.transport_error("certificate-service: connection refused")
            record = table.get(key)
            return LookupResult.found(record) if record else LookupResult.not_found()
        finally:
            self.in_flight -= 1

    async def by_id(self, certificate_id):
        return await self._answer(certificate_id, self.by_id_map)

    async def by_code(self, verification_code):
        return await self._answer(verification_code, self.by_code_map)


class FakeAuthorityLookup:
    """In-memory university registry."""

    def __init__(self, authorities=()):
        self.authorities = {a.id: a for a in authorities}
        self.failing = False
        self.calls = []

    async def by_id(self, authority_id):
        self.calls.append(authority_id)
        if self.failing:
            return LookupResult.transport_error("university-service: timeout")
        record = self.authorities.get(authority_id)
        return LookupResult.found(record) if record else LookupResult.not_found()


@pytest.fixture
def certificates():
    return FakeCertificateLookup()


@pytest.fixture
def authorities(make_authority):
    return FakeAuthorityLookup([make_authority()])


@pytest.fixture
def orchestrator(certificates, authorities):
    from app.certverify.verify import VerificationOrchestrator

    return VerificationOrchestrator(certificates, authorities, timeout=2.0)


@pytest.fixture(autouse=True)
def reset_request_state():
    """Clear per-client rate-limit counters and the bulk singleton between tests."""
    from app.certverify.bulk import reset_bulk_coordinator
    from app.certverify.rate_limit import reset_rate_limits

    reset_rate_limits()
    reset_bulk_coordinator()
    yield
    reset_rate_limits()
    reset_bulk_coordinator()
