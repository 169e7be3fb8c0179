"""
Certificate verifier configuration constants.

Constants are organized into:
- NORMATIVE: Fixed by the verification contract, not deployment-tunable
- POLICY: Enforcement required, values are implementation choices
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

# Certificate identifiers are lowercase UUIDs (8-4-4-4-12 hex)
CERTIFICATE_ID_PATTERN: str = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"

# Verification codes are short, human-enterable codes
VERIFICATION_CODE_PATTERN: str = r"^[A-Z0-9]{6,8}$"

# Content hashes are hex SHA-256 digests
CERTIFICATE_HASH_PATTERN: str = r"^[0-9a-fA-F]{64}$"

# Hard ceiling on a single bulk request
BULK_MAX_ITEMS_LIMIT: int = 100

# Signature scheme: RSA PKCS#1 v1.5 over SHA-256
SIGNATURE_ALGORITHM: str = "SHA256withRSA"


# =============================================================================
# POLICY CONSTANTS
# =============================================================================

# Per-call timeout for collaborator lookups. A slow certificate or
# university service resolves the item to an internal-error outcome.
LOOKUP_TIMEOUT_SECONDS: float = float(os.getenv("CERTVERIFY_LOOKUP_TIMEOUT", "5.0"))

# Upper bound for one whole verification (both lookups + signature check)
VERIFICATION_TIMEOUT_SECONDS: float = float(
    os.getenv("CERTVERIFY_VERIFICATION_TIMEOUT", "15.0")
)

# Maximum items accepted in one bulk request (never above BULK_MAX_ITEMS_LIMIT)
MAX_BULK_VERIFICATION: int = min(
    int(os.getenv("MAX_BULK_VERIFICATION", str(BULK_MAX_ITEMS_LIMIT))),
    BULK_MAX_ITEMS_LIMIT,
)


def _default_bulk_concurrency() -> int:
    """Concurrent lookups allowed per bulk request.

    Scales with available CPUs but stays independent of batch size so a
    100-item batch cannot flood the collaborator services.

    Environment variable format:
        CERTVERIFY_BULK_CONCURRENCY=8

    Returns:
        Positive worker bound, capped at 32.
    """
    env_value = os.getenv("CERTVERIFY_BULK_CONCURRENCY", "")
    if env_value:
        return max(1, int(env_value))
    return min(32, 4 * (os.cpu_count() or 1))


BULK_CONCURRENCY: int = _default_bulk_concurrency()

# Per-client request quotas over a sliding window; bulk has its own quota
RATE_LIMIT_WINDOW_SECONDS: float = float(os.getenv("CERTVERIFY_RATE_LIMIT_WINDOW", "900"))
RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("CERTVERIFY_RATE_LIMIT_MAX", "100"))
BULK_RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("CERTVERIFY_BULK_RATE_LIMIT_MAX", "10"))


# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Collaborator base URLs
CERTIFICATE_SERVICE_URL: str = os.getenv("CERTIFICATE_SERVICE_URL", "http://localhost:3003")
UNIVERSITY_SERVICE_URL: str = os.getenv("UNIVERSITY_SERVICE_URL", "http://localhost:3002")

SERVICE_NAME: str = os.getenv("SERVICE_NAME", "verification-service")

# Admin endpoint visibility
# Default: True for dev, set to False in production deployments
ADMIN_ENDPOINT_ENABLED: bool = os.getenv("ADMIN_ENDPOINT_ENABLED", "true").lower() == "true"
