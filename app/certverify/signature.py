"""RSA signature verification for issued certificates.

Certificates are signed at issuance with the university's RSA private key:
SHA-256 digest, PKCS#1 v1.5 padding, over the UTF-8 bytes of the
certificate's content hash (itself a hex SHA-256 digest). The content hash is
treated as opaque signed data here.

verify() never raises: malformed keys, malformed signatures and
cryptographic mismatches all surface as False.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.padding import AsymmetricPadding

log = logging.getLogger(__name__)

# PEM armor accepted around the key body: SubjectPublicKeyInfo or PKCS#1
_PEM_ARMOR = re.compile(r"-----(BEGIN|END) (RSA )?PUBLIC KEY-----")
_WHITESPACE = re.compile(r"\s+")


class KeyParseError(ValueError):
    """Public key PEM could not be decoded into an RSA key."""


@dataclass(frozen=True)
class SignatureScheme:
    """Padding and digest used for signature checks.

    Built once at startup and handed to SignatureVerifier.
    """
    padding: AsymmetricPadding = field(default_factory=padding.PKCS1v15)
    hash_algorithm: hashes.HashAlgorithm = field(default_factory=hashes.SHA256)


def parse_public_key(public_key_pem: str) -> rsa.RSAPublicKey:
    """Parse a PEM-armored RSA public key.

    The armor (``PUBLIC KEY`` or ``RSA PUBLIC KEY``) and all whitespace are
    stripped; the remaining body must be strict base64 of a DER
    SubjectPublicKeyInfo or PKCS#1 RSAPublicKey structure.

    Args:
        public_key_pem: PEM text as stored by the university registry.

    Returns:
        The RSA public key.

    Raises:
        KeyParseError: Empty body, invalid base64, unparseable DER, or a
            non-RSA key.
    """
    if not isinstance(public_key_pem, str):
        raise KeyParseError(f"Public key must be a string, got {type(public_key_pem).__name__}")

    body = _WHITESPACE.sub("", _PEM_ARMOR.sub("", public_key_pem))
    if not body:
        raise KeyParseError("Public key is empty")

    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyParseError(f"Public key is not valid base64: {e}")

    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyParseError(f"Public key DER could not be parsed: {e}")

    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyParseError(f"Expected RSA public key, got {type(key).__name__}")
    return key


def decode_signature(signature_b64: str) -> bytes:
    """Strict base64 decode of a detached signature.

    Raises:
        ValueError: Signature is not a string or not valid base64.
    """
    if not isinstance(signature_b64, str):
        raise ValueError(f"Signature must be a string, got {type(signature_b64).__name__}")
    return base64.b64decode(signature_b64.strip(), validate=True)


class SignatureVerifier:
    """Stateless RSA signature verifier; safe for concurrent use."""

    def __init__(self, scheme: Optional[SignatureScheme] = None):
        self._scheme = scheme or SignatureScheme()

    @property
    def scheme(self) -> SignatureScheme:
        return self._scheme

    def verify(self, content_hash: str, signature_b64: str, public_key_pem: str) -> bool:
        """Check ``signature_b64`` over ``content_hash`` against a PEM key.

        Args:
            content_hash: Hex content digest recorded at issuance.
            signature_b64: Base64 detached signature.
            public_key_pem: Issuing university's public key.

        Returns:
            True only if the key parses and the signature verifies.
        """
        try:
            key = parse_public_key(public_key_pem)
            signature = decode_signature(signature_b64)
            key.verify(
                signature,
                content_hash.encode("utf-8"),
                self._scheme.padding,
                self._scheme.hash_algorithm,
            )
            return True
        except KeyParseError as e:
            log.warning(f"Signature check rejected public key: {e}")
            return False
        except InvalidSignature:
            log.info("Signature check failed: signature does not match content hash")
            return False
        except Exception as e:
            # Malformed signature or content hash
            log.warning(f"Signature check failed on malformed input: {e}")
            return False


_default_verifier = SignatureVerifier()


def verify_signature(content_hash: str, signature_b64: str, public_key_pem: str) -> bool:
    """Verify with the default RSA/SHA-256/PKCS#1 v1.5 scheme."""
    return _default_verifier.verify(content_hash, signature_b64, public_key_pem)
