"""Algorithm registry for container signatures.

Supported algorithms:
  - ECDSA-SHA256 (NIST P-256, DER-encoded signature)
  - Ed25519

The registry exposes:
  algorithm_for_key(key) -> identifier written into the signature block
  sign_alg(alg, private_key, message) -> raw signature bytes
  load_public_key(text) -> public key object
  verify_alg(alg, public_key, signature_b64, message) -> bool

Public keys may be given as a PEM document, as base64 DER
(SubjectPublicKeyInfo), or as base64 of a raw 32-byte Ed25519 key.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

ECDSA_SHA256 = "ECDSA-SHA256"
ED25519 = "Ed25519"
ALGORITHMS = (ECDSA_SHA256, ED25519)


class UnsupportedAlgorithm(Exception):
    """Raised when a key or identifier is outside the registry."""


def normalize_alg(alg: str) -> str:
    for known in ALGORITHMS:
        if known.lower() == (alg or "").lower():
            return known
    raise UnsupportedAlgorithm(f"unsupported signature algorithm: {alg!r}")


def algorithm_for_key(key: Any) -> str:
    if isinstance(key, (ed25519.Ed25519PrivateKey, ed25519.Ed25519PublicKey)):
        return ED25519
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        if not isinstance(key.curve, ec.SECP256R1):
            raise UnsupportedAlgorithm(f"unsupported curve {key.curve.name}")
        return ECDSA_SHA256
    raise UnsupportedAlgorithm(f"unsupported key type {type(key).__name__}")


def sign_alg(alg: str, private_key: Any, message: bytes) -> bytes:
    alg = normalize_alg(alg)
    if algorithm_for_key(private_key) != alg:
        raise UnsupportedAlgorithm(f"key does not match algorithm {alg}")
    if alg == ED25519:
        return private_key.sign(message)
    return private_key.sign(message, ec.ECDSA(hashes.SHA256()))


def load_public_key(text: str) -> Any:
    text = (text or "").strip()
    if not text:
        raise ValueError("empty public key")
    if text.startswith("-----BEGIN"):
        pk = serialization.load_pem_public_key(text.encode())
    else:
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("public key is neither PEM nor base64") from e
        if len(raw) == 32:
            pk = ed25519.Ed25519PublicKey.from_public_bytes(raw)
        else:
            pk = serialization.load_der_public_key(raw)
    algorithm_for_key(pk)
    return pk


def public_key_fingerprint(pk: Any) -> bytes:
    return pk.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def verify_alg(alg: str, public_key: Any, signature_b64: str, message: bytes) -> bool:
    try:
        alg = normalize_alg(alg)
        if algorithm_for_key(public_key) != alg:
            return False
        sig = base64.b64decode(signature_b64, validate=True)
    except (UnsupportedAlgorithm, binascii.Error, ValueError):
        return False
    try:
        if alg == ED25519:
            public_key.verify(sig, message)
        else:
            public_key.verify(sig, message, ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, ValueError):
        return False


__all__ = [
    "ECDSA_SHA256",
    "ED25519",
    "ALGORITHMS",
    "UnsupportedAlgorithm",
    "normalize_alg",
    "algorithm_for_key",
    "sign_alg",
    "load_public_key",
    "public_key_fingerprint",
    "verify_alg",
]
