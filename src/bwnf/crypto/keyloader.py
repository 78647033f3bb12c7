from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupported
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

from ..errors import SigningKeyError
from .alg_registry import ECDSA_SHA256, ED25519, UnsupportedAlgorithm, algorithm_for_key, normalize_alg

PrivateKeyInput = Union[str, bytes, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]


def load_private_key(key: PrivateKeyInput) -> Any:
    """Accept a PEM (str/bytes) or an already-loaded key; raise SigningKeyError if unusable."""
    if isinstance(key, (ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
        sk = key
    else:
        if isinstance(key, str):
            key = key.encode()
        if not isinstance(key, (bytes, bytearray)) or not key.strip():
            raise SigningKeyError("private key must be a non-empty PEM document")
        try:
            sk = serialization.load_pem_private_key(bytes(key), password=None)
        except (ValueError, TypeError, CryptoUnsupported) as e:
            raise SigningKeyError("private key is not a readable unencrypted PEM key") from e
    try:
        algorithm_for_key(sk)
    except UnsupportedAlgorithm as e:
        raise SigningKeyError(str(e)) from e
    return sk


def load_private_key_file(path: str) -> Any:
    with open(path, "rb") as f:
        return load_private_key(f.read())


def public_key_pem(key: Any) -> str:
    pk = key.public_key() if hasattr(key, "public_key") else key
    return pk.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def generate_keypair(alg: str = ECDSA_SHA256) -> Tuple[str, str]:
    """Return (private_pem, public_pem) for a fresh key."""
    alg = normalize_alg(alg)
    if alg == ED25519:
        sk = ed25519.Ed25519PrivateKey.generate()
    elif alg == ECDSA_SHA256:
        sk = ec.generate_private_key(ec.SECP256R1())
    else:
        raise UnsupportedAlgorithm(f"cannot generate keys for {alg!r}")
    priv_pem = sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return priv_pem, public_key_pem(sk)


def load_public_key_file(path: Optional[str]) -> Optional[str]:
    """Read a PEM public key; a missing file means not configured."""
    if not path or not os.path.exists(path):
        return None
    return Path(path).read_text(encoding="utf-8")


class KeyDirectory:
    """Maps creator addresses to public keys.

    File form (config/creators.json):
        {"1CreatorAddr...": {"public_key_pem": "-----BEGIN PUBLIC KEY-----..."},
         "1Other...": {"public_key_b64": "..."}}
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})

    @classmethod
    def from_file(cls, path: Optional[str]) -> "KeyDirectory":
        if not path or not os.path.exists(path):
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        entries: Dict[str, str] = {}
        for address, entry in raw.items():
            if isinstance(entry, str):
                entries[address] = entry
            elif isinstance(entry, dict):
                value = entry.get("public_key_pem") or entry.get("public_key_b64")
                if value:
                    entries[address] = value
        return cls(entries)

    def get(self, address: str) -> Optional[str]:
        return self._entries.get(address)
