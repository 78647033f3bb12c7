"""Creator signatures, platform endorsements and their verification.

SigBase (v1): canonical JSON ``["BWNF-SIG/v1", role, digest]`` where role is
``creator`` or ``platform``. The creator signs the content hash. The platform
signs the content hash together with the grant review state (status, award,
notes, detected funding), so those fields cannot be changed under an existing
endorsement. The role keeps one signature from being replayed as the other.
"""
from __future__ import annotations

import base64
import time
from typing import Any, Optional, Protocol, Tuple

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupported

from ..crypto.alg_registry import (
    UnsupportedAlgorithm,
    algorithm_for_key,
    load_public_key,
    public_key_fingerprint,
    sign_alg,
    verify_alg,
)
from ..crypto.jcs import jcs_canonicalize
from ..crypto.keyloader import KeyDirectory, load_private_key
from ..errors import HashMismatch, SignatureInvalid, SigningKeyError, StructuralViolation
from ..utils.ct import ct_eq_str
from .hashing import content_hash, endorsement_digest
from .model import NFTFile, NFTSignature
from .structure import require_valid

SIG_DOMAIN = "BWNF-SIG/v1"
ROLE_CREATOR = "creator"
ROLE_PLATFORM = "platform"


def signature_base(role: str, digest_hex: str) -> bytes:
    return jcs_canonicalize([SIG_DOMAIN, role, digest_hex])


def now_ms() -> int:
    return int(time.time() * 1000)


class SigningCapability(Protocol):
    def sign(self, content_hash: str, private_key: Any, role: str = ROLE_CREATOR) -> Tuple[str, str]:
        """Return (signature_b64, algorithm)."""
        ...

    def verify(self, content_hash: str, signature: str, public_identity: str, algorithm: str, role: str = ROLE_CREATOR) -> bool:
        ...


class CryptographySigner:
    """Default signing capability backed by ``cryptography`` (ECDSA P-256 or Ed25519)."""

    def sign(self, content_hash: str, private_key: Any, role: str = ROLE_CREATOR) -> Tuple[str, str]:
        sk = load_private_key(private_key)
        alg = algorithm_for_key(sk)
        sig = sign_alg(alg, sk, signature_base(role, content_hash))
        return base64.b64encode(sig).decode(), alg

    def verify(self, content_hash: str, signature: str, public_identity: str, algorithm: str, role: str = ROLE_CREATOR) -> bool:
        try:
            pk = load_public_key(public_identity)
        except (ValueError, UnsupportedAlgorithm, CryptoUnsupported):
            return False
        return verify_alg(algorithm, pk, signature, signature_base(role, content_hash))


DEFAULT_SIGNER = CryptographySigner()


def _same_key(a: str, b: str) -> bool:
    return public_key_fingerprint(load_public_key(a)) == public_key_fingerprint(load_public_key(b))


def resolve_creator_key(file: NFTFile, key_directory: Optional[KeyDirectory] = None) -> str:
    m = file.metadata
    declared = m.creator_public_key
    listed = key_directory.get(m.creator_address) if key_directory is not None else None
    if not declared and not listed:
        raise SignatureInvalid(f"no public key known for creator {m.creator_address}")
    try:
        if declared and listed and not _same_key(declared, listed):
            raise SignatureInvalid("creatorPublicKey conflicts with the key registered for creatorAddress")
        key = declared or listed
        load_public_key(key)
    except (ValueError, UnsupportedAlgorithm, CryptoUnsupported) as e:
        raise SignatureInvalid("creator public key is unreadable") from e
    return key  # type: ignore[return-value]


def _ensure_key_matches_creator(file: NFTFile, private_key: Any) -> None:
    declared = file.metadata.creator_public_key
    if not declared:
        return
    sk = load_private_key(private_key)
    try:
        pk = load_public_key(declared)
    except (ValueError, UnsupportedAlgorithm, CryptoUnsupported):
        return  # reported as SignatureInvalid at verification time
    if public_key_fingerprint(sk.public_key()) != public_key_fingerprint(pk):
        raise SigningKeyError("private key does not belong to creatorPublicKey")


def sign(
    file: NFTFile,
    private_key: Any,
    *,
    signer: Optional[SigningCapability] = None,
    timestamp: Optional[int] = None,
) -> NFTFile:
    """Return a copy carrying a creator signature over the recomputed content hash.

    An existing platform endorsement survives only if the hash is unchanged.
    """
    require_valid(file)
    signer = signer or DEFAULT_SIGNER
    if isinstance(signer, CryptographySigner):
        _ensure_key_matches_creator(file, private_key)
    digest = content_hash(file.content, file.metadata)
    try:
        sig_b64, alg = signer.sign(digest, private_key, ROLE_CREATOR)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningKeyError("private key could not produce a signature") from e

    platform_sig = None
    if file.signature is not None and file.header.content_hash == digest:
        platform_sig = file.signature.platform_signature
    block = NFTSignature(
        creator_signature=sig_b64,
        platform_signature=platform_sig,
        timestamp=timestamp if timestamp is not None else now_ms(),
        algorithm=alg,
    )
    metadata = file.metadata
    if platform_sig is None and metadata.platform_signature is not None:
        metadata = metadata.model_copy(update={"platform_signature": None})
    header = file.header.model_copy(update={"content_hash": digest})
    return file.model_copy(update={"header": header, "metadata": metadata, "signature": block})


def check_hash(file: NFTFile) -> str:
    recomputed = content_hash(file.content, file.metadata)
    if not ct_eq_str(recomputed, file.header.content_hash):
        raise HashMismatch(file.header.content_hash, recomputed)
    return recomputed


def _missing_creator_signature() -> StructuralViolation:
    return StructuralViolation.single("signature.creatorSignature", "container is not signed", "present", None)


def endorse(
    file: NFTFile,
    platform_private_key: Any,
    *,
    signer: Optional[SigningCapability] = None,
) -> NFTFile:
    """Layer a platform signature on a creator-signed container; the content hash is unchanged."""
    require_valid(file)
    digest = check_hash(file)
    if not file.is_signed:
        raise _missing_creator_signature()
    signer = signer or DEFAULT_SIGNER
    try:
        sig_b64, _alg = signer.sign(endorsement_digest(digest, file.metadata), platform_private_key, ROLE_PLATFORM)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningKeyError("platform key could not produce a signature") from e
    block = file.signature.model_copy(update={"platform_signature": sig_b64})  # type: ignore[union-attr]
    metadata = file.metadata.model_copy(update={"platform_signature": sig_b64})
    return file.model_copy(update={"metadata": metadata, "signature": block})


def verify(
    file: NFTFile,
    *,
    key_directory: Optional[KeyDirectory] = None,
    platform_public_key: Optional[str] = None,
    signer: Optional[SigningCapability] = None,
) -> None:
    """Raise the first failing check: structure, hash, missing signature, creator, platform."""
    require_valid(file)
    digest = check_hash(file)
    if not file.is_signed:
        raise _missing_creator_signature()
    signer = signer or DEFAULT_SIGNER
    block: NFTSignature = file.signature  # type: ignore[assignment]

    creator_key = resolve_creator_key(file, key_directory)
    if not signer.verify(digest, block.creator_signature, creator_key, block.algorithm, ROLE_CREATOR):
        raise SignatureInvalid("creator signature does not verify", which="creator")

    claimed = file.metadata.platform_signature
    if claimed is not None and claimed != block.platform_signature:
        raise SignatureInvalid("metadata platformSignature does not match the signature block", which="platform")
    if block.platform_signature:
        if not platform_public_key:
            raise SignatureInvalid("no platform key configured to check the endorsement", which="platform")
        try:
            alg = algorithm_for_key(load_public_key(platform_public_key))
        except (ValueError, UnsupportedAlgorithm, CryptoUnsupported) as e:
            raise SignatureInvalid("platform public key is unreadable", which="platform") from e
        attested = endorsement_digest(digest, file.metadata)
        if not signer.verify(attested, block.platform_signature, platform_public_key, alg, ROLE_PLATFORM):
            raise SignatureInvalid("platform signature does not verify", which="platform")
