"""Canonical payload selection and content hashing.

The hash covers the content block and the metadata fields that define
identity and terms. Fields the platform maintains after creation (view
counters, endorsement, grant review state, detected funding) are left out so
updating them never invalidates the creator's signature. The grant review
state is instead bound by the platform endorsement (``endorsement_digest``).
"""
from __future__ import annotations

from typing import Any, Dict

from ..crypto.digest import sha256_hex
from ..crypto.jcs import jcs_canonicalize
from .model import NFTContent, NFTMetadata

IDENTITY_FIELDS = (
    "title",
    "description",
    "creatorName",
    "creatorAddress",
    "creatorPublicKey",
    "documentType",
    "rights",
    "shareStructure",
    "revenueRoutes",
)
GRANT_TERM_FIELDS = ("applicantType", "requestedAmount", "requestedCurrency", "fundingAddress")
GRANT_REVIEW_FIELDS = ("applicationStatus", "bwriterAward", "reviewNotes", "fundingDetected")


def _drop_empty(obj: Dict[str, Any]) -> Dict[str, Any]:
    # an empty list and an absent list mean the same thing
    return {k: v for k, v in obj.items() if v != []}


def canonical_payload(content: NFTContent, metadata: NFTMetadata) -> Dict[str, Any]:
    meta = metadata.to_wire()
    selected = {k: meta[k] for k in IDENTITY_FIELDS if k in meta}
    grant = meta.get("grantInfo")
    if grant is not None:
        selected["grantInfo"] = {k: grant[k] for k in GRANT_TERM_FIELDS if k in grant}
    return {"content": _drop_empty(content.to_wire()), "metadata": _drop_empty(selected)}


def canonical_bytes(content: NFTContent, metadata: NFTMetadata) -> bytes:
    return jcs_canonicalize(canonical_payload(content, metadata))


def content_hash(content: NFTContent, metadata: NFTMetadata) -> str:
    return sha256_hex(canonical_bytes(content, metadata))


def grant_review_state(metadata: NFTMetadata) -> Dict[str, Any]:
    grant = metadata.to_wire().get("grantInfo") or {}
    return {k: grant[k] for k in GRANT_REVIEW_FIELDS if k in grant}


def endorsement_digest(digest_hex: str, metadata: NFTMetadata) -> str:
    """What the platform signs: the content hash plus the current grant review state."""
    return sha256_hex(jcs_canonicalize({"contentHash": digest_hex, "grantState": grant_review_state(metadata)}))
