from __future__ import annotations

import base64
import binascii
import json
import math
import re
from typing import Any, List, Optional

from ..config import MAGIC
from ..crypto.digest import is_sha256_hex
from ..errors import StructuralViolation, Violation
from .model import REQUIRED_BLOCK, NFTContent, NFTFile, NFTHeader, NFTMetadata

VERSION_RE = re.compile(r"^\d+\.\d+(\.\d+)?$")
PERCENT_EPSILON = 1e-9


def b64decode_strict(data: str) -> Optional[bytes]:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None


def _header_violations(h: NFTHeader) -> List[Violation]:
    out: List[Violation] = []
    if h.magic_number != MAGIC:
        out.append(Violation("header.magicNumber", "unknown magic number", MAGIC, h.magic_number))
    if not VERSION_RE.match(h.version):
        out.append(Violation("header.version", "not a semantic version", "MAJOR.MINOR[.PATCH]", h.version))
    if not is_sha256_hex(h.content_hash):
        out.append(Violation("header.contentHash", "not a lowercase hex sha-256 digest", None, h.content_hash))
    if h.timestamp < 0:
        out.append(Violation("header.timestamp", "must not be negative", ">= 0", h.timestamp))
    if h.file_size < 0:
        out.append(Violation("header.fileSize", "must not be negative", ">= 0", h.file_size))
    if not h.content_type.strip():
        out.append(Violation("header.contentType", "must not be empty"))
    return out


def _metadata_violations(m: NFTMetadata) -> List[Violation]:
    out: List[Violation] = []
    for field, value in (("title", m.title), ("creatorName", m.creator_name), ("creatorAddress", m.creator_address)):
        if not value.strip():
            out.append(Violation(f"metadata.{field}", "must not be empty"))

    required = REQUIRED_BLOCK[m.document_type]
    if required == "grantInfo" and m.grant_info is None:
        out.append(Violation("metadata.grantInfo", "required for grant-submission documents", "present", None))
    if required == "shareStructure" and m.share_structure is None:
        out.append(Violation("metadata.shareStructure", "required for contract documents", "present", None))

    ss = m.share_structure
    if ss is not None:
        if ss.total_shares < 0:
            out.append(Violation("metadata.shareStructure.totalShares", "must not be negative", ">= 0", ss.total_shares))
        if ss.issued_shares < 0:
            out.append(Violation("metadata.shareStructure.issuedShares", "must not be negative", ">= 0", ss.issued_shares))
        if ss.issued_shares > ss.total_shares:
            out.append(Violation(
                "metadata.shareStructure.issuedShares",
                "issued shares exceed total shares",
                f"<= {ss.total_shares}",
                ss.issued_shares,
            ))
        if ss.share_price < 0:
            out.append(Violation("metadata.shareStructure.sharePrice", "must not be negative", ">= 0", ss.share_price))
        if not ss.currency.strip():
            out.append(Violation("metadata.shareStructure.currency", "must not be empty"))

    if m.revenue_routes is not None:
        total = 0.0
        for i, route in enumerate(m.revenue_routes):
            field = f"metadata.revenueRoutes[{i}]"
            if not route.address.strip():
                out.append(Violation(f"{field}.address", "must not be empty"))
            if not math.isfinite(route.percentage) or not 0 <= route.percentage <= 100:
                out.append(Violation(f"{field}.percentage", "out of range", "0..100", route.percentage))
            else:
                total += route.percentage
        if total > 100 + PERCENT_EPSILON:
            out.append(Violation("metadata.revenueRoutes", "percentages sum to more than 100", "<= 100", total))

    g = m.grant_info
    if g is not None:
        if g.requested_amount <= 0:
            out.append(Violation("metadata.grantInfo.requestedAmount", "must be positive", "> 0", g.requested_amount))
        if not g.funding_address.strip():
            out.append(Violation("metadata.grantInfo.fundingAddress", "must not be empty"))
        if g.bwriter_award is not None and g.bwriter_award < 0:
            out.append(Violation("metadata.grantInfo.bwriterAward", "must not be negative", ">= 0", g.bwriter_award))
        fd = g.funding_detected
        if fd is not None:
            if fd.amount < 0:
                out.append(Violation("metadata.grantInfo.fundingDetected.amount", "must not be negative", ">= 0", fd.amount))
            if not fd.txid.strip():
                out.append(Violation("metadata.grantInfo.fundingDetected.txid", "must not be empty"))

    r = m.rights
    if r.license == "custom" and not (r.custom_license or "").strip():
        out.append(Violation("metadata.rights.customLicense", "required when license is custom", "non-empty text", r.custom_license))
    if r.license != "custom" and r.custom_license is not None:
        out.append(Violation("metadata.rights.customLicense", "only allowed when license is custom", None, r.license))

    pd = m.platform_data
    if pd is not None:
        if pd.quality_score is not None and (not math.isfinite(pd.quality_score) or not 0 <= pd.quality_score <= 100):
            out.append(Violation("metadata.platformData.quality_score", "out of range", "0..100", pd.quality_score))
        for name in ("view_count", "download_count"):
            value = getattr(pd, name)
            if value is not None and value < 0:
                out.append(Violation(f"metadata.platformData.{name}", "must not be negative", ">= 0", value))
    return out


def _content_violations(c: NFTContent) -> List[Violation]:
    out: List[Violation] = []
    if c.format == "binary" and c.encoding != "base64":
        out.append(Violation("content.encoding", "binary content must be base64 encoded", "base64", c.encoding))
    if c.encoding == "base64" and b64decode_strict(c.data) is None:
        out.append(Violation("content.data", "not valid base64", "base64", "undecodable"))
    if c.format == "json" and c.encoding == "utf8":
        try:
            json.loads(c.data)
        except ValueError:
            out.append(Violation("content.data", "json content does not parse", "JSON text", "unparseable"))
    for i, att in enumerate(c.attachments or []):
        field = f"content.attachments[{i}]"
        if not att.filename.strip():
            out.append(Violation(f"{field}.filename", "must not be empty"))
        raw = b64decode_strict(att.data)
        if raw is None:
            out.append(Violation(f"{field}.data", "not valid base64", "base64", "undecodable"))
        elif len(raw) != att.size:
            out.append(Violation(f"{field}.size", "declared size does not match decoded data", len(raw), att.size))
    return out


def _text_violations(obj: Any, path: str, out: List[Violation]) -> None:
    # unpaired surrogates survive json.loads and model validation but cannot be written
    if isinstance(obj, str):
        try:
            obj.encode("utf-8")
        except UnicodeEncodeError as e:
            out.append(Violation(path, "text is not valid UTF-8", "unicode scalar values", f"unpaired surrogate at {e.start}"))
    elif isinstance(obj, dict):
        for k, v in obj.items():
            _text_violations(v, f"{path}.{k}" if path else k, out)
    elif isinstance(obj, list):
        for i, v in enumerate(obj):
            _text_violations(v, f"{path}[{i}]", out)


def _encoding_violations(file: NFTFile) -> List[Violation]:
    out: List[Violation] = []
    _text_violations(file.to_wire(), "", out)
    return out


def validate_structure(file: NFTFile) -> List[Violation]:
    """Return every structural violation; an empty list means the container is well formed."""
    return (
        _header_violations(file.header)
        + _metadata_violations(file.metadata)
        + _content_violations(file.content)
        + _encoding_violations(file)
    )


def require_valid(file: NFTFile) -> NFTFile:
    violations = validate_structure(file)
    if violations:
        raise StructuralViolation(violations)
    return file


def as_grant_submission(file: NFTFile) -> NFTFile:
    """Narrow to a grant submission: documentType grant-submission with grantInfo present."""
    if file.metadata.document_type != "grant-submission":
        raise StructuralViolation.single("metadata.documentType", "not a grant submission", "grant-submission", file.metadata.document_type)
    if file.metadata.grant_info is None:
        raise StructuralViolation.single("metadata.grantInfo", "required for grant-submission documents", "present", None)
    return file


def as_contract_document(file: NFTFile) -> NFTFile:
    """Narrow to a contract: documentType contract with shareStructure present."""
    if file.metadata.document_type != "contract":
        raise StructuralViolation.single("metadata.documentType", "not a contract", "contract", file.metadata.document_type)
    if file.metadata.share_structure is None:
        raise StructuralViolation.single("metadata.shareStructure", "required for contract documents", "present", None)
    return file
