"""Envelope codec.

Two representations of the same map {header, metadata, content, signature?}:

- binary: ASCII ``BWNF`` followed by deterministic CBOR (application/bwnf+cbor)
- text:   canonical JSON (application/bwnf+json)

``header.fileSize`` always records the length of the whole emitted file,
magic prefix included.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Literal, Union

import cbor2

from .. import config
from ..crypto.jcs import jcs_canonicalize, normalize
from ..errors import DecodeError
from .hashing import content_hash
from .model import NFTFile
from .structure import require_valid

MAGIC_BYTES = config.MAGIC.encode("ascii")
MEDIA_TYPE_CBOR = "application/bwnf+cbor"
MEDIA_TYPE_JSON = "application/bwnf+json"

Representation = Literal["binary", "json"]

TOP_LEVEL_BLOCKS = ("header", "metadata", "content")
TOP_LEVEL_KEYS = set(TOP_LEVEL_BLOCKS) | {"signature"}
_MAX_SIZE_ROUNDS = 8


def det_cbor_dumps(obj: Any) -> bytes:
    return cbor2.dumps(
        normalize(obj),
        canonical=True,
        timezone=None,
        datetime_as_timestamp=False,
        value_sharing=False,
        default=None,
    )


def _encode(file: NFTFile, fmt: Representation) -> bytes:
    wire = file.to_wire()
    if fmt == "binary":
        return MAGIC_BYTES + det_cbor_dumps(wire)
    if fmt == "json":
        return jcs_canonicalize(wire)
    raise ValueError(f"unknown representation {fmt!r}")


def write(file: NFTFile, fmt: Representation = "binary") -> bytes:
    """Serialize a structurally valid container, filling in fileSize last."""
    require_valid(file)
    size = 0
    for _ in range(_MAX_SIZE_ROUNDS):
        header = file.header.model_copy(update={"file_size": size})
        buf = _encode(file.model_copy(update={"header": header}), fmt)
        if len(buf) == size:
            return buf
        size = len(buf)
    raise RuntimeError("fileSize did not converge")  # pragma: no cover


def sniff(buf: bytes) -> Representation:
    if buf.startswith(MAGIC_BYTES):
        return "binary"
    if buf.lstrip()[:1] == b"{":
        return "json"
    raise DecodeError("bad magic", field="magic", expected=config.MAGIC, actual=buf[:4].decode("latin-1"))


def _as_bytes(data: Union[bytes, bytearray, str]) -> bytes:
    if not isinstance(data, str):
        return bytes(data)
    try:
        return data.encode("utf-8")
    except UnicodeEncodeError as e:
        raise DecodeError("text input is not valid UTF-8", expected="unicode scalar values", actual=f"unpaired surrogate at {e.start}") from e


def _decode_envelope(buf: bytes, fmt: Representation) -> Any:
    try:
        if fmt == "binary":
            return cbor2.loads(buf[len(MAGIC_BYTES):])
        return json.loads(buf.decode("utf-8"))
    except (cbor2.CBORDecodeError, ValueError, TypeError, RecursionError) as e:
        raise DecodeError(f"envelope is not parseable {fmt}") from e


def _major_version(version: Any) -> int:
    if not isinstance(version, str):
        raise DecodeError("version must be a string", field="header.version", actual=version)
    try:
        return int(version.split(".", 1)[0])
    except ValueError as e:
        raise DecodeError("version is not semantic", field="header.version", actual=version) from e


def _check_envelope(obj: Any, actual_size: int) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        raise DecodeError("envelope top level must be a map")
    unknown = set(obj) - TOP_LEVEL_KEYS
    if unknown:
        raise DecodeError("unknown top-level blocks", actual=sorted(map(str, unknown)))
    for block in TOP_LEVEL_BLOCKS:
        if not isinstance(obj.get(block), dict):
            raise DecodeError(f"envelope missing {block} block", field=block)
    if "signature" in obj and not isinstance(obj["signature"], dict):
        raise DecodeError("signature block must be a map", field="signature")
    header = obj["header"]
    if header.get("magicNumber") != config.MAGIC:
        raise DecodeError("bad magic", field="header.magicNumber", expected=config.MAGIC, actual=header.get("magicNumber"))
    major = _major_version(header.get("version"))
    if major not in config.SUPPORTED_MAJOR_VERSIONS:
        raise DecodeError("unsupported version", field="header.version", expected=config.FORMAT_VERSION, actual=header.get("version"))
    declared = header.get("fileSize")
    if isinstance(declared, bool) or not isinstance(declared, int) or declared != actual_size:
        raise DecodeError("fileSize does not match input length", field="header.fileSize", expected=actual_size, actual=declared)
    return obj


def read(data: Union[bytes, bytearray, str]) -> NFTFile:
    """Decode either representation; all-or-nothing.

    Raises DecodeError for envelope problems and StructuralViolation for
    well-formed input that breaks a container invariant. Hashes and
    signatures are not checked here.
    """
    buf = _as_bytes(data)
    if len(buf) > config.MAX_FILE_BYTES:
        raise DecodeError("input exceeds maximum file size", expected=config.MAX_FILE_BYTES, actual=len(buf))
    fmt = sniff(buf)
    obj = _check_envelope(_decode_envelope(buf, fmt), len(buf))
    file = NFTFile.from_wire(obj)
    return require_valid(file)


def inspect(data: Union[bytes, bytearray, str]) -> Dict[str, Any]:
    """JSON-friendly summary of a container; signatures are reported, not verified."""
    buf = _as_bytes(data)
    file = read(buf)
    recomputed = content_hash(file.content, file.metadata)
    m = file.metadata
    summary: Dict[str, Any] = {
        "representation": sniff(buf),
        "mediaType": MEDIA_TYPE_CBOR if sniff(buf) == "binary" else MEDIA_TYPE_JSON,
        "magicNumber": file.header.magic_number,
        "version": file.header.version,
        "contentType": file.header.content_type,
        "fileSize": file.header.file_size,
        "timestamp": file.header.timestamp,
        "contentHash": file.header.content_hash,
        "hashOk": recomputed == file.header.content_hash,
        "title": m.title,
        "documentType": m.document_type,
        "creatorName": m.creator_name,
        "creatorAddress": m.creator_address,
        "license": m.rights.license,
        "format": file.content.format,
        "encoding": file.content.encoding,
        "attachments": [a.filename for a in file.content.attachments or []],
        "signed": file.is_signed,
        "endorsed": file.is_endorsed,
    }
    if file.signature is not None:
        summary["algorithm"] = file.signature.algorithm
        summary["signedAt"] = file.signature.timestamp
    if m.grant_info is not None:
        summary["applicationStatus"] = m.grant_info.application_status
    return summary
