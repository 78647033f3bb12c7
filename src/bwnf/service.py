"""Document service: the public operation surface over the container core.

Every operation takes and returns immutable values; nothing here owns shared
mutable state beyond process-wide metric counters.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Union

from . import config
from .container import codec
from .container.funding import PaymentObservation, detect_funding
from .container.hashing import content_hash
from .container.model import CONTENT_TYPES, NFTContent, NFTFile, NFTHeader, NFTMetadata, PlatformData, build
from .container.signer import DEFAULT_SIGNER, ROLE_CREATOR, ROLE_PLATFORM, SigningCapability, check_hash, now_ms
from .container.signer import endorse as _endorse
from .container.signer import sign as _sign
from .container.signer import verify as _verify
from .container.structure import require_valid
from .crypto.keyloader import KeyDirectory, load_public_key_file
from .errors import NFTError, StructuralViolation
from .obs.prom import BYTES_WRITTEN, FILES_CREATED, FILES_SIGNED, FILES_WRITTEN, FUNDING_DETECTED, VERIFY_FAILURES
from .utils.logging import get_logger

log = get_logger("bwnf.service")

UNHASHED = "0" * 64


class Broadcaster(Protocol):
    """Persists or broadcasts written bytes; returns an opaque location/transaction id."""

    def broadcast(self, data: bytes) -> str:
        ...


class DocumentService:
    def __init__(
        self,
        *,
        signer: Optional[SigningCapability] = None,
        key_directory: Optional[KeyDirectory] = None,
        platform_public_key: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.signer = signer or DEFAULT_SIGNER
        self.key_directory = key_directory if key_directory is not None else KeyDirectory.from_file(config.CREATOR_KEYS)
        if platform_public_key is None:
            platform_public_key = load_public_key_file(config.PLATFORM_PUBLIC_KEY)
        self.platform_public_key = platform_public_key
        self.clock = clock or now_ms

    def _failed(self, op: str, err: NFTError) -> None:
        VERIFY_FAILURES.labels(reason=type(err).__name__).inc()
        log.debug("%s failed: %s: %s", op, type(err).__name__, err)

    def create(
        self,
        content: Union[NFTContent, Mapping[str, Any]],
        metadata: Union[NFTMetadata, Mapping[str, Any]],
        *,
        content_type: Optional[str] = None,
    ) -> NFTFile:
        """Assemble an unsigned container; platformData is assigned later by the platform."""
        if isinstance(metadata, Mapping) and metadata.get("platformData") is not None:
            raise StructuralViolation.single("metadata.platformData", "assigned by the platform, not at creation", None, "present")
        c = build(NFTContent, content, "content")
        m = build(NFTMetadata, metadata, "metadata")
        if m.platform_data is not None:
            raise StructuralViolation.single("metadata.platformData", "assigned by the platform, not at creation", None, "present")
        header = NFTHeader(
            magic_number=config.MAGIC,
            version=config.FORMAT_VERSION,
            content_hash=UNHASHED,
            timestamp=self.clock(),
            file_size=0,
            content_type=content_type or CONTENT_TYPES[c.format],
        )
        # structure first: the hash is only computed over a well-formed container
        require_valid(NFTFile(header=header, metadata=m, content=c))
        header = header.model_copy(update={"content_hash": content_hash(c, m)})
        file = NFTFile(header=header, metadata=m, content=c)
        FILES_CREATED.labels(document_type=m.document_type).inc()
        log.debug("created %s container %s", m.document_type, header.content_hash)
        return file

    def read(self, data: Union[bytes, bytearray, str]) -> NFTFile:
        try:
            file = codec.read(data)
            check_hash(file)
        except NFTError as e:
            self._failed("read", e)
            raise
        return file

    def write(self, file: NFTFile, fmt: codec.Representation = "binary") -> bytes:
        buf = codec.write(require_valid(file), fmt)
        FILES_WRITTEN.labels(fmt=fmt).inc()
        BYTES_WRITTEN.inc(len(buf))
        return buf

    def verify(self, file: NFTFile) -> None:
        """Full check raising the typed failure (structure, hash, signatures)."""
        try:
            _verify(
                file,
                key_directory=self.key_directory,
                platform_public_key=self.platform_public_key,
                signer=self.signer,
            )
        except NFTError as e:
            self._failed("verify", e)
            raise

    def validate(self, file: NFTFile) -> bool:
        try:
            self.verify(file)
        except NFTError:
            return False
        return True

    def sign(self, file: NFTFile, private_key: Any) -> NFTFile:
        signed = _sign(file, private_key, signer=self.signer, timestamp=self.clock())
        FILES_SIGNED.labels(algorithm=signed.signature.algorithm, role=ROLE_CREATOR).inc()  # type: ignore[union-attr]
        log.debug("signed container %s", signed.header.content_hash)
        return signed

    def endorse(self, file: NFTFile, platform_private_key: Any) -> NFTFile:
        endorsed = _endorse(file, platform_private_key, signer=self.signer)
        FILES_SIGNED.labels(algorithm=endorsed.signature.algorithm, role=ROLE_PLATFORM).inc()  # type: ignore[union-attr]
        return endorsed

    def detect_funding(
        self,
        file: NFTFile,
        observation: Union[PaymentObservation, Mapping[str, Any]],
        platform_private_key: Any = None,
    ) -> NFTFile:
        """Attach the payment; with a platform key the result is endorsed again."""
        updated = detect_funding(file, observation)
        if platform_private_key is not None:
            updated = self.endorse(updated, platform_private_key)
        funded = updated.metadata.grant_info.application_status == "funded"  # type: ignore[union-attr]
        FUNDING_DETECTED.labels(funded=str(funded).lower()).inc()
        log.debug("funding observed for %s (funded=%s)", file.header.content_hash, funded)
        return updated

    def update_platform_data(self, file: NFTFile, platform_data: Union[PlatformData, Mapping[str, Any]]) -> NFTFile:
        """Replace platformData (tags, counters, score); the content hash is unaffected."""
        pd = build(PlatformData, platform_data, "metadata.platformData")
        metadata = file.metadata.model_copy(update={"platform_data": pd})
        return require_valid(file.model_copy(update={"metadata": metadata}))

    def publish(self, file: NFTFile, broadcaster: Broadcaster, fmt: codec.Representation = "binary") -> str:
        """Verify, write, and hand the bytes to the broadcast capability."""
        self.verify(file)
        location = broadcaster.broadcast(self.write(file, fmt))
        log.debug("published %s as %s", file.header.content_hash, location)
        return location

    def inspect(self, data: Union[bytes, bytearray, str]) -> Dict[str, Any]:
        return codec.inspect(data)
