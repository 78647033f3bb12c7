from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import StructuralViolation, Violation

DocumentType = Literal["grant-submission", "contract", "document", "article"]
ContentFormat = Literal["html", "markdown", "json", "binary"]
ContentEncoding = Literal["utf8", "base64"]
License = Literal["CC0", "MIT", "proprietary", "custom"]
ApplicantType = Literal["developer", "author", "publisher"]
GrantCurrency = Literal["BSV", "BEDUCATION"]
ApplicationStatus = Literal["pending", "awarded", "funded", "rejected"]

DOCUMENT_TYPES = ("grant-submission", "contract", "document", "article")
# documentType -> metadata block that must be present for it
REQUIRED_BLOCK: Dict[str, Optional[str]] = {
    "grant-submission": "grantInfo",
    "contract": "shareStructure",
    "document": None,
    "article": None,
}
CONTENT_TYPES: Dict[str, str] = {
    "html": "text/html",
    "markdown": "text/markdown",
    "json": "application/json",
    "binary": "application/octet-stream",
}


class WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NFTHeader(WireModel):
    magic_number: str = Field(alias="magicNumber")
    version: str
    content_hash: str = Field(alias="contentHash")
    timestamp: int
    file_size: int = Field(default=0, alias="fileSize")
    content_type: str = Field(alias="contentType")


class ShareStructure(WireModel):
    total_shares: int = Field(alias="totalShares")
    issued_shares: int = Field(alias="issuedShares")
    share_price: int = Field(alias="sharePrice")
    currency: str


class RevenueRoute(WireModel):
    address: str
    percentage: float
    token_type: Optional[str] = Field(default=None, alias="tokenType")


class FundingDetected(WireModel):
    amount: int
    txid: str
    timestamp: int


class GrantInfo(WireModel):
    applicant_type: ApplicantType = Field(alias="applicantType")
    requested_amount: int = Field(alias="requestedAmount")
    requested_currency: GrantCurrency = Field(alias="requestedCurrency")
    funding_address: str = Field(alias="fundingAddress")
    bwriter_award: Optional[int] = Field(default=None, alias="bwriterAward")
    application_status: ApplicationStatus = Field(default="pending", alias="applicationStatus")
    review_notes: Optional[str] = Field(default=None, alias="reviewNotes")
    funding_detected: Optional[FundingDetected] = Field(default=None, alias="fundingDetected")


class Rights(WireModel):
    license: License
    custom_license: Optional[str] = Field(default=None, alias="customLicense")
    commercial_use: bool = Field(alias="commercialUse")
    derivatives: bool


class PlatformData(WireModel):
    tags: List[str] = Field(default_factory=list)
    category: str = ""
    featured: bool = False
    quality_score: Optional[float] = None
    view_count: Optional[int] = None
    download_count: Optional[int] = None


class NFTMetadata(WireModel):
    title: str
    description: str
    creator_name: str = Field(alias="creatorName")
    creator_address: str = Field(alias="creatorAddress")
    creator_public_key: Optional[str] = Field(default=None, alias="creatorPublicKey")
    document_type: DocumentType = Field(alias="documentType")
    platform_signature: Optional[str] = Field(default=None, alias="platformSignature")
    share_structure: Optional[ShareStructure] = Field(default=None, alias="shareStructure")
    revenue_routes: Optional[List[RevenueRoute]] = Field(default=None, alias="revenueRoutes")
    grant_info: Optional[GrantInfo] = Field(default=None, alias="grantInfo")
    rights: Rights
    platform_data: Optional[PlatformData] = Field(default=None, alias="platformData")


class Attachment(WireModel):
    filename: str
    mime_type: str = Field(alias="mimeType")
    size: int
    data: str


class NFTContent(WireModel):
    format: ContentFormat
    encoding: ContentEncoding
    data: str
    attachments: Optional[List[Attachment]] = None


class NFTSignature(WireModel):
    creator_signature: str = Field(alias="creatorSignature")
    platform_signature: Optional[str] = Field(default=None, alias="platformSignature")
    timestamp: int
    algorithm: str


class NFTFile(WireModel):
    """The container: header, metadata, content and (once signed) a signature block."""

    header: NFTHeader
    metadata: NFTMetadata
    content: NFTContent
    signature: Optional[NFTSignature] = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None and bool(self.signature.creator_signature)

    @property
    def is_endorsed(self) -> bool:
        return self.signature is not None and bool(self.signature.platform_signature)

    @classmethod
    def from_wire(cls, data: Any) -> "NFTFile":
        return build(cls, data, "")


def _loc_to_field(prefix: str, loc) -> str:
    parts = [prefix] if prefix else []
    for item in loc:
        if isinstance(item, int):
            parts[-1:] = [f"{parts[-1]}[{item}]"] if parts else [f"[{item}]"]
        else:
            parts.append(str(item))
    return ".".join(parts) or "<root>"


def build(model_cls, data: Any, prefix: str = ""):
    """Construct a model from wire data, converting type/enum errors into StructuralViolation."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        violations = []
        for err in e.errors():
            expected = (err.get("ctx") or {}).get("expected")
            actual = err.get("input") if err.get("type") != "missing" else None
            if isinstance(actual, (dict, list)):
                actual = type(actual).__name__
            violations.append(Violation(_loc_to_field(prefix, err.get("loc", ())), err.get("msg", "invalid"), expected, actual))
        raise StructuralViolation(violations) from e
