from __future__ import annotations

from typing import Any, Union

from pydantic import Field

from ..errors import StructuralViolation, Violation
from .model import FundingDetected, NFTFile, WireModel, build
from .structure import as_grant_submission, require_valid

# Statuses a sufficient payment may advance to "funded"; rejected/funded are terminal here.
FUNDABLE_STATUSES = ("pending", "awarded")


class PaymentObservation(WireModel):
    """An on-chain payment seen by an external watcher (amount in the grant's smallest unit)."""

    amount: int
    transaction_id: str = Field(alias="transactionId")
    timestamp: int


def _check_observation(obs: PaymentObservation) -> None:
    violations = []
    if obs.amount < 0:
        violations.append(Violation("observation.amount", "must not be negative", ">= 0", obs.amount))
    if not obs.transaction_id.strip():
        violations.append(Violation("observation.transactionId", "must not be empty"))
    if obs.timestamp < 0:
        violations.append(Violation("observation.timestamp", "must not be negative", ">= 0", obs.timestamp))
    if violations:
        raise StructuralViolation(violations)


def detect_funding(file: NFTFile, observation: Union[PaymentObservation, Any]) -> NFTFile:
    """Attach an observed payment to a grant submission.

    The status moves to ``funded`` when the payment covers the requested
    amount and the application is still pending or awarded. Content and
    content hash are untouched, so the creator signature stays valid.

    The funding record is not covered by the creator signature. A platform
    endorsement covers it, so any existing endorsement is dropped here and the
    platform has to endorse the updated container again.
    """
    require_valid(file)
    as_grant_submission(file)
    obs = build(PaymentObservation, observation, "observation")
    _check_observation(obs)

    grant = file.metadata.grant_info
    status = grant.application_status  # type: ignore[union-attr]
    if status in FUNDABLE_STATUSES and obs.amount >= grant.requested_amount:  # type: ignore[union-attr]
        status = "funded"
    record = FundingDetected(amount=obs.amount, txid=obs.transaction_id, timestamp=obs.timestamp)
    grant = grant.model_copy(update={"funding_detected": record, "application_status": status})  # type: ignore[union-attr]
    metadata = file.metadata.model_copy(update={"grant_info": grant, "platform_signature": None})
    signature = file.signature
    if signature is not None and signature.platform_signature is not None:
        signature = signature.model_copy(update={"platform_signature": None})
    return file.model_copy(update={"metadata": metadata, "signature": signature})
