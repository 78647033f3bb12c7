import pytest

from bwnf.container.funding import PaymentObservation
from bwnf.container.model import FundingDetected
from bwnf.errors import SignatureInvalid, StructuralViolation

from conftest import CREATOR_SK, PLATFORM_SK

TXID = "ab" * 32


def _observation(amount):
    return {"amount": amount, "transactionId": TXID, "timestamp": 1_700_000_500_000}


def test_payment_covering_request_funds_grant(svc, content, grant_metadata):
    grant = svc.create(content, grant_metadata)
    funded = svc.detect_funding(grant, _observation(600000))
    info = funded.metadata.grant_info
    assert info.application_status == "funded"
    assert info.funding_detected.amount == 600000
    assert info.funding_detected.txid == TXID
    assert info.funding_detected.timestamp == 1_700_000_500_000
    assert funded.content == grant.content
    assert funded.header.content_hash == grant.header.content_hash
    assert grant.metadata.grant_info.funding_detected is None


def test_partial_payment_leaves_status(svc, content, grant_metadata):
    grant = svc.create(content, grant_metadata)
    partial = svc.detect_funding(grant, _observation(400000))
    assert partial.metadata.grant_info.application_status == "pending"
    assert partial.metadata.grant_info.funding_detected.amount == 400000


def test_exact_amount_funds(svc, content, grant_metadata):
    grant_metadata["grantInfo"]["applicationStatus"] = "awarded"
    grant = svc.create(content, grant_metadata)
    funded = svc.detect_funding(grant, PaymentObservation(amount=500000, transaction_id=TXID, timestamp=1))
    assert funded.metadata.grant_info.application_status == "funded"


def test_rejected_application_stays_rejected(svc, content, grant_metadata):
    grant_metadata["grantInfo"]["applicationStatus"] = "rejected"
    grant = svc.create(content, grant_metadata)
    assert svc.detect_funding(grant, _observation(900000)).metadata.grant_info.application_status == "rejected"


def test_funding_keeps_creator_signature_valid(svc, content, grant_metadata):
    signed = svc.sign(svc.create(content, grant_metadata), CREATOR_SK)
    funded = svc.detect_funding(signed, _observation(600000))
    assert funded.signature == signed.signature
    assert svc.validate(funded)
    assert svc.validate(svc.read(svc.write(funded)))


def test_funding_drops_stale_endorsement(svc, content, grant_metadata):
    endorsed = svc.endorse(svc.sign(svc.create(content, grant_metadata), CREATOR_SK), PLATFORM_SK)
    funded = svc.detect_funding(endorsed, _observation(600000))
    assert not funded.is_endorsed
    assert funded.metadata.platform_signature is None
    assert funded.signature.creator_signature == endorsed.signature.creator_signature
    svc.verify(funded)


def test_funding_with_platform_key_is_endorsed_again(svc, content, grant_metadata):
    endorsed = svc.endorse(svc.sign(svc.create(content, grant_metadata), CREATOR_SK), PLATFORM_SK)
    funded = svc.detect_funding(endorsed, _observation(600000), platform_private_key=PLATFORM_SK)
    assert funded.is_endorsed
    assert funded.signature.platform_signature != endorsed.signature.platform_signature
    svc.verify(svc.read(svc.write(funded)))


def test_forged_funding_under_endorsement_is_rejected(svc, content, grant_metadata):
    endorsed = svc.endorse(svc.sign(svc.create(content, grant_metadata), CREATOR_SK), PLATFORM_SK)
    record = FundingDetected(amount=600000, txid=TXID, timestamp=1)
    grant = endorsed.metadata.grant_info.model_copy(update={"funding_detected": record, "application_status": "funded"})
    forged = endorsed.model_copy(update={"metadata": endorsed.metadata.model_copy(update={"grant_info": grant})})
    with pytest.raises(SignatureInvalid) as ei:
        svc.verify(forged)
    assert ei.value.which == "platform"


def test_requires_grant_submission(svc, content, metadata):
    with pytest.raises(StructuralViolation) as ei:
        svc.detect_funding(svc.create(content, metadata), _observation(600000))
    assert ei.value.field == "metadata.documentType"


@pytest.mark.parametrize("obs,field", [
    ({"amount": -1, "transactionId": TXID, "timestamp": 1}, "observation.amount"),
    ({"amount": 1, "transactionId": " ", "timestamp": 1}, "observation.transactionId"),
    ({"amount": 1, "timestamp": 1}, "observation.transactionId"),
])
def test_bad_observation(svc, content, grant_metadata, obs, field):
    with pytest.raises(StructuralViolation) as ei:
        svc.detect_funding(svc.create(content, grant_metadata), obs)
    assert ei.value.field == field
