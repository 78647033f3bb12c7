import pytest

from bwnf.errors import SignatureInvalid, StructuralViolation
from bwnf.obs.prom import REGISTRY, export_metrics

from conftest import CREATOR_SK, FIXED_NOW


class ListBroadcaster:
    def __init__(self):
        self.sent = []

    def broadcast(self, data: bytes) -> str:
        self.sent.append(data)
        return f"tx-{len(self.sent)}"


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_create_builds_header(svc, content, metadata):
    file = svc.create(content, metadata)
    h = file.header
    assert h.magic_number == "BWNF"
    assert h.version == "1.0"
    assert h.timestamp == FIXED_NOW
    assert h.content_type == "text/markdown"
    assert h.file_size == 0
    assert len(h.content_hash) == 64
    assert file.signature is None


@pytest.mark.parametrize("fmt,ctype", [("html", "text/html"), ("json", "application/json")])
def test_content_type_follows_format(svc, metadata, fmt, ctype):
    data = "<p>hi</p>" if fmt == "html" else "[]"
    assert svc.create({"format": fmt, "encoding": "utf8", "data": data}, metadata).header.content_type == ctype


def test_binary_content_and_override(svc, metadata):
    file = svc.create({"format": "binary", "encoding": "base64", "data": "AAEC"}, metadata, content_type="application/pdf")
    assert file.header.content_type == "application/pdf"


def test_create_rejects_platform_data(svc, content, metadata):
    metadata["platformData"] = {"tags": [], "category": "x", "featured": True}
    with pytest.raises(StructuralViolation) as ei:
        svc.create(content, metadata)
    assert ei.value.field == "metadata.platformData"


def test_platform_data_update_keeps_hash(svc, content, metadata):
    signed = svc.sign(svc.create(content, metadata), CREATOR_SK)
    viewed = svc.update_platform_data(signed, {"tags": ["bsv"], "category": "dev", "featured": True, "view_count": 1})
    viewed_more = svc.update_platform_data(viewed, {"tags": ["bsv"], "category": "dev", "featured": True, "view_count": 500})
    assert viewed_more.header.content_hash == signed.header.content_hash
    assert viewed_more.metadata.platform_data.view_count == 500
    assert signed.metadata.platform_data is None
    assert svc.validate(viewed_more)


def test_publish(svc, content, metadata):
    signed = svc.sign(svc.create(content, metadata), CREATOR_SK)
    sink = ListBroadcaster()
    assert svc.publish(signed, sink) == "tx-1"
    assert svc.read(sink.sent[0]) == svc.read(svc.write(signed))


def test_publish_refuses_unverifiable(svc, content, metadata):
    sink = ListBroadcaster()
    with pytest.raises(StructuralViolation):
        svc.publish(svc.create(content, metadata), sink)
    forged = svc.sign(svc.create(content, metadata), CREATOR_SK)
    forged = forged.model_copy(update={"signature": forged.signature.model_copy(update={"creator_signature": "AAAA"})})
    with pytest.raises(SignatureInvalid):
        svc.publish(forged, sink)
    assert sink.sent == []


def test_metrics(svc, content, grant_metadata):
    created_before = _sample("bwnf_files_created_total", {"document_type": "grant-submission"})
    written_before = _sample("bwnf_files_written_total", {"fmt": "json"})
    failures_before = _sample("bwnf_verify_failures_total", {"reason": "StructuralViolation"})
    funded_before = _sample("bwnf_funding_detected_total", {"funded": "true"})

    file = svc.create(content, grant_metadata)
    svc.write(file, "json")
    assert svc.validate(file) is False
    svc.detect_funding(file, {"amount": 500000, "transactionId": "t1", "timestamp": 1})

    assert _sample("bwnf_files_created_total", {"document_type": "grant-submission"}) == created_before + 1
    assert _sample("bwnf_files_written_total", {"fmt": "json"}) == written_before + 1
    assert _sample("bwnf_verify_failures_total", {"reason": "StructuralViolation"}) == failures_before + 1
    assert _sample("bwnf_funding_detected_total", {"funded": "true"}) == funded_before + 1
    body, ctype = export_metrics()
    assert b"bwnf_files_created_total" in body
    assert ctype.startswith("text/plain")
