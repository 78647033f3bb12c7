from __future__ import annotations

import base64
import copy
import json

import cbor2
import pytest

from bwnf.crypto.alg_registry import ED25519
from bwnf.crypto.keyloader import KeyDirectory, generate_keypair
from bwnf.service import DocumentService

FIXED_NOW = 1_700_000_000_000

# Fixed key material for the session (ECDSA P-256 creator, Ed25519 platform)
CREATOR_SK, CREATOR_PK = generate_keypair()
OTHER_SK, OTHER_PK = generate_keypair()
PLATFORM_SK, PLATFORM_PK = generate_keypair(ED25519)


def reencode_binary(obj) -> bytes:
    """Re-serialize a decoded envelope, fixing fileSize so only the edit under test differs."""
    obj = copy.deepcopy(obj)
    size = 0
    while True:
        obj["header"]["fileSize"] = size
        buf = b"BWNF" + cbor2.dumps(obj, canonical=True)
        if len(buf) == size:
            return buf
        size = len(buf)


def reencode_text(obj) -> bytes:
    """Text-form counterpart of reencode_binary; non-ASCII is written as \\u escapes."""
    obj = copy.deepcopy(obj)
    size = 0
    while True:
        obj["header"]["fileSize"] = size
        buf = json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")
        if len(buf) == size:
            return buf
        size = len(buf)


def decode_binary(buf: bytes):
    return cbor2.loads(buf[4:])


@pytest.fixture
def content():
    return {"format": "markdown", "encoding": "utf8", "data": "# Lesson 1\n\nHello, learners"}


@pytest.fixture
def metadata():
    return {
        "title": "Intro to Script",
        "description": "First lesson of the scripting course",
        "creatorName": "Ada",
        "creatorAddress": "1AdaCreatorAddress",
        "creatorPublicKey": CREATOR_PK,
        "documentType": "article",
        "rights": {"license": "CC0", "commercialUse": True, "derivatives": True},
    }


@pytest.fixture
def grant_metadata(metadata):
    m = dict(metadata)
    m["documentType"] = "grant-submission"
    m["grantInfo"] = {
        "applicantType": "author",
        "requestedAmount": 500000,
        "requestedCurrency": "BSV",
        "fundingAddress": "1GrantFundingAddress",
        "applicationStatus": "pending",
    }
    return m


@pytest.fixture
def contract_metadata(metadata):
    m = dict(metadata)
    m["documentType"] = "contract"
    m["shareStructure"] = {"totalShares": 100, "issuedShares": 40, "sharePrice": 1000, "currency": "BSV"}
    m["revenueRoutes"] = [
        {"address": "1AdaCreatorAddress", "percentage": 60},
        {"address": "1PlatformAddress", "percentage": 25, "tokenType": "royalty.ft"},
    ]
    return m


@pytest.fixture
def svc():
    return DocumentService(key_directory=KeyDirectory(), platform_public_key=PLATFORM_PK, clock=lambda: FIXED_NOW)


@pytest.fixture
def attachment():
    raw = b"lesson worksheet"
    return {"filename": "worksheet.txt", "mimeType": "text/plain", "size": len(raw), "data": base64.b64encode(raw).decode()}
