"""Shared fixtures: real FormSG-style keys, a tmp registry, a recording sink and an app client."""

from __future__ import annotations

import base64
import json
import time
from typing import Any, List, Optional

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient

from main import create_app
from services.form_registry import FormRegistry
from utils.errors import UpstreamAppendFailure
from utils.formsg_crypto import FormSGCrypto, encrypt_responses, generate_form_keypair
from utils.limiter import limiter

ADMIN_SECRET = "admin-test-secret"


class RecordingSink:
    """Stands in for Google Sheets; remembers every appended row."""

    def __init__(self) -> None:
        self.rows: List[tuple] = []
        self.fail = False

    async def append(self, sheet_id: str, sheet_name: str, row: list) -> None:
        if self.fail:
            raise UpstreamAppendFailure(stage="append")
        self.rows.append((sheet_id, sheet_name, row))


class Signer:
    """Signs webhook URIs the way FormSG does."""

    def __init__(self) -> None:
        self._key = Ed25519PrivateKey.generate()
        raw = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.public_key = base64.b64encode(raw).decode()

    def header(self, uri: str, submission_id: str, form_id: str, epoch: Optional[int] = None) -> str:
        epoch = int(time.time() * 1000) if epoch is None else epoch
        base_string = f"{uri}.{submission_id}.{form_id}.{epoch}"
        sig = base64.b64encode(self._key.sign(base_string.encode())).decode()
        return f"t={epoch},s={submission_id},f={form_id},v1={sig}"


@pytest.fixture()
def signer() -> Signer:
    return Signer()


@pytest.fixture()
def form_keys() -> tuple[str, str]:
    """(secret, public) base64 keypair for one form."""
    return generate_form_keypair()


@pytest.fixture()
def crypto(signer: Signer) -> FormSGCrypto:
    return FormSGCrypto(signer.public_key)


@pytest.fixture()
def registry_path(tmp_path) -> str:
    return str(tmp_path / "data" / "forms.json")


@pytest.fixture()
def registry(registry_path: str) -> FormRegistry:
    return FormRegistry(registry_path)


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def client(registry, crypto, sink):
    limiter.reset()
    app = create_app(registry=registry, crypto=crypto, sink=sink, admin_secret=ADMIN_SECRET)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def make_envelope(responses: Any, form_public_key: str, submission_id: str = "sub-1",
                  created: str = "2024-03-01T10:00:00.000Z") -> dict:
    return {
        "formId": "form-abc",
        "submissionId": submission_id,
        "created": created,
        "version": 1,
        "encryptedContent": encrypt_responses(responses, form_public_key),
    }


def write_registry(path: str, doc: dict) -> None:
    import os

    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(doc, f)
