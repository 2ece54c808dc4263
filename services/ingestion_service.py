"""
Webhook ingestion pipeline:
lookup -> authenticate -> decrypt -> project -> deliver -> acknowledge.

Each stage either advances or raises the BridgeError for that transition.
Nothing is retried or compensated here; FormSG redelivers on non-2xx.
"""

import json
import logging
from typing import Any, Optional, Protocol

from models.base import Submission
from services.form_registry import FormRegistry
from utils.errors import (
    BridgeError,
    DecryptionFailure,
    InternalError,
    NotFound,
    Unauthorized,
)
from utils.formsg_crypto import FormSGCrypto
from utils.row_projection import build_row

logger = logging.getLogger("bridge.ingest")


class RowSink(Protocol):
    async def append(self, sheet_id: str, sheet_name: str, row: list) -> None: ...


class IngestionController:
    def __init__(self, registry: FormRegistry, crypto: FormSGCrypto, sink: RowSink):
        self.registry = registry
        self.crypto = crypto
        self.sink = sink

    async def handle(self, form_id: str, signature_header: Optional[str], uri: str, raw_body: bytes) -> None:
        """Run one webhook through the pipeline. Returns normally only once the row is appended."""
        try:
            await self._run(form_id, signature_header, uri, raw_body)
        except BridgeError as e:
            logger.warning("webhook rejected form=%s stage=%s status=%s reason=%s",
                           form_id, e.stage, e.status_code, e.message)
            raise
        except Exception as e:
            logger.exception("webhook failed form=%s", form_id)
            raise InternalError(stage="ingest") from e

    async def _run(self, form_id: str, signature_header: Optional[str], uri: str, raw_body: bytes) -> None:
        # Received -> Configured
        entry = self.registry.lookup_by_id(form_id)
        if entry is None:
            raise NotFound("Form ID not configured", stage="configured")

        # Configured -> Authenticated
        auth = self.crypto.authenticate(signature_header, uri)
        if not auth.ok:
            logger.info("authentication failed form=%s uri=%s reason=%s", form_id, uri, auth.reason)
            raise Unauthorized(stage="authenticated")

        # Authenticated -> Decrypted
        envelope = _envelope(raw_body)
        result = self.crypto.decrypt(entry.form_secret_key, envelope)
        if not result.ok:
            logger.info("decryption failed form=%s reason=%s", form_id, result.reason)
            raise DecryptionFailure(stage="decrypted")

        # Decrypted -> Projected
        submission = Submission(
            id=envelope.get("submissionId"),
            createdAt=envelope.get("created"),
            responses=result.payload.get("responses"),
        )
        row = build_row(submission)

        # Projected -> Delivered
        await self.sink.append(entry.sheet_id, entry.sheet_name, row)
        logger.info("submission delivered form=%s submission=%s cells=%d", form_id, submission.id, len(row))


def _envelope(raw_body: bytes) -> Any:
    """The {"data": {...}} body; anything unparseable yields None and fails decryption."""
    try:
        body = json.loads(raw_body or b"null")
    except ValueError:
        return None
    return body.get("data") if isinstance(body, dict) else None
