"""
FormSG webhook authentication and submission decryption.

Signatures are Ed25519 (cryptography) over "<uri>.<submissionId>.<formId>.<epoch>",
sent as  X-FormSG-Signature: t=<epoch ms>,s=<submissionId>,f=<formId>,v1=<base64 sig>.
Submissions are NaCl boxes (PyNaCl) encoded as
"<submission public key>;<nonce>:<ciphertext>", all base64, opened with the form's
secret key. Both operations return result objects instead of raising.
"""
import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.utils import random as nacl_random

logger = logging.getLogger("bridge.crypto")

SIGNATURE_HEADER = "X-FormSG-Signature"
DEFAULT_MAX_AGE_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    reason: str = ""


@dataclass(frozen=True)
class DecryptResult:
    payload: Optional[Dict[str, Any]] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.payload is not None


def parse_signature_header(header: str) -> Dict[str, str]:
    """Split "t=..,s=..,f=..,v1=.." into a dict. Values may contain '=' (base64 padding)."""
    parts: Dict[str, str] = {}
    for chunk in (header or "").split(","):
        key, sep, value = chunk.strip().partition("=")
        if sep and key:
            parts[key] = value
    return parts


def _b64(value: str) -> bytes:
    return base64.b64decode(value, validate=True)


class FormSGCrypto:
    """Verifies webhook signatures against one FormSG signing key and opens
    submissions with per-form secret keys. Pure CPU, no retries."""

    def __init__(self, public_key: str, max_age_ms: int = DEFAULT_MAX_AGE_MS):
        self.max_age_ms = max_age_ms
        self._verify_key: Optional[Ed25519PublicKey] = None
        if public_key:
            try:
                self._verify_key = Ed25519PublicKey.from_public_bytes(_b64(public_key))
            except (binascii.Error, ValueError):
                logger.error("FORMSG_PUBLIC_KEY is not a base64 Ed25519 public key; all webhooks will be rejected")

    def authenticate(self, signature_header: Optional[str], uri: str, now_ms: Optional[int] = None) -> AuthResult:
        if self._verify_key is None:
            return AuthResult(False, "no signing key configured")
        if not signature_header:
            return AuthResult(False, "missing signature header")

        parts = parse_signature_header(signature_header)
        epoch, submission_id, form_id, signature = (parts.get(k) for k in ("t", "s", "f", "v1"))
        if not (epoch and submission_id and form_id and signature):
            return AuthResult(False, "malformed signature header")

        try:
            epoch_ms = int(epoch)
        except ValueError:
            return AuthResult(False, "malformed signature epoch")
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        if now_ms - epoch_ms > self.max_age_ms:
            return AuthResult(False, "signature expired")

        base_string = f"{uri}.{submission_id}.{form_id}.{epoch}"
        try:
            self._verify_key.verify(_b64(signature), base_string.encode("utf-8"))
        except (InvalidSignature, binascii.Error, ValueError):
            return AuthResult(False, "signature mismatch")
        return AuthResult(True)

    def decrypt(self, form_secret_key: str, envelope: Any) -> DecryptResult:
        """Open envelope["encryptedContent"] with the form's secret key.

        Returns DecryptResult(payload={"responses": [...]}) on success.
        """
        if not isinstance(envelope, dict):
            return DecryptResult(reason="envelope is not an object")
        content = envelope.get("encryptedContent")
        if not isinstance(content, str) or not content:
            return DecryptResult(reason="envelope has no encryptedContent")

        try:
            submission_public_key, nonce, ciphertext = _split_content(content)
            box = Box(PrivateKey(_b64(form_secret_key)), PublicKey(_b64(submission_public_key)))
            plaintext = box.decrypt(_b64(ciphertext), _b64(nonce))
            responses = json.loads(plaintext.decode("utf-8"))
        except (CryptoError, binascii.Error, ValueError, TypeError) as e:
            return DecryptResult(reason=f"{type(e).__name__} while opening submission")

        if not isinstance(responses, list):
            return DecryptResult(reason="decrypted content is not a list of responses")
        return DecryptResult(payload={"responses": responses})


def _split_content(content: str) -> Tuple[str, str, str]:
    public_key, sep, rest = content.partition(";")
    nonce, sep2, ciphertext = rest.partition(":")
    if not (sep and sep2 and public_key and nonce and ciphertext):
        raise ValueError("encryptedContent is not '<key>;<nonce>:<ciphertext>'")
    return public_key, nonce, ciphertext


def generate_form_keypair() -> Tuple[str, str]:
    """
    Generate a new form keypair, base64-encoded (secret, public).

    Usage:
        python -c "from utils.formsg_crypto import generate_form_keypair; print(generate_form_keypair())"
    """
    secret = PrivateKey.generate()
    return (
        base64.b64encode(bytes(secret)).decode("utf-8"),
        base64.b64encode(bytes(secret.public_key)).decode("utf-8"),
    )


def encrypt_responses(responses: Any, form_public_key: str) -> str:
    """Encrypt responses for a form the way FormSG does (ephemeral submission key)."""
    submission_key = PrivateKey.generate()
    box = Box(submission_key, PublicKey(_b64(form_public_key)))
    nonce = nacl_random(Box.NONCE_SIZE)
    ciphertext = box.encrypt(json.dumps(responses).encode("utf-8"), nonce).ciphertext
    return "{};{}:{}".format(
        base64.b64encode(bytes(submission_key.public_key)).decode("utf-8"),
        base64.b64encode(nonce).decode("utf-8"),
        base64.b64encode(ciphertext).decode("utf-8"),
    )
