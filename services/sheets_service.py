"""
Google Sheets delivery: appends one row per submission to a sheet range.

Auth uses a service-account key file: an RS256 JWT assertion (PyJWT) is
exchanged for an access token, which is cached until shortly before expiry.
"""
import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import jwt

from utils.errors import UpstreamAppendFailure

logger = logging.getLogger("bridge.sheets")

SHEETS_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
OAUTH_TOKEN = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_LIFETIME_SECONDS = 3600


class ServiceAccountTokenProvider:
    """Access tokens for a Google service account."""

    def __init__(self, key_file: str, timeout: float = 20.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.key_file = key_file
        self.timeout = timeout
        self._transport = transport
        self._info: Optional[Dict[str, Any]] = None
        self._token: Optional[str] = None
        self._expiry = 0
        self._lock = asyncio.Lock()

    def _load_info(self) -> Dict[str, Any]:
        if self._info is None:
            with open(self.key_file, "r", encoding="utf-8") as f:
                info = json.load(f)
            if not info.get("client_email") or not info.get("private_key"):
                raise ValueError("service account file missing client_email/private_key")
            self._info = info
        return self._info

    def _assertion(self, now: int) -> str:
        info = self._load_info()
        claims = {
            "iss": info["client_email"],
            "scope": " ".join(SCOPES),
            "aud": info.get("token_uri") or OAUTH_TOKEN,
            "iat": now,
            "exp": now + TOKEN_LIFETIME_SECONDS,
        }
        headers = {"kid": info["private_key_id"]} if info.get("private_key_id") else None
        return jwt.encode(claims, info["private_key"], algorithm="RS256", headers=headers)

    async def get_token(self) -> str:
        async with self._lock:
            now = int(time.time())
            if self._token and now < (self._expiry - 60):
                return self._token
            try:
                assertion = self._assertion(now)
            except (OSError, ValueError, KeyError) as e:
                raise UpstreamAppendFailure(stage="token") from e

            token_uri = (self._info or {}).get("token_uri") or OAUTH_TOKEN
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(token_uri, data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion})
            if resp.status_code != 200:
                logger.warning("Google token exchange failed: status=%s", resp.status_code)
                raise UpstreamAppendFailure(stage="token")
            try:
                payload = resp.json()
            except ValueError as e:
                raise UpstreamAppendFailure(stage="token") from e
            token = payload.get("access_token") if isinstance(payload, dict) else None
            if not token:
                raise UpstreamAppendFailure(stage="token")
            self._token = token
            self._expiry = now + int(payload.get("expires_in") or TOKEN_LIFETIME_SECONDS)
            return token


class GoogleSheetsSink:
    """Append-only sink. No idempotency key is sent, so a redelivered webhook
    produces a second row."""

    def __init__(
        self,
        token_provider: ServiceAccountTokenProvider,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def append_url(sheet_id: str, sheet_name: str) -> str:
        rng = quote(f"{sheet_name}!A1", safe="")
        return (
            f"{SHEETS_BASE}/{quote(sheet_id, safe='')}/values/{rng}:append"
            "?valueInputOption=RAW&insertDataOption=INSERT_ROWS"
        )

    async def append(self, sheet_id: str, sheet_name: str, row: List[Any]) -> None:
        """Append one row; raises UpstreamAppendFailure on any failure, including the deadline."""
        try:
            await asyncio.wait_for(self._append(sheet_id, sheet_name, row), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Append to sheet %s timed out after %ss", sheet_id, self.timeout)
            raise UpstreamAppendFailure(stage="append") from e
        except httpx.HTTPError as e:
            logger.warning("Append to sheet %s failed: %s", sheet_id, type(e).__name__)
            raise UpstreamAppendFailure(stage="append") from e

    async def _append(self, sheet_id: str, sheet_name: str, row: List[Any]) -> None:
        token = await self.token_provider.get_token()
        body = {"range": f"{sheet_name}!A1", "majorDimension": "ROWS", "values": [row]}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                self.append_url(sheet_id, sheet_name),
                headers={"Authorization": f"Bearer {token}"},
                json=body,
            )
        if resp.status_code not in (200, 201):
            logger.warning("Append to sheet %s failed: status=%s", sheet_id, resp.status_code)
            raise UpstreamAppendFailure(stage="append")
