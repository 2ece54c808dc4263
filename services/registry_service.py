"""
Admin operations on the form registry
"""

import hmac
import logging
from typing import Dict, Optional, Union

from services.form_registry import FormRegistry
from models.validators import missing_entry_fields
from utils.errors import NotFound, Unauthorized, ValidationError

logger = logging.getLogger("bridge.admin")

# Fixed routes that would shadow a webhook path with the same name
RESERVED_IDS = frozenset({"add", "health"})


class RegistryController:
    def __init__(self, registry: FormRegistry, admin_secret: str):
        self.registry = registry
        self.admin_secret = admin_secret or ""

    def _check_secret(self, shared_secret: Optional[str]) -> None:
        # No configured secret means nobody gets in
        if not self.admin_secret or not shared_secret:
            raise Unauthorized(stage="admin")
        if not hmac.compare_digest(shared_secret.encode("utf-8"), self.admin_secret.encode("utf-8")):
            raise Unauthorized(stage="admin")

    async def create(
        self,
        shared_secret: Optional[str],
        fields: Dict[str, Optional[str]],
        requested_id: Optional[Union[str, int]] = None,
    ) -> str:
        """Register a form and return its id.

        Raises Unauthorized, ValidationError, Conflict or PersistenceFailure.
        """
        self._check_secret(shared_secret)

        missing = missing_entry_fields(fields)
        if missing:
            raise ValidationError("Missing required fields", stage="admin", extra={"missing": missing})

        if requested_id is not None:
            requested_id = str(requested_id).strip()
            if not requested_id or "/" in requested_id:
                raise ValidationError("Invalid id", stage="admin")
            if requested_id in RESERVED_IDS:
                raise ValidationError("Reserved id", stage="admin", extra={"id": requested_id})

        clean = {name: fields[name].strip() for name in ("formSecretKey", "sheetId", "sheetName")}
        form_id = await self.registry.allocate(clean, requested_id)
        logger.info("admin created form id=%s", form_id)
        return form_id

    def reverse_lookup(self, sheet_id: str) -> str:
        form_id = self.registry.lookup_by_sink(sheet_id)
        if form_id is None:
            raise NotFound("Sheet ID not found", stage="lookup")
        return form_id
