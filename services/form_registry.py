"""
Form registry: webhook id -> destination sheet config, persisted as one JSON document.

The whole document is rewritten on every change (temp file + os.replace), so a
reader sees either the old or the new file, never a partial one. All mutations
go through a single asyncio.Lock.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from typing import Dict, Iterator, List, Optional, Tuple

from models.base import FormRegistryEntry
from models.validators import validate_registry_document
from utils.errors import Conflict, PersistenceFailure

logger = logging.getLogger("bridge.registry")

_NUMERIC_ID = re.compile(r"[0-9]+")


def _is_numeric(key: str) -> bool:
    return bool(_NUMERIC_ID.fullmatch(key))


def _sort_key(key: str) -> Tuple[int, int, str]:
    # numeric ids first in numeric order, then everything else lexicographically
    if _is_numeric(key):
        return (0, int(key), key)
    return (1, 0, key)


class FormRegistry:
    def __init__(self, path: str):
        self.path = path
        self._entries: Dict[str, FormRegistryEntry] = {}
        self._lock = asyncio.Lock()

    # --- lifecycle

    def load(self) -> None:
        """Read the registry document; bootstrap an empty one if the file is missing."""
        if not os.path.exists(self.path):
            logger.info("No registry at %s, creating an empty one", self.path)
            self._entries = {}
            self._write_document(self.serialize())
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
            self._entries = validate_registry_document(doc)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Failed to load registry: {e}", stage="load") from e
        logger.info("Loaded %d form(s) from %s", len(self._entries), self.path)

    def serialize(self) -> str:
        ordered = {key: self._entries[key].to_document() for key in sorted(self._entries, key=_sort_key)}
        return json.dumps(ordered, indent=2, ensure_ascii=False) + "\n"

    async def persist(self) -> None:
        async with self._lock:
            error, cancelled = await self._settled_write()
            if cancelled:
                raise asyncio.CancelledError()
            if error is not None:
                raise error

    async def _settled_write(self) -> Tuple[Optional[BaseException], bool]:
        """Write the current snapshot and wait for it to land, even if the caller
        is cancelled meanwhile. Returns (write error, caller was cancelled).
        Must be called with the lock held, so writes never overlap."""
        write = asyncio.ensure_future(asyncio.to_thread(self._write_document, self.serialize()))
        cancelled = False
        while not write.done():
            try:
                await asyncio.shield(write)
            except asyncio.CancelledError:
                cancelled = True
            except Exception:
                pass
        return write.exception(), cancelled

    def _write_document(self, text: str) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".forms-", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceFailure(stage="persist", extra={"error": e.strerror or str(e)}) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temp registry file %s", tmp_path)

    # --- queries

    def lookup_by_id(self, form_id: str) -> Optional[FormRegistryEntry]:
        return self._entries.get(str(form_id))

    def lookup_by_sink(self, sheet_id: str) -> Optional[str]:
        """First form id (in iteration order) whose sheetId matches. Linear scan."""
        for key, entry in self._entries.items():
            if entry.sheet_id == sheet_id:
                return key
        return None

    def entries(self) -> List[FormRegistryEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, form_id: object) -> bool:
        return str(form_id) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    # --- mutation

    def _next_id(self) -> str:
        numeric = [int(k) for k in self._entries if _is_numeric(k)]
        return str(max(numeric) + 1) if numeric else "1"

    async def allocate(self, fields: Dict[str, str], requested_id: Optional[str] = None) -> str:
        """
        Add an entry and persist the registry.

        Without requested_id the id is max(numeric ids) + 1 ("1" on an empty
        registry). Raises Conflict if requested_id is taken and
        PersistenceFailure if the write fails; in both cases the in-memory
        registry is left as it was. A cancelled caller still holds the lock
        until the write lands, and the entry is kept only if it did.
        """
        async with self._lock:
            if requested_id is not None:
                form_id = str(requested_id)
                if form_id in self._entries:
                    raise Conflict(stage="allocate", extra={"id": form_id})
            else:
                form_id = self._next_id()

            entry = FormRegistryEntry(id=form_id, **fields)
            self._entries[form_id] = entry
            error, cancelled = await self._settled_write()
            if error is not None:
                del self._entries[form_id]
                logger.error("Registry write failed, rolled back id=%s", form_id)
            if cancelled:
                raise asyncio.CancelledError()
            if error is not None:
                raise error
            logger.info("Registered form id=%s sheet=%s", form_id, entry.sheet_id)
            return form_id
