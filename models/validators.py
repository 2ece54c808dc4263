"""
Validation helpers for registry documents and admin payloads
"""
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .base import FormRegistryEntry

T = TypeVar('T', bound=BaseModel)

REQUIRED_ENTRY_FIELDS = ("formSecretKey", "sheetId", "sheetName")


def validate_data(data: Dict[str, Any], model_class: Type[T]) -> tuple[bool, Union[T, List[Dict[str, Any]]]]:
    """
    Validate input data against a Pydantic model

    Returns:
        Tuple of (is_valid, result) where result is either the model instance
        or the list of pydantic error dicts
    """
    try:
        return True, model_class(**data)
    except ValidationError as e:
        return False, e.errors()


def missing_entry_fields(fields: Dict[str, Optional[str]]) -> List[str]:
    """Names of required registry fields that are absent, not strings, or blank."""
    missing = []
    for name in REQUIRED_ENTRY_FIELDS:
        value = fields.get(name)
        if not isinstance(value, str) or not value.strip():
            missing.append(name)
    return missing


def validate_registry_document(doc: Any) -> Dict[str, FormRegistryEntry]:
    """
    Parse a persisted registry document ({id: {formSecretKey, sheetId, sheetName}})
    into entries, preserving the document's key order.

    Raises:
        ValueError: if the document is not a mapping or an entry is malformed
    """
    if not isinstance(doc, dict):
        raise ValueError("registry document must be a JSON object")
    entries: Dict[str, FormRegistryEntry] = {}
    for key, value in doc.items():
        if not isinstance(value, dict):
            raise ValueError(f"registry entry {key!r} must be an object")
        ok, result = validate_data({**value, "id": str(key)}, FormRegistryEntry)
        if not ok:
            raise ValueError(f"registry entry {key!r} is invalid: {result}")
        entries[str(key)] = result
    return entries
