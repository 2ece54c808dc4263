"""
Pydantic models for registry entries, admin payloads and decrypted submissions
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FormRegistryEntry(BaseModel):
    """Destination config for one webhook path segment."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    form_secret_key: str = Field(alias="formSecretKey")
    sheet_id: str = Field(alias="sheetId")
    sheet_name: str = Field(alias="sheetName")

    @field_validator('id', mode='before')
    def coerce_id(cls, v):
        # ids arrive as JSON numbers from older config files
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def to_document(self) -> Dict[str, str]:
        """Persisted shape: the id is the mapping key, not part of the value."""
        return self.model_dump(by_alias=True, exclude={"id"})


class AddFormRequest(BaseModel):
    """Body of POST /add. Presence of the required fields is checked by the controller
    so a missing field is reported as a 400 with the field names."""
    model_config = ConfigDict(populate_by_name=True)

    form_secret_key: Optional[str] = Field(default=None, alias="formSecretKey")
    sheet_id: Optional[str] = Field(default=None, alias="sheetId")
    sheet_name: Optional[str] = Field(default=None, alias="sheetName")
    id: Optional[Union[str, int]] = None
    secret: Optional[str] = None

    def entry_fields(self) -> Dict[str, Optional[str]]:
        return {
            "formSecretKey": self.form_secret_key,
            "sheetId": self.sheet_id,
            "sheetName": self.sheet_name,
        }


class FormResponse(BaseModel):
    """One answered question. FormSG also sends _id, question, fieldType etc.;
    those are kept as extras and not used for the row."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    answer: Any = None
    answer_array: Any = Field(default=None, alias="answerArray")


class Submission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Any = None
    created_at: Any = Field(default=None, alias="createdAt")
    responses: List[Union[FormResponse, Any]] = Field(default_factory=list)

    @field_validator('responses', mode='before')
    def coerce_responses(cls, v):
        if not isinstance(v, list):
            return []
        out = []
        for item in v:
            # malformed items are kept as-is; the row projector degrades them to ""
            out.append(FormResponse.model_validate(item) if isinstance(item, dict) else item)
        return out
