"""
Pydantic schemas for integration and secret requests.

Request bodies use the camelCase keys the web client sends; snake_case
names are accepted too.
"""
import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.models.integration import IntegrationType


class IntegrationCreate(BaseModel):
    """Schema for creating an integration."""
    type: IntegrationType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = Field(True, alias="isActive")
    credentials_ref: Optional[str] = Field(None, alias="credentialsRef", max_length=255)

    class Config:
        populate_by_name = True


class IntegrationUpdate(BaseModel):
    """Schema for patching an integration."""
    is_active: Optional[bool] = Field(None, alias="isActive")
    metadata: Optional[Dict[str, Any]] = None
    credentials_ref: Optional[str] = Field(None, alias="credentialsRef", max_length=255)

    class Config:
        populate_by_name = True


class SecretUpsert(BaseModel):
    """
    Store or replace the credentials of one provider.

    ``encryptedValue`` is the JSON of provider-specific fields, e.g.
    ``{"baseUrl", "email", "apiToken"}`` or ``{"organization", "personalAccessToken"}``.
    Despite the name it arrives as plaintext; the server seals it.
    """
    provider: str = Field(..., min_length=1, max_length=50)
    encrypted_value: Union[str, Dict[str, Any]] = Field(..., alias="encryptedValue")

    class Config:
        populate_by_name = True

    @field_validator("encrypted_value")
    @classmethod
    def must_be_json_object(cls, v):
        if isinstance(v, dict):
            return v
        try:
            parsed = json.loads(v)
        except ValueError:
            raise ValueError("encryptedValue must be a JSON object")
        if not isinstance(parsed, dict):
            raise ValueError("encryptedValue must be a JSON object")
        return v

