"""Pydantic schemas for upload API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UploadResponse(BaseModel):
    """Schema for a stored upload. Serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    public_url: str
    file_name: str
    bucket: str
