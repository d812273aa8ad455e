"""Pydantic models for user requests and responses."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UpsertUserRequest(BaseModel):
    """Body of POST /user. Keys match what the mobile client sends."""
    model_config = ConfigDict(populate_by_name=True)

    google_id: str = Field(..., alias="googleId", min_length=1, description="External identity key")
    name: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None


class UserIdResponse(BaseModel):
    id: int
