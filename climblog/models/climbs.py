"""Pydantic models for climb requests and responses."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CreateClimbRequest(BaseModel):
    """Body of POST /climbs."""
    model_config = ConfigDict(populate_by_name=True)

    difficulty: Optional[int] = Field(None, description="Grade of the climb")
    description: Optional[str] = None
    flash: Optional[bool] = Field(None, description="Sent on the first attempt")
    completed: Optional[bool] = None
    user_id: int = Field(..., alias="userID")


class ClimbIdResponse(BaseModel):
    id: int


class MonthlyAverage(BaseModel):
    """Mean difficulty of a user's climbs uploaded in one calendar month."""
    month: str = Field(..., description="YYYY-MM")
    average: float
