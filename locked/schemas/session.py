from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BlockingSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_time: int
    end_time: Optional[int] = Field(default=None, description="Null while the session is open.")
    unlock_method: str
    duration: Optional[int] = None


class SessionListResponse(BaseModel):
    total: int
    average_duration: Optional[float] = Field(
        default=None,
        description="Mean duration (ms) of all closed sessions.",
    )
    items: list[BlockingSessionResponse]
