"""
Usage-event and foreground-observation schemas.

GET  /events           → EventListResponse
POST /events/purge     → PurgeRequest → PurgeResponse
POST /foreground       → ForegroundObservation → BlockDecisionResponse
"""
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UsageEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: int = Field(description="Epoch milliseconds.")
    day_of_week: int = Field(description="1=Sunday .. 7=Saturday.")
    hour_of_day: int
    package_name: str
    app_category: str
    session_duration: int = Field(description="Milliseconds.")
    time_since_last_use: int = Field(description="Milliseconds since the previous same-package event today.")
    daily_app_launches: int
    total_daily_screen_time: int
    cumulative_daily_screen_time: int
    was_blocked: bool
    unlock_attempted: bool
    unlock_succeeded: bool
    risk_score: float


class EventListResponse(BaseModel):
    total: int
    items: list[UsageEventResponse]


class PurgeRequest(BaseModel):
    cutoff: Optional[int] = Field(
        default=None,
        ge=0,
        description="Delete events strictly older than this epoch-ms timestamp.",
    )
    retention_days: Optional[int] = Field(
        default=None,
        ge=1,
        description="Used when cutoff is omitted. Defaults to EVENT_RETENTION_DAYS.",
    )


class PurgeResponse(BaseModel):
    deleted: int


class ForegroundObservation(BaseModel):
    """One observation from the OS foreground-app collaborator."""
    package_name: Annotated[str, Field(
        min_length=1,
        max_length=256,
        examples=["com.instagram.android"],
    )]
    observed_at: Optional[int] = Field(
        default=None,
        ge=0,
        description="Epoch ms of the observation. Defaults to now.",
    )

    @field_validator("package_name", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("package_name must not be empty after stripping whitespace")
        return stripped


class BlockDecisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    package_name: str
    blocked: bool
    reason: str = Field(description='"unlocked" | "own_package" | "not_blocked" | "blocked" | "cooldown"')
    app_name: Optional[str] = None
    recorded: bool = Field(description="True if a usage event was written for this observation.")
    event_id: Optional[int] = None
    error: Optional[str] = Field(default=None, description="Error code if recording failed.")
