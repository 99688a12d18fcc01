from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field


class BlockedAppRequest(BaseModel):
    package_name: Annotated[str, Field(min_length=1, max_length=256)]
    app_name: Optional[str] = Field(default=None, max_length=256)
    category: Optional[str] = Field(
        default=None,
        description="GAME | NEWS | OTHER | PRODUCTIVITY | SOCIAL | VIDEO. Guessed from the package name if omitted.",
    )


class SetBlockedRequest(BaseModel):
    is_blocked: bool


class BlockedAppResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    package_name: str
    app_name: str
    category: str
    is_blocked: bool
    added_timestamp: int


class BlockedAppListResponse(BaseModel):
    total: int
    items: list[BlockedAppResponse]
