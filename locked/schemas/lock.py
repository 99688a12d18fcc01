"""
Lock and token schemas.

GET  /lock              → LockStatusResponse
POST /lock/toggle       → TokenRequest → TransitionResponse
POST /token/pair        → TokenRequest → TokenStatusResponse
POST /token/verify      → TokenRequest → TokenVerifyResponse
"""
from typing import Annotated, Optional

from pydantic import BaseModel, Field

from locked.schemas.session import BlockingSessionResponse


class TokenRequest(BaseModel):
    token_id: Annotated[str, Field(
        min_length=1,
        max_length=128,
        description="Identifier read from the physical token.",
        examples=["04:A2:19:7B:C3:5E:80"],
    )]


class LockStatusResponse(BaseModel):
    state: str = Field(description='"LOCKED" or "UNLOCKED".')
    token_paired: bool
    current_session: Optional[BlockingSessionResponse] = None


class TransitionResponse(BaseModel):
    state: str
    session: Optional[BlockingSessionResponse] = None
    recovered: bool = Field(
        default=False,
        description="True when an unlock found no open session to close.",
    )


class TokenStatusResponse(BaseModel):
    paired: bool
    display_id: Optional[str] = Field(default=None, description="Paired id with all but the last 8 chars hidden.")


class TokenVerifyResponse(BaseModel):
    matches: bool
