"""
Totem Relay: Pydantic Request/Response Models
===============================================
The scene sends ChatRequest, we return ChatResponse.
InteractionRecord is one line of the JSONL interaction log.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class CanonicalState(str, Enum):
    """The five animation clips baked into the totem model."""
    AWAKENED = "awakened"
    RESONANT = "resonant"
    FRACTURED = "fractured"
    TRANSCENDENT = "transcendent"
    DORMANT = "dormant"


class ChatRequest(BaseModel):
    """Incoming message from the scene."""
    message: StrictStr = Field(..., min_length=1)
    playerId: str | None = None

    @field_validator("playerId", mode="before")
    @classmethod
    def coerce_player_id(cls, value):
        # Scenes sometimes send numeric avatar ids; anything else is dropped
        if isinstance(value, str) or value is None:
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None


class ChatResponse(BaseModel):
    """Reply text plus the clip the totem should play."""
    reply: str
    state: CanonicalState


class InteractionRecord(BaseModel):
    """One logged exchange. Immutable once written."""
    model_config = ConfigDict(frozen=True)

    timestamp: int            # epoch millis, set at write time
    playerId: str | None = None
    message: str
    reply: str                # raw model output, [state: ...] tag included
    state: CanonicalState
