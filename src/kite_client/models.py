"""Pydantic models for session handshake payloads

Only the fields the session manager depends on are declared; everything
else the broker sends is kept as extra data.
"""

from pydantic import BaseModel, ConfigDict, Field


class SessionData(BaseModel):
    """The ``data`` object of a token exchange response"""

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1, description="Access token")
    refresh_token: str | None = Field(None, description="Refresh token")
    public_token: str | None = Field(None, description="Public token")
    user_id: str | None = Field(None, description="Broker user ID")


class SessionResponse(BaseModel):
    """Response envelope of POST /session/token"""

    model_config = ConfigDict(extra="allow")

    status: str | None = None
    data: SessionData


class RenewedToken(BaseModel):
    """Response of POST /session/refresh_token

    The renewed access token sits at the top level of the body.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1, description="Access token")
    refresh_token: str | None = Field(None, description="Refresh token")
