"""Pydantic models for API request bodies."""

from pydantic import BaseModel


class CreateSessionRequest(BaseModel):
    """Body of a session creation request."""

    id: str | None = None


class ValidateNumberRequest(BaseModel):
    """Body of a number validation request."""

    to: str | int | None = None


class SendMessageRequest(BaseModel):
    """Body of a send message request."""

    to: str | int | None = None
    message: str | None = None
