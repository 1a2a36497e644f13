from pydantic import BaseModel, Field


class StandardError(BaseModel):
    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: dict | None = Field(default=None, description="Additional error details")
