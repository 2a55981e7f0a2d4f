"""Auth schemas (token)"""
from pydantic import BaseModel, Field


class Token(BaseModel):
    """Bearer token issued at login"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
