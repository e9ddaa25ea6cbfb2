from pydantic import BaseModel
from typing import Optional


class TokenRequest(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
