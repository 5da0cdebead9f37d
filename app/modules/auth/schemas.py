from pydantic import BaseModel, Field
from typing import Optional, List


class LoginRequest(BaseModel):
    username: str = Field(..., description="Username or e-mail")
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class RegisterRequest(BaseModel):
    username: str
    password: str = Field(..., min_length=6)
    first_name: str
    last_name: str
    referral_code: Optional[str] = None


class RegisterResponse(BaseModel):
    user_id: str
    username: str
    email: str
    referred_by: Optional[str] = None
    message: str


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    role: str
    permissions: List[str]
