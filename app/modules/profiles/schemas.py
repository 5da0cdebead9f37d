from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ProfileResponse(BaseModel):
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "user"
    balance: float = 0
    top_up_balance: float = 0
    withdrawable_balance: float = 0
    referral_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUserResponse(BaseModel):
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    balance: float = 0
    total_earnings: float = 0
    created_at: Optional[datetime] = None


class RoleUpdateRequest(BaseModel):
    user_id: str = Field(..., alias="userId")
    role: str

    class Config:
        populate_by_name = True


class ImpersonateRequest(BaseModel):
    user_id: str = Field(..., alias="userId")

    class Config:
        populate_by_name = True


class ImpersonateResponse(BaseModel):
    action_link: str
