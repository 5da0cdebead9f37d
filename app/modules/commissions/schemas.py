from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CommissionResponse(BaseModel):
    id: str
    user_id: str
    referral_id: Optional[str] = None
    top_up_request_id: Optional[str] = None
    amount: float
    commission_type: Optional[str] = None
    level: Optional[int] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminCommissionResponse(CommissionResponse):
    username: Optional[str] = None


class ReferralResponse(BaseModel):
    id: str
    referrer_id: str
    referred_id: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    referred_username: Optional[str] = None
    referred_first_name: Optional[str] = None
    referred_last_name: Optional[str] = None
