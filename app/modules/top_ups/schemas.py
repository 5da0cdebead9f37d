from pydantic import BaseModel
from typing import Optional, Literal, Dict, Any
from datetime import datetime


class TopUpResponse(BaseModel):
    id: str
    user_id: str
    amount: float
    status: str
    status_notes: Optional[str] = None
    merchant_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    proof_url: Optional[str] = None

    class Config:
        from_attributes = True


class PendingTopUpResponse(TopUpResponse):
    username: Optional[str] = None
    payment_method: Optional[Dict[str, Any]] = None


class TopUpProcessRequest(BaseModel):
    id: Optional[str] = None
    action: Optional[str] = None
    note: Optional[str] = None


class TopUpProcessResponse(BaseModel):
    ok: bool = True
    id: str
    status: Literal["approved", "rejected"]
    top_up_balance: Optional[float] = None


class AuditLogEntry(BaseModel):
    id: str
    user_id: str
    user_username: Optional[str] = None
    user_name: Optional[str] = None
    amount: float
    status: str
    status_notes: Optional[str] = None
    merchant_id: Optional[str] = None
    merchant_name: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
