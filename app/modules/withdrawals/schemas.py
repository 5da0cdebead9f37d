from pydantic import BaseModel
from typing import Optional, Literal, Any
from datetime import datetime


class WithdrawalCreate(BaseModel):
    amount: Optional[float] = None
    payment_method_info: Optional[Any] = None


class WithdrawalResponse(BaseModel):
    id: str
    user_id: str
    amount: float
    status: str
    status_notes: Optional[str] = None
    payment_method_info: Optional[Any] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalCreateResponse(BaseModel):
    message: str = "Withdrawal request created successfully"
    withdrawal_request: WithdrawalResponse


class AccountingWithdrawalResponse(WithdrawalResponse):
    username: Optional[str] = None


class WithdrawalProcessRequest(BaseModel):
    id: Optional[str] = None
    action: Optional[str] = None
    note: Optional[str] = None


class WithdrawalProcessResponse(BaseModel):
    ok: bool = True
    id: str
    status: Literal["approved", "rejected"]
    withdrawable_balance: Optional[float] = None
