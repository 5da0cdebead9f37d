from pydantic import BaseModel
from typing import Optional, Dict, Any, Literal
from datetime import datetime

PaymentMethodType = Literal["gcash", "bank", "maya", "gotyme"]
PaymentMethodAction = Literal["activate", "deactivate", "delete"]

EDITABLE_FIELDS = (
    "type",
    "label",
    "provider",
    "account_name",
    "account_number_last4",
    "phone",
    "is_public",
    "is_default",
)


class PaymentMethodCreate(BaseModel):
    type: PaymentMethodType
    label: Optional[str] = None
    provider: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    phone: Optional[str] = None
    is_default: bool = False


class PaymentMethodResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    type: str
    label: Optional[str] = None
    provider: Optional[str] = None
    account_name: Optional[str] = None
    account_number_last4: Optional[str] = None
    phone: Optional[str] = None
    qr_code_path: Optional[str] = None
    qr_url: Optional[str] = None
    is_default: bool = False
    is_public: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentMethodActionRequest(BaseModel):
    action: PaymentMethodAction


class PaymentMethodEditRequest(BaseModel):
    updates: Dict[str, Any]


class PaymentMethodActionResponse(BaseModel):
    success: bool = True
    message: str
    id: str
    is_public: Optional[bool] = None
