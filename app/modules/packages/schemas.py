from pydantic import BaseModel
from typing import Optional, List, Union
from datetime import datetime


class PackageCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: Optional[Union[float, str]] = None
    commission_rate: Optional[Union[float, str]] = None
    interest_rate: Optional[Union[float, str]] = None
    level: Optional[Union[int, str]] = None
    max_referrals: Optional[Union[int, str]] = None
    maturity_days: Optional[Union[int, str]] = None
    maturity_minutes: Optional[Union[int, str]] = None


class PackageStatusUpdate(BaseModel):
    is_active: bool


class PackageResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float = 0
    commission_rate: float = 0
    interest_rate: float = 0
    level: int = 0
    max_referrals: Optional[int] = None
    maturity_days: int = 0
    maturity_minutes: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BuyPackageRequest(BaseModel):
    package_id: str
    amount: Optional[float] = None


class UserPackageResponse(BaseModel):
    id: str
    user_id: str
    package_id: str
    amount: Optional[float] = None
    status: str
    activated_at: Optional[datetime] = None
    matures_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    packages: Optional[dict] = None

    class Config:
        from_attributes = True


class BuyPackageResponse(BaseModel):
    user_package: UserPackageResponse
    balance: float
    balance_before: float
    top_up_balance: float
    withdrawable_balance: float


class PackageWithdrawalResponse(BaseModel):
    withdrawn_ids: List[str]
    credited: float
    withdrawable_balance: float
