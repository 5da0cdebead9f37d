from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class OverviewStats(BaseModel):
    totalPackageValue: float = 0
    totalEarnings: float = 0
    totalWithdrawn: float = 0
    directReferral: float = 0
    indirectReferral: float = 0
    activePackageCount: int = 0
    approvedWithdrawalsCount: int = 0
    approvedReceiptsCount: int = 0
    salesDifference: float = 0
    totalRegisteredUsers: int = 0
    totalActivatedPackages: int = 0
    totalReferrals: int = 0


class OverviewResponse(BaseModel):
    stats: OverviewStats


class CashflowEntry(BaseModel):
    id: str
    user_id: Optional[str] = None
    amount: float
    status: str
    status_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    username: Optional[str] = None
    payment_method_type: Optional[str] = None


class CashflowResponse(BaseModel):
    entries: List[CashflowEntry]


class PayoutDayStats(BaseModel):
    date: str
    totalSales: float
    totalPayout: float
    totalRevenue: float


class PayoutDayResponse(BaseModel):
    stats: PayoutDayStats


class PayoutSeriesResponse(BaseModel):
    series: List[PayoutDayStats]
