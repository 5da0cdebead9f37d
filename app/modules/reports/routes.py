from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_service_supabase
from app.modules.reports.schemas import OverviewResponse, CashflowResponse, PayoutDayResponse, PayoutSeriesResponse
from app.modules.reports.service import ReportService
from app.core.dependencies import require_permission
from supabase import Client
from typing import Optional, Dict, Union

router = APIRouter(prefix="/admin", tags=["reports"])


def get_report_service(supabase: Client = Depends(get_service_supabase)) -> ReportService:
    return ReportService(supabase)


@router.get("/overview", response_model=OverviewResponse)
async def admin_overview(
    date: Optional[str] = None,
    profile: Dict = Depends(require_permission("reports:read")),
    service: ReportService = Depends(get_report_service)
):
    """Platform totals; ?date=YYYY-MM-DD restricts them to that UTC day"""
    return service.overview(date)


@router.get("/cashflow", response_model=CashflowResponse)
async def admin_cashflow(
    entry_type: Optional[str] = Query(None, alias="type"),
    limit: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    profile: Dict = Depends(require_permission("reports:read")),
    service: ReportService = Depends(get_report_service)
):
    return service.cashflow(entry_type, limit, start, end)


@router.get("/payout-calendar", response_model=Union[PayoutSeriesResponse, PayoutDayResponse])
async def admin_payout_calendar(
    date: Optional[str] = None,
    mode: Optional[str] = None,
    bucket: Optional[str] = None,
    profile: Dict = Depends(require_permission("reports:read")),
    service: ReportService = Depends(get_report_service)
):
    """Daily totals, or a monthly series with ?mode=series&bucket=month"""
    if mode == "series":
        return service.payout_series(bucket)
    return service.payout_day(date)
