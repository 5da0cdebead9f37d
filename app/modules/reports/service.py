import logging
from collections import defaultdict
from decimal import Decimal
from supabase import Client
from app.modules.reports.schemas import (
    OverviewStats, OverviewResponse, CashflowEntry, CashflowResponse,
    PayoutDayStats, PayoutDayResponse, PayoutSeriesResponse
)
from app.core.dates import day_range, month_key
from app.core.money import to_decimal, to_number, with_profit
from app.core.status_notes import extract_payment_method_id
from typing import List, Optional, Dict, Any, Tuple
from fastapi import HTTPException

logger = logging.getLogger(__name__)

CASHFLOW_TABLES = {
    "topups": ("top_up_requests", "id, user_id, amount, status, status_notes, created_at"),
    "withdrawals": ("withdrawal_requests", "id, user_id, amount, status, status_notes, created_at, processed_at"),
}
CASHFLOW_DEFAULT_LIMIT = 200
CASHFLOW_MAX_LIMIT = 500
CASHFLOW_RANGE_MIN_LIMIT = 1000


def date_filter(query, column: str, date_range: Optional[Tuple[str, str]]):
    if not date_range:
        return query
    return query.gte(column, date_range[0]).lt(column, date_range[1])


def cashflow_limit(raw: Optional[str], has_range: bool) -> int:
    try:
        limit = max(1, min(int(raw), CASHFLOW_MAX_LIMIT)) if raw not in (None, "") else CASHFLOW_DEFAULT_LIMIT
    except (TypeError, ValueError):
        limit = CASHFLOW_DEFAULT_LIMIT
    return max(limit, CASHFLOW_RANGE_MIN_LIMIT) if has_range else limit


class ReportService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _count(self, query) -> int:
        return query.execute().count or 0

    def overview(self, date: Optional[str] = None) -> OverviewResponse:
        """Platform totals, optionally for a single UTC day"""
        date_range = day_range(date)
        try:
            total_users = self._count(date_filter(
                self.supabase.table("profiles").select("id", count="exact", head=True),
                "created_at", date_range))
            total_referrals = self._count(date_filter(
                self.supabase.table("referrals").select("id", count="exact", head=True),
                "created_at", date_range))
            approved_receipts = self._count(date_filter(
                self.supabase.table("top_up_requests").select("id", count="exact", head=True).eq("status", "approved"),
                "created_at", date_range))
            approved_withdrawals = self._count(date_filter(
                self.supabase.table("withdrawal_requests").select("id", count="exact", head=True).eq("status", "approved"),
                "processed_at", date_range))

            commissions = date_filter(
                self.supabase.table("commissions").select("amount, level, status, created_at").eq("status", "paid"),
                "created_at", date_range).execute().data or []
            created_packages = date_filter(
                self.supabase.table("user_packages").select("status, created_at, packages(price, commission_rate)"),
                "created_at", date_range).execute().data or []
            withdrawn_packages = date_filter(
                self.supabase.table("user_packages")
                    .select("withdrawn_at, packages(price, commission_rate)")
                    .not_.is_("withdrawn_at", "null"),
                "withdrawn_at", date_range).execute().data or []
        except Exception as e:
            logger.error(f"Admin overview fetch failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to load admin overview stats")

        direct = indirect = paid_sum = Decimal("0")
        for row in commissions:
            amount = to_decimal(row.get("amount"))
            paid_sum += amount
            level = to_decimal(row.get("level"))
            if level == 1:
                direct += amount
            elif level > 1:
                indirect += amount

        package_value = Decimal("0")
        active_count = 0
        for row in created_packages:
            package = row.get("packages") or {}
            package_value += with_profit(package.get("price"), package.get("commission_rate"))
            if str(row.get("status") or "").lower() == "active":
                active_count += 1

        total_withdrawn = Decimal("0")
        for row in withdrawn_packages:
            if not row.get("withdrawn_at"):
                continue
            package = row.get("packages") or {}
            total_withdrawn += with_profit(package.get("price"), package.get("commission_rate"))

        total_earnings = total_withdrawn + paid_sum
        return OverviewResponse(stats=OverviewStats(
            totalPackageValue=to_number(package_value),
            totalEarnings=to_number(total_earnings),
            totalWithdrawn=to_number(total_withdrawn),
            directReferral=to_number(direct),
            indirectReferral=to_number(indirect),
            activePackageCount=active_count,
            approvedWithdrawalsCount=approved_withdrawals,
            approvedReceiptsCount=approved_receipts,
            salesDifference=to_number(total_earnings - total_withdrawn),
            totalRegisteredUsers=total_users,
            totalActivatedPackages=len(created_packages),
            totalReferrals=total_referrals
        ))

    def _hydrate_cashflow(self, rows: List[Dict[str, Any]]) -> List[CashflowEntry]:
        if not rows:
            return []
        user_ids = list({row["user_id"] for row in rows if row.get("user_id")})
        method_ids = list({m for m in (extract_payment_method_id(row.get("status_notes")) for row in rows) if m})

        usernames: Dict[str, Any] = {}
        if user_ids:
            profiles = self.supabase.table("profiles").select("id, username").in_("id", user_ids).execute()
            usernames = {p["id"]: p.get("username") for p in profiles.data or []}
        method_types: Dict[str, Any] = {}
        if method_ids:
            methods = self.supabase.table("payment_methods").select("id, type").in_("id", method_ids).execute()
            method_types = {m["id"]: m.get("type") for m in methods.data or []}

        entries = []
        for row in rows:
            method_id = extract_payment_method_id(row.get("status_notes"))
            entries.append(CashflowEntry(
                **row,
                username=usernames.get(row.get("user_id")) if row.get("user_id") else None,
                payment_method_type=method_types.get(method_id) if method_id else None
            ))
        return entries

    def cashflow(
        self,
        entry_type: Optional[str],
        limit: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> CashflowResponse:
        """Latest top-ups or withdrawals, newest first; start/end bound created_at"""
        if entry_type not in CASHFLOW_TABLES:
            raise HTTPException(status_code=400, detail="Invalid type parameter")
        table, columns = CASHFLOW_TABLES[entry_type]
        effective_limit = cashflow_limit(limit, bool(start and end))

        try:
            query = self.supabase.table(table)\
                .select(columns)\
                .order("created_at", desc=True)\
                .limit(effective_limit)
            if start:
                query = query.gte("created_at", start)
            if end:
                query = query.lt("created_at", end)
            rows = query.execute().data or []
            return CashflowResponse(entries=self._hydrate_cashflow(rows))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Admin cashflow fetch failed: {e}")
            raise HTTPException(status_code=500, detail=getattr(e, "message", None) or str(e))

    def payout_day(self, date: Optional[str]) -> PayoutDayResponse:
        """Sales (approved top-ups by created_at) against payouts (approved withdrawals by processed_at)"""
        date_range = day_range(date)
        if not date_range:
            raise HTTPException(status_code=400, detail="Invalid date parameter")

        try:
            top_ups = self.supabase.table("top_up_requests")\
                .select("amount, created_at")\
                .eq("status", "approved")\
                .gte("created_at", date_range[0])\
                .lt("created_at", date_range[1])\
                .execute().data or []
            payouts = self.supabase.table("withdrawal_requests")\
                .select("amount, processed_at, created_at")\
                .eq("status", "approved")\
                .gte("processed_at", date_range[0])\
                .lt("processed_at", date_range[1])\
                .execute().data or []
        except Exception as e:
            logger.error(f"Admin payout calendar fetch failed: {e}")
            raise HTTPException(status_code=500, detail=getattr(e, "message", None) or str(e))

        sales = sum((to_decimal(row.get("amount")) for row in top_ups), Decimal("0"))
        payout = sum((to_decimal(row.get("amount")) for row in payouts), Decimal("0"))
        return PayoutDayResponse(stats=PayoutDayStats(
            date=date,
            totalSales=to_number(sales),
            totalPayout=to_number(payout),
            totalRevenue=to_number(sales - payout)
        ))

    def payout_series(self, bucket: Optional[str]) -> PayoutSeriesResponse:
        """Monthly sales / payout totals keyed YYYY-MM-01, oldest first"""
        if bucket != "month":
            raise HTTPException(status_code=400, detail="Invalid bucket parameter")

        try:
            top_ups = self.supabase.table("top_up_requests")\
                .select("amount, created_at")\
                .eq("status", "approved")\
                .execute().data or []
            payouts = self.supabase.table("withdrawal_requests")\
                .select("amount, processed_at")\
                .eq("status", "approved")\
                .execute().data or []
        except Exception as e:
            logger.error(f"Admin payout calendar series fetch failed: {e}")
            raise HTTPException(status_code=500, detail=getattr(e, "message", None) or str(e))

        sales_by_month = defaultdict(Decimal)
        for row in top_ups:
            key = month_key(row.get("created_at"))
            if key:
                sales_by_month[key] += to_decimal(row.get("amount"))
        payout_by_month = defaultdict(Decimal)
        for row in payouts:
            key = month_key(row.get("processed_at"))
            if key:
                payout_by_month[key] += to_decimal(row.get("amount"))

        series = []
        for month in sorted(set(sales_by_month) | set(payout_by_month)):
            sales = sales_by_month[month]
            payout = payout_by_month[month]
            series.append(PayoutDayStats(
                date=month,
                totalSales=to_number(sales),
                totalPayout=to_number(payout),
                totalRevenue=to_number(sales - payout)
            ))
        return PayoutSeriesResponse(series=series)
