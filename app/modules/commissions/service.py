from supabase import Client
from app.modules.commissions.schemas import CommissionResponse, AdminCommissionResponse, ReferralResponse
from app.core.errors import database_error
from typing import List, Optional
from fastapi import HTTPException

COMMISSION_COLUMNS = "id, user_id, referral_id, top_up_request_id, amount, commission_type, level, status, created_at"
COMMISSION_STATUSES = ("pending", "paid")


class CommissionService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_user_commissions(self, user_id: str) -> List[CommissionResponse]:
        try:
            result = self.supabase.table("commissions")\
                .select(COMMISSION_COLUMNS)\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [CommissionResponse(**row) for row in result.data or []]
        except Exception as e:
            raise database_error(e, "ListCommissions")

    def list_all_commissions(self, status: Optional[str] = None) -> List[AdminCommissionResponse]:
        """Every commission, newest first, with the earner's username"""
        if status is not None and status not in COMMISSION_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")
        try:
            query = self.supabase.table("commissions")\
                .select(COMMISSION_COLUMNS)\
                .order("created_at", desc=True)
            if status:
                query = query.eq("status", status)
            rows = query.execute().data or []

            user_ids = list({row["user_id"] for row in rows if row.get("user_id")})
            usernames = {}
            if user_ids:
                profiles = self.supabase.table("profiles")\
                    .select("id, username")\
                    .in_("id", user_ids)\
                    .execute()
                usernames = {p["id"]: p.get("username") for p in profiles.data or []}

            return [AdminCommissionResponse(**row, username=usernames.get(row.get("user_id"))) for row in rows]
        except Exception as e:
            raise database_error(e, "ListAllCommissions")

    def list_referrals(self, user_id: str) -> List[ReferralResponse]:
        """Users referred by user_id, with their names"""
        try:
            result = self.supabase.table("referrals")\
                .select("id, referrer_id, referred_id, status, created_at")\
                .eq("referrer_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            rows = result.data or []

            referred_ids = list({row["referred_id"] for row in rows if row.get("referred_id")})
            profiles = {}
            if referred_ids:
                profile_result = self.supabase.table("profiles")\
                    .select("id, username, first_name, last_name")\
                    .in_("id", referred_ids)\
                    .execute()
                profiles = {p["id"]: p for p in profile_result.data or []}

            referrals = []
            for row in rows:
                referred = profiles.get(row.get("referred_id")) or {}
                referrals.append(ReferralResponse(
                    **row,
                    referred_username=referred.get("username"),
                    referred_first_name=referred.get("first_name"),
                    referred_last_name=referred.get("last_name")
                ))
            return referrals
        except Exception as e:
            raise database_error(e, "ListReferrals")
