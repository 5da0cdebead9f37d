import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from supabase import Client
from app.modules.profiles.schemas import ProfileUpdate, ProfileResponse, AdminUserResponse
from app.config.permissions_config import ROLES
from app.core.money import to_decimal, to_number
from typing import List, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

BALANCE_COLUMNS = ("balance", "top_up_balance", "withdrawable_balance")


def normalize_balances(row: Dict[str, Any]) -> Dict[str, Any]:
    """NULL or garbage balance columns read as 0"""
    return {**row, **{col: to_number(to_decimal(row.get(col))) for col in BALANCE_COLUMNS}}


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile(self, user_id: str) -> ProfileResponse:
        """Get profile with balances by user ID"""
        try:
            result = self.supabase.table("profiles")\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Profile not found")

            return ProfileResponse(**normalize_balances(result.data[0]))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Update own name fields"""
        try:
            update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
            if profile_data.first_name is not None:
                update_data["first_name"] = profile_data.first_name.strip()
            if profile_data.last_name is not None:
                update_data["last_name"] = profile_data.last_name.strip()

            result = self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Profile not found")

            return ProfileResponse(**normalize_balances(result.data[0]))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_users(self) -> List[AdminUserResponse]:
        """All profiles, oldest first, with total_earnings = paid commissions + withdrawn package prices"""
        try:
            result = self.supabase.table("profiles")\
                .select("id, username, first_name, last_name, role, balance, created_at")\
                .order("created_at")\
                .execute()
            profiles = result.data or []
            user_ids = [p["id"] for p in profiles if p.get("id")]
            if not user_ids:
                return []

            paid_result = self.supabase.table("commissions")\
                .select("user_id, amount")\
                .in_("user_id", user_ids)\
                .eq("status", "paid")\
                .execute()
            withdrawn_result = self.supabase.table("user_packages")\
                .select("user_id, withdrawn_at, packages(price)")\
                .in_("user_id", user_ids)\
                .not_.is_("withdrawn_at", "null")\
                .execute()

            earnings = defaultdict(Decimal)
            for row in paid_result.data or []:
                if row.get("user_id"):
                    earnings[row["user_id"]] += to_decimal(row.get("amount"))
            for row in withdrawn_result.data or []:
                if row.get("user_id"):
                    earnings[row["user_id"]] += to_decimal((row.get("packages") or {}).get("price"))

            return [
                AdminUserResponse(
                    **{**normalize_balances(p), "role": str(p.get("role") or "user")},
                    total_earnings=to_number(earnings[p["id"]])
                )
                for p in profiles
            ]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def set_role(self, user_id: str, role: str) -> bool:
        """Change a profile's role"""
        if role not in ROLES:
            raise HTTPException(status_code=400, detail="Invalid role")
        try:
            result = self.supabase.table("profiles")\
                .update({"role": role, "updated_at": datetime.now(timezone.utc).isoformat()})\
                .eq("id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Profile not found")
            logger.info("Role of %s set to %s", user_id, role)
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_usernames(self, user_ids: List[str]) -> Dict[str, Any]:
        """id -> username for the given ids (missing ids are absent)"""
        unique_ids = list({uid for uid in user_ids if uid})
        if not unique_ids:
            return {}
        result = self.supabase.table("profiles")\
            .select("id, username")\
            .in_("id", unique_ids)\
            .execute()
        return {p["id"]: p.get("username") for p in result.data or []}
