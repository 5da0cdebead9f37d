import logging
from datetime import timedelta
from decimal import Decimal
from supabase import Client
from app.modules.packages.schemas import (
    PackageCreate, PackageResponse, UserPackageResponse,
    BuyPackageRequest, BuyPackageResponse, PackageWithdrawalResponse
)
from app.core.balances import load_balances, apply_balance_change, adjust_balances
from app.core.dates import utcnow, parse_timestamp
from app.core.errors import database_error
from app.core.money import to_decimal, to_number, with_profit
from typing import List, Optional, Any, Dict
from fastapi import HTTPException

logger = logging.getLogger(__name__)

USER_PACKAGE_SELECT = """
    *,
    packages (
        id,
        name,
        description,
        price,
        commission_rate,
        interest_rate,
        level,
        max_referrals,
        maturity_days,
        maturity_minutes
    )
"""


def _to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def package_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Numeric columns may come back NULL; read them as 0"""
    return {
        **row,
        "price": to_number(to_decimal(row.get("price"))),
        "commission_rate": float(to_decimal(row.get("commission_rate"))),
        "interest_rate": float(to_decimal(row.get("interest_rate"))),
        "level": _to_int(row.get("level")),
        "maturity_days": _to_int(row.get("maturity_days")),
        "is_active": bool(row.get("is_active", True)),
    }


class PackageService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_packages(self, active_only: bool = True) -> List[PackageResponse]:
        """Packages ordered by level"""
        try:
            query = self.supabase.table("packages").select("*")
            if active_only:
                query = query.eq("is_active", True)
            result = query.order("level").execute()
            return [PackageResponse(**package_row(p)) for p in result.data or []]
        except Exception as e:
            raise database_error(e, "ListPackages")

    def get_package(self, package_id: str) -> Dict[str, Any]:
        result = self.supabase.table("packages")\
            .select("*")\
            .eq("id", package_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Package not found")
        return package_row(result.data[0])

    def create_package(self, package_data: PackageCreate) -> PackageResponse:
        """Create a package; unparsable numbers become 0, a blank max_referrals means unlimited"""
        name = (package_data.name or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Package name is required")
        try:
            result = self.supabase.table("packages").insert({
                "name": name,
                "description": package_data.description.strip() if package_data.description else None,
                "price": to_number(to_decimal(package_data.price)),
                "commission_rate": float(to_decimal(package_data.commission_rate)),
                "interest_rate": float(to_decimal(package_data.interest_rate)),
                "level": _to_int(package_data.level),
                "max_referrals": _to_int(package_data.max_referrals, default=None),
                "maturity_days": _to_int(package_data.maturity_days),
                "maturity_minutes": _to_int(package_data.maturity_minutes, default=None),
                "is_active": True
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create package")
            return PackageResponse(**package_row(result.data[0]))
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "CreatePackage")

    def set_active(self, package_id: str, is_active: bool) -> bool:
        try:
            result = self.supabase.table("packages")\
                .update({"is_active": bool(is_active)})\
                .eq("id", package_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Package not found")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "UpdatePackage")

    def delete_package(self, package_id: str) -> bool:
        try:
            result = self.supabase.table("packages").delete().eq("id", package_id).execute()
            return len(result.data) > 0
        except Exception as e:
            raise database_error(e, "DeletePackage")


class UserPackageService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.packages = PackageService(supabase)

    def list_user_packages(self, user_id: str, status: Optional[str] = None) -> List[UserPackageResponse]:
        """Own packages, newest first, with the joined package"""
        try:
            query = self.supabase.table("user_packages")\
                .select(USER_PACKAGE_SELECT)\
                .eq("user_id", user_id)
            if status:
                query = query.eq("status", status)
            result = query.order("created_at", desc=True).execute()
            return [UserPackageResponse(**row) for row in result.data or [] if row.get("packages")]
        except Exception as e:
            raise database_error(e, "ListUserPackages")

    def _get_owned(self, user_id: str, user_package_id: str) -> Dict[str, Any]:
        result = self.supabase.table("user_packages")\
            .select(USER_PACKAGE_SELECT)\
            .eq("id", user_package_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Package not found")
        return result.data[0]

    def buy_package(self, user_id: str, request: BuyPackageRequest) -> BuyPackageResponse:
        """
        Spend top_up_balance first, then withdrawable_balance, and activate the package.
        The balance write is guarded on the values read; the activation row is inserted after it.
        """
        try:
            package = self.packages.get_package(request.package_id)
            if not package["is_active"]:
                raise HTTPException(status_code=400, detail="Package is not available")

            price = to_decimal(package["price"])
            amount = price if request.amount is None else to_decimal(request.amount)
            if amount <= 0 or amount < price:
                raise HTTPException(status_code=400, detail="Amount is below the package price")

            snapshot = load_balances(self.supabase, user_id)
            if snapshot is None:
                raise HTTPException(status_code=404, detail="Profile not found")
            if snapshot.balance < amount:
                raise HTTPException(status_code=400, detail="Insufficient balance")

            from_top_up = min(snapshot.top_up_balance, amount)
            from_withdrawable = amount - from_top_up
            updated = apply_balance_change(
                self.supabase, snapshot,
                top_up_delta=-from_top_up,
                withdrawable_delta=-from_withdrawable,
            )

            activated_at = utcnow()
            maturity_minutes = package.get("maturity_minutes")
            if maturity_minutes:
                matures_at = activated_at + timedelta(minutes=int(maturity_minutes))
            else:
                matures_at = activated_at + timedelta(days=package["maturity_days"])

            try:
                inserted = self.supabase.table("user_packages").insert({
                    "user_id": user_id,
                    "package_id": package["id"],
                    "amount": to_number(amount),
                    "status": "active",
                    "activated_at": activated_at.isoformat(),
                    "matures_at": matures_at.isoformat()
                }).execute()
            except Exception as e:
                logger.error("Balance of %s charged %s but package row insert failed: %s", user_id, amount, e)
                raise database_error(e, "BuyPackage")
            if not inserted.data:
                logger.error("Balance of %s charged %s but no package row returned", user_id, amount)
                raise HTTPException(status_code=500, detail="Failed to activate package")

            logger.info("User %s bought package %s for %s", user_id, package["id"], amount)
            row = {**inserted.data[0], "packages": package}
            return BuyPackageResponse(
                user_package=UserPackageResponse(**row),
                balance=to_number(updated.balance),
                balance_before=to_number(snapshot.balance),
                top_up_balance=to_number(updated.top_up_balance),
                withdrawable_balance=to_number(updated.withdrawable_balance)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "BuyPackage")

    def cancel_package(self, user_id: str, user_package_id: str) -> UserPackageResponse:
        """Deactivate an own active package; no refund"""
        try:
            row = self._get_owned(user_id, user_package_id)
            if row.get("status") != "active" or row.get("withdrawn_at"):
                raise HTTPException(status_code=400, detail="Package is not active")
            result = self.supabase.table("user_packages")\
                .update({"status": "cancelled", "updated_at": utcnow().isoformat()})\
                .eq("id", user_package_id)\
                .eq("user_id", user_id)\
                .eq("status", "active")\
                .execute()
            if not result.data:
                raise HTTPException(status_code=409, detail="Package was changed by another request")
            return UserPackageResponse(**{**result.data[0], "packages": row.get("packages")})
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "CancelPackage")

    def withdraw_package(self, user_id: str, user_package_id: str) -> PackageWithdrawalResponse:
        """Release one matured package into withdrawable_balance"""
        try:
            row = self._get_owned(user_id, user_package_id)
            self._check_withdrawable(row)
            withdrawn_ids, credited, balance = self._settle([row], user_id)
            return PackageWithdrawalResponse(
                withdrawn_ids=withdrawn_ids,
                credited=to_number(credited),
                withdrawable_balance=to_number(balance)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "WithdrawPackage")

    def withdraw_matured(self, user_id: str) -> PackageWithdrawalResponse:
        """Release every matured, not yet withdrawn package"""
        try:
            result = self.supabase.table("user_packages")\
                .select(USER_PACKAGE_SELECT)\
                .eq("user_id", user_id)\
                .eq("status", "active")\
                .is_("withdrawn_at", "null")\
                .lte("matures_at", utcnow().isoformat())\
                .order("matures_at")\
                .execute()
            rows = [r for r in result.data or [] if r.get("packages")]
            if not rows:
                raise HTTPException(status_code=400, detail="No matured packages to withdraw")
            withdrawn_ids, credited, balance = self._settle(rows, user_id)
            return PackageWithdrawalResponse(
                withdrawn_ids=withdrawn_ids,
                credited=to_number(credited),
                withdrawable_balance=to_number(balance)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "WithdrawMaturedPackages")

    def _check_withdrawable(self, row: Dict[str, Any]):
        if row.get("withdrawn_at"):
            raise HTTPException(status_code=409, detail="Package already withdrawn")
        if row.get("status") != "active":
            raise HTTPException(status_code=400, detail="Package is not active")
        matures_at = parse_timestamp(row.get("matures_at"))
        if matures_at is None or matures_at > utcnow():
            raise HTTPException(status_code=400, detail="Package has not matured yet")

    def _settle(self, rows: List[Dict[str, Any]], user_id: str):
        """
        Mark each package withdrawn (only while withdrawn_at is still NULL), then credit the
        payout of the ones this request actually marked.
        """
        now = utcnow().isoformat()
        total = Decimal("0")
        marked_ids = []
        for row in rows:
            package = row.get("packages") or {}
            principal = to_decimal(row.get("amount")) or to_decimal(package.get("price"))
            marked = self.supabase.table("user_packages")\
                .update({"withdrawn_at": now, "status": "withdrawn", "updated_at": now})\
                .eq("id", row["id"])\
                .is_("withdrawn_at", "null")\
                .execute()
            if not marked.data:
                continue
            marked_ids.append(row["id"])
            total += with_profit(principal, package.get("commission_rate"))

        if not marked_ids:
            raise HTTPException(status_code=409, detail="Package already withdrawn")
        try:
            updated = adjust_balances(self.supabase, user_id, withdrawable_delta=total)
        except Exception:
            logger.error("Packages of %s marked withdrawn but %s was not credited", user_id, total)
            raise
        return marked_ids, total, updated.withdrawable_balance
