"""
Withdrawal requests and their approval by accounting.

A request leaves ``pending`` exactly once. Approval is two writes against PostgREST with no
transaction around them:

1. the request row is flipped to ``approved`` with the ``balance_deducted`` marker, guarded on
   ``status = 'pending'`` so that of two concurrent approvals only one matches a row;
2. the owner's withdrawable balance is decremented, against a fresh read of the profile.

If the second write fails the request stays approved with the marker set, the failure is
logged and surfaced, and nothing is rolled back. The marker is what stops a later attempt
from deducting a second time.
"""

import logging
from supabase import Client
from app.modules.withdrawals.schemas import (
    WithdrawalCreate, WithdrawalResponse, WithdrawalCreateResponse,
    AccountingWithdrawalResponse, WithdrawalProcessResponse
)
from app.core.balances import load_balances, adjust_balances
from app.core.dates import utcnow
from app.core.errors import database_error
from app.core.money import to_decimal, to_number
from app.core.status_notes import DEDUCTION_MARKER, has_marker, append_marker, append_note
from typing import List, Optional, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

WITHDRAWAL_COLUMNS = "id, user_id, amount, status, status_notes, payment_method_info, created_at, processed_at"
ACCOUNTING_LIST_LIMIT = 500


def insufficient_balance(available) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"message": "Insufficient balance", "available_balance": to_number(available)}
    )


class WithdrawalService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_request(self, user_id: str, request: WithdrawalCreate) -> WithdrawalCreateResponse:
        """Open a pending withdrawal if the withdrawable balance covers it"""
        amount = to_decimal(request.amount)
        if amount <= 0:
            raise HTTPException(status_code=400, detail="Valid amount is required")

        try:
            snapshot = load_balances(self.supabase, user_id)
            if snapshot is None:
                raise HTTPException(status_code=404, detail="Profile not found")
            if snapshot.withdrawable_balance < amount:
                raise insufficient_balance(snapshot.withdrawable_balance)

            result = self.supabase.table("withdrawal_requests").insert({
                "user_id": user_id,
                "amount": to_number(amount),
                "payment_method_info": request.payment_method_info,
                "status": "pending"
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create withdrawal request")

            logger.info(f"Withdrawal request {result.data[0]['id']} opened by {user_id} for {amount}")
            return WithdrawalCreateResponse(withdrawal_request=WithdrawalResponse(**result.data[0]))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating withdrawal request: {e}")
            raise HTTPException(status_code=500, detail="Failed to create withdrawal request")

    def list_user_requests(self, user_id: str) -> List[WithdrawalResponse]:
        try:
            result = self.supabase.table("withdrawal_requests")\
                .select(WITHDRAWAL_COLUMNS)\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [WithdrawalResponse(**row) for row in result.data or []]
        except Exception as e:
            raise database_error(e, "ListWithdrawalRequests")

    def list_for_accounting(self) -> List[AccountingWithdrawalResponse]:
        """Latest requests of every user with the owner's username"""
        try:
            result = self.supabase.table("withdrawal_requests")\
                .select(WITHDRAWAL_COLUMNS)\
                .order("created_at", desc=True)\
                .limit(ACCOUNTING_LIST_LIMIT)\
                .execute()
            rows = result.data or []

            user_ids = list({row["user_id"] for row in rows if row.get("user_id")})
            usernames: Dict[str, Any] = {}
            if user_ids:
                profiles = self.supabase.table("profiles")\
                    .select("id, username")\
                    .in_("id", user_ids)\
                    .execute()
                usernames = {p["id"]: p.get("username") for p in profiles.data or []}

            return [AccountingWithdrawalResponse(**row, username=usernames.get(row.get("user_id"))) for row in rows]
        except Exception as e:
            raise database_error(e, "AccountingWithdrawalsGET")

    def _get_request(self, request_id: str) -> Dict[str, Any]:
        result = self.supabase.table("withdrawal_requests")\
            .select(WITHDRAWAL_COLUMNS)\
            .eq("id", request_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Withdrawal request not found")
        return result.data[0]

    def process_request(
        self,
        request_id: Optional[str],
        action: Optional[str],
        note: Optional[str] = None
    ) -> WithdrawalProcessResponse:
        if not request_id or not isinstance(request_id, str):
            raise HTTPException(status_code=400, detail="Missing id")
        if action not in ("approve", "reject"):
            raise HTTPException(status_code=400, detail="Invalid action")

        try:
            if action == "approve":
                return self.approve(request_id, note)
            return self.reject(request_id, note)
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "AccountingWithdrawalsPOST")

    def approve(self, request_id: str, note: Optional[str] = None) -> WithdrawalProcessResponse:
        row = self._get_request(request_id)
        notes = row.get("status_notes")
        if row.get("status") != "pending" or has_marker(notes, DEDUCTION_MARKER):
            raise HTTPException(status_code=409, detail="Withdrawal request already processed")

        amount = to_decimal(row.get("amount"))
        snapshot = load_balances(self.supabase, row["user_id"])
        if snapshot is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        if snapshot.withdrawable_balance < amount:
            raise insufficient_balance(snapshot.withdrawable_balance)

        result = self.supabase.table("withdrawal_requests")\
            .update({
                "status": "approved",
                "processed_at": utcnow().isoformat(),
                "status_notes": append_note(append_marker(notes, DEDUCTION_MARKER), note)
            })\
            .eq("id", request_id)\
            .eq("status", "pending")\
            .execute()
        if not result.data:
            # another approval or rejection won the race
            raise HTTPException(status_code=409, detail="Withdrawal request already processed")

        try:
            updated = adjust_balances(self.supabase, row["user_id"], withdrawable_delta=-amount)
        except Exception as e:
            logger.error(
                f"Withdrawal {request_id} marked approved but deducting {amount} from "
                f"{row['user_id']} failed: {getattr(e, 'detail', e)}"
            )
            if isinstance(e, HTTPException):
                raise HTTPException(status_code=500, detail=f"Balance deduction failed: {e.detail}")
            raise HTTPException(status_code=500, detail=f"Balance deduction failed: {e}")

        logger.info(f"Withdrawal {request_id} approved, deducted {amount} from {row['user_id']}")
        return WithdrawalProcessResponse(
            id=request_id,
            status="approved",
            withdrawable_balance=to_number(updated.withdrawable_balance)
        )

    def reject(self, request_id: str, note: Optional[str] = None) -> WithdrawalProcessResponse:
        row = self._get_request(request_id)
        if row.get("status") != "pending":
            raise HTTPException(status_code=409, detail="Withdrawal request already processed")

        result = self.supabase.table("withdrawal_requests")\
            .update({
                "status": "rejected",
                "processed_at": utcnow().isoformat(),
                "status_notes": append_note(row.get("status_notes"), note)
            })\
            .eq("id", request_id)\
            .eq("status", "pending")\
            .execute()
        if not result.data:
            raise HTTPException(status_code=409, detail="Withdrawal request already processed")

        logger.info(f"Withdrawal {request_id} rejected")
        return WithdrawalProcessResponse(id=request_id, status="rejected")
