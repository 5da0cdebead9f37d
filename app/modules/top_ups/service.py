import logging
from supabase import Client
from app.modules.top_ups.schemas import (
    TopUpResponse, PendingTopUpResponse, TopUpProcessResponse, AuditLogEntry
)
from app.core.balances import load_balances, adjust_balances
from app.core.dates import utcnow
from app.core.errors import database_error
from app.core.money import to_decimal, to_number
from app.core.storage import object_path, upload_object, signed_url
from app.core.status_notes import (
    CREDIT_MARKER, has_marker, append_marker, append_note,
    build_top_up_notes, extract_payment_method_id, extract_proof_path
)
from app.config.settings import settings
from typing import List, Optional, Dict, Any
from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

TOP_UP_COLUMNS = "id, user_id, amount, status, status_notes, merchant_id, processed_at, created_at"
OWN_HISTORY_LIMIT = 20
AUDIT_LOG_DEFAULT_LIMIT = 25
AUDIT_LOG_MAX_LIMIT = 100


def clamp_limit(raw: Optional[str], default: int, maximum: int) -> int:
    try:
        value = int(float(raw)) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default
    return max(1, min(value, maximum))


def format_name(profile: Optional[Dict[str, Any]]) -> Optional[str]:
    if not profile:
        return None
    parts = [p for p in (profile.get("first_name"), profile.get("last_name")) if p]
    return " ".join(parts) if parts else None


class TopUpService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.bucket = settings.top_up_proof_bucket

    def _get_request(self, request_id: str) -> Dict[str, Any]:
        result = self.supabase.table("top_up_requests")\
            .select(TOP_UP_COLUMNS)\
            .eq("id", request_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Top-up request not found")
        return result.data[0]

    def _profiles_by_id(self, ids: List[str], columns: str = "id, username") -> Dict[str, Dict[str, Any]]:
        unique_ids = list({i for i in ids if i})
        if not unique_ids:
            return {}
        result = self.supabase.table("profiles")\
            .select(columns)\
            .in_("id", unique_ids)\
            .execute()
        return {row["id"]: row for row in result.data or []}

    async def create_request(
        self,
        user_id: str,
        amount: str,
        payment_method_id: str,
        proof: UploadFile
    ) -> TopUpResponse:
        """Upload the payment proof and open a pending top-up request"""
        value = to_decimal(amount)
        if value <= 0:
            raise HTTPException(status_code=400, detail="Valid amount is required")
        if not payment_method_id:
            raise HTTPException(status_code=400, detail="Payment method is required")
        if proof is None or not proof.filename:
            raise HTTPException(status_code=400, detail="Proof of payment is required")

        try:
            method = self.supabase.table("payment_methods")\
                .select("id, is_public")\
                .eq("id", payment_method_id)\
                .limit(1)\
                .execute()
            if not method.data or not method.data[0].get("is_public"):
                raise HTTPException(status_code=400, detail="Invalid payment method")

            content = await proof.read()
            path = upload_object(self.supabase, self.bucket, object_path(user_id, proof.filename),
                                 content, proof.content_type)

            result = self.supabase.table("top_up_requests").insert({
                "user_id": user_id,
                "amount": to_number(value),
                "status": "pending",
                "status_notes": build_top_up_notes(payment_method_id, path)
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create top-up request")

            logger.info(f"Top-up request {result.data[0]['id']} opened by {user_id} for {value}")
            return TopUpResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "CreateTopUpRequest")

    def list_user_requests(self, user_id: str) -> List[TopUpResponse]:
        """Own 20 most recent requests with a signed link to the proof"""
        try:
            result = self.supabase.table("top_up_requests")\
                .select(TOP_UP_COLUMNS)\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(OWN_HISTORY_LIMIT)\
                .execute()
            return [
                TopUpResponse(
                    **row,
                    proof_url=signed_url(self.supabase, self.bucket,
                                         extract_proof_path(row.get("status_notes")),
                                         settings.signed_url_ttl_seconds)
                )
                for row in result.data or []
            ]
        except Exception as e:
            raise database_error(e, "ListTopUpRequests")

    def list_pending(self) -> List[PendingTopUpResponse]:
        """Pending requests, newest first, with username and the chosen payment method"""
        try:
            result = self.supabase.table("top_up_requests")\
                .select(TOP_UP_COLUMNS)\
                .eq("status", "pending")\
                .order("created_at", desc=True)\
                .execute()
            rows = result.data or []
            profiles = self._profiles_by_id([row.get("user_id") for row in rows])

            method_ids = list({m for m in (extract_payment_method_id(r.get("status_notes")) for r in rows) if m})
            methods: Dict[str, Dict[str, Any]] = {}
            if method_ids:
                method_result = self.supabase.table("payment_methods")\
                    .select("id, type, label, provider, account_name")\
                    .in_("id", method_ids)\
                    .execute()
                methods = {m["id"]: m for m in method_result.data or []}

            return [
                PendingTopUpResponse(
                    **row,
                    username=(profiles.get(row.get("user_id")) or {}).get("username"),
                    payment_method=methods.get(extract_payment_method_id(row.get("status_notes"))),
                    proof_url=signed_url(self.supabase, self.bucket,
                                         extract_proof_path(row.get("status_notes")),
                                         settings.signed_url_ttl_seconds)
                )
                for row in rows
            ]
        except Exception as e:
            raise database_error(e, "ListPendingTopUps")

    def process_request(
        self,
        request_id: Optional[str],
        action: Optional[str],
        merchant_id: str,
        note: Optional[str] = None
    ) -> TopUpProcessResponse:
        """
        Approve or reject a pending top-up.

        Approval flips the request to approved (only while it is still pending) and stamps
        the credit marker, then credits top_up_balance. The two writes are not atomic; the
        marker is what keeps a retried approval from crediting twice.
        """
        if not request_id:
            raise HTTPException(status_code=400, detail="Missing id")
        if action not in ("approve", "reject"):
            raise HTTPException(status_code=400, detail="Invalid action")

        try:
            row = self._get_request(request_id)
            notes = row.get("status_notes")
            if row.get("status") != "pending" or has_marker(notes, CREDIT_MARKER):
                raise HTTPException(status_code=409, detail="Top-up request already processed")

            now = utcnow().isoformat()
            if action == "reject":
                result = self.supabase.table("top_up_requests")\
                    .update({
                        "status": "rejected",
                        "merchant_id": merchant_id,
                        "processed_at": now,
                        "status_notes": append_note(notes, note)
                    })\
                    .eq("id", request_id)\
                    .eq("status", "pending")\
                    .execute()
                if not result.data:
                    raise HTTPException(status_code=409, detail="Top-up request already processed")
                logger.info(f"Top-up {request_id} rejected by {merchant_id}")
                return TopUpProcessResponse(id=request_id, status="rejected")

            amount = to_decimal(row.get("amount"))
            if load_balances(self.supabase, row["user_id"]) is None:
                raise HTTPException(status_code=404, detail="Profile not found")

            result = self.supabase.table("top_up_requests")\
                .update({
                    "status": "approved",
                    "merchant_id": merchant_id,
                    "processed_at": now,
                    "status_notes": append_note(append_marker(notes, CREDIT_MARKER), note)
                })\
                .eq("id", request_id)\
                .eq("status", "pending")\
                .execute()
            if not result.data:
                raise HTTPException(status_code=409, detail="Top-up request already processed")

            try:
                updated = adjust_balances(self.supabase, row["user_id"], top_up_delta=amount)
            except Exception as e:
                logger.error(
                    f"Top-up {request_id} marked approved but crediting {amount} to "
                    f"{row['user_id']} failed: {getattr(e, 'detail', e)}"
                )
                if isinstance(e, HTTPException):
                    raise HTTPException(status_code=500, detail=f"Balance credit failed: {e.detail}")
                raise HTTPException(status_code=500, detail=f"Balance credit failed: {e}")

            logger.info(f"Top-up {request_id} approved by {merchant_id}, credited {amount} to {row['user_id']}")
            return TopUpProcessResponse(
                id=request_id,
                status="approved",
                top_up_balance=to_number(updated.top_up_balance)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "ProcessTopUp")

    def audit_logs(self, profile: Dict[str, Any], limit: Optional[str] = None) -> List[AuditLogEntry]:
        """Processed top-ups, newest processed first; merchants only see their own"""
        size = clamp_limit(limit, AUDIT_LOG_DEFAULT_LIMIT, AUDIT_LOG_MAX_LIMIT)
        try:
            query = self.supabase.table("top_up_requests")\
                .select(TOP_UP_COLUMNS)\
                .neq("status", "pending")\
                .order("processed_at", desc=True)\
                .limit(size)
            if profile.get("role") != "admin":
                query = query.eq("merchant_id", profile["id"])
            rows = query.execute().data or []

            related = [row.get("user_id") for row in rows] + [row.get("merchant_id") for row in rows]
            profiles = self._profiles_by_id(related, "id, username, first_name, last_name")

            logs = []
            for row in rows:
                user_profile = profiles.get(row.get("user_id"))
                merchant_profile = profiles.get(row.get("merchant_id")) if row.get("merchant_id") else None
                logs.append(AuditLogEntry(
                    id=row["id"],
                    user_id=row["user_id"],
                    user_username=(user_profile or {}).get("username"),
                    user_name=format_name(user_profile),
                    amount=to_number(to_decimal(row.get("amount"))),
                    status=row.get("status"),
                    status_notes=row.get("status_notes"),
                    merchant_id=row.get("merchant_id"),
                    merchant_name=format_name(merchant_profile),
                    processed_at=row.get("processed_at"),
                    created_at=row.get("created_at")
                ))
            return logs
        except Exception as e:
            raise database_error(e, "AuditLogs")
