import logging
import re
from supabase import Client
from app.modules.payment_methods.schemas import (
    PaymentMethodCreate, PaymentMethodResponse, PaymentMethodActionResponse, EDITABLE_FIELDS
)
from app.core.errors import database_error
from app.core.storage import object_path, upload_object, remove_object, signed_url
from app.config.settings import settings
from typing import List, Optional, Dict, Any
from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

PAYMENT_METHOD_COLUMNS = (
    "id,user_id,type,label,provider,account_name,account_number_last4,phone,"
    "is_public,is_default,qr_code_path,created_at"
)
ALLOWED_TYPES = ("gcash", "bank", "maya", "gotyme")


class PaymentMethodService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.bucket = settings.payment_method_qr_bucket

    def _with_qr_url(self, row: Dict[str, Any]) -> PaymentMethodResponse:
        qr_url = signed_url(self.supabase, self.bucket, row.get("qr_code_path"), settings.signed_url_ttl_seconds)
        return PaymentMethodResponse(**{**row, "qr_url": qr_url})

    def get_payment_method(self, method_id: str) -> Dict[str, Any]:
        result = self.supabase.table("payment_methods")\
            .select(PAYMENT_METHOD_COLUMNS)\
            .eq("id", method_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Payment method not found")
        return result.data[0]

    def list_user_methods(self, user_id: str) -> List[PaymentMethodResponse]:
        try:
            result = self.supabase.table("payment_methods")\
                .select(PAYMENT_METHOD_COLUMNS)\
                .eq("user_id", user_id)\
                .order("is_default", desc=True)\
                .order("created_at", desc=True)\
                .execute()
            return [self._with_qr_url(row) for row in result.data or []]
        except Exception as e:
            raise database_error(e, "ListPaymentMethods")

    def list_public_methods(self) -> List[PaymentMethodResponse]:
        """Methods users can send top-ups to"""
        try:
            result = self.supabase.table("payment_methods")\
                .select(PAYMENT_METHOD_COLUMNS)\
                .eq("is_public", True)\
                .order("is_default", desc=True)\
                .order("created_at", desc=True)\
                .execute()
            return [self._with_qr_url(row) for row in result.data or []]
        except Exception as e:
            raise database_error(e, "ListPublicPaymentMethods")

    def list_all_methods(self) -> List[PaymentMethodResponse]:
        """Admin view: defaults first, newest first, with signed QR URLs"""
        try:
            result = self.supabase.table("payment_methods")\
                .select(PAYMENT_METHOD_COLUMNS)\
                .order("is_default", desc=True)\
                .order("created_at", desc=True)\
                .execute()
            return [self._with_qr_url(row) for row in result.data or []]
        except Exception as e:
            logger.error(f"Admin payment method fetch failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to load payment methods")

    async def create_method(
        self,
        user_id: str,
        method_data: PaymentMethodCreate,
        qr_file: Optional[UploadFile] = None
    ) -> PaymentMethodResponse:
        """Create an own payment method; the first one becomes the default"""
        try:
            existing = self.supabase.table("payment_methods")\
                .select("id")\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            make_default = method_data.is_default or not existing.data

            last4 = None
            if method_data.account_number:
                digits = re.sub(r"\D", "", method_data.account_number)
                last4 = digits[-4:] if digits else None

            result = self.supabase.table("payment_methods").insert({
                "user_id": user_id,
                "type": method_data.type,
                "label": method_data.label,
                "provider": method_data.provider,
                "account_name": method_data.account_name,
                "account_number_last4": last4,
                "phone": method_data.phone,
                "is_default": False,
                "is_public": False
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create payment method")
            row = result.data[0]

            if make_default:
                self._make_default(user_id, row["id"])
                row["is_default"] = True

            if qr_file is not None and qr_file.filename:
                content = await qr_file.read()
                path = upload_object(self.supabase, self.bucket, object_path(user_id, qr_file.filename),
                                     content, qr_file.content_type)
                self.supabase.table("payment_methods")\
                    .update({"qr_code_path": path})\
                    .eq("id", row["id"])\
                    .execute()
                row["qr_code_path"] = path

            return self._with_qr_url(row)
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "CreatePaymentMethod")

    def delete_user_method(self, user_id: str, method_id: str) -> bool:
        """Delete an own payment method and its QR image"""
        try:
            row = self.get_payment_method(method_id)
            if row.get("user_id") != user_id:
                raise HTTPException(status_code=404, detail="Payment method not found")
            self.supabase.table("payment_methods")\
                .delete()\
                .eq("id", method_id)\
                .eq("user_id", user_id)\
                .execute()
            if row.get("qr_code_path"):
                remove_object(self.supabase, self.bucket, row["qr_code_path"])
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise database_error(e, "DeletePaymentMethod")

    def _make_default(self, user_id: str, method_id: str):
        self.supabase.table("payment_methods")\
            .update({"is_default": False})\
            .eq("user_id", user_id)\
            .neq("id", method_id)\
            .execute()
        self.supabase.table("payment_methods")\
            .update({"is_default": True})\
            .eq("id", method_id)\
            .execute()

    def apply_action(self, method_id: str, action: str) -> PaymentMethodActionResponse:
        """activate / deactivate (is_public) or delete"""
        try:
            if action == "delete":
                self.supabase.table("payment_methods").delete().eq("id", method_id).execute()
                return PaymentMethodActionResponse(message="Payment method deleted.", id=method_id)

            next_is_public = action == "activate"
            self.supabase.table("payment_methods")\
                .update({"is_public": next_is_public})\
                .eq("id", method_id)\
                .execute()
            return PaymentMethodActionResponse(
                message="Payment method activated." if next_is_public else "Payment method deactivated.",
                id=method_id,
                is_public=next_is_public
            )
        except Exception as e:
            logger.error(f"Admin payment method update failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to update payment method")

    def edit_method(self, method_id: str, updates: Dict[str, Any]) -> PaymentMethodActionResponse:
        """Apply whitelisted field updates; is_default=true clears the owner's other defaults"""
        sanitized = {key: value for key, value in updates.items() if key in EDITABLE_FIELDS}
        if not sanitized:
            raise HTTPException(status_code=400, detail="No valid fields provided for update")
        if "type" in sanitized and sanitized["type"] not in ALLOWED_TYPES:
            raise HTTPException(status_code=400, detail="Invalid payment method type")

        try:
            if sanitized.get("is_default") is True:
                row = self.get_payment_method(method_id)
                if not row.get("user_id"):
                    raise HTTPException(status_code=404, detail="Payment method not found")
                self.supabase.table("payment_methods")\
                    .update({"is_default": False})\
                    .eq("user_id", row["user_id"])\
                    .neq("id", method_id)\
                    .execute()

            self.supabase.table("payment_methods").update(sanitized).eq("id", method_id).execute()
            return PaymentMethodActionResponse(message="Payment method updated.", id=method_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Admin payment method edit failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to edit payment method")
