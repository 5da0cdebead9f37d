from fastapi import APIRouter, Depends, UploadFile, File, Form
from app.database.supabase_client import get_service_supabase
from app.modules.payment_methods.schemas import (
    PaymentMethodType, PaymentMethodCreate, PaymentMethodResponse,
    PaymentMethodActionRequest, PaymentMethodEditRequest, PaymentMethodActionResponse
)
from app.modules.payment_methods.service import PaymentMethodService
from app.core.dependencies import require_permission
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(tags=["payment-methods"])


def get_payment_method_service(supabase: Client = Depends(get_service_supabase)) -> PaymentMethodService:
    return PaymentMethodService(supabase)


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def list_my_payment_methods(
    profile: Dict = Depends(require_permission("payment_methods:read")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    return service.list_user_methods(profile["id"])


@router.get("/payment-methods/public", response_model=List[PaymentMethodResponse])
async def list_public_payment_methods(
    profile: Dict = Depends(require_permission("payment_methods:read")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    """Destinations offered for top-ups"""
    return service.list_public_methods()


@router.post("/payment-methods", response_model=PaymentMethodResponse, status_code=201)
async def create_payment_method(
    type: PaymentMethodType = Form(...),
    label: Optional[str] = Form(None),
    provider: Optional[str] = Form(None),
    account_name: Optional[str] = Form(None),
    account_number: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    is_default: bool = Form(False),
    qr_code: Optional[UploadFile] = File(None),
    profile: Dict = Depends(require_permission("payment_methods:create")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    """Add a payment method, optionally with a QR image"""
    method_data = PaymentMethodCreate(
        type=type,
        label=label,
        provider=provider,
        account_name=account_name,
        account_number=account_number,
        phone=phone,
        is_default=is_default
    )
    return await service.create_method(profile["id"], method_data, qr_code)


@router.delete("/payment-methods/{method_id}", status_code=204)
async def delete_payment_method(
    method_id: str,
    profile: Dict = Depends(require_permission("payment_methods:delete")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    service.delete_user_method(profile["id"], method_id)
    return None


# Admin
@router.get("/admin/payment-methods", response_model=List[PaymentMethodResponse])
async def admin_list_payment_methods(
    profile: Dict = Depends(require_permission("payment_methods:manage")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    return service.list_all_methods()


@router.post("/admin/payment-methods/{method_id}/action", response_model=PaymentMethodActionResponse)
async def admin_payment_method_action(
    method_id: str,
    body: PaymentMethodActionRequest,
    profile: Dict = Depends(require_permission("payment_methods:manage")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    """Activate, deactivate or delete a payment method"""
    return service.apply_action(method_id, body.action)


@router.patch("/admin/payment-methods/{method_id}", response_model=PaymentMethodActionResponse)
async def admin_edit_payment_method(
    method_id: str,
    body: PaymentMethodEditRequest,
    profile: Dict = Depends(require_permission("payment_methods:manage")),
    service: PaymentMethodService = Depends(get_payment_method_service)
):
    return service.edit_method(method_id, body.updates)
