from fastapi import APIRouter, Depends, UploadFile, File, Form
from app.database.supabase_client import get_service_supabase
from app.modules.top_ups.schemas import (
    TopUpResponse, PendingTopUpResponse, TopUpProcessRequest, TopUpProcessResponse, AuditLogEntry
)
from app.modules.top_ups.service import TopUpService
from app.core.dependencies import require_permission
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(tags=["top-ups"])


def get_top_up_service(supabase: Client = Depends(get_service_supabase)) -> TopUpService:
    return TopUpService(supabase)


@router.post("/top-up-requests", response_model=TopUpResponse, status_code=201)
async def create_top_up_request(
    amount: str = Form(...),
    payment_method_id: str = Form(...),
    proof: UploadFile = File(...),
    profile: Dict = Depends(require_permission("top_ups:create")),
    service: TopUpService = Depends(get_top_up_service)
):
    """Submit a top-up with proof of payment"""
    return await service.create_request(profile["id"], amount, payment_method_id, proof)


@router.get("/top-up-requests", response_model=List[TopUpResponse])
async def list_my_top_up_requests(
    profile: Dict = Depends(require_permission("top_ups:read")),
    service: TopUpService = Depends(get_top_up_service)
):
    return service.list_user_requests(profile["id"])


# Merchant portal
@router.get("/merchant/pending-topups")
async def list_pending_top_ups(
    profile: Dict = Depends(require_permission("top_ups:review")),
    service: TopUpService = Depends(get_top_up_service)
) -> Dict[str, List[PendingTopUpResponse]]:
    return {"requests": service.list_pending()}


@router.post("/merchant/pending-topups", response_model=TopUpProcessResponse)
async def process_top_up(
    body: TopUpProcessRequest,
    profile: Dict = Depends(require_permission("top_ups:process")),
    service: TopUpService = Depends(get_top_up_service)
):
    """Approve or reject a pending top-up"""
    return service.process_request(body.id, body.action, profile["id"], body.note)


@router.get("/merchant/audit-logs")
async def list_audit_logs(
    limit: Optional[str] = None,
    profile: Dict = Depends(require_permission("audit_logs:read")),
    service: TopUpService = Depends(get_top_up_service)
) -> Dict[str, List[AuditLogEntry]]:
    """Processed top-ups"""
    return {"logs": service.audit_logs(profile, limit)}
