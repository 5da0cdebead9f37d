from fastapi import APIRouter, Depends, Request
from app.database.supabase_client import get_service_supabase
from app.modules.withdrawals.schemas import (
    WithdrawalCreate, WithdrawalResponse, WithdrawalCreateResponse,
    AccountingWithdrawalResponse, WithdrawalProcessRequest, WithdrawalProcessResponse
)
from app.modules.withdrawals.service import WithdrawalService
from app.core.dependencies import require_permission
from app.core.limiter import limiter
from app.config.settings import settings
from supabase import Client
from typing import List, Dict

router = APIRouter(tags=["withdrawals"])


def get_withdrawal_service(supabase: Client = Depends(get_service_supabase)) -> WithdrawalService:
    return WithdrawalService(supabase)


@router.post("/withdrawal-requests", response_model=WithdrawalCreateResponse)
@limiter.limit(settings.withdrawal_rate_limit)
async def create_withdrawal_request(
    request: Request,
    withdrawal_data: WithdrawalCreate,
    profile: Dict = Depends(require_permission("withdrawals:create")),
    service: WithdrawalService = Depends(get_withdrawal_service)
):
    """Request a payout from the withdrawable balance"""
    return service.create_request(profile["id"], withdrawal_data)


@router.get("/withdrawal-requests")
async def list_my_withdrawal_requests(
    profile: Dict = Depends(require_permission("withdrawals:read")),
    service: WithdrawalService = Depends(get_withdrawal_service)
) -> Dict[str, List[WithdrawalResponse]]:
    return {"withdrawal_requests": service.list_user_requests(profile["id"])}


# Accounting portal
@router.get("/accounting/withdrawals")
async def list_withdrawals_for_accounting(
    profile: Dict = Depends(require_permission("withdrawals:review")),
    service: WithdrawalService = Depends(get_withdrawal_service)
) -> Dict[str, List[AccountingWithdrawalResponse]]:
    return {"withdrawals": service.list_for_accounting()}


@router.post("/accounting/withdrawals", response_model=WithdrawalProcessResponse)
async def process_withdrawal(
    body: WithdrawalProcessRequest,
    profile: Dict = Depends(require_permission("withdrawals:process")),
    service: WithdrawalService = Depends(get_withdrawal_service)
):
    """Approve (deducting the balance) or reject a pending withdrawal"""
    return service.process_request(body.id, body.action, body.note)
