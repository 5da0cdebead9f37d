from typing import List, Optional
from urllib.parse import urlencode
from app.config.permissions_config import PORTAL_ROLES, get_role_permissions
from app.modules.portals.schemas import NavigationLink


API_PREFIX = "/api/v1"

# (label, method, path, permission); an entry is shown when the role holds the permission
PORTAL_NAVIGATION = {
    "admin": [
        ("Overview", "GET", "/admin/overview", "reports:read"),
        ("Cashflow", "GET", "/admin/cashflow?type=topups", "reports:read"),
        ("Payout calendar", "GET", "/admin/payout-calendar?mode=series&bucket=month", "reports:read"),
        ("Users", "GET", "/admin/users", "users:read"),
        ("Impersonate", "POST", "/admin/impersonate", "users:impersonate"),
        ("Packages", "GET", "/admin/packages", "packages:manage"),
        ("Payment methods", "GET", "/admin/payment-methods", "payment_methods:manage"),
        ("Commissions", "GET", "/admin/commissions", "commissions:manage"),
        ("Withdrawals", "GET", "/accounting/withdrawals", "withdrawals:review"),
        ("Pending top-ups", "GET", "/merchant/pending-topups", "top_ups:review"),
    ],
    "merchant": [
        ("Pending top-ups", "GET", "/merchant/pending-topups", "top_ups:review"),
        ("Process top-up", "POST", "/merchant/pending-topups", "top_ups:process"),
        ("Audit log", "GET", "/merchant/audit-logs", "audit_logs:read"),
        ("Payment methods", "GET", "/payment-methods", "payment_methods:read"),
    ],
    "accounting": [
        ("Withdrawals", "GET", "/accounting/withdrawals", "withdrawals:review"),
        ("Process withdrawal", "POST", "/accounting/withdrawals", "withdrawals:process"),
        ("Payout calendar", "GET", "/admin/payout-calendar?mode=series&bucket=month", "reports:read"),
    ],
    "dashboard": [
        ("Profile", "GET", "/profiles/me", "profile:read"),
        ("Packages", "GET", "/packages", "packages:read"),
        ("My packages", "GET", "/user-packages", "packages:read"),
        ("Top-up destinations", "GET", "/payment-methods/public", "payment_methods:read"),
        ("Top-ups", "GET", "/top-up-requests", "top_ups:read"),
        ("Withdrawals", "GET", "/withdrawal-requests", "withdrawals:read"),
        ("Commissions", "GET", "/commissions", "commissions:read"),
        ("Referrals", "GET", "/referrals", "commissions:read"),
    ],
}


def is_portal(name: str) -> bool:
    return name in PORTAL_ROLES


def can_enter(portal: str, role: Optional[str]) -> bool:
    return role in PORTAL_ROLES.get(portal, [])


def portal_home(portal: str) -> str:
    return f"/{portal}/portal"


def login_redirect_url(portal: str, next_path: Optional[str] = None, reason: Optional[str] = None) -> str:
    """/<portal>/login?next=...[&reason=...]"""
    params = {"next": next_path or portal_home(portal)}
    if reason:
        params["reason"] = reason
    return f"/{portal}/login?{urlencode(params, safe='/')}"


def navigation_for(portal: str, role: str) -> List[NavigationLink]:
    granted = set(get_role_permissions(role))
    return [
        NavigationLink(label=label, method=method, href=f"{API_PREFIX}{path}")
        for label, method, path, permission in PORTAL_NAVIGATION.get(portal, [])
        if permission in granted
    ]
