"""
Roles and Permissions Configuration
This config defines the permission matrix for every module and which profile role holds what.
Profile roles live in profiles.role; permissions are derived here and never stored.
"""

ROLES = ["admin", "merchant", "accounting", "user"]

# Define modules and their actions
MODULES = {
    "profile": {
        "resource": "profile",
        "actions": ["read", "update"],
        "description": "Own profile and balances"
    },
    "packages": {
        "resource": "packages",
        "actions": ["read", "buy", "withdraw", "manage"],
        "description": "Investment packages"
    },
    "payment_methods": {
        "resource": "payment_methods",
        "actions": ["read", "create", "delete", "manage"],
        "description": "Payment methods used for top-ups and withdrawals"
    },
    "top_ups": {
        "resource": "top_ups",
        "actions": ["read", "create", "review", "process"],
        "description": "Balance top-up requests"
    },
    "withdrawals": {
        "resource": "withdrawals",
        "actions": ["read", "create", "review", "process"],
        "description": "Balance withdrawal requests"
    },
    "commissions": {
        "resource": "commissions",
        "actions": ["read", "manage"],
        "description": "Referral commissions and referrals"
    },
    "audit_logs": {
        "resource": "audit_logs",
        "actions": ["read"],
        "description": "Processed top-up history"
    },
    "users": {
        "resource": "users",
        "actions": ["read", "update", "impersonate"],
        "description": "User administration"
    },
    "reports": {
        "resource": "reports",
        "actions": ["read"],
        "description": "Overview, cashflow and payout calendar"
    }
}

# Actions every signed-in profile holds
BASE_GRANTS = {
    "profile": ["read", "update"],
    "packages": ["read", "buy", "withdraw"],
    "payment_methods": ["read", "create", "delete"],
    "top_ups": ["read", "create"],
    "withdrawals": ["read", "create"],
    "commissions": ["read"],
}

# Extra actions per role, on top of BASE_GRANTS. admin holds everything.
ROLE_GRANTS = {
    "user": {},
    "merchant": {
        "top_ups": ["review", "process"],
        "audit_logs": ["read"],
    },
    "accounting": {
        "withdrawals": ["review", "process"],
    },
}

# Which roles may enter which portal
PORTAL_ROLES = {
    "admin": ["admin"],
    "merchant": ["merchant", "admin"],
    "accounting": ["accounting", "admin"],
    "dashboard": ROLES,
}


def get_all_permissions():
    """Every resource:action pair defined by MODULES"""
    return [
        f"{config['resource']}:{action}"
        for config in MODULES.values()
        for action in config["actions"]
    ]


def get_role_permissions(role: str):
    """
    Returns the sorted permission names held by a role.
    Unknown roles get nothing, admin gets every permission.
    """
    if role == "admin":
        return sorted(get_all_permissions())
    if role not in ROLE_GRANTS:
        return []

    permissions = set()
    for grants in (BASE_GRANTS, ROLE_GRANTS[role]):
        for module_name, actions in grants.items():
            resource = MODULES[module_name]["resource"]
            for action in actions:
                if action in MODULES[module_name]["actions"]:
                    permissions.add(f"{resource}:{action}")
    return sorted(permissions)


def get_permission_matrix():
    """
    Returns a dictionary with all permissions and each role's grants
    Format: {
        "permissions": [
            {"name": "withdrawals:process", "resource": "withdrawals", "action": "process", "description": "..."},
            ...
        ],
        "roles": [
            {"name": "accounting", "permissions": ["commissions:read", ...]},
            ...
        ]
    }
    """
    permissions = []
    for module_config in MODULES.values():
        for action in module_config["actions"]:
            permissions.append({
                "name": f"{module_config['resource']}:{action}",
                "resource": module_config["resource"],
                "action": action,
                "description": f"{action.capitalize()} {module_config['description'].lower()}"
            })

    roles = [{"name": role, "permissions": get_role_permissions(role)} for role in ROLES]

    return {
        "permissions": permissions,
        "roles": roles
    }


PERMISSION_MATRIX = get_permission_matrix()
