# Portals are not stored; access is decided from profiles.role
# Portal -> allowed roles lives in app/config/permissions_config.py (PORTAL_ROLES)

"""
Portals:
- admin: platform management (users, packages, payment methods, reports)
- merchant: top-up review and audit log
- accounting: withdrawal review
- dashboard: the end-user area (packages, top-ups, withdrawals, referrals)
"""
