"""
Set Role Script
Gives an existing account a role (admin, merchant, accounting or user), e.g. to bootstrap
the first admin. Uses the service role key.

    python -m app.scripts.set_role <username> <role>
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config.permissions_config import ROLES
from app.database.supabase_client import SupabaseClient
from app.modules.auth.service import normalize_username
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def set_role(supabase: Client, username: str, role: str) -> bool:
    """Update profiles.role for username; False when no such profile exists"""
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}', expected one of: {', '.join(ROLES)}")

    result = supabase.table("profiles")\
        .update({"role": role})\
        .eq("username", username)\
        .execute()

    if not result.data:
        logger.error(f"No profile with username '{username}'")
        return False

    logger.info(f"Role of '{username}' set to {role}")
    return True


def main(argv=None):
    """Parse arguments and apply the role change"""
    parser = argparse.ArgumentParser(description="Set the role of an existing account")
    parser.add_argument("username")
    parser.add_argument("role", choices=ROLES)
    args = parser.parse_args(argv)

    try:
        supabase = SupabaseClient.get_service_client()
        if not set_role(supabase, normalize_username(args.username), args.role):
            sys.exit(1)
    except Exception as e:
        logger.error(f"Error setting role: {getattr(e, 'detail', e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
