# Supabase Auth
# This module uses Supabase's built-in authentication system
# Accounts are username based; Supabase Auth only ever sees a system e-mail
# of the form <username>@<SYSTEM_EMAIL_DOMAIN>.

"""
Supabase Auth provides:
- auth.sign_up() - Register new users (username/first_name/last_name kept in user_metadata)
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Resolve the user behind a bearer token
- auth.admin.generate_link() - Magic links used for admin impersonation

Profile data (role, balances, referral_code) lives in the public.profiles table,
see app/modules/profiles/models.py.
"""
