# Supabase table: profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- username: text (unique, not null)
- first_name: text (nullable)
- last_name: text (nullable)
- role: text (not null, default: 'user') - values: admin, merchant, accounting, user
- balance: numeric (default: 0) - top_up_balance + withdrawable_balance
- top_up_balance: numeric (default: 0) - credited by approved top-ups, spent first on packages
- withdrawable_balance: numeric (default: 0) - matured packages and paid commissions
- referral_code: text (unique, nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Role changes are only made with the service role key (admin portal or app/scripts/set_role.py).
"""
