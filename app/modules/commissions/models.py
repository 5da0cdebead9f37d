# Supabase tables: commissions, referrals
# Commission rows are written by database triggers; the API only reads them
# This file documents the expected database schema

"""
Expected Supabase table structure:

commissions:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id) - who earns it
- referral_id: uuid (nullable, foreign key to referrals.id)
- top_up_request_id: uuid (nullable, foreign key to top_up_requests.id)
- amount: numeric (not null)
- commission_type: text (nullable)
- level: integer - 1 = direct referral, >1 = indirect
- status: text - values: pending, paid
- created_at: timestamp (default: now())

referrals:
- id: uuid (primary key)
- referrer_id: uuid (foreign key to profiles.id)
- referred_id: uuid (foreign key to profiles.id, unique)
- status: text (default: 'active')
- created_at: timestamp (default: now())
"""
