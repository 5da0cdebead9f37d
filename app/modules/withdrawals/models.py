# Supabase table: withdrawal_requests
# This file documents the expected database schema

"""
Expected Supabase table structure:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- amount: numeric (not null)
- status: text (not null, default: 'pending') - values: pending, approved, rejected
    (a request leaves pending at most once)
- status_notes: text (nullable) - space separated tokens; balance_deducted is appended
    when the approval deducts the owner's balance
- payment_method_info: jsonb (nullable) - where the payout goes
- processed_at: timestamp (nullable)
- created_at: timestamp (default: now())
"""
