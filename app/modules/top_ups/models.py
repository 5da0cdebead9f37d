# Supabase table: top_up_requests
# Storage bucket: top-up-proofs (private, objects under <user_id>/)
# This file documents the expected database schema

"""
Expected Supabase table structure:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null) - requester
- amount: numeric (not null)
- status: text (not null, default: 'pending') - values: pending, approved, rejected
- status_notes: text (nullable) - space separated tokens:
    payment_method_id:<uuid> proof_path:<path> [balance_credited] [note:<text>]
- merchant_id: uuid (nullable, foreign key to profiles.id) - who processed it
- processed_at: timestamp (nullable)
- created_at: timestamp (default: now())
"""
