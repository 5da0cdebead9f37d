# Supabase table: payment_methods
# Storage bucket: payment-method-qr-codes (private, objects under <user_id>/)
# This file documents the expected database schema

"""
Expected Supabase table structure:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null) - owner
- type: text (not null) - values: gcash, bank, maya, gotyme
- label: text (nullable)
- provider: text (nullable)
- account_name: text (nullable)
- account_number_last4: text (nullable)
- phone: text (nullable)
- qr_code_path: text (nullable) - object path inside the QR bucket
- is_default: boolean (default: false) - at most one per user
- is_public: boolean (default: false) - offered to users as a top-up destination
- created_at: timestamp (default: now())
"""
