# Supabase tables: packages, user_packages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

packages:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- price: numeric (not null, default: 0)
- commission_rate: numeric (default: 0) - percent profit paid out on withdrawal
- interest_rate: numeric (default: 0)
- level: integer (default: 0) - display order
- max_referrals: integer (nullable)
- maturity_days: integer (default: 0)
- maturity_minutes: integer (nullable) - overrides maturity_days when set
- is_active: boolean (default: true)
- created_at: timestamp (default: now())

user_packages:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- package_id: uuid (foreign key to packages.id, not null)
- amount: numeric (nullable) - amount paid, defaults to the package price
- status: text (not null, default: 'active') - values: active, cancelled, withdrawn
- activated_at: timestamp (nullable)
- matures_at: timestamp (nullable)
- withdrawn_at: timestamp (nullable) - set exactly once, when the payout is credited
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
