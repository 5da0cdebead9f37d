# Reports read from: profiles, referrals, top_up_requests, withdrawal_requests,
# commissions, user_packages (joined with packages)
# Nothing is stored; see the other modules' models.py for the table shapes

"""
Aggregates:
- overview: counts and sums over approved requests, paid commissions and user packages,
  optionally restricted to one UTC day
- cashflow: raw top-up / withdrawal rows hydrated with username and payment method type
- payout calendar: approved top-ups (sales) against approved withdrawals (payouts),
  for one day or as a monthly series
"""
