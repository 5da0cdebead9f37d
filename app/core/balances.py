"""
Read-modify-write helpers for the three balance columns on profiles.

There is no transactional update-once primitive available through PostgREST, so every
write is conditioned on the columns still holding the values that were read. A write
that matches no row means another request moved the balance first. Callers that have
already committed to the change go through adjust_balances, which re-reads and retries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from supabase import Client

from app.core.money import to_decimal, to_number

logger = logging.getLogger(__name__)

BALANCE_WRITE_ATTEMPTS = 5


@dataclass
class BalanceSnapshot:
    user_id: str
    top_up_balance: Decimal
    withdrawable_balance: Decimal
    raw_top_up: object = None
    raw_withdrawable: object = None

    @property
    def balance(self) -> Decimal:
        return self.top_up_balance + self.withdrawable_balance

    def as_dict(self) -> dict:
        return {
            "balance": to_number(self.balance),
            "top_up_balance": to_number(self.top_up_balance),
            "withdrawable_balance": to_number(self.withdrawable_balance),
        }


def load_balances(client: Client, user_id: str) -> Optional[BalanceSnapshot]:
    result = client.table("profiles")\
        .select("id, balance, top_up_balance, withdrawable_balance")\
        .eq("id", user_id)\
        .limit(1)\
        .execute()
    if not result.data:
        return None
    row = result.data[0]
    return BalanceSnapshot(
        user_id=user_id,
        top_up_balance=to_decimal(row.get("top_up_balance")),
        withdrawable_balance=to_decimal(row.get("withdrawable_balance")),
        raw_top_up=row.get("top_up_balance"),
        raw_withdrawable=row.get("withdrawable_balance"),
    )


def apply_balance_change(
    client: Client,
    snapshot: BalanceSnapshot,
    top_up_delta: Decimal = Decimal("0"),
    withdrawable_delta: Decimal = Decimal("0"),
) -> BalanceSnapshot:
    """
    Write snapshot + deltas back to the profile, guarded on the snapshot values.
    Raises 400 if a column would go negative and 409 if the row changed since it was read.
    """
    new_top_up = snapshot.top_up_balance + top_up_delta
    new_withdrawable = snapshot.withdrawable_balance + withdrawable_delta
    if new_top_up < 0 or new_withdrawable < 0:
        raise HTTPException(status_code=400, detail="Insufficient balance")

    updated = BalanceSnapshot(
        user_id=snapshot.user_id,
        top_up_balance=new_top_up,
        withdrawable_balance=new_withdrawable,
    )
    query = client.table("profiles")\
        .update({**updated.as_dict(), "updated_at": datetime.now(timezone.utc).isoformat()})\
        .eq("id", snapshot.user_id)
    # NULL columns cannot be matched with eq
    query = query.is_("top_up_balance", "null") if snapshot.raw_top_up is None \
        else query.eq("top_up_balance", snapshot.raw_top_up)
    query = query.is_("withdrawable_balance", "null") if snapshot.raw_withdrawable is None \
        else query.eq("withdrawable_balance", snapshot.raw_withdrawable)
    result = query.execute()

    if not result.data:
        raise HTTPException(status_code=409, detail="Balance changed while processing, please retry")

    logger.info(
        "Balance of %s: top_up %s -> %s, withdrawable %s -> %s",
        snapshot.user_id, snapshot.top_up_balance, new_top_up,
        snapshot.withdrawable_balance, new_withdrawable,
    )
    row = result.data[0]
    updated.raw_top_up = row.get("top_up_balance")
    updated.raw_withdrawable = row.get("withdrawable_balance")
    return updated


def adjust_balances(
    client: Client,
    user_id: str,
    top_up_delta: Decimal = Decimal("0"),
    withdrawable_delta: Decimal = Decimal("0"),
    attempts: int = BALANCE_WRITE_ATTEMPTS,
) -> BalanceSnapshot:
    """
    Apply deltas to the current balances, re-reading the profile whenever another write
    moved it between the read and the guarded update. Used once a request has already been
    marked processed, where a stale snapshot must not cost the member the change.
    Raises 404 for a missing profile, 400 if a column would go negative and 409 only after
    every attempt lost to a concurrent write.
    """
    for attempt in range(1, attempts + 1):
        snapshot = load_balances(client, user_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        try:
            return apply_balance_change(client, snapshot, top_up_delta, withdrawable_delta)
        except HTTPException as e:
            if e.status_code != 409 or attempt == attempts:
                raise
            logger.warning("Balance of %s moved during update, re-reading (attempt %s)", user_id, attempt)
