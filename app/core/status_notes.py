"""
status_notes on top_up_requests / withdrawal_requests is a space separated list of
tokens. Plain tokens are markers ("balance_deducted"), key:value tokens carry references
("payment_method_id:<uuid> proof_path:<path>").
"""

import re
from typing import Optional

DEDUCTION_MARKER = "balance_deducted"
CREDIT_MARKER = "balance_credited"

PAYMENT_METHOD_REGEX = re.compile(r"payment_method_id:([0-9a-f-]{36})", re.IGNORECASE)
PROOF_PATH_REGEX = re.compile(r"proof_path:(\S+)")


def has_marker(notes: Optional[str], marker: str) -> bool:
    if not notes:
        return False
    return marker in notes.split()


def append_marker(notes: Optional[str], marker: str) -> str:
    if has_marker(notes, marker):
        return notes
    return f"{notes or ''} {marker}".strip()


def append_note(notes: Optional[str], note: Optional[str]) -> Optional[str]:
    """Attach a free-form reviewer note as a note:<text> token."""
    if not note or not note.strip():
        return notes
    cleaned = "_".join(note.split())
    return f"{notes or ''} note:{cleaned}".strip()


def build_top_up_notes(payment_method_id: str, proof_path: str) -> str:
    return f"payment_method_id:{payment_method_id} proof_path:{proof_path}"


def extract_payment_method_id(notes: Optional[str]) -> Optional[str]:
    if not notes:
        return None
    match = PAYMENT_METHOD_REGEX.search(notes)
    return match.group(1) if match else None


def extract_proof_path(notes: Optional[str]) -> Optional[str]:
    if not notes:
        return None
    match = PROOF_PATH_REGEX.search(notes)
    return match.group(1) if match else None
