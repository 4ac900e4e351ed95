# Overview: Service-layer operations for the balance ledger; encapsulates business logic and database work.

from __future__ import annotations

import logging

from ..validation import (
    CourierError,
    NotFoundError,
    ValidationError,
    check_balance_bounds,
    check_balance_delta,
)
from . import store_service
from .concurrency import account_locks
"""
Ledger invariants (authoritative)

- Every balance stays within [0, 1e9]; a change that would leave the range
  is rejected and nothing is written.
- A single change (delta or transfer amount) is bounded by 1e9 in magnitude.
- Balances change only through conditional relative UPDATEs
  (store_service.shift_balance); the bound is re-checked by the database
  against the committed value, never against a copy read earlier.
- A transfer is debit + credit in the caller's transaction: either both
  rows change or neither does. A credit that fails after its debit
  reverses the debit before the error is raised.
- The ledger flushes but never commits; the request handler owns the
  transaction boundary.
"""


logger = logging.getLogger(__name__)


def _current_balance(username: str, *, for_update: bool = False) -> int:
    balance = store_service.read_balance(username, for_update=for_update)
    if balance is None:
        raise NotFoundError(f"User {username} not found")
    return balance


def _shift(username: str, delta: int) -> int:
    new_balance = store_service.shift_balance(username, delta)
    if new_balance is None:
        # Report the precise reason against the value now in the table
        check_balance_bounds(_current_balance(username) + delta)
        raise ValidationError("Balance changed concurrently; try again")
    return new_balance


def apply_balance_delta(username: str, delta: int) -> int:
    """
    Add delta to a user's balance and return the new balance.

    Raises ValidationError / NotFoundError; the typed counterpart of
    adjust_balance for callers that compose several ledger steps.
    """
    check_balance_delta(delta)
    with account_locks.hold(username):
        check_balance_bounds(_current_balance(username, for_update=True) + delta)
        new_balance = _shift(username, delta)

    logger.info("Balance of %s changed by %+d to %d", username, delta, new_balance)
    return new_balance


def adjust_balance(username: str, delta: int) -> str:
    """
    Change one user's balance by delta.

    Returns "" on success, otherwise a human-readable reason. The balance
    is left unchanged on failure.
    """
    try:
        apply_balance_delta(username, delta)
    except CourierError as exc:
        logger.warning("Balance change for %s rejected: %s", username, exc)
        return str(exc)
    return ""


def move_balance(from_username: str, amount: int, to_username: str) -> tuple[int, int]:
    """
    Move amount from one account to another inside the current transaction.

    Both accounts are locked (sorted by username, so opposite transfers
    cannot deadlock) and both resulting balances are validated before
    anything is written. Returns (from_balance, to_balance).

    A negative amount moves money the other way.
    """
    check_balance_delta(amount)
    if from_username == to_username:
        raise ValidationError("Cannot transfer balance to the same account")

    with account_locks.hold(from_username, to_username):
        first, second = sorted((from_username, to_username))
        locked = {
            first: _current_balance(first, for_update=True),
            second: _current_balance(second, for_update=True),
        }
        payer = locked[from_username]
        payee = locked[to_username]
        check_balance_bounds(payer - amount)
        try:
            check_balance_bounds(payee + amount)
        except ValidationError as exc:
            raise ValidationError(f"{to_username}: {exc}") from exc

        new_from = _shift(from_username, -amount)
        try:
            new_to = _shift(to_username, amount)
        except CourierError:
            store_service.shift_balance(from_username, amount)
            raise

    logger.info("Transferred %d from %s to %s", amount, from_username, to_username)
    return new_from, new_to


def transfer(from_username: str, amount: int, to_username: str) -> str:
    """
    Transfer amount between two accounts atomically.

    Returns "" on success, otherwise a human-readable reason. Neither
    balance changes on failure.
    """
    try:
        move_balance(from_username, amount, to_username)
    except CourierError as exc:
        logger.warning(
            "Transfer of %d from %s to %s rejected: %s", amount, from_username, to_username, exc
        )
        return str(exc)
    return ""


def get_balance(username: str) -> int:
    return _current_balance(username)
