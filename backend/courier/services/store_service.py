# Overview: Row-level persistence for users and items; the single source of truth.

"""
Store layer.

Thin CRUD over the users, items and item_sequences tables. Every write
is a single-row statement flushed into the caller's transaction; the
request handler decides when to commit. SQLAlchemy failures are rolled
back and surfaced as StorageError, except lock/staleness conflicts which
are left for run_with_retry to handle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import func, update, delete
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Item, ItemSequence, User
from ..validation import MAX_BALANCE, StorageError, ValidationError
from .concurrency import lock_for_update


logger = logging.getLogger(__name__)

ITEM_SEQUENCE_NAME = "items"

# Columns update_user_field may touch; everything else is immutable
USER_UPDATABLE_FIELDS = frozenset({"password_hash", "balance"})


@dataclass(frozen=True)
class DateParts:
    """Optional year/month/day filter. Each present part is matched on its own."""
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    def is_empty(self) -> bool:
        return self.year is None and self.month is None and self.day is None

    @classmethod
    def from_date(cls, value: date) -> "DateParts":
        return cls(year=value.year, month=value.month, day=value.day)


@dataclass(frozen=True)
class ItemFilter:
    """
    Item query predicate. Fields left as None are not part of the query
    at all; they are not wildcards.
    """
    id: Optional[int] = None
    sending: DateParts = field(default_factory=DateParts)
    receiving: DateParts = field(default_factory=DateParts)
    src_username: Optional[str] = None
    dst_username: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.id is None
            and self.sending.is_empty()
            and self.receiving.is_empty()
            and self.src_username is None
            and self.dst_username is None
        )


@contextmanager
def storage_guard(action: str):
    """Translate store failures into StorageError, leaving retryable conflicts alone."""
    try:
        yield
    except (OperationalError, StaleDataError):
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Store failure while %s: %s", action, exc)
        raise StorageError(f"Storage failure while {action}") from exc


# =============================================================================
# USERS
# =============================================================================


def upsert_user(
    username: str,
    password_hash: str,
    role: str,
    balance: int,
    name: str,
    phone: str,
    address: str,
) -> User:
    """Insert the user, or overwrite every column of an existing row."""
    with storage_guard(f"upserting user {username}"):
        user = db.session.merge(User(
            username=username,
            password_hash=password_hash,
            role=role,
            balance=balance,
            name=name,
            phone=phone,
            address=address,
        ))
        db.session.flush()
    logger.debug("Upserted user %s", username)
    return user


def insert_user(
    username: str,
    password_hash: str,
    role: str,
    balance: int,
    name: str,
    phone: str,
    address: str,
) -> User:
    """Insert a new user. Raises ValidationError if the username is taken."""
    if get_user_by_username(username) is not None:
        raise ValidationError("Username is already registered")

    user = User(
        username=username,
        password_hash=password_hash,
        role=role,
        balance=balance,
        name=name,
        phone=phone,
        address=address,
    )
    try:
        db.session.add(user)
        db.session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration of the same name
        db.session.rollback()
        raise ValidationError("Username is already registered") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError(f"Storage failure while inserting user {username}") from exc
    logger.debug("Inserted user %s", username)
    return user


def get_user_by_username(username: str) -> User | None:
    """Return the user row, or None when no such username exists."""
    with storage_guard(f"loading user {username}"):
        return db.session.query(User).filter_by(username=username).first()


def list_users() -> list[User]:
    with storage_guard("listing users"):
        return db.session.query(User).order_by(User.username).all()


def update_user_field(username: str, field_name: str, value) -> bool:
    """
    Update one mutable column of a user row.

    Returns False if the user does not exist.
    """
    if field_name not in USER_UPDATABLE_FIELDS:
        raise ValidationError(f"Field not allowed: {field_name}")

    with storage_guard(f"updating {field_name} of user {username}"):
        result = db.session.execute(
            update(User)
            .where(User.username == username)
            .values({field_name: value})
        )
        db.session.flush()
    return result.rowcount == 1


def read_balance(username: str, *, for_update: bool = False) -> int | None:
    """Balance straight from the table (bypasses the identity map); None if no such user."""
    with storage_guard(f"reading balance of {username}"):
        query = db.session.query(User.balance).filter_by(username=username)
        if for_update:
            query = lock_for_update(query)
        return query.scalar()


def shift_balance(username: str, delta: int) -> int | None:
    """
    Add delta to a balance in one conditional UPDATE.

    The row only changes when the result stays within [0, MAX_BALANCE],
    evaluated against the committed value at write time, so concurrent
    writers cannot lose each other's updates. Returns the new balance, or
    None when no row was changed (unknown user or out of range).
    """
    new_value = User.balance + delta
    with storage_guard(f"shifting balance of {username}"):
        result = db.session.execute(
            update(User)
            .where(User.username == username, new_value >= 0, new_value <= MAX_BALANCE)
            .values(balance=new_value)
            .execution_options(synchronize_session="fetch")
        )
        db.session.flush()
    if result.rowcount != 1:
        return None
    return read_balance(username)


# =============================================================================
# ITEMS
# =============================================================================


def next_item_id() -> int:
    """
    Atomically allocate the next item id.

    The first allocation seeds the sequence from max(items.id) + 1 (1 for an
    empty table). Later allocations bump the sequence row with a single
    UPDATE, so ids stay unique across writers and are never reused after a
    delete.
    """
    stmt = (
        update(ItemSequence)
        .where(ItemSequence.name == ITEM_SEQUENCE_NAME)
        .values(next_id=ItemSequence.next_id + 1)
    )

    def _read_allocated() -> int:
        current = (
            db.session.query(ItemSequence.next_id)
            .filter_by(name=ITEM_SEQUENCE_NAME)
            .scalar()
        )
        return current - 1

    with storage_guard("allocating an item id"):
        result = db.session.execute(stmt)
        if result.rowcount:
            db.session.flush()
            return _read_allocated()

        seed = (db.session.query(func.max(Item.id)).scalar() or 0) + 1
        db.session.add(ItemSequence(name=ITEM_SEQUENCE_NAME, next_id=seed + 1))
        try:
            db.session.flush()
            return seed
        except IntegrityError:
            # Another writer created the sequence first
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            db.session.flush()
            return _read_allocated()


def insert_item(
    item_id: int,
    cost: int,
    category: str,
    state: str,
    sending_date: date,
    receiving_date: date | None,
    src_username: str,
    dst_username: str,
    description: str,
) -> Item:
    item = Item(
        id=item_id,
        cost=cost,
        category=category,
        state=state,
        sending_year=sending_date.year,
        sending_month=sending_date.month,
        sending_day=sending_date.day,
        receiving_year=receiving_date.year if receiving_date else None,
        receiving_month=receiving_date.month if receiving_date else None,
        receiving_day=receiving_date.day if receiving_date else None,
        src_username=src_username,
        dst_username=dst_username,
        description=description,
    )
    with storage_guard(f"inserting item {item_id}"):
        db.session.add(item)
        db.session.flush()
    logger.debug("Inserted item %s (%s -> %s)", item_id, src_username, dst_username)
    return item


def _date_clauses(parts: DateParts, year_col, month_col, day_col) -> list:
    clauses = []
    if parts.year is not None:
        clauses.append(year_col == parts.year)
    if parts.month is not None:
        clauses.append(month_col == parts.month)
    if parts.day is not None:
        clauses.append(day_col == parts.day)
    return clauses


def get_items_by_filter(item_filter: ItemFilter | None = None) -> list[Item]:
    """
    Return items matching every present field of the filter, ordered by id.

    An empty filter returns every item.
    """
    item_filter = item_filter or ItemFilter()

    clauses = []
    if item_filter.id is not None:
        clauses.append(Item.id == item_filter.id)
    clauses.extend(_date_clauses(item_filter.sending, Item.sending_year, Item.sending_month, Item.sending_day))
    clauses.extend(_date_clauses(item_filter.receiving, Item.receiving_year, Item.receiving_month, Item.receiving_day))
    if item_filter.src_username is not None:
        clauses.append(Item.src_username == item_filter.src_username)
    if item_filter.dst_username is not None:
        clauses.append(Item.dst_username == item_filter.dst_username)

    with storage_guard("querying items"):
        items = db.session.query(Item).filter(*clauses).order_by(Item.id).all()
    logger.debug("Item query matched %d row(s)", len(items))
    return items


def update_item_state(item_id: int, state: str, *, expected_state: str | None = None) -> bool:
    """
    Set the item's state. With expected_state, the row only changes if it
    is still in that state when the UPDATE runs (compare-and-set).
    """
    clauses = [Item.id == item_id]
    if expected_state is not None:
        clauses.append(Item.state == expected_state)
    with storage_guard(f"updating state of item {item_id}"):
        result = db.session.execute(
            update(Item)
            .where(*clauses)
            .values(state=state)
            .execution_options(synchronize_session="fetch")
        )
        db.session.flush()
    return result.rowcount == 1


def update_item_receiving_date(item_id: int, receiving_date: date | None) -> bool:
    """Set all three receiving-date columns in one statement."""
    with storage_guard(f"updating receiving date of item {item_id}"):
        result = db.session.execute(
            update(Item)
            .where(Item.id == item_id)
            .values(
                receiving_year=receiving_date.year if receiving_date else None,
                receiving_month=receiving_date.month if receiving_date else None,
                receiving_day=receiving_date.day if receiving_date else None,
            )
        )
        db.session.flush()
    return result.rowcount == 1


def delete_item(item_id: int) -> bool:
    with storage_guard(f"deleting item {item_id}"):
        result = db.session.execute(delete(Item).where(Item.id == item_id))
        db.session.flush()
    deleted = result.rowcount == 1
    if deleted:
        logger.info("Deleted item %s", item_id)
    return deleted
