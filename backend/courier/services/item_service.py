# backend/courier/services/item_service.py
"""
Item registry: id assignment, pricing and the item state machine.

LIFECYCLE:
1. PENDING_RECEIVING: Item created by a send, receiving date unset
2. RECEIVED: Recipient received the item after its due date (terminal)

Ids come from the store-level item sequence, never from a counter held
in this process. Every read goes back to the store.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from flask import current_app

from courier.models import Item, ITEM_STATE_PENDING_RECEIVING, ITEM_STATE_RECEIVED
from courier.services import store_service
from courier.services.concurrency import item_locks
from courier.services.store_service import ItemFilter
from courier import time_utils
from courier.validation import MAX_BALANCE, NotFoundError, ValidationError, coerce_int


logger = logging.getLogger(__name__)


# Shipping categories; the integer codes are what clients send as "type"
CATEGORY_FRAGILE = "FRAGILE"
CATEGORY_BOOK = "BOOK"
CATEGORY_NORMAL = "NORMAL"

CATEGORY_CODES = {
    0: CATEGORY_FRAGILE,
    1: CATEGORY_BOOK,
    2: CATEGORY_NORMAL,
}

# Price per unit amount
UNIT_PRICES = {
    CATEGORY_FRAGILE: 8,
    CATEGORY_BOOK: 2,
    CATEGORY_NORMAL: 5,
}

DEFAULT_TRANSIT_DAYS = 1


def parse_category(value: Any) -> str:
    """Accept a category code (0/1/2) or name and return the canonical name."""
    if isinstance(value, str) and value.strip().upper() in UNIT_PRICES:
        return value.strip().upper()
    try:
        code = coerce_int(value, "type")
    except ValidationError:
        raise ValidationError("Unknown item category")
    category = CATEGORY_CODES.get(code)
    if category is None:
        raise ValidationError("Unknown item category")
    return category


def quote_cost(category: str, amount: Any) -> int:
    """Shipping cost = amount x unit price of the category."""
    if category not in UNIT_PRICES:
        raise ValidationError("Unknown item category")
    amount = coerce_int(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    cost = amount * UNIT_PRICES[category]
    if cost > MAX_BALANCE:
        raise ValidationError(f"Shipping cost cannot exceed {MAX_BALANCE}")
    return cost


def transit_period() -> timedelta:
    days = current_app.config.get("ITEM_TRANSIT_DAYS", DEFAULT_TRANSIT_DAYS)
    return timedelta(days=int(days))


def due_date(item: Item) -> date:
    return item.sending_date + transit_period()


def is_due(item: Item, today: Optional[date] = None) -> bool:
    """An item may be received once today reaches its due date."""
    today = today or time_utils.today()
    return today >= due_date(item)


def create_item(
    cost: int,
    sending_date: date,
    recipient_username: str,
    sender_username: str,
    description: str,
    category: str = CATEGORY_NORMAL,
) -> int:
    """
    Register a new item in PENDING_RECEIVING state.

    Returns:
        int: The allocated item id

    Raises:
        NotFoundError: If sender or recipient does not exist
        ValidationError: If the category is unknown
    """
    if category not in UNIT_PRICES:
        raise ValidationError("Unknown item category")
    for username in (sender_username, recipient_username):
        if store_service.get_user_by_username(username) is None:
            raise NotFoundError(f"User {username} not found")

    item_id = store_service.next_item_id()
    store_service.insert_item(
        item_id=item_id,
        cost=cost,
        category=category,
        state=ITEM_STATE_PENDING_RECEIVING,
        sending_date=sending_date,
        receiving_date=None,
        src_username=sender_username,
        dst_username=recipient_username,
        description=description,
    )
    logger.info("Created item %s from %s to %s (cost %s)", item_id, sender_username, recipient_username, cost)
    return item_id


def query_by_filter(item_filter: ItemFilter | None = None) -> list[Item]:
    """Items matching every present filter field. Empty list is not an error."""
    return store_service.get_items_by_filter(item_filter)


def query_all() -> list[Item]:
    return store_service.get_items_by_filter(ItemFilter())


def query_by_id(item_id: int) -> Item | None:
    items = store_service.get_items_by_filter(ItemFilter(id=item_id))
    return items[0] if items else None


def transition_to_received(item_id: int, today: Optional[date] = None) -> bool:
    """
    Move an item from PENDING_RECEIVING to RECEIVED, stamping today's date.

    Returns False (never raises) for an unknown id or an item that is
    already received. The state change is a compare-and-set on
    PENDING_RECEIVING, so of two concurrent receivers only one wins.
    """
    today = today or time_utils.today()
    with item_locks.hold(item_id):
        if not store_service.update_item_state(
            item_id, ITEM_STATE_RECEIVED, expected_state=ITEM_STATE_PENDING_RECEIVING
        ):
            return False
        date_ok = store_service.update_item_receiving_date(item_id, today)

    if date_ok:
        logger.info("Item %s received on %s", item_id, today.isoformat())
    return date_ok


def delete(item_id: int) -> bool:
    return store_service.delete_item(item_id)
