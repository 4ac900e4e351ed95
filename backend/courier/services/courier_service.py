# backend/courier/services/courier_service.py
"""
Request handlers: the public operations of the courier backend.

Each handler verifies the caller's credential, checks the role where the
operation needs one, then composes the ledger and item registry. The whole
handler runs as one unit of work: it is retried on lock conflicts,
committed once on success and rolled back on any error.

Handlers always return an Outcome and never raise across this boundary
for business or store failures. Outcome.message is "" on success and a
human-readable reason otherwise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from courier import time_utils
from courier.extensions import db
from courier.models import ROLE_ADMINISTRATOR, ROLE_CUSTOMER, ITEM_STATE_PENDING_RECEIVING
from courier.services import auth_service, item_service, ledger_service, session_service, store_service
from courier.services.concurrency import commit_with_retry, run_with_retry
from courier.services.session_service import Credential
from courier.services.store_service import DateParts, ItemFilter
from courier.validation import (
    CourierError,
    NotFoundError,
    PermissionDeniedError,
    StateError,
    StorageError,
    ValidationError,
    clean_str,
    coerce_int,
    optional_int,
    require_fields,
    validate_username,
)


logger = logging.getLogger(__name__)


# Query "type" values
QUERY_ALL = 0
QUERY_SENT = 1
QUERY_TO_RECEIVE = 2


@dataclass
class Outcome:
    """Result of a request handler: either a value or a typed error."""
    value: Any = None
    error: CourierError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return "" if self.error is None else str(self.error)

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else self.error.status_code


def _handle(action: str, func: Callable[[], Any]) -> Outcome:
    try:
        value = run_with_retry(func)
        commit_with_retry()
    except CourierError as exc:
        db.session.rollback()
        logger.info("%s rejected: %s", action, exc)
        return Outcome(error=exc)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("%s failed in the store", action)
        return Outcome(error=StorageError(f"Storage failure while {action}"))
    return Outcome(value=value)


def _require_customer(credential: Credential | None):
    user = session_service.require_user(credential)
    if user.role != ROLE_CUSTOMER:
        raise PermissionDeniedError("Only customers can do this")
    return user


def _require_administrator(credential: Credential | None):
    user = session_service.require_user(credential)
    session_service.require_role(user.username, ROLE_ADMINISTRATOR)
    return user


# =============================================================================
# ACCOUNTS
# =============================================================================


def register(
    username: str,
    password: str,
    role=ROLE_CUSTOMER,
    name: str = "",
    phone: str = "",
    address: str = "",
) -> Outcome:
    def _op():
        user = auth_service.register_user(
            username=username,
            password=password,
            role=role,
            name=name,
            phone=phone,
            address=address,
        )
        return user.to_dict()
    return _handle("registering a user", _op)


def login(username: str, password: str) -> Outcome:
    """Outcome.value is the Credential."""
    return _handle("logging in", lambda: session_service.login(username, password))


def logout(credential: Credential | None) -> Outcome:
    return _handle("logging out", lambda: session_service.logout(credential))


def change_password(credential: Credential | None, new_password: str) -> Outcome:
    def _op():
        user = session_service.require_user(credential)
        auth_service.change_password(user.username, new_password)
    return _handle("changing a password", _op)


def get_user_info(credential: Credential | None) -> Outcome:
    def _op():
        return session_service.require_user(credential).to_dict()
    return _handle("loading user info", _op)


def list_all_users(credential: Credential | None) -> Outcome:
    """Administrator only. Reads the users table, the single source of truth."""
    def _op():
        _require_administrator(credential)
        return [u.to_dict() for u in store_service.list_users()]
    return _handle("listing users", _op)


def adjust_balance(credential: Credential | None, delta, username: str | None = None) -> Outcome:
    """
    Change the caller's own balance by delta.

    Passing another username is an administrative adjustment and requires
    the administrator role.
    """
    def _op():
        caller = session_service.require_user(credential)
        target = caller.username
        if username is not None and username != caller.username:
            _require_administrator(credential)
            target = validate_username(username)
        amount = coerce_int(delta, "delta")
        balance = ledger_service.apply_balance_delta(target, amount)
        return {"username": target, "balance": balance}
    return _handle("adjusting a balance", _op)


# =============================================================================
# ITEMS
# =============================================================================


def _date_parts(payload: dict, prefix: str) -> DateParts:
    return DateParts(
        year=optional_int(payload, f"{prefix}_Year"),
        month=optional_int(payload, f"{prefix}_Month"),
        day=optional_int(payload, f"{prefix}_Day"),
    )


def _optional_name(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return clean_str(value, key)


def build_item_filter(payload: dict, caller: str) -> tuple[int, ItemFilter]:
    """
    Translate a query payload into (query type, ItemFilter).

    Type 1 pins the sender to the caller and type 2 pins the recipient;
    the other name field stays an optional filter.
    """
    payload = require_fields(payload, "type")
    query_type = coerce_int(payload["type"], "type")

    src = _optional_name(payload, "srcName")
    dst = _optional_name(payload, "dstName")
    if query_type == QUERY_SENT:
        src = caller
    elif query_type == QUERY_TO_RECEIVE:
        dst = caller
    elif query_type != QUERY_ALL:
        raise ValidationError("Invalid query type")

    return query_type, ItemFilter(
        id=optional_int(payload, "id"),
        sending=_date_parts(payload, "sendingTime"),
        receiving=_date_parts(payload, "receivingTime"),
        src_username=src,
        dst_username=dst,
    )


def query_items(credential: Credential | None, payload: dict) -> Outcome:
    """
    Filtered item query.

    type 0: all items (administrator only)
    type 1: items sent by the caller
    type 2: items the caller is to receive
    """
    def _op():
        caller = session_service.require_user(credential)
        query_type, item_filter = build_item_filter(payload, caller.username)
        if query_type == QUERY_ALL:
            session_service.require_role(caller.username, ROLE_ADMINISTRATOR)
        items = item_service.query_by_filter(item_filter)
        return [item.to_dict() for item in items]
    return _handle("querying items", _op)


def send_item(credential: Credential | None, info: dict) -> Outcome:
    """
    Ship an item to another customer.

    The cost (amount x category unit price) is moved from the sender to
    the administrator and the item is created in the same transaction.
    Outcome.value is {"id", "cost", "balance"}.
    """
    def _op():
        sender = _require_customer(credential)
        payload = require_fields(info, "dstName", "type", "amount", "description")

        dst_name = clean_str(payload["dstName"], "dstName", allow_blank=False)
        recipient = store_service.get_user_by_username(dst_name)
        if recipient is None:
            raise NotFoundError("Recipient does not exist")
        if recipient.role != ROLE_CUSTOMER:
            raise ValidationError("Items can only be sent to customers")

        category = item_service.parse_category(payload["type"])
        cost = item_service.quote_cost(category, payload["amount"])
        description = clean_str(payload["description"], "description")

        balance, _ = ledger_service.move_balance(sender.username, cost, auth_service.administrator_username())
        item_id = item_service.create_item(
            cost=cost,
            sending_date=time_utils.today(),
            recipient_username=recipient.username,
            sender_username=sender.username,
            description=description,
            category=category,
        )
        return {"id": item_id, "cost": cost, "balance": balance}
    return _handle("sending an item", _op)


def receive_item(credential: Credential | None, info: dict) -> Outcome:
    """
    Mark an item as received by its recipient.

    Fails with StateError if the item is not due yet or was already
    received.
    """
    def _op():
        caller = _require_customer(credential)
        payload = require_fields(info, "id")
        item_id = coerce_int(payload["id"], "id")

        item = item_service.query_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")
        if item.dst_username != caller.username:
            raise PermissionDeniedError("This item is not addressed to you")
        if item.state != ITEM_STATE_PENDING_RECEIVING:
            raise StateError("Item has already been received")

        today = time_utils.today()
        if not item_service.is_due(item, today):
            raise StateError("Item has not arrived yet")
        if not item_service.transition_to_received(item_id, today):
            raise StateError("Item has already been received")

        return item_service.query_by_id(item_id).to_dict()
    return _handle("receiving an item", _op)


def delete_item(credential: Credential | None, item_id) -> Outcome:
    """Administrator only."""
    def _op():
        _require_administrator(credential)
        target = coerce_int(item_id, "id")
        if not item_service.delete(target):
            raise NotFoundError(f"Item {target} not found")
        return {"id": target}
    return _handle("deleting an item", _op)
