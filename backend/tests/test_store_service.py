"""
Store layer tests.

Verifies:
- Username lookups distinguish found from not found
- Only password_hash and balance are updatable
- Item ids are allocated from the sequence and never reused
- Filters AND together every present field and ignore absent ones
"""

from datetime import date

import pytest

from courier.extensions import db
from courier.models import ITEM_STATE_PENDING_RECEIVING, ITEM_STATE_RECEIVED
from courier.services import store_service
from courier.services.store_service import DateParts, ItemFilter
from courier.validation import MAX_BALANCE, ValidationError

from conftest import make_customer


def _insert(item_id, src="alice", dst="bob", sent=date(2026, 3, 1), received=None):
    return store_service.insert_item(
        item_id=item_id,
        cost=10,
        category="NORMAL",
        state=ITEM_STATE_RECEIVED if received else ITEM_STATE_PENDING_RECEIVING,
        sending_date=sent,
        receiving_date=received,
        src_username=src,
        dst_username=dst,
        description=f"item {item_id}",
    )


# =============================================================================
# USERS
# =============================================================================


class TestUsers:

    def test_lookup_found_and_not_found(self, alice):
        assert store_service.get_user_by_username("alice").username == "alice"
        assert store_service.get_user_by_username("nobody") is None

    def test_insert_duplicate_username_rejected(self, alice):
        with pytest.raises(ValidationError, match="already registered"):
            store_service.insert_user("alice", "x", "CUSTOMER", 0, "", "", "")

    def test_upsert_overwrites_existing_row(self, alice):
        store_service.upsert_user("alice", "h", "CUSTOMER", 42, "Alice B", "1", "Here")
        db.session.commit()
        user = store_service.get_user_by_username("alice")
        assert user.balance == 42
        assert user.name == "Alice B"

    def test_update_balance_field(self, alice):
        assert store_service.update_user_field("alice", "balance", 7) is True
        db.session.commit()
        assert store_service.get_user_by_username("alice").balance == 7

    def test_update_unknown_user_reports_false(self, db_session):
        assert store_service.update_user_field("ghost", "balance", 7) is False

    def test_immutable_field_rejected(self, alice):
        with pytest.raises(ValidationError):
            store_service.update_user_field("alice", "role", "ADMINISTRATOR")

    def test_shift_balance_is_relative(self, alice):
        assert store_service.shift_balance("alice", -30) == 70
        assert store_service.shift_balance("alice", 5) == 75
        assert store_service.read_balance("alice") == 75

    @pytest.mark.parametrize("delta", [-101, MAX_BALANCE])
    def test_shift_balance_out_of_range_writes_nothing(self, alice, delta):
        assert store_service.shift_balance("alice", delta) is None
        assert store_service.read_balance("alice") == 100

    def test_shift_balance_unknown_user(self, db_session):
        assert store_service.shift_balance("ghost", 1) is None
        assert store_service.read_balance("ghost") is None

    def test_list_users_includes_administrator(self, alice):
        usernames = [u.username for u in store_service.list_users()]
        assert usernames == ["ADMINISTRATOR", "alice"]


# =============================================================================
# ITEM IDS
# =============================================================================


class TestItemIds:

    def test_first_id_is_one(self, db_session):
        assert store_service.next_item_id() == 1

    def test_ids_increase(self, db_session):
        ids = [store_service.next_item_id() for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_sequence_seeded_from_existing_rows(self, alice, bob):
        _insert(41)
        db.session.commit()
        assert store_service.next_item_id() == 42

    def test_deleted_id_not_reused(self, alice, bob):
        for _ in range(2):
            _insert(store_service.next_item_id())
        db.session.commit()

        assert store_service.delete_item(2) is True
        db.session.commit()
        assert store_service.next_item_id() == 3


# =============================================================================
# ITEM FILTERS
# =============================================================================


@pytest.fixture
def shipments(alice, bob):
    carol = make_customer("carol")
    _insert(1, "alice", "bob", date(2026, 3, 1))
    _insert(2, "alice", "carol", date(2026, 3, 2), received=date(2026, 3, 4))
    _insert(3, "bob", "alice", date(2026, 4, 1))
    _insert(4, "carol", "bob", date(2025, 3, 1))
    db.session.commit()
    return carol


class TestItemFilters:

    def test_empty_filter_returns_everything(self, shipments):
        items = store_service.get_items_by_filter(ItemFilter())
        assert [i.id for i in items] == [1, 2, 3, 4]
        assert ItemFilter().is_empty()

    def test_filter_by_id(self, shipments):
        items = store_service.get_items_by_filter(ItemFilter(id=3))
        assert [i.id for i in items] == [3]

    def test_unknown_id_is_empty_not_error(self, shipments):
        assert store_service.get_items_by_filter(ItemFilter(id=99)) == []

    def test_each_date_part_matches_on_its_own(self, shipments):
        march = store_service.get_items_by_filter(ItemFilter(sending=DateParts(month=3)))
        assert [i.id for i in march] == [1, 2, 4]

        march_2026 = store_service.get_items_by_filter(ItemFilter(sending=DateParts(year=2026, month=3)))
        assert [i.id for i in march_2026] == [1, 2]

    def test_src_and_sending_date_combined(self, shipments):
        items = store_service.get_items_by_filter(
            ItemFilter(src_username="alice", sending=DateParts(day=2))
        )
        assert [i.id for i in items] == [2]

    def test_receiving_filter_skips_unreceived(self, shipments):
        items = store_service.get_items_by_filter(ItemFilter(receiving=DateParts(year=2026)))
        assert [i.id for i in items] == [2]
        assert items[0].receiving_date == date(2026, 3, 4)

    def test_dst_filter(self, shipments):
        assert [i.id for i in store_service.get_items_by_filter(ItemFilter(dst_username="bob"))] == [1, 4]


# =============================================================================
# ITEM UPDATES
# =============================================================================


class TestItemUpdates:

    def test_receiving_date_set_as_one_unit(self, alice, bob):
        _insert(1)
        assert store_service.update_item_receiving_date(1, date(2026, 5, 6)) is True
        db.session.commit()

        item = store_service.get_items_by_filter(ItemFilter(id=1))[0]
        db.session.refresh(item)
        assert (item.receiving_year, item.receiving_month, item.receiving_day) == (2026, 5, 6)

    def test_updates_on_unknown_item_report_false(self, db_session):
        assert store_service.update_item_state(5, ITEM_STATE_RECEIVED) is False
        assert store_service.update_item_receiving_date(5, date(2026, 1, 1)) is False
        assert store_service.delete_item(5) is False

    def test_state_change_with_expected_state_is_compare_and_set(self, alice, bob):
        _insert(1)
        assert store_service.update_item_state(
            1, ITEM_STATE_RECEIVED, expected_state=ITEM_STATE_PENDING_RECEIVING
        ) is True
        assert store_service.update_item_state(
            1, ITEM_STATE_RECEIVED, expected_state=ITEM_STATE_PENDING_RECEIVING
        ) is False
        assert store_service.get_items_by_filter(ItemFilter(id=1))[0].state == ITEM_STATE_RECEIVED
