from __future__ import annotations

from datetime import date

from ..extensions import db
from courier.time_utils import date_from_parts, to_iso_date


ITEM_STATE_PENDING_RECEIVING = "PENDING_RECEIVING"
ITEM_STATE_RECEIVED = "RECEIVED"


class Item(db.Model):
    """
    A shipped item.

    Dates are stored as separate year/month/day columns so that filters
    can match on any part. The receiving columns stay NULL until the
    recipient receives the item.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_src_username", "src_username"),
        db.Index("ix_items_dst_username", "dst_username"),
        db.CheckConstraint(
            f"state IN ('{ITEM_STATE_PENDING_RECEIVING}', '{ITEM_STATE_RECEIVED}')",
            name="ck_items_state",
        ),
    )

    # Assigned from item_sequences, never autoincremented by the database
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    cost = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(16), nullable=False)
    state = db.Column(db.String(32), nullable=False, default=ITEM_STATE_PENDING_RECEIVING)

    sending_year = db.Column(db.Integer, nullable=False)
    sending_month = db.Column(db.Integer, nullable=False)
    sending_day = db.Column(db.Integer, nullable=False)

    receiving_year = db.Column(db.Integer, nullable=True)
    receiving_month = db.Column(db.Integer, nullable=True)
    receiving_day = db.Column(db.Integer, nullable=True)

    src_username = db.Column(db.String(32), db.ForeignKey("users.username"), nullable=False)
    dst_username = db.Column(db.String(32), db.ForeignKey("users.username"), nullable=False)

    description = db.Column(db.Text, nullable=False, default="")

    sender = db.relationship("User", foreign_keys=[src_username])
    recipient = db.relationship("User", foreign_keys=[dst_username])

    @property
    def sending_date(self) -> date:
        return date(self.sending_year, self.sending_month, self.sending_day)

    @property
    def receiving_date(self) -> date | None:
        return date_from_parts(self.receiving_year, self.receiving_month, self.receiving_day)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cost": self.cost,
            "category": self.category,
            "state": self.state,
            "sending_date": to_iso_date(self.sending_date),
            "receiving_date": to_iso_date(self.receiving_date),
            "src_username": self.src_username,
            "dst_username": self.dst_username,
            "description": self.description,
        }


class ItemSequence(db.Model):
    """
    Store-level id allocator for items.

    next_id is bumped with a single UPDATE so that two writers can never
    receive the same id, and ids are never reused after a delete.
    """
    __tablename__ = "item_sequences"

    name = db.Column(db.String(32), primary_key=True)
    next_id = db.Column(db.Integer, nullable=False)
