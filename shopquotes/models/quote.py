"""
SQLAlchemy model for Quotes (orçamentos).
"""
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import Column, DateTime, Float, Integer, String, JSON, Index
from sqlalchemy.sql import func

from shopquotes.database import Base

CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Round half-up to cents, the way amounts are printed on the PDF."""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _items_sum(items) -> Decimal:
    total = Decimal(0)
    for item in items or []:
        if isinstance(item, dict):
            quantity = item.get("quantity", 0)
            unit_price = item.get("unitPrice", 0)
        else:
            quantity = item.quantity
            unit_price = item.unit_price
        total += Decimal(str(quantity or 0)) * Decimal(str(unit_price or 0))
    return total


def compute_total(items) -> float:
    """Sum of quantity * unitPrice across line items, in cents (half-up)."""
    return float(to_cents(_items_sum(items)))


def totals_match(total, items) -> bool:
    """True when total and the items sum print as the same amount."""
    return to_cents(total) == to_cents(_items_sum(items))


class Quote(Base):
    """An itemized price estimate issued to a customer.

    company and client are denormalized snapshots taken when the quote is
    created, so historical quotes render the same after profile edits.
    """
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Natural key, generated by the UI (e.g. "ORC-1760796000000")
    number = Column(String(64), unique=True, nullable=False, index=True)

    # Issue timestamp as sent by the UI (ISO-8601)
    date = Column(String(40), nullable=False)

    # Snapshots stored as JSON
    # company: { name, cnpj, phone, email, address, logo }
    # client: { name, phone, vehicle, plate }
    company = Column(JSON, nullable=False, default=dict)
    client = Column(JSON, nullable=False, default=dict)

    # Each item: { id, description, quantity, unitPrice, displayPrice }
    items = Column(JSON, nullable=False, default=list)

    # Client-computed, stored as received
    total = Column(Float, nullable=False, default=0.0)

    # Notification resend tracking
    resend_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_resent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_quotes_date', 'date'),
    )

    @property
    def computed_total(self) -> float:
        return compute_total(self.items)

    def total_matches(self) -> bool:
        return totals_match(self.total, self.items)

    def __repr__(self):
        return f"<Quote(id={self.id}, number={self.number}, total={self.total})>"
