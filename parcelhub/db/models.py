"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from parcelhub.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Wallet(Base):
    __tablename__ = "wallets"

    account_id = Column(String(64), primary_key=True)
    balance_paise = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="INR")
    # bumped on every ledger mutation; doubles as the transaction sequence
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("WalletTransaction", back_populates="wallet", cascade="all, delete-orphan")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    __table_args__ = (UniqueConstraint("account_id", "sequence", name="uq_wallet_transactions_sequence"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(String(64), ForeignKey("wallets.account_id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    kind = Column(String(10), nullable=False)  # credit, debit
    amount_paise = Column(Integer, nullable=False)
    balance_after_paise = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    description = Column(String(255), nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)
    awb = Column(String(64))
    meta = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    wallet = relationship("Wallet", back_populates="transactions")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(40), unique=True, nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    order_type = Column(String(20), nullable=False, default="domestic")
    partner = Column(String(40), nullable=False, index=True)
    service_type = Column(String(60))
    pickup = Column(Text, nullable=False)
    delivery = Column(Text, nullable=False)
    package = Column(Text, nullable=False)

    base_paise = Column(Integer, nullable=False)
    surcharge_paise = Column(Integer, nullable=False, default=0)
    tax_paise = Column(Integer, nullable=False, default=0)
    total_paise = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="INR")

    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=False, default="wallet")
    payment_transaction_id = Column(String(36))
    paid_at = Column(DateTime(timezone=True))

    status = Column(String(30), nullable=False, default="pending", index=True)
    awb = Column(String(64), index=True)
    tracking_url = Column(String(255))
    partner_order_ref = Column(String(100))
    meta = Column(Text)
    # optimistic concurrency for status/meta writes
    revision = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=_utcnow)

    booking = relationship("ShipmentBooking", back_populates="order", uselist=False, cascade="all, delete-orphan")


class ShipmentBooking(Base):
    __tablename__ = "shipment_bookings"

    order_id = Column(String(36), ForeignKey("orders.id"), primary_key=True)
    partner = Column(String(40), nullable=False)
    status = Column(String(20), nullable=False, default="queued", index=True)  # queued, in_progress, booked, failed, cancelled
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    claimed_at = Column(DateTime(timezone=True))
    booked_at = Column(DateTime(timezone=True))
    last_error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=_utcnow)

    order = relationship("Order", back_populates="booking")


class WalletTopupOrder(Base):
    __tablename__ = "wallet_topup_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(String(64), nullable=False, index=True)
    amount_paise = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default="pending")  # pending, success, failed
    payment_channel = Column(String(50))
    reference_no = Column(String(100), unique=True, nullable=False)
    ledger_transaction_id = Column(String(36))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    confirmed_at = Column(DateTime(timezone=True))
