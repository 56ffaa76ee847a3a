"""
SQLAlchemy ORM models for the storefront backend.

Tables:
    orders — checkout orders and their Hyp payment audit trail

The embedded value objects of an order (customer details, cart, totals and the
raw gateway response) are stored as JSON documents; the gateway order id is a
flat column with a unique index so callbacks can be joined back to an order.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON,
)

from database import Base
from domain.constants import PAYMENT_PROVIDER
from domain.enums import OrderStatus


class Order(Base):
    """A checkout order, created pending and settled by the payment callback."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), nullable=False, default="site")
    section = Column(String(100), nullable=False, default="")

    customer_details = Column(JSON, nullable=False)
    cart = Column(JSON, nullable=False)
    totals = Column(JSON, nullable=False)

    status = Column(
        String(20), nullable=False, default=OrderStatus.PENDING_PAYMENT.value, index=True
    )  # "pending_payment" | "paid" | "failed" | "canceled"

    # Payment (Hyp)
    payment_provider = Column(String(20), nullable=False, default=PAYMENT_PROVIDER)
    payment_order_id = Column(String(64), unique=True, nullable=False, index=True)  # gateway order id
    payment_ccode = Column(String(20), nullable=False, default="")
    payment_transaction_id = Column(String(64), nullable=False, default="")
    payment_raw = Column(JSON, nullable=True)
    payment_verified_at = Column(DateTime, nullable=True)

    # Notification state
    admin_mail_sent = Column(Boolean, nullable=False, default=False)
    customer_mail_sent = Column(Boolean, nullable=False, default=False)
    admin_mail_error = Column(Text, nullable=False, default="")
    customer_mail_error = Column(Text, nullable=False, default="")

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def customer_email(self) -> str:
        return str((self.customer_details or {}).get("email") or "").strip()

    def payment_dict(self) -> dict:
        return {
            "provider": self.payment_provider,
            "orderId": self.payment_order_id,
            "ccode": self.payment_ccode,
            "transactionId": self.payment_transaction_id,
            "raw": self.payment_raw,
            "verifiedAt": self.payment_verified_at.isoformat() if self.payment_verified_at else None,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "section": self.section,
            "customerDetails": self.customer_details,
            "cart": self.cart,
            "totals": self.totals,
            "payment": self.payment_dict(),
            "status": self.status,
            "adminMailSent": self.admin_mail_sent,
            "customerMailSent": self.customer_mail_sent,
            "adminMailError": self.admin_mail_error,
            "customerMailError": self.customer_mail_error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
