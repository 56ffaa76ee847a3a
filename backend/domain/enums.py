"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING_PAYMENT


class CartCategory(str, Enum):
    STANDARD = "standard"
    PAIR = "pair"
    TRIPLE = "triple"
    OTHER = "other"
