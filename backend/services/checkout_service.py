"""
Checkout service — hosted-payment checkout flow.

Handles:
    1. checkout  — validate the cart, price it, store a pending order, sign a
                   Hyp payment request and hand back the redirect URL
    2. confirm   — verify the gateway callback, settle the order
                   (pending_payment → paid | failed) and notify on success
    3. mark_paid — development-only forced settlement
    4. status    — order status and mail state lookup

State machine: pending_payment → {paid, failed}. Terminal states are sticky.

Confirmations for the same gateway order id are serialized in-process by a
keyed asyncio lock; different orders proceed independently.
"""
import asyncio
import logging
import math
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from config import Settings
from db_models import Order
from domain.constants import HYP_CCODE_FIELD, HYP_ORDER_FIELD, HYP_SUCCESS_CCODE
from domain.enums import OrderStatus
from domain.errors import NotFoundError, ValidationError
from models import CheckoutRequest, CustomerDetails, ReturnUrls, Totals
from services.hyp_client import HypClient, SignRequest
from services.notification_service import NotificationDispatcher
from services.order_store import OrderDraft, OrderStore
from services.totals_service import compute_totals, to_minor_units

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Per-order serialization
# ════════════════════════════════════════════════════════════════════


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


order_locks = KeyedLocks()


# ════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════


def generate_order_id() -> str:
    """Query-string safe, unique per checkout attempt: ``ORD-<ms>-<hex>``."""
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


def build_return_urls(settings: Settings) -> ReturnUrls:
    base = settings.app_base_url.rstrip("/")
    return ReturnUrls(
        success_url=f"{base}{settings.hyp_success_path}",
        failure_url=f"{base}{settings.hyp_failure_path}",
        cancel_url=f"{base}{settings.hyp_cancel_path}",
    )


def _split_name(fullname: str) -> tuple[str, Optional[str]]:
    first, _, last = fullname.strip().partition(" ")
    return first, (last.strip() or None)


@dataclass(frozen=True)
class CheckoutResult:
    redirect_url: str
    order_id: str
    totals: Totals
    return_urls: ReturnUrls


@dataclass(frozen=True)
class ConfirmResult:
    order_id: str
    success: bool
    status: str


# ════════════════════════════════════════════════════════════════════
# Service
# ════════════════════════════════════════════════════════════════════


class CheckoutService:
    def __init__(
        self,
        store: OrderStore,
        gateway: HypClient,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        locks: KeyedLocks = order_locks,
    ):
        self.store = store
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.settings = settings
        self.locks = locks

    def _sign_request(self, order_id: str, details: CustomerDetails, totals: Totals) -> SignRequest:
        first, last = _split_name(details.fullname)
        street = f"{details.street} {details.house_number}".strip()
        return SignRequest(
            order_id=order_id,
            info=f"{self.settings.shop_name} order {order_id}",
            amount=to_minor_units(totals.total),
            coin=self.settings.hyp_coin,
            client_name=first or None,
            client_last_name=last,
            phone=details.phone or None,
            cell=details.phone or None,
            email=details.email or None,
            street=street or None,
            city=details.city or None,
            zip=details.zip or None,
            options=self.settings.hyp_options(),
        )

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """
        Start a hosted-payment checkout.

        Raises:
            ValidationError: empty cart, missing customer fields, or a
                non-positive total. Nothing is stored in that case.
            GatewayError: signing failed. The pending order stays behind.
        """
        if not request.cart:
            raise ValidationError("Cart is empty", field="cart")

        missing = request.customer_details.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing customer details: {', '.join(missing)}",
                field="customerDetails",
                details={"missing": missing},
            )

        totals = compute_totals(request.cart)
        if not math.isfinite(totals.total) or totals.total <= 0:
            raise ValidationError("Order total must be positive", field="cart")

        order_id = generate_order_id()
        await self.store.create(OrderDraft(
            gateway_order_id=order_id,
            customer_details=request.customer_details.model_dump(by_alias=True),
            cart=[item.model_dump(by_alias=True, mode="json") for item in request.cart],
            totals=totals.model_dump(by_alias=True),
            source=request.source,
            section=request.section,
        ))
        logger.info(
            f"Order {order_id} created pending payment "
            f"(total={totals.total}, items={len(request.cart)}, source={request.source})"
        )

        signed = await self.gateway.sign(
            self._sign_request(order_id, request.customer_details, totals)
        )

        return CheckoutResult(
            redirect_url=signed.redirect_url,
            order_id=order_id,
            totals=totals,
            return_urls=build_return_urls(self.settings),
        )

    async def confirm(self, callback_params: Mapping[str, str]) -> ConfirmResult:
        """
        Settle an order from the gateway's payment callback.

        A declined payment is a normal result (``success=False``). ``success``
        is only true when the order ends up paid.

        Raises:
            ValidationError: callback lacks the order id or result code.
            GatewayError: verification transport/protocol failure.
            NotFoundError: no order with this gateway order id.
        """
        order_id = str(callback_params.get(HYP_ORDER_FIELD) or "").strip()
        declared_ccode = str(callback_params.get(HYP_CCODE_FIELD) or "").strip()
        if not order_id:
            raise ValidationError(f"Missing {HYP_ORDER_FIELD}", field=HYP_ORDER_FIELD)
        if not declared_ccode:
            raise ValidationError(f"Missing {HYP_CCODE_FIELD}", field=HYP_CCODE_FIELD)

        async with self.locks.hold(order_id):
            verification = await self.gateway.verify(callback_params)
            success = verification.verified

            order = await self.store.find_by_gateway_order_id(order_id)
            if order is None:
                logger.warning(f"Payment callback for unknown order {order_id}")
                raise NotFoundError("Order", order_id)

            if not OrderStatus(order.status).is_terminal:
                order.payment_ccode = verification.ccode
                order.payment_transaction_id = verification.transaction_id
                order.payment_raw = dict(verification.raw)
                order.payment_verified_at = datetime.utcnow()
                order.status = (OrderStatus.PAID if success else OrderStatus.FAILED).value
                await self.store.save(order)
                logger.info(
                    f"Order {order_id} settled: status={order.status} ccode={verification.ccode}"
                )
            elif success and order.status == OrderStatus.FAILED.value:
                logger.warning(
                    f"Approved callback for failed order {order_id} ignored "
                    f"(ccode={verification.ccode})"
                )
            else:
                logger.info(
                    f"Repeat callback for settled order {order_id} "
                    f"(status={order.status}, ccode={verification.ccode})"
                )

            paid = order.status == OrderStatus.PAID.value
            if success and paid:
                await self.dispatcher.notify_paid(order)

            return ConfirmResult(order_id=order_id, success=success and paid, status=order.status)

    async def mark_paid(self, order_id: str) -> ConfirmResult:
        """Force ``order_id`` to paid without a gateway round-trip (development only)."""
        async with self.locks.hold(order_id):
            order = await self.get_order(order_id)
            if order.status == OrderStatus.FAILED.value:
                raise ValidationError(f"Order {order_id} already failed")

            if order.status != OrderStatus.PAID.value:
                order.payment_ccode = HYP_SUCCESS_CCODE
                order.payment_raw = {"source": "dev-mark-paid"}
                order.payment_verified_at = datetime.utcnow()
                order.status = OrderStatus.PAID.value
                await self.store.save(order)
                logger.warning(f"Order {order_id} manually marked paid")

            await self.dispatcher.notify_paid(order)
            return ConfirmResult(order_id=order_id, success=True, status=order.status)

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.find_by_gateway_order_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order
