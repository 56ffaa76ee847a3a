"""
Order store — persistence for the Order aggregate.

Orders are keyed by the store-assigned integer id and looked up by the
gateway order id (``payment_order_id``, unique). Saves are optimistic: the
mapper's version counter turns a lost update into ConflictError.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from db_models import Order
from domain.constants import PAYMENT_PROVIDER
from domain.enums import OrderStatus
from domain.errors import ConflictError

logger = logging.getLogger(__name__)


@dataclass
class OrderDraft:
    """Everything checkout knows about an order before it is stored."""
    gateway_order_id: str
    customer_details: dict
    cart: list[dict]
    totals: dict
    source: str = "site"
    section: str = ""


class OrderStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, draft: OrderDraft) -> Order:
        """Insert a new order; status is always ``pending_payment``."""
        order = Order(
            source=draft.source or "site",
            section=draft.section or "",
            customer_details=draft.customer_details,
            cart=draft.cart,
            totals=draft.totals,
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_provider=PAYMENT_PROVIDER,
            payment_order_id=draft.gateway_order_id,
            payment_ccode="",
            payment_transaction_id="",
            payment_raw=None,
            payment_verified_at=None,
            admin_mail_sent=False,
            customer_mail_sent=False,
            admin_mail_error="",
            customer_mail_error="",
        )
        self.db.add(order)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            # Order ids are generated per checkout; a clash means the generator is broken
            raise RuntimeError(
                f"Duplicate gateway order id: {draft.gateway_order_id}"
            ) from e
        await self.db.refresh(order)
        return order

    async def get(self, order_pk: int) -> Order | None:
        res = await self.db.execute(select(Order).where(Order.id == order_pk))
        return res.scalar_one_or_none()

    async def find_by_gateway_order_id(self, gateway_order_id: str) -> Order | None:
        res = await self.db.execute(
            select(Order).where(Order.payment_order_id == gateway_order_id)
        )
        return res.scalar_one_or_none()

    async def save(self, order: Order) -> None:
        """Persist the mutable subset (payment, status, mail state)."""
        gateway_order_id = order.payment_order_id
        self.db.add(order)
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent update lost for order {gateway_order_id}")
            raise ConflictError(
                f"Order {gateway_order_id} was modified concurrently"
            ) from e

    async def list_recent(self, *, limit: int = 20, offset: int = 0) -> tuple[list[Order], int]:
        res = await self.db.execute(
            select(Order)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self.db.scalar(select(func.count()).select_from(Order))
        return list(res.scalars().all()), int(total or 0)
