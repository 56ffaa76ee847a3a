"""
Notification service — admin and customer mail for a paid order.

At-most-once per recipient: a recipient whose ``*_mail_sent`` flag is set is
never mailed again, so repeated payment callbacks cannot double-send.
Failures are recorded on the order (``*_mail_error``) and never raised; a
payment must not be reported as failed because a mail could not go out.
"""
import logging

from config import Settings
from db_models import Order
from exceptions import MailError, MailNotConfiguredError
from services.mail_service import Mailer, MailMessage, OrderMailRenderer
from services.order_store import OrderStore

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        store: OrderStore,
        mailer: Mailer,
        settings: Settings,
        renderer: OrderMailRenderer | None = None,
    ):
        self.store = store
        self.mailer = mailer
        self.admin_email = settings.admin_email.strip()
        self.sender = settings.mail_sender
        self.renderer = renderer or OrderMailRenderer()

    async def _deliver(self, build) -> str:
        """Render and send; returns the error text, or "" on success."""
        try:
            message: MailMessage = build()
            await self.mailer.send(message, self.sender)
        except MailError as e:
            return str(e) or e.__class__.__name__
        except Exception as e:
            logger.exception("Unexpected mail failure")
            return f"{e.__class__.__name__}: {e}"
        return ""

    async def _notify_admin(self, order: Order) -> None:
        def build():
            if not self.admin_email:
                raise MailNotConfiguredError("ADMIN_EMAIL is missing")
            return self.renderer.admin_message(order, self.admin_email)

        error = await self._deliver(build)
        order.admin_mail_sent = not error
        order.admin_mail_error = error
        if error:
            logger.warning(f"Admin mail failed for order {order.payment_order_id}: {error}")
        else:
            logger.info(f"Admin mail sent for order {order.payment_order_id}")

    async def _notify_customer(self, order: Order) -> None:
        error = await self._deliver(lambda: self.renderer.customer_message(order))
        order.customer_mail_sent = not error
        order.customer_mail_error = error
        if error:
            logger.warning(f"Customer mail failed for order {order.payment_order_id}: {error}")
        else:
            logger.info(f"Customer mail sent for order {order.payment_order_id}")

    async def notify_paid(self, order: Order) -> None:
        """Send whatever is still unsent for ``order``, then persist mail state once."""
        gateway_order_id = order.payment_order_id
        attempted = False

        if not order.admin_mail_sent:
            attempted = True
            await self._notify_admin(order)

        if order.customer_email and not order.customer_mail_sent:
            attempted = True
            await self._notify_customer(order)

        if not attempted:
            return

        try:
            await self.store.save(order)
        except Exception:
            # Unsent recipients are retried on the next confirmation
            logger.exception(f"Could not persist mail state for order {gateway_order_id}")
