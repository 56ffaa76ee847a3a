"""
Mail service — renders and delivers transactional order mail.

Rendering uses Jinja2 templates under ``templates/emails`` (HTML with
autoescape plus a plain-text alternative). Delivery goes through a Mailer;
SmtpMailer talks to the configured SMTP server on a worker thread.
"""
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from config import Settings
from db_models import Order
from domain.constants import LEGACY_SIZE_LABELS, PAIR_UNIT_PRICE, TRIPLE_UNIT_PRICE
from exceptions import MailError, MailNotConfiguredError
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    text: str
    html: str
    reply_to: Optional[str] = None


class Mailer(ABC):
    """Outbound mail channel."""

    @abstractmethod
    async def send(self, message: MailMessage, sender: str) -> None:
        """Deliver ``message``. Raises MailError on any failure."""
        ...


class SmtpMailer(Mailer):
    """Mailer backed by an SMTP server (STARTTLS or implicit TLS)."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.use_ssl = settings.smtp_uses_ssl
        self.user = settings.smtp_user
        self.password = settings.smtp_pass

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    def _deliver(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30) as server:
                server.login(self.user, self.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.send_message(msg)

    async def send(self, message: MailMessage, sender: str) -> None:
        if not self.configured:
            raise MailNotConfiguredError("SMTP not configured")

        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        if message.reply_to:
            msg["Reply-To"] = message.reply_to
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype="html")

        try:
            await run_blocking(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(str(e) or e.__class__.__name__) from e


# ════════════════════════════════════════════════════════════════════
# Rendering
# ════════════════════════════════════════════════════════════════════


def format_ils(value) -> str:
    """Whole-shekel amount, e.g. ``1,250 ₪``."""
    try:
        return f"{float(value or 0):,.0f} ₪"
    except (TypeError, ValueError):
        return "0 ₪"


def unit_price_label(item: dict) -> str:
    """Unit price column: fixed set prices, free-form price, or a dash for tiered canvases."""
    category = str(item.get("category") or "").strip()
    by_size = LEGACY_SIZE_LABELS.get(str(item.get("size") or "").strip(), "")
    if "standard" in (by_size, category):
        return "—"
    if "pair" in (by_size, category):
        return format_ils(PAIR_UNIT_PRICE)
    if "triple" in (by_size, category):
        return format_ils(TRIPLE_UNIT_PRICE)
    price = item.get("price")
    return format_ils(price) if isinstance(price, (int, float)) and price else "—"


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["ils"] = format_ils
_env.filters["unit_price"] = unit_price_label


class OrderMailRenderer:
    """Builds the admin and customer messages for a paid order."""

    def __init__(self, env: Environment = _env):
        self.env = env

    def _context(self, order: Order) -> dict:
        details = order.customer_details or {}
        address = f"{details.get('street', '')} {details.get('houseNumber', '')}, {details.get('city', '')}".strip()
        return {
            "order_id": order.payment_order_id or str(order.id),
            "source": order.source,
            "section": order.section,
            "status": order.status,
            "customer": details,
            "address": address,
            "cart": order.cart or [],
            "totals": order.totals or {},
        }

    def _render(self, name: str, context: dict) -> tuple[str, str]:
        try:
            html = self.env.get_template(f"{name}.html").render(**context)
            text = self.env.get_template(f"{name}.txt").render(**context)
        except TemplateError as e:
            raise MailError(f"Template {name} failed to render: {e}") from e
        return text, html

    def admin_message(self, order: Order, to: str) -> MailMessage:
        context = self._context(order)
        text, html = self._render("admin_order", context)
        return MailMessage(
            to=to,
            subject=f"הזמנה חדשה {context['order_id']}",
            text=text,
            html=html,
            reply_to=order.customer_email or None,
        )

    def customer_message(self, order: Order) -> MailMessage:
        context = self._context(order)
        text, html = self._render("customer_order", context)
        return MailMessage(
            to=order.customer_email,
            subject=f"אישור הזמנה {context['order_id']}",
            text=text,
            html=html,
        )
