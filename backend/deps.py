"""
Shared FastAPI dependencies.

Centralizes the wiring of services so routers import from a single place
(DB session, order store, gateway client, mailer, checkout service,
pagination). Tests swap any of these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings
from database import get_db
from services.checkout_service import CheckoutService
from services.hyp_client import HypClient
from services.mail_service import Mailer, SmtpMailer
from services.notification_service import NotificationDispatcher
from services.order_store import OrderStore


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_order_store(db: AsyncSession = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_hyp_client(settings: Settings = Depends(get_settings)) -> HypClient:
    return HypClient(settings.hyp_credentials(), timeout=settings.hyp_timeout_seconds)


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return SmtpMailer(settings)


def get_checkout_service(
    store: OrderStore = Depends(get_order_store),
    gateway: HypClient = Depends(get_hyp_client),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> CheckoutService:
    dispatcher = NotificationDispatcher(store, mailer, settings)
    return CheckoutService(store, gateway, dispatcher, settings)
