"""
Checkout endpoints — start a hosted payment, settle the gateway callback,
and report order status to the storefront.
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from config import settings
from deps import get_checkout_service
from middleware.rate_limit import rate_limit
from models import CheckoutRequest, CheckoutResponse, ConfirmResponse, OrderStatusResponse
from services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["checkout"])


@router.post(
    "/checkout",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(settings.checkout_rate_limit, settings.checkout_rate_window_seconds))],
)
async def create_checkout(
    body: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
):
    result = await service.checkout(body)
    return CheckoutResponse(
        payment_url=result.redirect_url,
        order_id=result.order_id,
        totals=result.totals,
        redirects=result.return_urls,
    ).model_dump(by_alias=True)


@router.get("/confirm-payment")
async def confirm_payment(
    request: Request,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Gateway return URL. A declined card still answers 200 with ``success: false``."""
    result = await service.confirm(dict(request.query_params))
    return ConfirmResponse(
        order_id=result.order_id,
        success=result.success,
        status=result.status,
    ).model_dump(by_alias=True)


@router.get("/status/{order_id}")
async def order_status(
    order_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    order = await service.get_order(order_id)
    return OrderStatusResponse(
        order_id=order.payment_order_id,
        status=order.status,
        admin_mail_sent=order.admin_mail_sent,
        customer_mail_sent=order.customer_mail_sent,
        admin_mail_error=order.admin_mail_error or "",
        customer_mail_error=order.customer_mail_error or "",
    ).model_dump(by_alias=True)
