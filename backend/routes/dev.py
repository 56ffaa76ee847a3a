"""
Development-only endpoints.

Mounted always, but every request answers 404 unless DEV_SECRET is set
outside production, and 401 unless X-Dev-Secret matches it exactly.
"""

import logging

from fastapi import APIRouter, Depends

from deps import get_checkout_service
from middleware.auth import require_dev_secret
from models import ConfirmResponse
from services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/dev", tags=["dev"], dependencies=[Depends(require_dev_secret)])


@router.post("/mark-paid/{order_id}")
async def mark_paid(
    order_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Force an order to paid and run the notification dispatcher."""
    result = await service.mark_paid(order_id)
    return ConfirmResponse(
        order_id=result.order_id,
        success=result.success,
        status=result.status,
    ).model_dump(by_alias=True)
