"""
Read-only order listing for the studio owner, guarded by X-Admin-Key.
"""

import logging

from fastapi import APIRouter, Depends

from deps import Pagination, get_checkout_service, get_order_store, pagination_params
from domain.responses import ok_response, paginated_response
from middleware.auth import require_admin_key
from services.checkout_service import CheckoutService
from services.order_store import OrderStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"], dependencies=[Depends(require_admin_key)])


@router.get("")
async def list_orders(
    page: Pagination = Depends(pagination_params),
    store: OrderStore = Depends(get_order_store),
):
    orders, total = await store.list_recent(limit=page["limit"], offset=page["offset"])
    return paginated_response(
        [o.to_dict() for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    order = await service.get_order(order_id)
    return ok_response(order=order.to_dict())
